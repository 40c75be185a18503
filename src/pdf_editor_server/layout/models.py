"""Document model shared by the parser, the editor UI and the exporters.

Python attributes are snake_case; the JSON shape exchanged with the editor is
camelCase. Use ``model_dump(by_alias=True)`` (or ``Document.to_json_dict``)
when sending a model over the wire.
"""

from datetime import datetime, timezone
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from .typography import format_list_marker

BlockType = Literal["paragraph", "heading", "table", "list", "image", "quote", "code"]
FontStyle = Literal["normal", "italic", "oblique"]
TextAlign = Literal["left", "center", "right", "justify"]
ListType = Literal["bullet", "numbered", "alpha", "roman"]

TEXT_BLOCK_TYPES = ("paragraph", "heading", "quote", "code")

# Fixed per-detector confidence, not computed from the input
DETECTOR_CONFIDENCE = {
    "heading": 0.9,
    "table": 0.8,
    "list": 0.85,
    "paragraph": 0.9,
}
USER_BLOCK_CONFIDENCE = 1.0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_id() -> str:
    return uuid4().hex


class CamelModel(BaseModel):
    """Base for every model in the JSON contract."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Point(CamelModel):
    x: float
    y: float


class Size(CamelModel):
    width: float
    height: float


class BlockPosition(CamelModel):
    """Axis-aligned box in layout space (top-left origin, Y down)."""

    x: float = Field(ge=0)
    y: float = Field(ge=0)
    width: float = Field(ge=0)
    height: float = Field(ge=0)

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height


class BlockStyle(CamelModel):
    font_size: float = 12.0
    font_weight: str = "normal"  # "normal", "bold" or a numeric CSS weight
    font_style: FontStyle = "normal"
    font_family: str = "Arial, sans-serif"
    text_align: TextAlign = "left"
    color: str = "#000000"
    background_color: str | None = None
    line_height: float = 1.4
    letter_spacing: float | None = None
    heading_level: int | None = Field(default=None, ge=1, le=6)
    list_type: ListType | None = None


class TextRun(CamelModel):
    """A source glyph run kept on a block for provenance."""

    text: str
    font_size: float
    font_weight: str = "normal"
    font_style: FontStyle = "normal"
    color: str = "#000000"
    position: Point


class BlockMetadata(CamelModel):
    confidence: float = Field(ge=0.0, le=1.0)
    original_font_size: float = 12.0
    original_color: str = "#000000"
    original_bounds: BlockPosition | None = None
    text_runs: list[TextRun] = Field(default_factory=list)
    is_edited: bool = False
    edited_at: datetime | None = None


class TableCell(CamelModel):
    content: str
    colspan: int = 1
    rowspan: int = 1
    style: dict | None = None


class TableRow(CamelModel):
    cells: list[TableCell]
    is_header: bool = False


class TableContent(CamelModel):
    rows: list[TableRow]
    column_count: int
    has_header: bool = False


class ListItem(CamelModel):
    content: str
    level: int = Field(default=1, ge=1)
    marker: str


class ListContent(CamelModel):
    items: list[ListItem]
    type: ListType
    is_ordered: bool


class ImageContent(CamelModel):
    src: str
    alt: str = ""
    caption: str | None = None
    original_format: str = "png"


BlockContent = str | TableContent | ListContent | ImageContent

_CONTENT_TYPES = {
    "table": TableContent,
    "list": ListContent,
    "image": ImageContent,
}


class Block(CamelModel):
    """The editable unit of a page."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, validate_assignment=True
    )

    id: str = Field(default_factory=generate_id)
    type: BlockType
    content: BlockContent
    position: BlockPosition
    style: BlockStyle = Field(default_factory=BlockStyle)
    metadata: BlockMetadata

    @model_validator(mode="after")
    def _content_matches_type(self) -> "Block":
        expected = _CONTENT_TYPES.get(self.type, str)
        if not isinstance(self.content, expected):
            raise ValueError(
                f"{self.type} block needs {expected.__name__} content, "
                f"got {type(self.content).__name__}"
            )
        return self


class PageDimensions(CamelModel):
    width: float
    height: float
    scale: float = 1.0


class PageMetadata(CamelModel):
    rotation: int = 0
    original_dimensions: Size | None = None


class Page(CamelModel):
    page_number: int = Field(ge=1)
    dimensions: PageDimensions
    metadata: PageMetadata = Field(default_factory=PageMetadata)
    blocks: list[Block] = Field(default_factory=list)

    def get_block(self, block_id: str) -> Block | None:
        return next((b for b in self.blocks if b.id == block_id), None)

    def add_block(self, block: Block) -> Block:
        self.blocks.append(block)
        return block

    def remove_block(self, block_id: str) -> bool:
        """Remove a block on behalf of the editor. Returns False if it was not on this page."""
        remaining = [b for b in self.blocks if b.id != block_id]
        removed = len(remaining) != len(self.blocks)
        self.blocks = remaining
        return removed

    def edited_blocks(self) -> list[Block]:
        return [b for b in self.blocks if b.metadata.is_edited]


class DocumentMetadata(CamelModel):
    title: str | None = None
    author: str | None = None
    page_count: int = 0
    original_file_name: str | None = None
    original_file_size: int | None = None
    language: str | None = None
    # Kept in memory so export can modify the source in place; never serialized
    original_pdf_bytes: bytes | None = Field(default=None, exclude=True, repr=False)


class Document(CamelModel):
    id: str = Field(default_factory=generate_id)
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)
    pages: list[Page] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @model_validator(mode="after")
    def _pages_numbered_in_order(self) -> "Document":
        for index, page in enumerate(self.pages, start=1):
            if page.page_number != index:
                raise ValueError(
                    f"pages must be numbered 1..N in order, page {index} has number {page.page_number}"
                )
        return self

    def to_json_dict(self) -> dict:
        """Serialize to the camelCase JSON shape used by the editor."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)

    def get_page(self, page_number: int) -> Page | None:
        if 1 <= page_number <= len(self.pages):
            return self.pages[page_number - 1]
        return None

    def find_block(self, block_id: str) -> tuple[Page, Block] | None:
        for page in self.pages:
            block = page.get_block(block_id)
            if block is not None:
                return page, block
        return None


def default_style(block_type: str) -> BlockStyle:
    """Default style for a freshly created block of the given type."""
    if block_type == "heading":
        return BlockStyle(font_size=18.0, font_weight="bold", heading_level=2)
    if block_type == "quote":
        return BlockStyle(font_style="italic", color="#666666")
    if block_type == "code":
        return BlockStyle(
            font_family="Monaco, Consolas, monospace", background_color="#f5f5f5"
        )
    if block_type == "list":
        return BlockStyle(list_type="bullet")
    return BlockStyle()


def _empty_content(block_type: str) -> BlockContent:
    if block_type == "table":
        return TableContent(rows=[], column_count=0, has_header=False)
    if block_type == "list":
        return ListContent(items=[], type="bullet", is_ordered=False)
    if block_type == "image":
        return ImageContent(src="", alt="")
    return ""


def create_empty_document() -> Document:
    return Document()


def create_empty_block(block_type: str, position: BlockPosition) -> Block:
    """Create a user-authored block with empty content of the right shape."""
    return Block(
        type=block_type,
        content=_empty_content(block_type),
        position=position,
        style=default_style(block_type),
        metadata=BlockMetadata(
            confidence=USER_BLOCK_CONFIDENCE,
            original_bounds=position,
        ),
    )


def _mark_edited(block: Block) -> Block:
    block.metadata.is_edited = True
    block.metadata.edited_at = _utcnow()
    return block


def update_block_content(block: Block, content: BlockContent) -> Block:
    """Replace a block's content and flag it as edited.

    Raises:
        pydantic.ValidationError: If the content shape does not match block.type.
            The block is left unchanged.
    """
    # Validate a detached copy first; assignment would keep the bad value on failure
    Block.model_validate({**dict(block), "content": content})
    block.content = content
    return _mark_edited(block)


def update_block_style(block: Block, **changes) -> Block:
    """Apply style changes given as snake_case keyword arguments."""
    block.style = BlockStyle.model_validate({**block.style.model_dump(), **changes})
    return _mark_edited(block)


def move_block(block: Block, position: BlockPosition) -> Block:
    block.position = position
    return _mark_edited(block)


def block_plain_text(block: Block) -> str:
    """Flatten any block into plain text, one logical line per list item or table row."""
    content = block.content
    if isinstance(content, str):
        return content
    if isinstance(content, ListContent):
        lines = []
        for index, item in enumerate(content.items, start=1):
            marker = item.marker or format_list_marker(content.type, index)
            lines.append(f"{marker} {item.content}")
        return "\n".join(lines)
    if isinstance(content, TableContent):
        return "\n".join(
            " | ".join(cell.content for cell in row.cells) for row in content.rows
        )
    if isinstance(content, ImageContent):
        return f"[Image: {content.alt or 'Untitled'}]"
    return ""


def block_preview_text(block: Block) -> str:
    """Short human-readable summary for block lists in the editor."""
    content = block.content
    if isinstance(content, str):
        return content[:100] + ("..." if len(content) > 100 else "")
    if isinstance(content, TableContent):
        return f"Table ({len(content.rows)} rows, {content.column_count} cols)"
    if isinstance(content, ListContent):
        return f"{content.type} list ({len(content.items)} items)"
    if isinstance(content, ImageContent):
        return f"Image: {content.alt or 'Untitled'}"
    return "Unknown block type"


def validate_document(document: Document) -> list[str]:
    """Check structural invariants the type system cannot express.

    Returns:
        A list of error messages; empty when the document is valid.
    """
    errors = []
    if not document.id:
        errors.append("Document ID is required")
    if document.metadata.page_count and document.metadata.page_count != len(document.pages):
        errors.append(
            f"Page count mismatch: metadata says {document.metadata.page_count}, "
            f"document has {len(document.pages)} pages"
        )

    for index, page in enumerate(document.pages, start=1):
        if page.page_number != index:
            errors.append(f"Page {index}: Invalid page number {page.page_number}")
        seen_ids = set()
        for block in page.blocks:
            if block.id in seen_ids:
                errors.append(f"Page {index}: Duplicate block id {block.id}")
            seen_ids.add(block.id)
            position = block.position
            if min(position.x, position.y, position.width, position.height) < 0:
                errors.append(f"Page {index}: Block {block.id} has a negative position")
            expected = _CONTENT_TYPES.get(block.type, str)
            if not isinstance(block.content, expected):
                errors.append(
                    f"Page {index}: Block {block.id} content does not match type {block.type}"
                )
            if block.position.right > page.dimensions.width + 1 or (
                block.position.bottom > page.dimensions.height + 1
            ):
                errors.append(f"Page {index}: Block {block.id} extends past the page")

    return errors
