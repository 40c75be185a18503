"""Re-render edited blocks onto the original PDF.

Each edited block is painted over with a white rectangle and its new text is
drawn inside the old footprint. Layout decisions (cover box, font, size,
wrapping, baselines) are made by plan_block_edit without touching a PDF;
ReflowEngine only applies the plans through the backend.
"""

import math
import time
from dataclasses import dataclass, field

from ..logger import get_context, logger, restore_context, set_context
from .backend import (
    FALLBACK_FONT,
    FitzBackend,
    FontHandle,
    FontSpec,
    PdfBackend,
    PdfDocumentHandle,
    PdfPageHandle,
)
from .config import ReflowConfig
from .models import Block, Document, block_plain_text
from .typography import is_bold_weight, is_near_white, layout_to_pdf_y, parse_color

RGB = tuple[float, float, float]
WHITE: RGB = (1.0, 1.0, 1.0)
BLACK: RGB = (0.0, 0.0, 0.0)


class ExportError(Exception):
    """Raised when the edited PDF cannot be produced at all."""

    pass


@dataclass(frozen=True)
class CoverRect:
    """Opaque rectangle in PDF space hiding the original text."""

    x: float
    y: float
    width: float
    height: float
    fill: RGB = WHITE


@dataclass(frozen=True)
class TextLineOp:
    """One line of text to draw, baseline at (x, y) in PDF space."""

    x: float
    y: float
    text: str
    font: FontSpec
    size: float
    color: RGB


@dataclass
class BlockEditPlan:
    block_id: str
    cover: CoverRect
    lines: list[TextLineOp] = field(default_factory=list)


def block_text(block: Block) -> str:
    """Text to draw for a block: string content as is, structured content flattened."""
    if isinstance(block.content, str):
        return block.content
    return block_plain_text(block)


def select_font(block: Block) -> FontSpec:
    """Map the block's CSS-like font family and weight onto a Base-14 face."""
    family = (block.style.font_family or "").lower()
    if block.type == "code" or any(key in family for key in ("mono", "courier", "code")):
        base = "courier"
    elif ("times" in family or "serif" in family) and "sans" not in family:
        base = "times"
    else:
        base = "helvetica"
    return FontSpec(
        family=base,
        bold=is_bold_weight(block.style.font_weight),
        italic=block.style.font_style in ("italic", "oblique"),
    )


def compute_font_size(block: Block, config: ReflowConfig | None = None) -> float:
    """Font size derived from the block height, clamped per block type."""
    config = config or ReflowConfig()
    height = block.position.height
    if block.type == "heading":
        size = min(height * config.heading_height_ratio, config.heading_font_max)
        return max(config.heading_font_min, size)
    size = min(height * config.body_height_ratio, config.body_font_max)
    return max(config.body_font_min, size)


def text_color(block: Block) -> RGB:
    """The block's color, or black when it would be invisible on the white cover."""
    rgb = parse_color(block.style.color)
    return BLACK if is_near_white(rgb) else rgb


def estimate_text_width(text: str, font_size: float, char_width_ratio: float = 0.6) -> float:
    return len(text) * font_size * char_width_ratio


def _wrap_words(text: str, max_chars: int) -> list[str]:
    lines = []
    current = ""
    for word in text.split():
        if len(word) > max_chars * 2:
            if current:
                lines.append(current)
                current = ""
            piece = max(1, max_chars - 1)
            while len(word) > max_chars:
                lines.append(word[:piece] + "-")
                word = word[piece:]
            current = word
            continue

        candidate = f"{current} {word}" if current else word
        if len(candidate) <= max_chars or not current:
            current = candidate
        else:
            lines.append(current)
            current = word

    if current:
        lines.append(current)
    return lines


def wrap_text_intelligently(
    text: str, max_width: float, font_size: float, config: ReflowConfig | None = None
) -> list[str]:
    """Wrap text to a box width using average character widths.

    Text that fits on one line is returned untouched. Otherwise words are
    packed greedily; a word more than twice the line budget is hyphenated,
    a shorter overlong word is left to overflow. Explicit newlines are kept.
    """
    config = config or ReflowConfig()
    max_chars = max(1, math.floor(max_width / (font_size * config.wrap_char_width_ratio)))

    lines = []
    for paragraph in text.split("\n"):
        paragraph = paragraph.strip()
        if not paragraph:
            continue
        if estimate_text_width(paragraph, font_size, config.fit_char_width_ratio) <= max_width:
            lines.append(paragraph)
        else:
            lines.extend(_wrap_words(paragraph, max_chars))
    return lines


def plan_block_edit(
    block: Block, page_height: float, config: ReflowConfig | None = None
) -> BlockEditPlan | None:
    """Work out how to redraw one edited block.

    Args:
        block: The edited block, positioned in layout space.
        page_height: Height of the target PDF page.
        config: Reflow constants.

    Returns:
        The plan, or None when the block has no text left (nothing is drawn,
        not even the cover).
    """
    config = config or ReflowConfig()
    text = block_text(block)
    if not text.strip():
        return None

    position = block.position
    pdf_y = layout_to_pdf_y(position.y, position.height, page_height)
    padding = config.cover_padding
    cover = CoverRect(
        x=max(0.0, position.x - padding),
        y=max(0.0, pdf_y - padding),
        width=position.width + padding * 2,
        height=position.height + padding * 2,
    )

    font = select_font(block)
    size = compute_font_size(block, config)
    color = text_color(block)
    wrapped = wrap_text_intelligently(text, position.width, size, config)

    pitch = size * config.line_pitch
    centre = pdf_y + position.height / 2
    top = pdf_y + position.height
    first_baseline = (
        centre + (len(wrapped) - 1) * pitch / 2 - size * config.baseline_offset_ratio
    )
    # Keep the first line's ascenders inside the block
    first_baseline = min(first_baseline, top - size * config.top_clearance_ratio)

    ops = []
    for index, line in enumerate(wrapped):
        baseline = first_baseline - index * pitch
        if index > 0 and baseline < pdf_y:
            break
        ops.append(
            TextLineOp(
                x=position.x + config.text_inset,
                y=baseline,
                text=line,
                font=font,
                size=size,
                color=color,
            )
        )

    return BlockEditPlan(block_id=block.id, cover=cover, lines=ops)


class FontCache:
    """Fonts embedded into one output document, at most once per face."""

    def __init__(self, handle: PdfDocumentHandle):
        self._handle = handle
        self._fonts: dict[FontSpec, FontHandle] = {}

    def get(self, spec: FontSpec) -> FontHandle:
        font = self._fonts.get(spec)
        if font is not None:
            return font
        try:
            font = self._handle.embed_font(spec)
        except Exception as e:
            if spec == FALLBACK_FONT:
                raise
            logger.warn(
                "font embedding failed, falling back to helvetica",
                font=spec.base14_name,
                error=str(e),
            )
            font = self.get(FALLBACK_FONT)
        self._fonts[spec] = font
        return font

    def __len__(self) -> int:
        return len(self._fonts)


def apply_plan(page: PdfPageHandle, plan: BlockEditPlan, fonts: FontCache) -> None:
    cover = plan.cover
    page.draw_rect(cover.x, cover.y, cover.width, cover.height, fill=cover.fill)
    for op in plan.lines:
        page.draw_text(op.x, op.y, op.text, fonts.get(op.font), op.size, op.color)


class ReflowEngine:
    """Writes a Document's edited blocks back into its source PDF."""

    def __init__(self, backend: PdfBackend | None = None, config: ReflowConfig | None = None):
        self.backend = backend or FitzBackend()
        self.config = config or ReflowConfig()

    def export_modified_pdf(
        self, document: Document, original_bytes: bytes | None = None
    ) -> bytes:
        """Produce the edited PDF.

        Args:
            document: The edited Document. Only blocks with is_edited set are redrawn.
            original_bytes: Source PDF; defaults to the bytes kept from parsing.

        Returns:
            The modified PDF bytes.

        Raises:
            ExportError: If there is no source PDF or it cannot be opened or saved.
        """
        pdf_bytes = original_bytes or document.metadata.original_pdf_bytes
        if not pdf_bytes:
            raise ExportError("No original PDF bytes available for export")

        saved_context = get_context()
        set_context(document_id=document.id)
        try:
            start = time.perf_counter()
            try:
                handle = self.backend.open(pdf_bytes)
            except Exception as e:
                raise ExportError(f"Failed to load original PDF: {e}") from e

            with handle:
                if handle.page_count != len(document.pages):
                    logger.warn(
                        "page count mismatch between document and pdf",
                        document_pages=len(document.pages),
                        pdf_pages=handle.page_count,
                    )

                fonts = FontCache(handle)
                rendered, failed = 0, 0
                for index in range(min(len(document.pages), handle.page_count)):
                    model_page = document.pages[index]
                    edited = model_page.edited_blocks()
                    if not edited:
                        continue
                    pdf_page = handle.get_page(index + 1)
                    for block in edited:
                        try:
                            plan = plan_block_edit(block, pdf_page.height, self.config)
                            if plan is None:
                                continue
                            apply_plan(pdf_page, plan, fonts)
                            rendered += 1
                        except Exception as e:
                            failed += 1
                            logger.error(
                                "failed to re-render block",
                                page_number=index + 1,
                                block_id=block.id,
                                error=str(e),
                                exc_info=True,
                            )

                try:
                    output = handle.save()
                except Exception as e:
                    raise ExportError(f"Failed to save edited PDF: {e}") from e

            duration_ms = (time.perf_counter() - start) * 1000
            logger.info(
                "pdf exported",
                blocks_rendered=rendered,
                blocks_failed=failed,
                fonts_embedded=len(fonts),
                output_size=len(output),
                duration_ms=round(duration_ms, 2),
            )
            return output
        finally:
            restore_context(saved_context)
