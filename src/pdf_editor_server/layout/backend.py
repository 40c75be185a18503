"""PDF capability interface and its PyMuPDF implementation.

The parser and the reflow engine only talk to PdfBackend / PdfDocumentHandle /
PdfPageHandle. Coordinates crossing this interface are PDF content-stream
coordinates (origin bottom-left, Y up); FitzBackend converts to and from
PyMuPDF's top-left page space internally.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

import fitz  # PyMuPDF

from ..logger import logger
from .typography import int_color_to_hex

# Standard Base-14 faces PyMuPDF can write without a font file
BASE14_FONTS = {
    ("helvetica", False, False): "helv",
    ("helvetica", True, False): "hebo",
    ("helvetica", False, True): "heit",
    ("helvetica", True, True): "hebi",
    ("times", False, False): "tiro",
    ("times", True, False): "tibo",
    ("times", False, True): "tiit",
    ("times", True, True): "tibi",
    ("courier", False, False): "cour",
    ("courier", True, False): "cobo",
    ("courier", False, True): "coit",
    ("courier", True, True): "cobi",
}

_initialized = False


def ensure_initialized() -> None:
    """One-time PyMuPDF setup for the whole process. Safe to call repeatedly."""
    global _initialized
    if _initialized:
        return
    # Broken PDFs make MuPDF print to stderr; failures still raise
    fitz.TOOLS.mupdf_display_errors(False)
    _initialized = True
    logger.debug("pdf backend initialized", mupdf_version=fitz.VersionBind)


@dataclass(frozen=True)
class RawTextRun:
    """A glyph run as reported by the backend, in upward-Y PDF space.

    transform is the text matrix [a, b, c, d, e, f]: |d| is the font size for
    horizontal text and (e, f) is the baseline origin.
    """

    text: str
    transform: tuple[float, ...]
    width: float | None = None
    font_name: str | None = None
    color: str | None = None
    flags: int = 0


@dataclass(frozen=True)
class FontSpec:
    family: str = "helvetica"  # "helvetica", "times" or "courier"
    bold: bool = False
    italic: bool = False

    @property
    def base14_name(self) -> str:
        return BASE14_FONTS[(self.family, self.bold, self.italic)]


@dataclass(frozen=True)
class FontHandle:
    """A font registered with an open document, usable with draw_text."""

    name: str
    spec: FontSpec


FALLBACK_FONT = FontSpec()


class PdfPageHandle(ABC):
    @property
    @abstractmethod
    def width(self) -> float: ...

    @property
    @abstractmethod
    def height(self) -> float: ...

    @property
    @abstractmethod
    def rotation(self) -> int: ...

    @abstractmethod
    def get_text_runs(self) -> list[RawTextRun]: ...

    @abstractmethod
    def render(self, scale: float = 1.0) -> bytes:
        """Rasterize the page to PNG bytes."""

    @abstractmethod
    def draw_rect(
        self,
        x: float,
        y: float,
        width: float,
        height: float,
        fill: tuple[float, float, float] = (1.0, 1.0, 1.0),
    ) -> None: ...

    @abstractmethod
    def draw_text(
        self,
        x: float,
        y: float,
        text: str,
        font: FontHandle,
        size: float,
        color: tuple[float, float, float] = (0.0, 0.0, 0.0),
    ) -> None:
        """Write one line of text with its baseline starting at (x, y)."""


class PdfDocumentHandle(ABC):
    @property
    @abstractmethod
    def page_count(self) -> int: ...

    @property
    @abstractmethod
    def metadata(self) -> dict[str, str]: ...

    @abstractmethod
    def get_page(self, page_number: int) -> PdfPageHandle:
        """Return a page by 1-based number. Raises IndexError when out of range."""

    @abstractmethod
    def embed_font(self, spec: FontSpec) -> FontHandle: ...

    @abstractmethod
    def save(self) -> bytes: ...

    @abstractmethod
    def close(self) -> None: ...

    def __enter__(self) -> "PdfDocumentHandle":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class PdfBackend(ABC):
    @abstractmethod
    def open(self, pdf_bytes: bytes) -> PdfDocumentHandle: ...


class FitzPage(PdfPageHandle):
    def __init__(self, page: fitz.Page):
        self._page = page

    @property
    def width(self) -> float:
        return self._page.rect.width

    @property
    def height(self) -> float:
        return self._page.rect.height

    @property
    def rotation(self) -> int:
        return self._page.rotation

    def get_text_runs(self) -> list[RawTextRun]:
        """Read every text span on the page as a RawTextRun.

        PyMuPDF reports span origins top-down; the transform is rebuilt in
        PDF space so consumers see the same numbers a content stream holds.
        """
        page_height = self.height
        runs = []
        text_dict = self._page.get_text("dict")
        for block in text_dict.get("blocks", []):
            if block.get("type") != 0:  # 0 = text, 1 = image
                continue
            for line in block.get("lines", []):
                cos, sin = line.get("dir", (1.0, 0.0))
                # PyMuPDF's dir is in Y-down space
                sin = -sin
                for span in line.get("spans", []):
                    size = span.get("size", 0.0)
                    origin_x, origin_y = span.get("origin", (0.0, 0.0))
                    x0, _, x1, _ = span.get("bbox", (0.0, 0.0, 0.0, 0.0))
                    runs.append(
                        RawTextRun(
                            text=span.get("text", "").replace("\x00", ""),
                            transform=(
                                size * cos,
                                size * sin,
                                -size * sin,
                                size * cos,
                                origin_x,
                                page_height - origin_y,
                            ),
                            width=x1 - x0,
                            font_name=span.get("font"),
                            color=int_color_to_hex(span.get("color", 0)),
                            flags=span.get("flags", 0),
                        )
                    )
        return runs

    def render(self, scale: float = 1.0) -> bytes:
        pix = self._page.get_pixmap(matrix=fitz.Matrix(scale, scale))
        return pix.tobytes("png")

    def draw_rect(self, x, y, width, height, fill=(1.0, 1.0, 1.0)) -> None:
        page_height = self.height
        rect = fitz.Rect(x, page_height - y - height, x + width, page_height - y)
        self._page.draw_rect(rect, color=None, fill=fill, width=0, overlay=True)

    def draw_text(self, x, y, text, font, size, color=(0.0, 0.0, 0.0)) -> None:
        point = fitz.Point(x, self.height - y)
        self._page.insert_text(
            point, text, fontname=font.name, fontsize=size, color=color
        )


class FitzDocument(PdfDocumentHandle):
    def __init__(self, doc: fitz.Document):
        self._doc = doc

    @property
    def page_count(self) -> int:
        return self._doc.page_count

    @property
    def metadata(self) -> dict[str, str]:
        return {k: v for k, v in (self._doc.metadata or {}).items() if v}

    def get_page(self, page_number: int) -> FitzPage:
        if not 1 <= page_number <= self._doc.page_count:
            raise IndexError(
                f"page {page_number} out of range (document has {self._doc.page_count})"
            )
        return FitzPage(self._doc.load_page(page_number - 1))

    def embed_font(self, spec: FontSpec) -> FontHandle:
        name = spec.base14_name
        fitz.Font(name)  # raises for names MuPDF does not know
        return FontHandle(name=name, spec=spec)

    def save(self) -> bytes:
        return self._doc.tobytes()

    def close(self) -> None:
        self._doc.close()


class FitzBackend(PdfBackend):
    def open(self, pdf_bytes: bytes) -> FitzDocument:
        ensure_initialized()
        return FitzDocument(fitz.open(stream=pdf_bytes, filetype="pdf"))
