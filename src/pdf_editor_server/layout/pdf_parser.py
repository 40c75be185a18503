"""Parse PDF bytes into the block-based Document model."""

import time
from pathlib import Path

from ..logger import get_context, logger, restore_context, set_context
from .backend import FitzBackend, PdfBackend, PdfDocumentHandle
from .classifier import classify_lines
from .config import LayoutConfig
from .lines import (
    TextLine,
    build_lines,
    calculate_text_density,
    detect_language,
    estimate_reading_order,
)
from .models import (
    Document,
    DocumentMetadata,
    Page,
    PageDimensions,
    PageMetadata,
    Size,
)

PDF_SIGNATURE = b"%PDF"
DEFAULT_TITLE = "Untitled Document"


class PdfParseError(Exception):
    """Raised when a PDF cannot be turned into a Document."""

    pass


class InvalidPdfSignatureError(PdfParseError):
    """Raised when the input does not start with the %PDF header."""

    pass


class EmptyDocumentError(PdfParseError):
    """Raised when the PDF opens but has no pages."""

    pass


class PageParseError(PdfParseError):
    """Raised for a failed page when the page error policy is "raise"."""

    def __init__(self, page_number: int, message: str):
        super().__init__(f"Failed to parse page {page_number}: {message}")
        self.page_number = page_number


def _title_from_file_name(file_name: str | None) -> str | None:
    if not file_name:
        return None
    name = Path(file_name).name
    if name.lower().endswith(".pdf"):
        name = name[:-4]
    return name or None


class PdfParser:
    """Runs line building and block classification over every page of a PDF."""

    def __init__(self, backend: PdfBackend | None = None, config: LayoutConfig | None = None):
        self.backend = backend or FitzBackend()
        self.config = config or LayoutConfig.from_env()

    def parse_bytes(self, pdf_bytes: bytes, file_name: str | None = None) -> Document:
        """Parse a PDF held in memory.

        Args:
            pdf_bytes: The raw PDF file.
            file_name: Original file name, used for the title fallback and logs.

        Returns:
            Document with one Page per PDF page. The original bytes are kept on
            document.metadata for export.

        Raises:
            InvalidPdfSignatureError: If the bytes are not a PDF.
            EmptyDocumentError: If the PDF has no pages.
            PageParseError: If a page fails and the policy is "raise".
            PdfParseError: If the backend cannot open the PDF.
        """
        if not pdf_bytes or not pdf_bytes.startswith(PDF_SIGNATURE):
            raise InvalidPdfSignatureError("Invalid PDF file: missing %PDF header")

        saved_context = get_context()
        set_context(file_name=file_name)
        try:
            start = time.perf_counter()
            try:
                handle = self.backend.open(pdf_bytes)
            except Exception as e:
                raise PdfParseError(f"Failed to open PDF: {e}") from e

            with handle:
                if handle.page_count == 0:
                    raise EmptyDocumentError("PDF has no pages")

                logger.info(
                    "parsing pdf", total_pages=handle.page_count, file_size=len(pdf_bytes)
                )

                pages = []
                first_page_lines: list[TextLine] = []
                for page_number in range(1, handle.page_count + 1):
                    page, lines = self._parse_page(handle, page_number)
                    pages.append(page)
                    if page_number == 1:
                        first_page_lines = lines

                info = handle.metadata

            title = info.get("title") or _title_from_file_name(file_name) or DEFAULT_TITLE
            document = Document(
                metadata=DocumentMetadata(
                    title=title,
                    author=info.get("author"),
                    page_count=len(pages),
                    original_file_name=file_name,
                    original_file_size=len(pdf_bytes),
                    language=info.get("language") or detect_language(first_page_lines),
                    original_pdf_bytes=pdf_bytes,
                ),
                pages=pages,
            )

            duration_ms = (time.perf_counter() - start) * 1000
            logger.info(
                "pdf parsed",
                total_pages=len(pages),
                total_blocks=sum(len(p.blocks) for p in pages),
                duration_ms=round(duration_ms, 2),
            )
            return document
        finally:
            restore_context(saved_context)

    def _parse_page(
        self, handle: PdfDocumentHandle, page_number: int
    ) -> tuple[Page, list[TextLine]]:
        """Parse one page. Failures follow config.page_error_policy."""
        page_handle = None
        try:
            page_handle = handle.get_page(page_number)
            lines = build_lines(
                page_handle.get_text_runs(), page_handle.height, self.config.lines
            )
            blocks = classify_lines(lines, self.config.classifier, page_number=page_number)
        except Exception as e:
            if self.config.page_error_policy == "raise":
                raise PageParseError(page_number, str(e)) from e
            logger.error(
                "page parse failed, keeping empty page",
                page_number=page_number,
                error=str(e),
                exc_info=True,
            )
            return self._empty_page(page_handle, page_number), []

        logger.debug(
            "page parsed",
            page_number=page_number,
            lines_count=len(lines),
            blocks_count=len(blocks),
            reading_order=round(estimate_reading_order(lines), 3),
            text_density=round(
                calculate_text_density(lines, page_handle.width, page_handle.height), 4
            ),
        )
        page = Page(
            page_number=page_number,
            dimensions=PageDimensions(width=page_handle.width, height=page_handle.height),
            metadata=PageMetadata(
                rotation=page_handle.rotation,
                original_dimensions=Size(width=page_handle.width, height=page_handle.height),
            ),
            blocks=blocks,
        )
        return page, lines

    @staticmethod
    def _empty_page(page_handle, page_number: int) -> Page:
        width, height = 0.0, 0.0
        if page_handle is not None:
            try:
                width, height = page_handle.width, page_handle.height
            except Exception:
                logger.warn("page dimensions unavailable", page_number=page_number)
        return Page(
            page_number=page_number,
            dimensions=PageDimensions(width=width, height=height),
        )


def parse_pdf(
    file_path: str | Path,
    backend: PdfBackend | None = None,
    config: LayoutConfig | None = None,
) -> Document:
    """Parse a PDF file from disk.

    Args:
        file_path: Path to the PDF file.
        backend: PDF backend, PyMuPDF by default.
        config: Pipeline settings, read from the environment by default.

    Returns:
        The parsed Document.
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise FileNotFoundError(f"PDF file not found: {file_path}")

    return PdfParser(backend=backend, config=config).parse_bytes(
        file_path.read_bytes(), file_name=file_path.name
    )
