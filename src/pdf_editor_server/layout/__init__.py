from .models import Block, Document, Page
from .config import LayoutConfig
from .pdf_parser import PdfParseError, PdfParser, parse_pdf
from .reflow import ExportError, ReflowEngine

__all__ = [
    "Block",
    "Document",
    "Page",
    "LayoutConfig",
    "PdfParseError",
    "PdfParser",
    "parse_pdf",
    "ExportError",
    "ReflowEngine",
]
