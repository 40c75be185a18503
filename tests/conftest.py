"""Shared fixtures: a small two-page PDF built with PyMuPDF."""

from pathlib import Path

import fitz  # PyMuPDF
import pytest


@pytest.fixture(scope="session")
def sample_pdf_path(tmp_path_factory) -> Path:
    """Create a sample PDF for testing."""
    tmp_dir = tmp_path_factory.mktemp("pdfs")
    pdf_path = tmp_dir / "sample.pdf"

    doc = fitz.open()

    # Page 1: Title, paragraphs and a bullet list
    page = doc.new_page()
    page.insert_text((72, 72), "Sample Document Title", fontsize=24, fontname="helv")
    page.insert_text(
        (72, 120),
        "This is a regular paragraph of text with the first sentence.",
        fontsize=12,
        fontname="helv",
    )
    page.insert_text(
        (72, 134),
        "It continues on a second line and ends here.",
        fontsize=12,
        fontname="helv",
    )
    page.insert_text(
        (72, 170),
        "This is another paragraph with different content.",
        fontsize=12,
        fontname="helv",
    )
    page.insert_text((72, 200), "- First bullet point", fontsize=12, fontname="helv")
    page.insert_text((72, 220), "- Second bullet point", fontsize=12, fontname="helv")

    # Page 2: More content
    page2 = doc.new_page()
    page2.insert_text((72, 72), "Section Header", fontsize=18, fontname="helv")
    page2.insert_text(
        (72, 120),
        "Content on the second page of the document.",
        fontsize=12,
        fontname="helv",
    )

    doc.save(str(pdf_path))
    doc.close()

    return pdf_path


@pytest.fixture(scope="session")
def sample_pdf_bytes(sample_pdf_path) -> bytes:
    return sample_pdf_path.read_bytes()
