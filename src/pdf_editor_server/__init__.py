"""Block-based PDF editing service: parse PDFs into structured documents and write edits back."""

__version__ = "0.1.0"
