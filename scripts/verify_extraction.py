#!/usr/bin/env python3
"""Verification script for block detection quality.

Usage:
    python scripts/verify_extraction.py <pdf_path> [--pages N]

Prints the detected blocks of each page for manual inspection.
"""

import argparse
import sys
from pathlib import Path

from pdf_editor_server.layout import parse_pdf
from pdf_editor_server.layout.models import block_preview_text

TYPE_MARKERS = {
    "heading": "[H]",
    "paragraph": "[P]",
    "list": "[L]",
    "table": "[T]",
    "image": "[I]",
    "quote": "[Q]",
    "code": "[C]",
}


def main():
    parser = argparse.ArgumentParser(description="Verify PDF block detection")
    parser.add_argument("pdf_path", help="Path to PDF file")
    parser.add_argument(
        "--pages", type=int, default=5, help="Number of pages to display (default: 5)"
    )
    args = parser.parse_args()

    pdf_path = Path(args.pdf_path)
    if not pdf_path.exists():
        print(f"Error: File not found: {pdf_path}")
        sys.exit(1)

    print(f"Parsing: {pdf_path}")
    print("=" * 80)

    doc = parse_pdf(pdf_path)
    total_pages = doc.metadata.page_count

    print(f"Title: {doc.metadata.title}  Language: {doc.metadata.language}")
    print(f"Total pages: {total_pages}")
    print(f"Showing first {min(args.pages, total_pages)} pages")
    print("=" * 80)

    for page in doc.pages[: args.pages]:
        print(f"\n--- Page {page.page_number} ({page.dimensions.width:.0f}x{page.dimensions.height:.0f}) ---")
        print(f"Blocks: {len(page.blocks)}")
        print()

        for block in page.blocks:
            marker = TYPE_MARKERS.get(block.type, "[?]")
            pos = block.position
            level = f" h{block.style.heading_level}" if block.style.heading_level else ""
            print(
                f"  {marker}{level} (size={block.style.font_size:.1f}, "
                f"conf={block.metadata.confidence:.2f}, "
                f"at {pos.x:.0f},{pos.y:.0f} {pos.width:.0f}x{pos.height:.0f}) "
                f"{block_preview_text(block)}"
            )

    print("\n" + "=" * 80)
    print("Extraction complete.")


if __name__ == "__main__":
    main()
