"""Color, unit, coordinate and font-name helpers shared by parsing and reflow."""

import re

# PyMuPDF span flag bits
FLAG_ITALIC = 2**1
FLAG_BOLD = 2**4

CSS_DPI = 96.0
PDF_DPI = 72.0

_HEX6_RE = re.compile(r"^#?([0-9a-f]{2})([0-9a-f]{2})([0-9a-f]{2})$", re.IGNORECASE)
_HEX3_RE = re.compile(r"^#?([0-9a-f])([0-9a-f])([0-9a-f])$", re.IGNORECASE)
_RGB_RE = re.compile(
    r"^rgba?\(\s*(\d+(?:\.\d+)?)\s*,\s*(\d+(?:\.\d+)?)\s*,\s*(\d+(?:\.\d+)?)\s*(?:,\s*[\d.]+\s*)?\)$",
    re.IGNORECASE,
)

_ROMAN_TABLE = [
    (1000, "m"),
    (900, "cm"),
    (500, "d"),
    (400, "cd"),
    (100, "c"),
    (90, "xc"),
    (50, "l"),
    (40, "xl"),
    (10, "x"),
    (9, "ix"),
    (5, "v"),
    (4, "iv"),
    (1, "i"),
]


def parse_color(value: str | None) -> tuple[float, float, float]:
    """Parse a CSS-style color into 0..1 RGB floats.

    Accepts "#rrggbb", "#rgb" and "rgb(r, g, b)". Anything else is black.
    """
    if not value or not isinstance(value, str):
        return (0.0, 0.0, 0.0)
    value = value.strip()

    match = _HEX6_RE.match(value)
    if match:
        return tuple(int(part, 16) / 255 for part in match.groups())

    match = _HEX3_RE.match(value)
    if match:
        return tuple(int(part * 2, 16) / 255 for part in match.groups())

    match = _RGB_RE.match(value)
    if match:
        return tuple(min(float(part), 255.0) / 255 for part in match.groups())

    return (0.0, 0.0, 0.0)


def rgb_to_hex(r: float, g: float, b: float) -> str:
    """Format 0..1 RGB floats as "#rrggbb"."""
    channels = (max(0, min(255, round(c * 255))) for c in (r, g, b))
    return "#" + "".join(f"{c:02x}" for c in channels)


def int_color_to_hex(srgb: int) -> str:
    """Format a packed sRGB integer (as reported by PyMuPDF spans) as "#rrggbb"."""
    return f"#{srgb & 0xFFFFFF:06x}"


def is_near_white(rgb: tuple[float, float, float], threshold: float = 0.9) -> bool:
    return all(channel > threshold for channel in rgb)


def px_to_pt(px: float) -> float:
    return px * PDF_DPI / CSS_DPI


def pt_to_px(pt: float) -> float:
    return pt * CSS_DPI / PDF_DPI


def layout_to_pdf_y(y: float, height: float, page_height: float) -> float:
    """Bottom edge of a top-left-origin box, in bottom-left-origin PDF space."""
    return page_height - y - height


def pdf_to_layout_y(pdf_y: float, height: float, page_height: float) -> float:
    """Inverse of layout_to_pdf_y."""
    return page_height - pdf_y - height


def infer_font_weight(
    font_name: str | None,
    font_size: float,
    flags: int = 0,
    infer_from_size: bool = True,
    bold_size_threshold: float = 16.0,
) -> str:
    """Guess a CSS font weight from the font name, span flags and size.

    Large text is reported as bold when infer_from_size is set. That is a
    heading signal rather than a true weight; switch it off when the real
    weight matters.
    """
    name = (font_name or "").lower()
    if any(marker in name for marker in ("bold", "heavy", "black")) or flags & FLAG_BOLD:
        return "bold"
    if "light" in name or "thin" in name:
        return "300"
    if infer_from_size and font_size > bold_size_threshold:
        return "bold"
    return "normal"


def infer_font_style(font_name: str | None, flags: int = 0) -> str:
    name = (font_name or "").lower()
    if "italic" in name or "oblique" in name or flags & FLAG_ITALIC:
        return "italic"
    return "normal"


def is_bold_weight(weight: str | None) -> bool:
    """True for "bold"/"bolder" and numeric weights of 600 and above."""
    if not weight:
        return False
    weight = weight.lower()
    if weight in ("bold", "bolder"):
        return True
    return weight.isdigit() and int(weight) >= 600


def to_roman(number: int) -> str:
    """Lowercase Roman numeral for a positive integer."""
    if number <= 0:
        raise ValueError("roman numerals need a positive integer")
    parts = []
    for value, numeral in _ROMAN_TABLE:
        count, number = divmod(number, value)
        parts.append(numeral * count)
    return "".join(parts)


def to_alpha(number: int) -> str:
    """Spreadsheet-style letters: 1 -> a, 26 -> z, 27 -> aa."""
    if number <= 0:
        raise ValueError("alphabetic markers need a positive integer")
    letters = []
    while number > 0:
        number, remainder = divmod(number - 1, 26)
        letters.append(chr(ord("a") + remainder))
    return "".join(reversed(letters))


def format_list_marker(list_type: str, index: int) -> str:
    """Marker for the index-th (1-based) item of a list."""
    if list_type == "numbered":
        return f"{index}."
    if list_type == "alpha":
        return f"{to_alpha(index)}."
    if list_type == "roman":
        return f"{to_roman(index)}."
    return "•"
