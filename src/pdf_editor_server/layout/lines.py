"""Group raw glyph runs into visual text lines.

Runs arrive in PDF space (origin bottom-left). Everything produced here is in
layout space: origin top-left, Y down, y being the top edge of the glyph box.
"""

import math
import re
from collections.abc import Iterable
from dataclasses import dataclass

from ..logger import logger
from .backend import RawTextRun
from .config import LineBuilderConfig
from .typography import infer_font_style, infer_font_weight

_WORD_CHAR_END_RE = re.compile(r"[A-Za-z0-9]$")
_WORD_CHAR_START_RE = re.compile(r"^[A-Za-z0-9]")
_WORD_RE = re.compile(r"[a-z]+")

COMMON_ENGLISH_WORDS = frozenset(
    ["the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by"]
)


@dataclass
class GlyphRun:
    """A positioned run of text in layout space."""

    text: str
    x: float
    y: float  # top edge
    width: float
    height: float
    font_size: float
    font_name: str | None = None
    font_weight: str = "normal"
    font_style: str = "normal"
    color: str | None = None


@dataclass
class LineBounds:
    left: float
    right: float
    top: float
    bottom: float


@dataclass
class TextLine:
    items: list[GlyphRun]
    text: str
    y: float
    height: float
    average_font_size: float
    bounds: LineBounds


def _parse_transform(transform) -> tuple[float, ...]:
    values = tuple(float(v) for v in transform)
    if len(values) != 6 or not all(math.isfinite(v) for v in values):
        raise ValueError(f"expected 6 finite numbers, got {transform!r}")
    return values


def to_glyph_run(
    run: RawTextRun, page_height: float, config: LineBuilderConfig
) -> GlyphRun:
    """Convert a backend run into layout space.

    Raises:
        ValueError: If the run's transform is malformed.
        TypeError: If the transform is not a sequence of numbers.
    """
    _, _, _, d, e, f = _parse_transform(run.transform)
    font_size = abs(d) or config.default_font_size
    y_baseline = page_height - f
    width = run.width
    if not width or width <= 0:
        width = len(run.text) * font_size * config.fallback_char_width_ratio

    return GlyphRun(
        text=run.text,
        x=e,
        y=y_baseline - font_size,
        width=width,
        height=font_size,
        font_size=font_size,
        font_name=run.font_name,
        font_weight=infer_font_weight(
            run.font_name,
            font_size,
            run.flags,
            infer_from_size=config.infer_bold_from_size,
            bold_size_threshold=config.bold_size_threshold,
        ),
        font_style=infer_font_style(run.font_name, run.flags),
        color=run.color,
    )


def should_add_space(
    current: GlyphRun, following: GlyphRun, config: LineBuilderConfig | None = None
) -> bool:
    """Decide whether two horizontally adjacent runs are separate words.

    A tight gap means letter-spaced text of one word; a wide gap is a word
    break. In between, only a letter or digit on both sides counts as a break.
    """
    config = config or LineBuilderConfig()
    gap = following.x - (current.x + current.width)
    avg_font_size = (current.font_size + following.font_size) / 2

    if gap <= avg_font_size * config.tight_gap_ratio:
        return False
    if gap >= avg_font_size * config.word_gap_ratio:
        return True
    return bool(
        _WORD_CHAR_END_RE.search(current.text.strip())
        and _WORD_CHAR_START_RE.search(following.text.strip())
    )


def join_runs(runs: list[GlyphRun], config: LineBuilderConfig | None = None) -> str:
    """Join x-sorted runs of one line into its text."""
    if not runs:
        return ""
    parts = [runs[0].text]
    for current, following in zip(runs, runs[1:]):
        if should_add_space(current, following, config):
            parts.append(" ")
        parts.append(following.text)
    return "".join(parts).strip()


def _make_line(runs: list[GlyphRun], config: LineBuilderConfig) -> TextLine:
    runs = sorted(runs, key=lambda r: r.x)
    return TextLine(
        items=runs,
        text=join_runs(runs, config),
        y=min(r.y for r in runs),
        height=max(r.height for r in runs),
        average_font_size=sum(r.font_size for r in runs) / len(runs),
        bounds=LineBounds(
            left=min(r.x for r in runs),
            right=max(r.x + r.width for r in runs),
            top=min(r.y for r in runs),
            bottom=max(r.y + r.height for r in runs),
        ),
    )


def build_lines(
    runs: Iterable[RawTextRun],
    page_height: float,
    config: LineBuilderConfig | None = None,
) -> list[TextLine]:
    """Group a page's glyph runs into lines, top to bottom.

    Args:
        runs: Raw runs from PdfPageHandle.get_text_runs().
        page_height: Page height in PDF units, used to flip Y.
        config: Grouping and spacing thresholds.

    Returns:
        Lines ordered by their top edge, each with runs ordered left to right.
    """
    config = config or LineBuilderConfig()

    glyphs = []
    for run in runs:
        if not run.text or not run.text.strip():
            continue
        try:
            glyphs.append(to_glyph_run(run, page_height, config))
        except (TypeError, ValueError) as e:
            logger.warn(
                "skipping text run with unparseable transform",
                text=run.text[:50],
                error=str(e),
            )

    glyphs.sort(key=lambda g: (g.y, g.x))

    lines = []
    current: list[GlyphRun] = []
    anchor_y = 0.0
    for glyph in glyphs:
        if current and abs(glyph.y - anchor_y) <= config.line_tolerance:
            current.append(glyph)
            continue
        if current:
            lines.append(_make_line(current, config))
        current = [glyph]
        anchor_y = glyph.y
    if current:
        lines.append(_make_line(current, config))

    return lines


def estimate_reading_order(lines: list[TextLine]) -> float:
    """Share of consecutive line pairs whose left edges line up (within 10 units)."""
    if len(lines) < 2:
        return 1.0
    aligned = sum(
        1 for a, b in zip(lines, lines[1:]) if abs(a.bounds.left - b.bounds.left) < 10
    )
    return aligned / (len(lines) - 1)


def calculate_text_density(
    lines: list[TextLine], page_width: float, page_height: float
) -> float:
    """Fraction of the page area covered by line boxes."""
    page_area = page_width * page_height
    if page_area <= 0:
        return 0.0
    text_area = sum((line.bounds.right - line.bounds.left) * line.height for line in lines)
    return text_area / page_area


def detect_language(lines: list[TextLine]) -> str:
    """Return "en" when at least three common English words appear, else "unknown"."""
    words = set(_WORD_RE.findall(" ".join(line.text for line in lines).lower()))
    if len(words & COMMON_ENGLISH_WORDS) >= 3:
        return "en"
    return "unknown"
