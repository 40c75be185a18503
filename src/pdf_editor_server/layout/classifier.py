"""Classify a page's text lines into typed blocks.

Detectors run in a fixed order: headings, tables, lists, then paragraphs.
Each one takes the lines still unclaimed and returns the blocks it built plus
the lines it left alone, so a line ends up in at most one block.
"""

import math
import re
import statistics
from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass

from ..logger import logger
from .config import ClassifierConfig
from .lines import TextLine
from .models import (
    DETECTOR_CONFIDENCE,
    Block,
    BlockContent,
    BlockMetadata,
    BlockPosition,
    BlockStyle,
    ListContent,
    ListItem,
    Point,
    TableCell,
    TableContent,
    TableRow,
    TextRun,
    default_style,
)

_HEADING_NUMBERING_RE = re.compile(r"^\d+(\.\d+)*\.?\s")
_HEADING_CAPITALIZED_RE = re.compile(r"^[A-Z][a-z]")
_HEADING_KEYWORD_RE = re.compile(
    r"^(chapter|section|introduction|conclusion|summary|overview|background|method|result|discussion)",
    re.IGNORECASE,
)
_TOP_LEVEL_NUMBER_RE = re.compile(r"^\d+\.\s")
_SECOND_LEVEL_NUMBER_RE = re.compile(r"^\d+\.\d+\.\s")

_BULLET_RE = re.compile(r"^[•\-\*\+]\s")
_NUMBERED_RE = re.compile(r"^\d+[.)]\s")
_ALPHA_RE = re.compile(r"^[a-zA-Z][.)]\s")
_ROMAN_RE = re.compile(r"^[ivxlcdm]+[.)]\s", re.IGNORECASE)
_LIST_MARKER_RE = re.compile(
    r"^([•\-\*\+]|\d+[.)]|[ivxlcdm]+[.)]|[a-zA-Z][.)])\s+", re.IGNORECASE
)

_CELL_SPLIT_RE = re.compile(r"\s{2,}")
_BARE_NUMBER_RE = re.compile(r"^\d+(\.\d+)?$")

MAX_HEADING_LEVEL = 6
MAX_LIST_LEVEL = 6


@dataclass(frozen=True)
class FontStats:
    mean: float
    p75: float


@dataclass(frozen=True)
class ClassifierContext:
    config: ClassifierConfig
    stats: FontStats | None


DetectorResult = tuple[list[Block], list[TextLine]]
Detector = Callable[[list[TextLine], ClassifierContext], DetectorResult]


def compute_font_stats(lines: list[TextLine], percentile: float = 0.75) -> FontStats | None:
    """Mean and upper percentile (nearest-rank, floor index) of line font sizes."""
    if not lines:
        return None
    sizes = sorted(line.average_font_size for line in lines)
    return FontStats(
        mean=statistics.fmean(sizes),
        p75=sizes[min(math.floor(len(sizes) * percentile), len(sizes) - 1)],
    )


# Block construction helpers


def _line_is_bold(line: TextLine) -> bool:
    return any(
        run.font_weight == "bold" or "bold" in (run.font_name or "").lower()
        for run in line.items
    )


def _group_position(lines: list[TextLine]) -> BlockPosition:
    left = max(0.0, min(line.bounds.left for line in lines))
    top = max(0.0, min(line.bounds.top for line in lines))
    right = max(line.bounds.right for line in lines)
    bottom = max(line.bounds.bottom for line in lines)
    return BlockPosition(
        x=left, y=top, width=max(0.0, right - left), height=max(0.0, bottom - top)
    )


def _group_style(lines: list[TextLine], base: BlockStyle) -> BlockStyle:
    runs = [run for line in lines for run in line.items]
    font_size = statistics.fmean(line.average_font_size for line in lines)
    updates = {"font_size": round(font_size, 2)}
    if any(run.font_weight == "bold" for run in runs):
        updates["font_weight"] = "bold"
    if any(run.font_style == "italic" for run in runs):
        updates["font_style"] = "italic"
    families = Counter(run.font_name for run in runs if run.font_name)
    if families:
        updates["font_family"] = families.most_common(1)[0][0]
    if runs and runs[0].color:
        updates["color"] = runs[0].color
    return base.model_copy(update=updates)


def _text_runs(lines: list[TextLine]) -> list[TextRun]:
    return [
        TextRun(
            text=run.text,
            font_size=run.font_size,
            font_weight=run.font_weight,
            font_style=run.font_style,
            color=run.color or "#000000",
            position=Point(x=run.x, y=run.y),
        )
        for line in lines
        for run in line.items
    ]


def _make_block(
    block_type: str,
    content: BlockContent,
    lines: list[TextLine],
    style_updates: dict | None = None,
) -> Block:
    position = _group_position(lines)
    style = _group_style(lines, default_style(block_type))
    if style_updates:
        style = style.model_copy(update=style_updates)
    first_run = lines[0].items[0] if lines[0].items else None
    return Block(
        type=block_type,
        content=content,
        position=position,
        style=style,
        metadata=BlockMetadata(
            confidence=DETECTOR_CONFIDENCE[block_type],
            original_font_size=lines[0].average_font_size,
            original_color=(first_run.color if first_run else None) or "#000000",
            original_bounds=position,
            text_runs=_text_runs(lines),
        ),
    )


# Headings


def is_large_font(size: float, stats: FontStats | None, config: ClassifierConfig) -> bool:
    if stats is None:
        return size >= config.heading_min_font_size
    relative = size >= stats.mean * config.heading_relative_ratio and size >= stats.p75
    return relative or size >= stats.mean + config.heading_absolute_delta


def heading_score(line: TextLine, large_font: bool, config: ClassifierConfig) -> int:
    """Score a line against the heading rubric. Large font alone is worth 4."""
    text = line.text.strip()
    score = 0
    if large_font:
        score += 4
    if len(text) <= config.heading_max_length:
        score += 2
    if _line_is_bold(line):
        score += 3
    if _HEADING_NUMBERING_RE.match(text):
        score += 2
    if text == text.upper() and len(text) > 3:
        score += 2
    if _HEADING_CAPITALIZED_RE.match(text):
        score += 1
    if _HEADING_KEYWORD_RE.match(text):
        score += 3
    return score


def is_heading_candidate(line: TextLine, ctx: ClassifierContext) -> bool:
    text = line.text.strip()
    if len(text) < 3:
        return False
    large_font = is_large_font(line.average_font_size, ctx.stats, ctx.config)
    score = heading_score(line, large_font, ctx.config)
    return large_font and score >= ctx.config.heading_min_score


def heading_level(line: TextLine, heading_sizes: list[float]) -> int:
    """Rank of the line's size among the page's distinct heading sizes, largest first."""
    size = round(line.average_font_size, 1)
    level = 1
    if size in heading_sizes:
        level = min(heading_sizes.index(size) + 1, MAX_HEADING_LEVEL)
    text = line.text.strip()
    if _TOP_LEVEL_NUMBER_RE.match(text):
        return min(level, 2)
    if _SECOND_LEVEL_NUMBER_RE.match(text):
        return min(level, 3)
    return level


def detect_headings(
    lines: list[TextLine], ctx: ClassifierContext
) -> DetectorResult:
    candidates = [line for line in lines if is_heading_candidate(line, ctx)]
    if not candidates:
        return [], lines

    heading_sizes = sorted(
        {round(line.average_font_size, 1) for line in candidates}, reverse=True
    )
    blocks = []
    for line in candidates:
        level = heading_level(line, heading_sizes)
        blocks.append(
            _make_block("heading", line.text.strip(), [line], {"heading_level": level})
        )

    claimed = {id(line) for line in candidates}
    return blocks, [line for line in lines if id(line) not in claimed]


# Tables


def has_column_gap(line: TextLine, config: ClassifierConfig) -> bool:
    items = sorted(line.items, key=lambda run: run.x)
    return any(
        nxt.x - (cur.x + cur.width) > config.table_column_gap
        for cur, nxt in zip(items, items[1:])
    )


def _round_position(x: float, step: float) -> float:
    # Round half up, so 15 -> 20 and 25 -> 30
    return math.floor(x / step + 0.5) * step


def column_positions(lines: list[TextLine], config: ClassifierConfig) -> list[float]:
    """Rounded run x-origins shared by at least two lines, left to right."""
    step = config.table_position_rounding
    counts: Counter = Counter()
    for line in lines:
        counts.update({_round_position(run.x, step) for run in line.items})
    return sorted(pos for pos, count in counts.items() if count >= 2)


def line_segments(line: TextLine, config: ClassifierConfig) -> list[str]:
    """Cell texts of a line: runs split at column gaps, and run text split on 2+ spaces."""
    segments: list[str] = []
    current = ""
    previous = None
    for run in sorted(line.items, key=lambda r: r.x):
        if previous is not None and run.x - (previous.x + previous.width) > config.table_column_gap:
            segments.append(current)
            current = ""
        current = f"{current} {run.text}" if current else run.text
        previous = run
    segments.append(current)
    return [
        part.strip()
        for segment in segments
        for part in _CELL_SPLIT_RE.split(segment.strip())
        if part.strip()
    ]


def looks_like_table(lines: list[TextLine], config: ClassifierConfig) -> bool:
    if len(lines) < config.table_min_rows:
        return False
    if len(column_positions(lines, config)) < config.table_min_columns:
        return False
    return any(
        re.search(r"\d", line.text) and len(line_segments(line, config)) >= 2
        for line in lines
    )


def _row_cells(line: TextLine, columns: list[float]) -> list[str]:
    cells = [""] * len(columns)
    for run in sorted(line.items, key=lambda r: r.x):
        index = min(range(len(columns)), key=lambda i: abs(run.x - columns[i]))
        text = run.text.strip()
        if text:
            cells[index] = f"{cells[index]} {text}" if cells[index] else text
    return cells


def _is_header_row(cells: list[str], config: ClassifierConfig) -> bool:
    joined = " ".join(cells)
    return (
        bool(_HEADING_CAPITALIZED_RE.match(joined))
        and all(len(cell) < config.table_header_max_cell_length for cell in cells)
        and not any(_BARE_NUMBER_RE.match(cell.strip()) for cell in cells)
    )


def build_table(lines: list[TextLine], config: ClassifierConfig) -> Block:
    columns = column_positions(lines, config)
    rows = []
    for line in lines:
        cells = _row_cells(line, columns)
        if not any(cells):
            logger.warn("skipping empty table row", line_y=round(line.y, 1))
            continue
        rows.append(TableRow(cells=[TableCell(content=cell) for cell in cells]))

    has_header = bool(rows) and _is_header_row([c.content for c in rows[0].cells], config)
    if has_header:
        rows[0].is_header = True

    content = TableContent(rows=rows, column_count=len(columns), has_header=has_header)
    return _make_block("table", content, lines)


def detect_tables(
    lines: list[TextLine], ctx: ClassifierContext
) -> DetectorResult:
    config = ctx.config
    groups: list[list[TextLine]] = []
    current: list[TextLine] = []
    for line in lines:
        if has_column_gap(line, config):
            current.append(line)
            continue
        if len(current) >= 2:
            groups.append(current)
        current = []
    if len(current) >= 2:
        groups.append(current)

    blocks = []
    claimed = set()
    for group in groups:
        if looks_like_table(group, config):
            blocks.append(build_table(group, config))
            claimed.update(id(line) for line in group)

    return blocks, [line for line in lines if id(line) not in claimed]


# Lists


def is_list_item(line: TextLine) -> bool:
    text = line.text.strip()
    return bool(
        _BULLET_RE.match(text)
        or _NUMBERED_RE.match(text)
        or _ALPHA_RE.match(text)
        or _ROMAN_RE.match(text)
    )


def is_continuation(line: TextLine, previous: TextLine, config: ClassifierConfig) -> bool:
    indented = line.bounds.left > previous.bounds.left + config.list_indent_threshold
    close = abs(line.bounds.top - previous.bounds.bottom) < previous.height
    return indented and close


def list_type_of(text: str) -> str:
    text = text.strip()
    if re.match(r"^\d+[.)]", text):
        return "numbered"
    if re.match(r"^[a-zA-Z][.)]", text):
        return "alpha"
    if re.match(r"^[ivxlcdm]+[.)]", text, re.IGNORECASE):
        return "roman"
    return "bullet"


def split_list_marker(text: str) -> tuple[str, str]:
    """Split "2. Buy milk" into ("2.", "Buy milk"). Unmarked text gets a bullet."""
    text = text.strip()
    match = _LIST_MARKER_RE.match(text)
    if not match:
        return "•", text
    return match.group(1), text[match.end():].strip()


def collect_list_lines(
    lines: list[TextLine], start: int, config: ClassifierConfig
) -> list[TextLine]:
    """Consecutive list items from start, with their wrapped continuation lines."""
    collected: list[TextLine] = []
    for line in lines[start:]:
        if is_list_item(line):
            collected.append(line)
        elif collected and is_continuation(line, collected[-1], config):
            collected.append(line)
        else:
            break
    return collected


def build_list(lines: list[TextLine], config: ClassifierConfig) -> Block:
    list_type = list_type_of(lines[0].text)
    base_left = lines[0].bounds.left
    items: list[ListItem] = []
    for line in lines:
        if is_list_item(line) or not items:
            marker, text = split_list_marker(line.text)
            indent = max(0.0, line.bounds.left - base_left)
            level = min(1 + int(indent // config.list_indent_threshold), MAX_LIST_LEVEL)
            items.append(ListItem(content=text, level=level, marker=marker))
        else:
            previous = items[-1]
            previous.content = f"{previous.content} {line.text.strip()}".strip()

    content = ListContent(items=items, type=list_type, is_ordered=list_type != "bullet")
    return _make_block("list", content, lines, {"list_type": list_type})


def detect_lists(
    lines: list[TextLine], ctx: ClassifierContext
) -> DetectorResult:
    blocks = []
    remaining = []
    i = 0
    while i < len(lines):
        line = lines[i]
        if is_list_item(line):
            group = collect_list_lines(lines, i, ctx.config)
            if len(group) >= ctx.config.list_min_lines:
                blocks.append(build_list(group, ctx.config))
                i += len(group)
                continue
        remaining.append(line)
        i += 1
    return blocks, remaining


# Paragraphs


def _paragraph(lines: list[TextLine]) -> Block:
    text = " ".join(line.text.strip() for line in lines)
    return _make_block("paragraph", text, lines)


def group_paragraphs(
    lines: list[TextLine], ctx: ClassifierContext
) -> DetectorResult:
    config = ctx.config
    blocks = []
    current: list[TextLine] = []

    for line in sorted(lines, key=lambda l: l.y):
        text = line.text.strip()
        if not text:
            continue

        if current:
            previous = current[-1]
            gap = abs(line.y - previous.y)
            size_delta = abs(line.average_font_size - previous.average_font_size)
            if (
                gap > config.paragraph_gap_threshold
                or size_delta > config.paragraph_font_size_delta
            ):
                blocks.append(_paragraph(current))
                current = []

        if len(text) >= config.paragraph_min_length:
            current.append(line)
        elif not current:
            blocks.append(_paragraph([line]))

    if current:
        blocks.append(_paragraph(current))

    return blocks, []


DETECTORS: tuple[Detector, ...] = (
    detect_headings,
    detect_tables,
    detect_lists,
    group_paragraphs,
)


def post_process(blocks: list[Block], config: ClassifierConfig) -> list[Block]:
    """Drop slivers and near-empty text blocks, then order by (y, x)."""
    kept = []
    for block in blocks:
        position = block.position
        if position.width < config.min_block_width:
            continue
        if position.height < config.min_block_height:
            continue
        content = block.content
        if isinstance(content, str) and len(content.strip()) < config.min_text_length:
            continue
        kept.append(block)
    return sorted(kept, key=lambda b: (b.position.y, b.position.x))


def classify_lines(
    lines: list[TextLine],
    config: ClassifierConfig | None = None,
    page_number: int | None = None,
) -> list[Block]:
    """Turn a page's lines into blocks.

    Args:
        lines: Lines from build_lines(), ordered top to bottom.
        config: Detector thresholds.
        page_number: Only used for logging.

    Returns:
        The page's blocks sorted by position.
    """
    if not lines:
        return []

    config = config or ClassifierConfig()
    ctx = ClassifierContext(
        config=config, stats=compute_font_stats(lines, config.heading_percentile)
    )

    blocks: list[Block] = []
    remaining = list(lines)
    for detector in DETECTORS:
        found, remaining = detector(remaining, ctx)
        blocks.extend(found)

    result = post_process(blocks, config)
    logger.debug(
        "blocks detected",
        page_number=page_number,
        total_lines=len(lines),
        total_blocks=len(result),
        block_types=dict(Counter(block.type for block in result)),
    )
    return result
