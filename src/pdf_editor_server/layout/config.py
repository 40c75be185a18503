"""Tunable thresholds for line building, block classification and reflow.

The defaults are empirically tuned. They can be adjusted, but keep their
relative ordering (e.g. the no-space gap ratio must stay below the
always-space ratio) unless a regression suite says otherwise.
"""

import os
from typing import Literal

from pydantic import BaseModel, Field


class LineBuilderConfig(BaseModel):
    """Thresholds for grouping glyph runs into lines."""

    line_tolerance: float = 5.0  # max |run.y - anchor.y| for the same line
    tight_gap_ratio: float = 0.15  # gap <= ratio * avg font size -> no space
    word_gap_ratio: float = 0.4  # gap >= ratio * avg font size -> space
    default_font_size: float = 12.0
    fallback_char_width_ratio: float = 0.6
    infer_bold_from_size: bool = True
    bold_size_threshold: float = 16.0


class ClassifierConfig(BaseModel):
    """Thresholds for the heading, table, list and paragraph detectors."""

    heading_min_score: int = 6
    heading_max_length: int = 100
    heading_min_font_size: float = 14.0  # used only when no page statistics exist
    heading_relative_ratio: float = 1.2
    heading_percentile: float = 0.75
    heading_absolute_delta: float = 2.0

    table_column_gap: float = 20.0
    table_min_columns: int = 2
    table_min_rows: int = 2
    table_position_rounding: float = 10.0
    table_header_max_cell_length: int = 50

    list_indent_threshold: float = 20.0
    list_min_lines: int = 2

    paragraph_gap_threshold: float = 25.0
    paragraph_font_size_delta: float = 2.0
    paragraph_min_length: int = 3

    min_block_width: float = 10.0
    min_block_height: float = 5.0
    min_text_length: int = 3


class ReflowConfig(BaseModel):
    """Layout constants for re-rendering edited blocks."""

    cover_padding: float = 2.0
    text_inset: float = 5.0
    body_font_min: float = 8.0
    body_font_max: float = 14.0
    body_height_ratio: float = 0.6
    heading_font_min: float = 10.0
    heading_font_max: float = 18.0
    heading_height_ratio: float = 0.7
    fit_char_width_ratio: float = 0.6  # single-line fit check
    wrap_char_width_ratio: float = 0.55  # per-line character budget
    line_pitch: float = 1.2
    baseline_offset_ratio: float = 1 / 3
    top_clearance_ratio: float = 0.8


class LayoutConfig(BaseModel):
    """All pipeline settings in one place."""

    lines: LineBuilderConfig = Field(default_factory=LineBuilderConfig)
    classifier: ClassifierConfig = Field(default_factory=ClassifierConfig)
    reflow: ReflowConfig = Field(default_factory=ReflowConfig)
    page_error_policy: Literal["skip", "raise"] = "skip"

    @classmethod
    def from_env(cls) -> "LayoutConfig":
        """Build a config with environment overrides applied.

        Reads:
            PAGE_ERROR_POLICY: "skip" (default) keeps a failed page with no blocks,
                "raise" aborts the whole parse.
            INFER_BOLD_FROM_SIZE: "false" stops treating large text as bold.
        """
        config = cls()
        policy = os.getenv("PAGE_ERROR_POLICY")
        if policy:
            config.page_error_policy = policy.lower()
        infer_bold = os.getenv("INFER_BOLD_FROM_SIZE")
        if infer_bold is not None:
            config.lines.infer_bold_from_size = infer_bold.lower() in ("1", "true", "yes")
        return cls.model_validate(config.model_dump())
