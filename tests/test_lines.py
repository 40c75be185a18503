"""Tests for grouping glyph runs into lines."""

import logging

import pytest

from pdf_editor_server.layout.backend import RawTextRun
from pdf_editor_server.layout.config import LineBuilderConfig
from pdf_editor_server.layout.lines import (
    GlyphRun,
    build_lines,
    calculate_text_density,
    detect_language,
    estimate_reading_order,
    should_add_space,
)

PAGE_HEIGHT = 792.0


def make_run(text, x, baseline, size=12.0, width=None, font="Helvetica", flags=0):
    """A horizontal run with its baseline at `baseline` (PDF space, Y up)."""
    return RawTextRun(
        text=text,
        transform=(size, 0.0, 0.0, size, x, baseline),
        width=width,
        font_name=font,
        color="#000000",
        flags=flags,
    )


def make_glyph(text, x, width, size=12.0):
    return GlyphRun(text=text, x=x, y=100.0, width=width, height=size, font_size=size)


class TestSpaceInsertion:
    """Tests for the word-gap heuristic."""

    def test_tight_gap_has_no_space(self):
        """Test that a gap of 0.1 x font size joins the runs."""
        assert not should_add_space(make_glyph("Hel", 0, 20), make_glyph("lo", 21.2, 10))

    def test_wide_gap_has_space(self):
        """Test that a gap of 0.5 x font size separates the runs."""
        assert should_add_space(make_glyph("Hello", 0, 30), make_glyph("World", 36, 30))

    def test_medium_gap_between_words(self):
        """Test that a medium gap between letters counts as a word break."""
        assert should_add_space(make_glyph("Hello", 0, 30), make_glyph("World", 33, 30))

    def test_medium_gap_after_punctuation(self):
        """Test that a medium gap after punctuation adds no space."""
        assert not should_add_space(make_glyph("Hello(", 0, 30), make_glyph("World", 33, 30))

    def test_space_boundary_in_built_line(self):
        """Test gap 1.2 -> no space and gap 6 -> space at font size 12."""
        tight = build_lines(
            [make_run("Hello", 72, 700, width=30), make_run("World", 103.2, 700, width=30)],
            PAGE_HEIGHT,
        )
        wide = build_lines(
            [make_run("Hello", 72, 700, width=30), make_run("World", 108, 700, width=30)],
            PAGE_HEIGHT,
        )
        assert tight[0].text == "HelloWorld"
        assert wide[0].text == "Hello World"


class TestBuildLines:
    """Tests for build_lines."""

    def test_runs_on_same_baseline_form_one_line(self):
        """Test that runs within the tolerance share a line."""
        lines = build_lines(
            [make_run("World", 120, 697, width=30), make_run("Hello", 72, 700, width=30)],
            PAGE_HEIGHT,
        )
        assert len(lines) == 1
        assert lines[0].text == "Hello World"
        assert [item.text for item in lines[0].items] == ["Hello", "World"]

    def test_lines_are_ordered_top_to_bottom(self):
        """Test that a higher baseline in PDF space comes first."""
        lines = build_lines(
            [make_run("second", 72, 680), make_run("first", 72, 700)],
            PAGE_HEIGHT,
        )
        assert [line.text for line in lines] == ["first", "second"]

    def test_layout_coordinates(self):
        """Test the Y flip and the top-edge convention."""
        lines = build_lines([make_run("Title", 72, 700, size=20, width=50)], PAGE_HEIGHT)
        line = lines[0]
        assert line.y == pytest.approx(PAGE_HEIGHT - 700 - 20)
        assert line.height == 20
        assert line.average_font_size == 20
        assert line.bounds.left == 72
        assert line.bounds.right == 122
        assert line.bounds.bottom == pytest.approx(line.y + 20)

    def test_width_fallback(self):
        """Test that a missing width is estimated from the character count."""
        lines = build_lines([make_run("abcd", 10, 700, size=10)], PAGE_HEIGHT)
        assert lines[0].bounds.right == pytest.approx(10 + 4 * 10 * 0.6)

    def test_zero_font_size_defaults_to_12(self):
        """Test the default font size for a degenerate matrix."""
        run = RawTextRun(text="tiny", transform=(0, 0, 0, 0, 10, 700))
        lines = build_lines([run], PAGE_HEIGHT)
        assert lines[0].average_font_size == 12.0

    def test_whitespace_runs_are_dropped(self, caplog):
        """Test that empty runs vanish without a warning."""
        with caplog.at_level(logging.WARNING):
            lines = build_lines(
                [make_run("   ", 72, 700), make_run("", 90, 700), make_run("Text", 72, 680)],
                PAGE_HEIGHT,
            )
        assert [line.text for line in lines] == ["Text"]
        assert not caplog.records

    def test_bad_transform_is_skipped_with_warning(self, caplog):
        """Test that a malformed matrix skips the run and keeps the page."""
        bad = RawTextRun(text="broken", transform=(1.0, 2.0, 3.0))
        with caplog.at_level(logging.WARNING):
            lines = build_lines([bad, make_run("Fine", 72, 700)], PAGE_HEIGHT)
        assert [line.text for line in lines] == ["Fine"]
        assert any("unparseable transform" in r.getMessage() for r in caplog.records)

    def test_non_numeric_transform_is_skipped(self):
        """Test that a transform with non-numbers is treated as malformed."""
        bad = RawTextRun(text="broken", transform=("a", 0, 0, 12, 0, 0))
        assert build_lines([bad], PAGE_HEIGHT) == []

    def test_font_weight_and_style(self):
        """Test that run weight and style follow the font name and flags."""
        lines = build_lines(
            [
                make_run("Bold", 72, 700, font="Helvetica-Bold", width=30),
                make_run("Italic", 120, 700, font="Helvetica-Oblique", width=30),
            ],
            PAGE_HEIGHT,
        )
        bold, italic = lines[0].items
        assert bold.font_weight == "bold"
        assert italic.font_style == "italic"

    def test_size_bold_heuristic_configurable(self):
        """Test that disabling the size heuristic keeps large text normal."""
        config = LineBuilderConfig(infer_bold_from_size=False)
        lines = build_lines([make_run("Big", 72, 700, size=20)], PAGE_HEIGHT, config)
        assert lines[0].items[0].font_weight == "normal"

    def test_deterministic(self):
        """Test that repeated runs give identical lines."""
        runs = [
            make_run("Alpha", 72, 700, width=30),
            make_run("beta", 105, 701, width=25),
            make_run("gamma", 72, 650, width=35),
            make_run("delta", 112, 650, width=30),
        ]
        assert build_lines(runs, PAGE_HEIGHT) == build_lines(list(runs), PAGE_HEIGHT)


class TestLayoutStatistics:
    """Tests for page-level layout statistics."""

    def test_reading_order_aligned(self):
        """Test that left-aligned lines score 1.0."""
        lines = build_lines(
            [make_run("one", 72, 700), make_run("two", 75, 680), make_run("three", 70, 660)],
            PAGE_HEIGHT,
        )
        assert estimate_reading_order(lines) == 1.0

    def test_reading_order_single_line(self):
        """Test the trivial case."""
        assert estimate_reading_order([]) == 1.0

    def test_reading_order_ragged(self):
        """Test that misaligned lines lower the score."""
        lines = build_lines(
            [make_run("one", 72, 700), make_run("two", 300, 680), make_run("three", 72, 660)],
            PAGE_HEIGHT,
        )
        assert estimate_reading_order(lines) == 0.0

    def test_text_density(self):
        """Test line area over page area."""
        lines = build_lines([make_run("x", 0, 700, size=10, width=100)], PAGE_HEIGHT)
        assert calculate_text_density(lines, 100, 100) == pytest.approx(0.1)
        assert calculate_text_density(lines, 0, 100) == 0.0

    def test_detect_english(self):
        """Test that three common English words are enough."""
        lines = build_lines(
            [make_run("the cat and the hat sat on a mat", 72, 700)], PAGE_HEIGHT
        )
        assert detect_language(lines) == "en"

    def test_detect_unknown(self):
        """Test that other text is unknown."""
        lines = build_lines([make_run("Quarterly revenue grew", 72, 700)], PAGE_HEIGHT)
        assert detect_language(lines) == "unknown"
