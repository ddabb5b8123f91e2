"""Tests for docextract.layout (paragraph reconstruction)."""

from __future__ import annotations

import random

from fakes import line, word

from docextract.layout import (
    PAGE_BREAK,
    extract_structured_text,
    reconstruct_document,
    split_paragraphs,
    starts_new_paragraph,
)
from docextract.schema import BlockType, RecognizedBlock

# Dyadic fractions keep the boundary arithmetic exact.
H = 0.0625  # line height; paragraph threshold is 1.5 * H = 0.09375


class TestParagraphBoundary:
    def test_gap_equal_to_threshold_merges(self):
        first = line("a", top=0.25, height=H)
        second = line("b", top=0.25 + H + 1.5 * H, height=H)
        assert not starts_new_paragraph(first, second)
        assert split_paragraphs([first, second]) == [["a", "b"]]

    def test_gap_above_threshold_splits(self):
        first = line("a", top=0.25, height=H)
        second = line("b", top=0.25 + H + 1.5 * H + 0.0078125, height=H)
        assert starts_new_paragraph(first, second)
        assert split_paragraphs([first, second]) == [["a"], ["b"]]

    def test_threshold_uses_previous_line_height(self):
        tall = line("tall", top=0.0, height=0.125)  # threshold 0.1875
        short = line("short", top=0.125 + 0.125, height=0.015625)  # gap 0.125
        assert split_paragraphs([tall, short]) == [["tall", "short"]]

    def test_adjacent_lines_merge(self):
        lines = [line(f"l{i}", top=0.125 + i * H) for i in range(4)]
        assert split_paragraphs(lines) == [["l0", "l1", "l2", "l3"]]


class TestOrdering:
    def test_lines_sorted_top_to_bottom(self):
        lines = [line("third", 0.75), line("first", 0.125), line("second", 0.1875)]
        assert split_paragraphs(lines) == [["first", "second"], ["third"]]

    def test_pages_ascending(self):
        blocks = [line("p3", 0.1, page=3), line("p1", 0.1, page=1), line("p2", 0.1, page=2)]
        doc = reconstruct_document(blocks)
        assert [p.page_number for p in doc.pages] == [1, 2, 3]

    def test_only_line_blocks_used(self):
        blocks = [
            word("ignored"),
            RecognizedBlock(id="pg", block_type=BlockType.PAGE, page=1),
            line("kept", 0.1),
        ]
        assert extract_structured_text(blocks) == "kept"

    def test_missing_geometry_defaults_to_top_zero(self):
        bare = RecognizedBlock(id="x", block_type=BlockType.LINE, text="bare")
        assert extract_structured_text([line("below", 0.5), bare]) == "bare\n\nbelow"


class TestRendering:
    def test_paragraph_and_page_separators(self):
        blocks = [
            line("Hello", 0.125),
            line("world", 0.1875),
            line("Next para", 0.5),
            line("Page two", 0.125, page=2),
        ]
        text = extract_structured_text(blocks)
        assert text == "Hello world\n\nNext para" + PAGE_BREAK + "Page two"

    def test_empty_pages_skipped(self):
        blocks = [line("", 0.1, page=1), line("only", 0.1, page=2)]
        assert extract_structured_text(blocks) == "only"

    def test_no_lines(self):
        assert extract_structured_text([]) == ""

    def test_deterministic(self):
        blocks = [line(f"w{i}", top=random.Random(i).random(), page=1 + i % 3) for i in range(40)]
        first = extract_structured_text(blocks)
        assert extract_structured_text(blocks) == first
        assert extract_structured_text(list(blocks)) == first
