"""Rebuild page-ordered paragraphs from flat OCR line blocks.

OCR backends return individual text lines without paragraph boundaries, so
vertical whitespace between consecutive lines is used as the paragraph signal.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable

from .schema import BlockType, ReconstructedDocument, ReconstructedPage, RecognizedBlock

PARAGRAPH_GAP_RATIO = 1.5
PAGE_BREAK = "\n\n--- Page Break ---\n\n"


def _top(block: RecognizedBlock) -> float:
    return block.bbox.top if block.bbox else 0.0


def _height(block: RecognizedBlock) -> float:
    return block.bbox.height if block.bbox else 0.0


def group_lines_by_page(blocks: Iterable[RecognizedBlock]) -> dict[int, list[RecognizedBlock]]:
    """Collect LINE blocks per page, preserving input order within a page."""

    pages: dict[int, list[RecognizedBlock]] = defaultdict(list)
    for block in blocks:
        if block.block_type is BlockType.LINE:
            pages[block.page or 1].append(block)
    return dict(pages)


def starts_new_paragraph(previous: RecognizedBlock, current: RecognizedBlock) -> bool:
    """True when the gap below *previous* exceeds 1.5x its height."""

    prev_height = _height(previous)
    gap = _top(current) - (_top(previous) + prev_height)
    return gap > prev_height * PARAGRAPH_GAP_RATIO


def split_paragraphs(lines: list[RecognizedBlock]) -> list[list[str]]:
    """Sort one page's lines top-to-bottom and group them into paragraphs."""

    ordered = sorted(lines, key=_top)
    paragraphs: list[list[str]] = []
    current: list[str] = []
    previous: RecognizedBlock | None = None

    for line in ordered:
        if previous is not None and current and starts_new_paragraph(previous, line):
            paragraphs.append(current)
            current = []
        current.append(line.text or "")
        previous = line

    if current:
        paragraphs.append(current)
    return paragraphs


def reconstruct_document(blocks: Iterable[RecognizedBlock]) -> ReconstructedDocument:
    pages = group_lines_by_page(blocks)
    return ReconstructedDocument(
        pages=[
            ReconstructedPage(page_number=number, paragraphs=split_paragraphs(pages[number]))
            for number in sorted(pages)
        ]
    )


def render_document(document: ReconstructedDocument) -> str:
    """Paragraphs joined by blank lines, pages joined by a page-break marker."""

    page_texts = [page.text for page in document.pages]
    return PAGE_BREAK.join(text for text in page_texts if text.strip())


def extract_structured_text(blocks: Iterable[RecognizedBlock]) -> str:
    return render_document(reconstruct_document(blocks))
