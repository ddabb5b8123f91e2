"""Tests for docextract.providers.tesseract (no tesseract binary needed)."""

from __future__ import annotations

import io
import unittest
from unittest.mock import patch

import numpy as np
from PIL import Image, ImageDraw

from docextract.ocr import OcrSource
from docextract.providers.tesseract import (
    TesseractBackend,
    _build_config,
    find_cell_boxes,
    group_cells,
    table_blocks,
    words_and_lines,
)
from docextract.schema import BlockType, BoundingBox, FeatureFlags, RecognizedBlock, StorageLocator
from docextract.utils import OcrBackendError, UnsupportedDocumentError

OCR_DATA = {
    "text": ["", "Hello", "world", "", "Second", "line", "noise"],
    "conf": ["-1", "95", "85", "-1", "90", "80", "-1"],
    "block_num": [1, 1, 1, 1, 1, 1, 1],
    "par_num": [1, 1, 1, 1, 1, 1, 1],
    "line_num": [1, 1, 1, 2, 2, 2, 2],
    "left": [0, 10, 70, 0, 10, 90, 150],
    "top": [0, 10, 10, 40, 40, 42, 40],
    "width": [0, 50, 50, 0, 70, 40, 10],
    "height": [0, 20, 20, 0, 20, 18, 20],
}


def _png(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def _ruled_grid(rows: int = 2, columns: int = 2, cell: int = 100, margin: int = 50) -> Image.Image:
    image = Image.new("L", (margin * 2 + columns * cell, margin * 2 + rows * cell), 255)
    draw = ImageDraw.Draw(image)
    for r in range(rows + 1):
        y = margin + r * cell
        draw.line([(margin, y), (margin + columns * cell, y)], fill=0, width=3)
    for c in range(columns + 1):
        x = margin + c * cell
        draw.line([(x, margin), (x, margin + rows * cell)], fill=0, width=3)
    return image


class TestWordsAndLines(unittest.TestCase):
    def test_groups_words_into_lines(self) -> None:
        blocks = words_and_lines(OCR_DATA, page=2, size=(200, 100))
        lines = [b for b in blocks if b.block_type is BlockType.LINE]
        words = [b for b in blocks if b.block_type is BlockType.WORD]
        self.assertEqual([l.text for l in lines], ["Hello world", "Second line"])
        self.assertEqual(len(words), 4)
        self.assertTrue(all(b.page == 2 for b in blocks))

    def test_line_children_and_confidence(self) -> None:
        blocks = words_and_lines(OCR_DATA, page=1, size=(200, 100))
        first = blocks[0]
        self.assertEqual(first.id, "p1-l1")
        self.assertEqual(first.child_ids, ["p1-w1", "p1-w2"])
        self.assertAlmostEqual(first.confidence, 90.0)

    def test_geometry_normalized(self) -> None:
        first = words_and_lines(OCR_DATA, page=1, size=(200, 100))[0]
        self.assertAlmostEqual(first.bbox.top, 0.1)
        self.assertAlmostEqual(first.bbox.left, 0.05)
        self.assertAlmostEqual(first.bbox.width, 0.55)
        self.assertAlmostEqual(first.bbox.height, 0.2)

    def test_empty_data(self) -> None:
        self.assertEqual(words_and_lines({}, page=1, size=(10, 10)), [])

    def test_build_config(self) -> None:
        self.assertEqual(_build_config("deu"), "--oem 1 --psm 3 -l deu")


class TestTableDetection(unittest.TestCase):
    def test_group_cells_rows_and_columns(self) -> None:
        boxes = [(10, 10, 50, 20), (60, 12, 50, 20), (10, 40, 50, 20), (60, 40, 50, 20)]
        cells = group_cells(boxes)
        self.assertEqual([(r, c) for r, c, _ in cells], [(1, 1), (1, 2), (2, 1), (2, 2)])

    def test_group_cells_empty(self) -> None:
        self.assertEqual(group_cells([]), [])

    def test_find_cell_boxes_on_ruled_grid(self) -> None:
        gray = np.array(_ruled_grid())
        cells = group_cells(find_cell_boxes(gray))
        self.assertEqual(len(cells), 4)
        self.assertEqual(max(r for r, _, _ in cells), 2)
        self.assertEqual(max(c for _, c, _ in cells), 2)

    def test_single_frame_is_not_a_table(self) -> None:
        image = Image.new("L", (600, 400), 255)
        ImageDraw.Draw(image).rectangle([(50, 50), (550, 350)], outline=0, width=3)
        self.assertEqual(find_cell_boxes(np.array(image)), [])
        self.assertEqual(table_blocks(image, page=1, words=[]), [])

    def test_blank_page_has_no_cells(self) -> None:
        gray = np.full((300, 300), 255, dtype=np.uint8)
        self.assertEqual(find_cell_boxes(gray), [])

    def test_table_blocks_assign_words_to_cells(self) -> None:
        image = _ruled_grid()
        word = RecognizedBlock(
            id="w1",
            block_type=BlockType.WORD,
            text="Total",
            # centered inside the top-left cell (pixels 50..150 of 300)
            bbox=BoundingBox(top=0.3, left=0.3, width=0.1, height=0.05),
        )
        blocks = table_blocks(image, page=1, words=[word])
        self.assertIs(blocks[0].block_type, BlockType.TABLE)
        cells = blocks[1:]
        self.assertEqual(len(blocks[0].child_ids), len(cells))
        owner = [c for c in cells if "w1" in c.child_ids]
        self.assertEqual(len(owner), 1)
        self.assertEqual((owner[0].row_index, owner[0].column_index), (1, 1))


class TestTesseractBackend(unittest.TestCase):
    def setUp(self) -> None:
        self.backend = TesseractBackend(lang="eng")

    def test_pdf_is_unsupported(self) -> None:
        with self.assertRaises(UnsupportedDocumentError):
            self.backend.detect_text(OcrSource.from_bytes(b"%PDF-1.4\n"))

    def test_locator_is_refused(self) -> None:
        with self.assertRaises(OcrBackendError):
            self.backend.detect_text(OcrSource.from_locator(StorageLocator(bucket="b", key="k.png")))

    def test_undecodable_image(self) -> None:
        with self.assertRaises(UnsupportedDocumentError):
            self.backend.detect_text(OcrSource.from_bytes(b"\x89PNG truncated"))

    @patch("docextract.providers.tesseract.pytesseract.image_to_data", return_value=OCR_DATA)
    def test_detect_text_emits_page_lines_and_words(self, image_to_data) -> None:
        data = _png(Image.new("RGB", (200, 100), "white"))
        blocks = self.backend.detect_text(OcrSource.from_bytes(data))
        self.assertIs(blocks[0].block_type, BlockType.PAGE)
        self.assertEqual(blocks[0].child_ids, ["p1-l1", "p1-l2"])
        self.assertEqual(sum(b.block_type is BlockType.WORD for b in blocks), 4)
        image_to_data.assert_called_once()

    @patch("docextract.providers.tesseract.pytesseract.image_to_data", return_value=OCR_DATA)
    def test_analyze_adds_tables(self, _image_to_data) -> None:
        data = _png(_ruled_grid())
        blocks = self.backend.analyze_document(
            OcrSource.from_bytes(data), FeatureFlags(detect_tables=True)
        )
        self.assertEqual(sum(b.block_type is BlockType.TABLE for b in blocks), 1)
        self.assertEqual(sum(b.block_type is BlockType.CELL for b in blocks), 4)


if __name__ == "__main__":
    unittest.main()
