"""Local Tesseract OCR backend.

Mirrors the Textract block model so the same reconstruction code applies:
words are grouped into LINE blocks by Tesseract's (block, paragraph, line)
numbering and geometry is normalized to fractions of the page. Table
analysis finds ruled grids with OpenCV morphology and maps words into cells.

Tesseract only reads raster images. PDF input is refused with
:class:`UnsupportedDocumentError`, which sends the orchestrator down the
rasterization path; storage locators are refused with
:class:`OcrBackendError`, which makes the adapter retry with bytes.
"""

from __future__ import annotations

import io
import logging
from collections import defaultdict

import cv2
import numpy as np
import pytesseract
from PIL import Image, ImageSequence, UnidentifiedImageError

from ..config import TESSERACT_LANG
from ..formats import DocumentFormat, detect_format
from ..ocr import OcrSource
from ..schema import BlockType, BoundingBox, FeatureFlags, RecognizedBlock
from ..utils import OcrBackendError, UnsupportedDocumentError, check_binary_exists

logger = logging.getLogger(__name__)

OCR_OEM = 1
OCR_PSM = 3
MIN_CELL_SIZE = 20
LINE_KERNEL = 40
# A lone ruled box (callout, page frame) is not a table.
MIN_TABLE_CELLS = 2


def is_available() -> bool:
    """Return True if the ``tesseract`` binary is on PATH."""
    return check_binary_exists("tesseract")


def _build_config(lang: str, psm: int = OCR_PSM) -> str:
    return f"--oem {OCR_OEM} --psm {psm} -l {lang}"


def _normalized_box(left: int, top: int, width: int, height: int, size: tuple[int, int]) -> BoundingBox:
    page_w, page_h = max(size[0], 1), max(size[1], 1)
    return BoundingBox(
        top=top / page_h, left=left / page_w, width=width / page_w, height=height / page_h,
    )


def _union(boxes: list[BoundingBox]) -> BoundingBox:
    top = min(b.top for b in boxes)
    left = min(b.left for b in boxes)
    bottom = max(b.top + b.height for b in boxes)
    right = max(b.left + b.width for b in boxes)
    return BoundingBox(top=top, left=left, width=right - left, height=bottom - top)


def words_and_lines(ocr_data: dict, page: int, size: tuple[int, int]) -> list[RecognizedBlock]:
    """Build WORD and LINE blocks from ``pytesseract.image_to_data`` output."""

    lines: dict[tuple[int, int, int], list[RecognizedBlock]] = defaultdict(list)
    for index, raw_text in enumerate(ocr_data.get("text", [])):
        text = (raw_text or "").strip()
        if not text:
            continue
        try:
            confidence = float(ocr_data["conf"][index])
        except (KeyError, TypeError, ValueError):
            confidence = -1.0
        if confidence < 0:
            continue
        key = (
            int(ocr_data["block_num"][index]),
            int(ocr_data["par_num"][index]),
            int(ocr_data["line_num"][index]),
        )
        lines[key].append(
            RecognizedBlock(
                id=f"p{page}-w{index}",
                block_type=BlockType.WORD,
                page=page,
                text=text,
                bbox=_normalized_box(
                    int(ocr_data["left"][index]),
                    int(ocr_data["top"][index]),
                    int(ocr_data["width"][index]),
                    int(ocr_data["height"][index]),
                    size,
                ),
                confidence=confidence,
            )
        )

    blocks: list[RecognizedBlock] = []
    for line_number, key in enumerate(sorted(lines), start=1):
        words = lines[key]
        blocks.append(
            RecognizedBlock(
                id=f"p{page}-l{line_number}",
                block_type=BlockType.LINE,
                page=page,
                text=" ".join(w.text or "" for w in words),
                bbox=_union([w.bbox for w in words if w.bbox]),
                confidence=sum(w.confidence or 0.0 for w in words) / len(words),
                child_ids=[w.id for w in words],
            )
        )
        blocks.extend(words)
    return blocks


def detect_table_lines(gray: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Detect horizontal and vertical ruling lines."""

    _, binary = cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY_INV + cv2.THRESH_OTSU)
    h_kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (LINE_KERNEL, 1))
    v_kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (1, LINE_KERNEL))

    horizontal = cv2.dilate(cv2.erode(binary, h_kernel, iterations=1), h_kernel, iterations=2)
    vertical = cv2.dilate(cv2.erode(binary, v_kernel, iterations=1), v_kernel, iterations=2)
    return horizontal, vertical


def find_cell_boxes(gray: np.ndarray) -> list[tuple[int, int, int, int]]:
    """Cell rectangles (x, y, w, h) enclosed by ruling lines, outer frame removed.

    Returns no cells unless at least ``MIN_TABLE_CELLS`` remain.
    """

    horizontal, vertical = detect_table_lines(gray)
    grid = cv2.bitwise_or(horizontal, vertical)
    contours, _ = cv2.findContours(grid, cv2.RETR_TREE, cv2.CHAIN_APPROX_SIMPLE)
    boxes = []
    for contour in contours:
        x, y, w, h = cv2.boundingRect(contour)
        if w < MIN_CELL_SIZE or h < MIN_CELL_SIZE:
            continue
        boxes.append((x, y, w, h))
    if len(boxes) > 1:
        outer = max(boxes, key=lambda b: b[2] * b[3])
        boxes = [b for b in boxes if b != outer]
    if len(boxes) < MIN_TABLE_CELLS:
        return []
    return sorted(boxes, key=lambda b: (b[1], b[0]))


def group_cells(boxes: list[tuple[int, int, int, int]]) -> list[tuple[int, int, tuple[int, int, int, int]]]:
    """Assign 1-based (row, column) indices to boxes sorted by (y, x)."""

    rows: list[list[tuple[int, int, int, int]]] = []
    row_y: int | None = None
    for box in boxes:
        x, y, w, h = box
        if row_y is None or abs(y - row_y) > h / 2:
            rows.append([])
            row_y = y
        rows[-1].append(box)

    cells = []
    for row_index, row in enumerate(rows, start=1):
        for column_index, box in enumerate(sorted(row, key=lambda b: b[0]), start=1):
            cells.append((row_index, column_index, box))
    return cells


def table_blocks(
    image: Image.Image, page: int, words: list[RecognizedBlock]
) -> list[RecognizedBlock]:
    """Build one TABLE block with CELL children (owning their WORDs) for a ruled grid."""

    gray = cv2.cvtColor(np.array(image.convert("RGB")), cv2.COLOR_RGB2GRAY)
    cells = group_cells(find_cell_boxes(gray))
    if not cells:
        return []

    size = image.size
    blocks: list[RecognizedBlock] = []
    for row_index, column_index, (x, y, w, h) in cells:
        box = _normalized_box(x, y, w, h, size)
        inside = [
            word.id
            for word in words
            if word.bbox
            and box.left <= word.bbox.left + word.bbox.width / 2 <= box.left + box.width
            and box.top <= word.bbox.top + word.bbox.height / 2 <= box.bottom
        ]
        blocks.append(
            RecognizedBlock(
                id=f"p{page}-c{row_index}-{column_index}",
                block_type=BlockType.CELL,
                page=page,
                bbox=box,
                row_index=row_index,
                column_index=column_index,
                child_ids=inside,
            )
        )
    table = RecognizedBlock(
        id=f"p{page}-t1",
        block_type=BlockType.TABLE,
        page=page,
        bbox=_union([b.bbox for b in blocks if b.bbox]),
        child_ids=[b.id for b in blocks],
    )
    return [table, *blocks]


class TesseractBackend:
    """Tesseract via pytesseract; one page per image frame."""

    name = "tesseract"

    def __init__(self, lang: str = TESSERACT_LANG) -> None:
        self.lang = lang

    def _open(self, source: OcrSource) -> Image.Image:
        if source.locator is not None:
            raise OcrBackendError("Tesseract cannot read from object storage; send bytes.")
        data = source.data or b""
        if detect_format(data) is DocumentFormat.PDF:
            raise UnsupportedDocumentError("Tesseract reads raster images only, not PDF.")
        try:
            image = Image.open(io.BytesIO(data))
            image.load()
        except (UnidentifiedImageError, OSError) as exc:
            raise UnsupportedDocumentError(f"Image could not be decoded: {exc}") from exc
        return image

    def _recognize(self, image: Image.Image, flags: FeatureFlags | None) -> list[RecognizedBlock]:
        blocks: list[RecognizedBlock] = []
        for page, frame in enumerate(ImageSequence.Iterator(image), start=1):
            frame = frame.convert("RGB")
            try:
                ocr_data = pytesseract.image_to_data(
                    frame, output_type=pytesseract.Output.DICT, config=_build_config(self.lang),
                )
            except pytesseract.TesseractError as exc:
                raise OcrBackendError(f"Tesseract failed on page {page}: {exc}") from exc
            page_blocks = words_and_lines(ocr_data, page, frame.size)
            blocks.append(
                RecognizedBlock(
                    id=f"p{page}",
                    block_type=BlockType.PAGE,
                    page=page,
                    bbox=BoundingBox(top=0.0, left=0.0, width=1.0, height=1.0),
                    child_ids=[b.id for b in page_blocks if b.block_type is BlockType.LINE],
                )
            )
            blocks.extend(page_blocks)
            if flags is not None and flags.detect_tables:
                words = [b for b in page_blocks if b.block_type is BlockType.WORD]
                blocks.extend(table_blocks(frame, page, words))
        return blocks

    def detect_text(self, source: OcrSource) -> list[RecognizedBlock]:
        return self._recognize(self._open(source), None)

    def analyze_document(self, source: OcrSource, flags: FeatureFlags) -> list[RecognizedBlock]:
        if flags.detect_forms:
            logger.debug("Tesseract backend has no form analysis; returning text and tables only")
        return self._recognize(self._open(source), flags)
