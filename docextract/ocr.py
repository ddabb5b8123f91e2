"""OCR adapter: call a backend with a chosen source and normalize its blocks.

A backend exposes two entry points, ``detect_text`` (lines and words only)
and ``analyze_document`` (adds tables/cells/forms). Both accept an
:class:`OcrSource` holding either raw bytes or a storage locator, and both
raise :class:`UnsupportedDocumentError` when the file is refused.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Protocol

from .config import OCR_ENGINE
from .layout import extract_structured_text
from .schema import (
    ExtractionRequest,
    FeatureFlags,
    OcrResult,
    PageImage,
    RecognizedBlock,
    StorageLocator,
)
from .tables import TABLES_SEPARATOR, extract_tables
from .utils import first_success

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OcrSource:
    """Exactly one of raw bytes or a storage locator."""

    data: bytes | None = field(default=None, repr=False)
    locator: StorageLocator | None = None

    def __post_init__(self) -> None:
        if (self.data is None) == (self.locator is None):
            raise ValueError("OcrSource needs exactly one of data or locator.")

    @classmethod
    def from_bytes(cls, data: bytes) -> "OcrSource":
        return cls(data=data)

    @classmethod
    def from_locator(cls, locator: StorageLocator) -> "OcrSource":
        return cls(locator=locator)

    def describe(self) -> str:
        if self.locator is not None:
            return f"storage source {self.locator}"
        return f"direct bytes ({len(self.data or b'')} bytes)"


class OcrBackend(Protocol):
    """External OCR capability."""

    name: str

    def detect_text(self, source: OcrSource) -> list[RecognizedBlock]: ...

    def analyze_document(
        self, source: OcrSource, flags: FeatureFlags
    ) -> list[RecognizedBlock]: ...


def average_confidence(blocks: Iterable[RecognizedBlock]) -> float | None:
    scores = [block.confidence for block in blocks if block.confidence is not None]
    if not scores:
        return None
    return sum(scores) / len(scores)


def normalize_blocks(blocks: list[RecognizedBlock], flags: FeatureFlags) -> OcrResult:
    """Turn raw blocks into structured text (+ rendered tables) and a confidence."""

    text = extract_structured_text(blocks)
    if flags.detect_tables:
        tables = extract_tables(blocks)
        if tables:
            text += TABLES_SEPARATOR + "\n\n".join(tables)
    return OcrResult(
        text=text,
        confidence=average_confidence(blocks),
        block_count=len(blocks),
        page_count=len({block.page for block in blocks}),
    )


def run_ocr(backend: OcrBackend, source: OcrSource, flags: FeatureFlags) -> OcrResult:
    """Single OCR call against *source*; analysis only when tables/forms are wanted."""

    logger.info("Running %s OCR with %s", backend.name, source.describe())
    if flags.wants_analysis:
        blocks = backend.analyze_document(source, flags)
    else:
        blocks = backend.detect_text(source)
    return normalize_blocks(blocks, flags)


def ocr_with_source_retry(backend: OcrBackend, request: ExtractionRequest) -> OcrResult:
    """Try the storage locator first (when present), then raw bytes.

    Any failure of the storage attempt triggers the bytes attempt; the bytes
    attempt's error propagates unchanged.
    """

    strategies = []
    if request.locator is not None:
        locator_source = OcrSource.from_locator(request.locator)
        strategies.append(
            ("storage", lambda: run_ocr(backend, locator_source, request.flags))
        )
    bytes_source = OcrSource.from_bytes(request.data)
    strategies.append(("bytes", lambda: run_ocr(backend, bytes_source, request.flags)))

    name, result = first_success(strategies)
    logger.info("OCR succeeded via %s source (%d blocks)", name, result.block_count)
    return result


def ocr_page_image(backend: OcrBackend, image: PageImage, flags: FeatureFlags) -> OcrResult:
    """OCR one rasterized page; page images only ever travel as bytes."""

    return run_ocr(backend, OcrSource.from_bytes(image.data), flags)


def get_backend(engine: str | None = None) -> OcrBackend:
    """Instantiate the configured OCR backend (``textract`` or ``tesseract``)."""

    engine = (engine or OCR_ENGINE).strip().lower()
    if engine == "textract":
        from .providers.textract import TextractBackend

        return TextractBackend()
    if engine == "tesseract":
        from .providers.tesseract import TesseractBackend

        return TesseractBackend()
    raise ValueError(f"Unknown OCR engine: {engine!r} (expected 'textract' or 'tesseract').")


def is_backend_available(engine: str | None = None) -> bool:
    """Whether the configured backend has its credentials / binaries in place."""

    engine = (engine or OCR_ENGINE).strip().lower()
    if engine == "textract":
        from .providers.textract import is_available

        return is_available()
    if engine == "tesseract":
        from .providers.tesseract import is_available

        return is_available()
    return False
