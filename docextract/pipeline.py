"""Document-processing entry point used by the CLI and HTTP surfaces.

Runs the OCR fallback chain where it applies and falls back to PyMuPDF's
embedded-text extraction when OCR is disabled, unavailable, or gives up.
"""

from __future__ import annotations

import logging

from .config import OCR_ENGINE
from .extract import extract
from .formats import supported_extensions
from .ocr import OcrBackend, get_backend, is_backend_available
from .pdf_text import extract_native_text
from .providers.storage import S3Storage
from .schema import (
    ExtractionMethod,
    FeatureFlags,
    ProcessedDocument,
    StorageLocator,
)
from .utils import (
    DocumentValidationError,
    EmptyContentError,
    ExtractionError,
    MissingDependencyError,
    first_success,
    size_in_mb,
)

logger = logging.getLogger(__name__)

EMPTY_MESSAGE = "Could not extract text from this document."


def load_document(locator: StorageLocator, storage: S3Storage | None = None) -> bytes:
    """Fetch a document body from object storage."""
    return (storage or S3Storage()).download(locator)


def _ocr_pdf(
    data: bytes,
    locator: StorageLocator | None,
    flags: FeatureFlags,
    backend: OcrBackend | None,
) -> tuple[str, ExtractionMethod, float | None, int]:
    result = extract(data, locator=locator, flags=flags, backend=backend or get_backend())
    if result.failed:
        raise ExtractionError(f"OCR chain gave up: {result.failure.message}")
    return result.text, result.method, result.confidence, result.pages_total


def _native_pdf(data: bytes, method: ExtractionMethod) -> tuple[str, ExtractionMethod, None, int]:
    text, pages = extract_native_text(data)
    return text, method, None, len(pages)


def process_document(
    data: bytes,
    file_type: str,
    locator: StorageLocator | None = None,
    flags: FeatureFlags | None = None,
    use_ocr: bool = True,
    backend: OcrBackend | None = None,
) -> ProcessedDocument:
    """Extract text from an uploaded document.

    PDFs go through OCR first when enabled and available, then PyMuPDF on
    any failure. Images have no non-OCR path, so OCR must succeed.
    """

    file_type = file_type.strip().lower().lstrip(".")
    if file_type not in supported_extensions():
        raise DocumentValidationError(
            f"Unsupported file type {file_type!r}; expected one of {supported_extensions()}"
        )
    flags = flags or FeatureFlags()
    ocr_enabled = use_ocr and (backend is not None or is_backend_available(OCR_ENGINE))
    logger.info(
        "Processing %s (%.2f MB), OCR enabled=%s (use_ocr=%s, engine=%s)",
        file_type, size_in_mb(len(data)), ocr_enabled, use_ocr, OCR_ENGINE,
    )

    if file_type == "pdf":
        strategies = []
        if ocr_enabled:
            strategies.append(("OCR", lambda: _ocr_pdf(data, locator, flags, backend)))
        else:
            logger.info("Skipping OCR, using native text extraction")
        native_method = ExtractionMethod.NATIVE_FALLBACK if ocr_enabled else ExtractionMethod.NATIVE
        strategies.append(("native text", lambda: _native_pdf(data, native_method)))

        _, (text, method, confidence, page_count) = first_success(
            strategies,
            should_continue=lambda exc: isinstance(exc, ExtractionError),
        )
    else:
        if not ocr_enabled:
            raise MissingDependencyError(
                f"An OCR backend is required to extract text from {file_type} images."
            )
        result = extract(data, locator=locator, flags=flags, backend=backend or get_backend())
        if result.failed:
            raise EmptyContentError(f"{EMPTY_MESSAGE} ({result.failure.message})")
        text, method = result.text, result.method
        confidence, page_count = result.confidence, result.pages_total

    if not text.strip():
        raise EmptyContentError(EMPTY_MESSAGE)

    logger.info("Document processed successfully using %s", method.value)
    return ProcessedDocument(
        text=text,
        method=method,
        confidence=confidence,
        file_type=file_type,
        size_bytes=len(data),
        page_count=page_count,
    )
