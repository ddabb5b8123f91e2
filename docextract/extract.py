"""OCR fallback chain: direct OCR, then per-page OCR of rasterized PDF pages.

    Validating -> OcrDirect -> Done
                     |  unsupported document
                     v
                Rasterizing -> OcrPerPage -> Aggregating -> Done | Failed

Validation and unsupported-document outcomes come back as a failed
:class:`ExtractionResult` so the caller can run its own non-OCR extractor.
Any other OCR error, or missing poppler binaries, propagates unchanged.
"""

from __future__ import annotations

import logging

from .config import SYNC_SIZE_WARNING_BYTES
from .formats import DocumentFormat, detect_format, header_hex, is_supported, log_pdf_warnings
from .ocr import OcrBackend, get_backend, ocr_page_image, ocr_with_source_retry
from .rasterize import PageRenderer, can_convert_pdf, optimal_dpi, rasterize_pdf, render_page
from .schema import (
    ExtractionFailure,
    ExtractionMethod,
    ExtractionRequest,
    ExtractionResult,
    FailureKind,
    FeatureFlags,
    StorageLocator,
)
from .utils import RasterizationError, UnsupportedDocumentError, first_success, size_in_mb

logger = logging.getLogger(__name__)

PAGE_MARKER = "--- Page {page} ---"


def _failed(kind: FailureKind, message: str) -> ExtractionResult:
    logger.warning("Extraction failed (%s): %s", kind.value, message)
    return ExtractionResult(failure=ExtractionFailure(kind=kind, message=message))


def _warn_if_large(size_bytes: int) -> None:
    if size_bytes > SYNC_SIZE_WARNING_BYTES:
        logger.warning(
            "Document size is %.2fMB. For files over %.0fMB, consider the async OCR API.",
            size_in_mb(size_bytes),
            size_in_mb(SYNC_SIZE_WARNING_BYTES),
        )


def extract(
    data: bytes,
    locator: StorageLocator | None = None,
    flags: FeatureFlags | None = None,
    backend: OcrBackend | None = None,
    renderer: PageRenderer = render_page,
) -> ExtractionResult:
    """Best-effort OCR text for *data*, trying each strategy in turn.

    Parameters
    ----------
    data:
        Raw document bytes (PDF, JPEG, PNG or TIFF).
    locator:
        Object-storage location of the same document, tried before raw bytes.
    flags:
        Table / form detection; applied to direct and per-page OCR alike.
    backend:
        OCR capability; defaults to the configured ``OCR_ENGINE``.
    renderer:
        Page rasterizer used by the image fallback.
    """
    request = ExtractionRequest(data=data, locator=locator, flags=flags or FeatureFlags())

    fmt = detect_format(data)
    if not is_supported(fmt):
        return _failed(
            FailureKind.VALIDATION,
            "Unsupported document format. Expected PDF/JPEG/PNG/TIFF "
            f"(header: {header_hex(data)})",
        )
    logger.info("Detected %s document (%d bytes)", fmt.value.upper(), len(data))
    if fmt is DocumentFormat.PDF:
        log_pdf_warnings(data)
    _warn_if_large(len(data))

    backend = backend or get_backend()

    def direct_ocr() -> ExtractionResult:
        result = ocr_with_source_retry(backend, request)
        return ExtractionResult(
            text=result.text,
            confidence=result.confidence,
            method=ExtractionMethod.DIRECT_OCR,
            pages_processed=result.page_count,
            pages_total=result.page_count,
        )

    strategies = [(ExtractionMethod.DIRECT_OCR.value, direct_ocr)]
    if fmt is DocumentFormat.PDF:
        strategies.append(
            (
                ExtractionMethod.IMAGE_FALLBACK_OCR.value,
                lambda: extract_via_images(request, backend, renderer),
            )
        )

    # Only a refused document moves on to rasterization.
    try:
        label, result = first_success(
            strategies,
            should_continue=lambda exc: isinstance(exc, UnsupportedDocumentError),
        )
    except UnsupportedDocumentError as exc:
        return _failed(
            FailureKind.UNSUPPORTED_DOCUMENT,
            f"{fmt.value.upper()} image rejected by {backend.name} OCR: {exc}",
        )
    if not result.failed:
        logger.info("Extraction succeeded via %s", label)
    return result


def extract_via_images(
    request: ExtractionRequest,
    backend: OcrBackend,
    renderer: PageRenderer = render_page,
) -> ExtractionResult:
    """Rasterize the PDF and OCR each page image; failed pages are skipped."""

    if not can_convert_pdf(len(request.data)):
        return _failed(
            FailureKind.UNSUPPORTED_DOCUMENT,
            "PDF format not supported and too large for image conversion",
        )

    try:
        conversion = rasterize_pdf(
            request.data, dpi=optimal_dpi(len(request.data)), renderer=renderer,
        )
        if not conversion.success:
            raise RasterizationError(conversion.error or "PDF conversion failed")
    except RasterizationError as exc:
        return _failed(
            FailureKind.UNSUPPORTED_DOCUMENT,
            f"PDF format not supported and image conversion failed: {exc}",
        )

    page_texts: list[str] = []
    confidences: list[float] = []
    for page in conversion.pages:
        logger.info("Processing page %d with %s OCR", page.page_number, backend.name)
        try:
            result = ocr_page_image(backend, page, request.flags)
        except Exception as exc:
            logger.warning("Failed to process page %d: %s", page.page_number, exc)
            continue
        if not result.text.strip():
            logger.info("Page %d produced no text", page.page_number)
            continue
        page_texts.append(f"{PAGE_MARKER.format(page=page.page_number)}\n{result.text}")
        if result.confidence is not None:
            confidences.append(result.confidence)

    if not page_texts:
        return _failed(
            FailureKind.UNSUPPORTED_DOCUMENT,
            "PDF format not supported and no text extracted from any page image",
        )

    logger.info(
        "Image-based extraction complete: %d/%d pages processed",
        len(page_texts), len(conversion.pages),
    )
    return ExtractionResult(
        text="\n\n".join(page_texts),
        confidence=sum(confidences) / len(confidences) if confidences else None,
        method=ExtractionMethod.IMAGE_FALLBACK_OCR,
        pages_processed=len(page_texts),
        pages_total=len(conversion.pages),
    )
