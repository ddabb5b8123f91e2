"""PDF-to-image rasterization for the OCR fallback path.

Used when the OCR backend refuses a PDF outright: each page is rendered to a
raster image that can be sent to OCR on its own. Pages are rendered one at a
time so a bad page, or the end of the document, stops the walk without
losing the pages already rendered.
"""

from __future__ import annotations

import io
import logging
from typing import Callable

from pdf2image import convert_from_bytes
from pdf2image.exceptions import PDFInfoNotInstalledError, PDFPageCountError, PDFSyntaxError
from PIL import Image

from .config import (
    RASTER_FORMAT,
    RASTER_JPEG_QUALITY,
    RASTER_MAX_CONVERTIBLE_BYTES,
    RASTER_MAX_DIMENSION,
    RASTER_MAX_EMPTY_PAGES,
    RASTER_MAX_PAGES,
    RASTER_MIN_IMAGE_BYTES,
)
from .schema import ConversionResult, PageImage
from .utils import MissingDependencyError, RasterizationError, ensure_binaries, size_in_mb

logger = logging.getLogger(__name__)

# render(pdf_bytes, dpi, fmt, page_number) -> image bytes; raises past the last page.
PageRenderer = Callable[[bytes, int, str, int], bytes]

POPPLER_BINARIES = ("pdftoppm", "pdfinfo")

# (upper bound in MB, dpi without images, dpi with images); last band is open-ended.
DPI_BANDS: tuple[tuple[float, int, int], ...] = (
    (1.0, 250, 300),
    (5.0, 200, 200),
    (10.0, 200, 150),
)
LARGE_FILE_DPI = (150, 100)

SECONDS_PER_PAGE = 2
MEMORY_MB_PER_PAGE = 10


def optimal_dpi(size_bytes: int, has_images: bool = False) -> int:
    """Smaller files get higher DPI; non-increasing as size grows."""

    size_mb = size_in_mb(size_bytes)
    for upper_mb, text_dpi, image_dpi in DPI_BANDS:
        if size_mb < upper_mb:
            return image_dpi if has_images else text_dpi
    return LARGE_FILE_DPI[1] if has_images else LARGE_FILE_DPI[0]


def estimate_conversion(size_bytes: int, page_count: int | None = None) -> dict:
    """Rough time/memory estimate for rasterizing a PDF."""

    estimated_pages = page_count or max(1, round(size_in_mb(size_bytes) * 2))
    seconds = estimated_pages * SECONDS_PER_PAGE
    memory_mb = estimated_pages * MEMORY_MB_PER_PAGE
    if seconds > 30:
        recommendation = "Consider processing async or reducing DPI for faster conversion"
    elif memory_mb > 500:
        recommendation = "High memory usage expected, consider processing pages individually"
    else:
        recommendation = "Conversion should complete quickly"
    return {
        "estimated_time_seconds": seconds,
        "estimated_memory_mb": memory_mb,
        "recommendation": recommendation,
    }


def can_convert_pdf(size_bytes: int) -> bool:
    """Very large PDFs may time out or exhaust memory during conversion."""

    if size_bytes > RASTER_MAX_CONVERTIBLE_BYTES:
        logger.warning(
            "PDF is %.1fMB - conversion may be slow or fail", size_in_mb(size_bytes)
        )
        return False
    return True


def encode_image(image: Image.Image, fmt: str, quality: int = RASTER_JPEG_QUALITY) -> bytes:
    buffer = io.BytesIO()
    if fmt == "jpeg":
        image.convert("RGB").save(buffer, format="JPEG", quality=quality)
    else:
        image.save(buffer, format="PNG")
    return buffer.getvalue()


def render_page(data: bytes, dpi: int, fmt: str, page_number: int) -> bytes:
    """Render one page with poppler (pdftoppm) via pdf2image."""

    ensure_binaries(POPPLER_BINARIES)
    try:
        images = convert_from_bytes(
            data,
            dpi=dpi,
            first_page=page_number,
            last_page=page_number,
            fmt=fmt,
        )
    except (PDFInfoNotInstalledError, PDFPageCountError, PDFSyntaxError) as exc:
        raise RasterizationError(f"Could not render page {page_number}: {exc}") from exc
    if not images:
        raise RasterizationError(f"Page {page_number} is past the end of the document.")
    image = images[0]
    image.thumbnail((RASTER_MAX_DIMENSION, RASTER_MAX_DIMENSION))
    return encode_image(image, fmt)


def rasterize_pdf(
    data: bytes,
    dpi: int | None = None,
    fmt: str = RASTER_FORMAT,
    renderer: PageRenderer = render_page,
    max_pages: int = RASTER_MAX_PAGES,
    max_empty_pages: int = RASTER_MAX_EMPTY_PAGES,
    min_image_bytes: int = RASTER_MIN_IMAGE_BYTES,
) -> ConversionResult:
    """Render pages 1..N until the document ends, too many empties, or *max_pages*.

    Page 1 is rendered first as a validity probe; if it fails the whole
    conversion fails. Images under *min_image_bytes* count as empty and are
    dropped; *max_empty_pages* consecutive empties stop the walk.
    """

    if fmt not in ("png", "jpeg"):
        raise ValueError(f"Unsupported raster format: {fmt!r}")
    dpi = dpi or optimal_dpi(len(data))
    logger.info("Converting PDF to %s images (DPI: %d, %d bytes)", fmt.upper(), dpi, len(data))

    try:
        first_page = renderer(data, dpi, fmt, 1)
        if not first_page:
            raise RasterizationError("Failed to convert first page")
    except MissingDependencyError:
        raise
    except Exception as exc:
        logger.warning("PDF conversion failed on first page: %s", exc)
        return ConversionResult(success=False, error=str(exc) or "PDF conversion failed", dpi=dpi)

    logger.info("First page converted successfully (%d bytes)", len(first_page))

    pages: list[PageImage] = []
    consecutive_empty = 0
    page_number = 1
    while page_number <= max_pages and consecutive_empty < max_empty_pages:
        if page_number == 1:
            image = first_page
        else:
            try:
                image = renderer(data, dpi, fmt, page_number)
            except Exception as exc:
                logger.info("Stopped at page %d (%s)", page_number, exc)
                break

        if len(image) < min_image_bytes:
            consecutive_empty += 1
            logger.debug("Page %d rendered empty (%d bytes)", page_number, len(image))
        else:
            consecutive_empty = 0
            pages.append(PageImage(page_number=page_number, data=image))
            logger.debug("Page %d converted (%d bytes)", page_number, len(image))
        page_number += 1

    if consecutive_empty >= max_empty_pages:
        logger.info("Stopping after %d consecutive empty pages", consecutive_empty)

    if not pages:
        return ConversionResult(success=False, error="No pages could be converted", dpi=dpi)

    logger.info("PDF conversion complete: %d pages", len(pages))
    return ConversionResult(success=True, pages=pages, total_pages=len(pages), dpi=dpi)
