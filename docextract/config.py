"""Centralized configuration for OCR backends, rasterization and limits.

All env-driven settings live here so there is a single source of truth.
Import from ``docextract.config`` in extract.py, rasterize.py, api.py, etc.
"""

from __future__ import annotations

import logging
import os
import sys

logger = logging.getLogger(__name__)


def _env_bool(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes")


def _env_int(name: str, default: int, lo: int = 1, hi: int = 10_000) -> int:
    try:
        return max(lo, min(hi, int(os.environ.get(name, str(default)))))
    except (TypeError, ValueError):
        return default


MB = 1024 * 1024

# ---------------------------------------------------------------------------
# OCR backend
# ---------------------------------------------------------------------------
OCR_ENGINE: str = os.environ.get("OCR_ENGINE", "textract").strip().lower()
AWS_REGION: str | None = os.environ.get("AWS_REGION") or None
AWS_S3_BUCKET: str | None = os.environ.get("AWS_S3_BUCKET") or None
TESSERACT_LANG: str = os.environ.get("TESSERACT_LANG", "eng").strip() or "eng"

# Default feature flags for CLI / API callers
DETECT_TABLES: bool = _env_bool("DETECT_TABLES")
DETECT_FORMS: bool = _env_bool("DETECT_FORMS")

# ---------------------------------------------------------------------------
# Size limits
# ---------------------------------------------------------------------------
# Synchronous OCR APIs accept documents up to 5 MB; larger ones are still
# attempted but logged as candidates for the async API.
SYNC_SIZE_WARNING_BYTES: int = _env_int(
    "SYNC_SIZE_WARNING_BYTES", default=5 * MB, lo=1, hi=500 * MB,
)
MAX_FILE_SIZE_BYTES: int = _env_int(
    "MAX_FILE_SIZE_BYTES", default=20 * MB, lo=1, hi=500 * MB,
)
UPLOAD_CHUNK_SIZE: int = 64 * 1024  # 64 KiB streaming chunks

# ---------------------------------------------------------------------------
# PDF rasterization fallback
# ---------------------------------------------------------------------------
RASTER_MAX_PAGES: int = _env_int("RASTER_MAX_PAGES", default=100, hi=1000)
RASTER_MAX_EMPTY_PAGES: int = _env_int("RASTER_MAX_EMPTY_PAGES", default=3, hi=50)
RASTER_MIN_IMAGE_BYTES: int = _env_int("RASTER_MIN_IMAGE_BYTES", default=100, hi=MB)
RASTER_MAX_DIMENSION: int = _env_int("RASTER_MAX_DIMENSION", default=2000, lo=100, hi=20_000)
RASTER_FORMAT: str = os.environ.get("RASTER_FORMAT", "png").strip().lower()
RASTER_JPEG_QUALITY: int = _env_int("RASTER_JPEG_QUALITY", default=90, hi=100)
RASTER_MAX_CONVERTIBLE_BYTES: int = 50 * MB


def log_startup_config() -> None:
    """Log one startup line summarising active configuration."""
    msg = (
        f"docextract config: OCR_ENGINE={OCR_ENGINE} AWS_REGION={AWS_REGION} "
        f"AWS_S3_BUCKET={AWS_S3_BUCKET} TESSERACT_LANG={TESSERACT_LANG} "
        f"DETECT_TABLES={DETECT_TABLES} DETECT_FORMS={DETECT_FORMS} "
        f"SYNC_SIZE_WARNING_BYTES={SYNC_SIZE_WARNING_BYTES} "
        f"MAX_FILE_SIZE_BYTES={MAX_FILE_SIZE_BYTES} "
        f"RASTER_MAX_PAGES={RASTER_MAX_PAGES} RASTER_MAX_EMPTY_PAGES={RASTER_MAX_EMPTY_PAGES} "
        f"RASTER_FORMAT={RASTER_FORMAT}"
    )
    logger.info(msg)
    sys.stderr.write(msg + "\n")
    sys.stderr.flush()
