"""Error taxonomy and shared helpers for document extraction."""

from __future__ import annotations

import logging
import shutil
from typing import Callable, Iterable, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ExtractionError(Exception):
    """Base exception for extraction errors."""


class MissingDependencyError(ExtractionError):
    """Raised when required system binaries or credentials are missing."""


class DocumentValidationError(ExtractionError):
    """Raised when a byte buffer is not a supported document format."""


class UnsupportedDocumentError(ExtractionError):
    """Raised when the OCR backend recognizes the format but refuses the file.

    Typical causes are encryption, XFA forms, digital signatures or a PDF
    feature the backend does not implement.
    """


class OcrBackendError(ExtractionError):
    """Raised for any other OCR failure (throttling, network, bad request)."""


class RasterizationError(ExtractionError):
    """Raised when a PDF cannot be converted to page images."""


class StorageError(ExtractionError):
    """Raised when an object cannot be read from storage."""


class PdfProcessingError(ExtractionError):
    """Raised when native PDF text extraction fails."""


class EmptyContentError(ExtractionError):
    """Raised when extracted content is empty."""


def first_success(
    strategies: Sequence[tuple[str, Callable[[], T]]],
    should_continue: Callable[[Exception], bool] | None = None,
) -> tuple[str, T]:
    """Run *strategies* in order and return ``(name, value)`` of the first success.

    Each strategy is a ``(name, zero-arg callable)`` pair. A failure is logged
    and the next strategy is tried, unless *should_continue* returns False for
    the exception, in which case it is re-raised immediately. When every
    strategy fails the last error is re-raised unchanged.
    """
    last_index = len(strategies) - 1
    for index, (name, strategy) in enumerate(strategies):
        try:
            return name, strategy()
        except Exception as exc:
            if index == last_index:
                raise
            if should_continue is not None and not should_continue(exc):
                raise
            logger.warning("Strategy %r failed, trying next: %s", name, exc)
    raise ValueError("first_success() needs at least one strategy.")


def check_binary_exists(binary_name: str) -> bool:
    """Return True if a binary is available on PATH."""

    return shutil.which(binary_name) is not None


def ensure_binaries(binaries: Iterable[str]) -> None:
    """Ensure all required binaries exist on PATH."""

    missing = [binary for binary in binaries if not check_binary_exists(binary)]
    if missing:
        raise MissingDependencyError(
            f"Missing required system binaries: {', '.join(missing)}"
        )


def size_in_mb(size_bytes: int) -> float:
    return size_bytes / (1024 * 1024)
