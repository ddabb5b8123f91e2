"""Magic-byte format detection and PDF header diagnostics."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class DocumentFormat(str, Enum):
    PDF = "pdf"
    JPEG = "jpeg"
    PNG = "png"
    TIFF = "tiff"
    UNSUPPORTED = "unsupported"


# Ordered (signature, format) pairs; first match wins.
SIGNATURES: tuple[tuple[bytes, DocumentFormat], ...] = (
    (b"%PDF", DocumentFormat.PDF),
    (b"\xff\xd8\xff", DocumentFormat.JPEG),
    (b"\x89PNG", DocumentFormat.PNG),
    (b"II", DocumentFormat.TIFF),
    (b"MM", DocumentFormat.TIFF),
)

EXTENSION_FORMATS: dict[str, DocumentFormat] = {
    "pdf": DocumentFormat.PDF,
    "png": DocumentFormat.PNG,
    "jpg": DocumentFormat.JPEG,
    "jpeg": DocumentFormat.JPEG,
    "tiff": DocumentFormat.TIFF,
    "tif": DocumentFormat.TIFF,
}

PDF_MAX_SUPPORTED_VERSION = 1.7
_HEADER_SCAN_BYTES = 1024
_VERSION_RE = re.compile(r"%PDF-(\d+\.\d+)")


def detect_format(data: bytes) -> DocumentFormat:
    """Classify *data* by its leading bytes. Never raises."""
    for signature, fmt in SIGNATURES:
        if data[: len(signature)] == signature:
            return fmt
    return DocumentFormat.UNSUPPORTED


def is_supported(fmt: DocumentFormat) -> bool:
    return fmt is not DocumentFormat.UNSUPPORTED


def supported_extensions() -> list[str]:
    """File extensions the OCR pipeline accepts."""
    return list(EXTENSION_FORMATS)


def header_hex(data: bytes, length: int = 20) -> str:
    return " ".join(f"{b:02x}" for b in data[:length])


@dataclass(frozen=True)
class PdfHeaderInfo:
    """Features found in the first kilobyte of a PDF that OCR backends often reject."""

    version: str | None
    encrypted: bool
    linearized: bool
    has_xfa: bool
    has_javascript: bool
    has_signature: bool

    @property
    def version_unsupported(self) -> bool:
        try:
            return self.version is not None and float(self.version) > PDF_MAX_SUPPORTED_VERSION
        except ValueError:
            return False


def describe_pdf_header(data: bytes) -> PdfHeaderInfo:
    """Scan the start of a PDF for version and risky features."""
    head = data[:_HEADER_SCAN_BYTES].decode("latin-1")
    match = _VERSION_RE.search(head)
    return PdfHeaderInfo(
        version=match.group(1) if match else None,
        encrypted="/Encrypt" in head,
        linearized="/Linearized" in head,
        has_xfa="/XFA" in head or "xfa:" in head,
        has_javascript="/JavaScript" in head or "/JS" in head,
        has_signature="/Sig" in head or "/ByteRange" in head,
    )


def log_pdf_warnings(data: bytes) -> PdfHeaderInfo:
    """Log the header features that commonly cause an unsupported-document rejection."""
    info = describe_pdf_header(data)
    logger.debug("PDF header: %s", info)
    if info.encrypted:
        logger.warning("PDF has encryption; OCR backends often reject it")
    if info.has_xfa:
        logger.warning("PDF has XFA forms; not supported by most OCR backends")
    if info.version_unsupported:
        logger.warning(
            "PDF version %s may not be supported (expected <= %s)",
            info.version, PDF_MAX_SUPPORTED_VERSION,
        )
    return info
