"""Pydantic models for recognized blocks, requests and extraction results."""

from __future__ import annotations

from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, Field


class BlockType(str, Enum):
    """Kinds of recognized structure returned by an OCR backend."""

    PAGE = "PAGE"
    LINE = "LINE"
    WORD = "WORD"
    TABLE = "TABLE"
    CELL = "CELL"


class BoundingBox(BaseModel):
    """Block position as fractions of the page size."""

    top: float = 0.0
    left: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def bottom(self) -> float:
        return self.top + self.height


class RecognizedBlock(BaseModel):
    """One unit of recognized structure (page, line, word, table or cell)."""

    id: str
    block_type: BlockType
    page: int = 1
    text: str | None = None
    bbox: BoundingBox | None = None
    confidence: float | None = None  # 0-100
    row_index: int | None = None  # cells only, 1-based
    column_index: int | None = None  # cells only, 1-based
    child_ids: List[str] = Field(default_factory=list)


class StorageLocator(BaseModel):
    """Object-storage location of a document (bucket + key)."""

    model_config = ConfigDict(frozen=True)

    bucket: str
    key: str

    def __str__(self) -> str:
        return f"s3://{self.bucket}/{self.key}"


class FeatureFlags(BaseModel):
    """Optional OCR analysis features."""

    model_config = ConfigDict(frozen=True)

    detect_tables: bool = False
    detect_forms: bool = False

    @property
    def wants_analysis(self) -> bool:
        return self.detect_tables or self.detect_forms


class ExtractionRequest(BaseModel):
    """Raw document bytes plus optional storage locator and feature flags."""

    data: bytes = Field(repr=False)
    locator: StorageLocator | None = None
    flags: FeatureFlags = Field(default_factory=FeatureFlags)


class OcrResult(BaseModel):
    """Normalized output of one OCR call."""

    text: str
    confidence: float | None = None
    block_count: int = 0
    page_count: int = 0


class ReconstructedPage(BaseModel):
    """Paragraphs of one page, top-to-bottom; each paragraph is a list of lines."""

    page_number: int
    paragraphs: List[List[str]] = Field(default_factory=list)

    @property
    def text(self) -> str:
        rendered = (" ".join(lines) for lines in self.paragraphs)
        return "\n\n".join(p for p in rendered if p.strip())


class ReconstructedDocument(BaseModel):
    """Pages in ascending page-number order."""

    pages: List[ReconstructedPage] = Field(default_factory=list)


class PageImage(BaseModel):
    """One rasterized PDF page."""

    page_number: int
    data: bytes = Field(repr=False)
    width: int = 0
    height: int = 0

    @property
    def size_bytes(self) -> int:
        return len(self.data)


class ConversionResult(BaseModel):
    """Outcome of rasterizing a PDF into page images."""

    success: bool
    pages: List[PageImage] = Field(default_factory=list)
    error: str | None = None
    total_pages: int = 0
    dpi: int | None = None


class ExtractionMethod(str, Enum):
    """Which strategy produced the final text."""

    DIRECT_OCR = "direct OCR"
    IMAGE_FALLBACK_OCR = "image-fallback OCR"
    NATIVE = "native"
    NATIVE_FALLBACK = "native-fallback"


class FailureKind(str, Enum):
    UNSUPPORTED_DOCUMENT = "UnsupportedDocumentError"
    VALIDATION = "ValidationError"


class ExtractionFailure(BaseModel):
    """Structured failure returned instead of raising."""

    kind: FailureKind
    message: str


class ExtractionResult(BaseModel):
    """Canonical output of the OCR fallback chain."""

    text: str = ""
    confidence: float | None = None
    method: ExtractionMethod | None = None
    pages_processed: int = 0
    pages_total: int = 0
    failure: ExtractionFailure | None = None

    @property
    def failed(self) -> bool:
        return self.failure is not None


class ProcessedDocument(BaseModel):
    """Final text handed back to the document-processing workflow."""

    text: str
    method: ExtractionMethod
    confidence: float | None = None
    file_type: str
    size_bytes: int
    page_count: int = 0
