"""AWS Textract OCR backend.

``detect_document_text`` is used for plain text (cheaper); ``analyze_document``
when tables or forms are requested. Textract's ``UnsupportedDocumentException``
becomes :class:`UnsupportedDocumentError`; every other client error becomes
:class:`OcrBackendError`.
"""

from __future__ import annotations

import logging
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ..config import AWS_REGION
from ..ocr import OcrSource
from ..schema import BlockType, BoundingBox, FeatureFlags, RecognizedBlock
from ..utils import MissingDependencyError, OcrBackendError, UnsupportedDocumentError

logger = logging.getLogger(__name__)

UNSUPPORTED_DOCUMENT_CODE = "UnsupportedDocumentException"

# Textract block types we reconstruct from; KEY_VALUE_SET, SELECTION_ELEMENT,
# LAYOUT_* and friends are dropped.
_BLOCK_TYPES: dict[str, BlockType] = {
    "PAGE": BlockType.PAGE,
    "LINE": BlockType.LINE,
    "WORD": BlockType.WORD,
    "TABLE": BlockType.TABLE,
    "CELL": BlockType.CELL,
}


def is_available() -> bool:
    """Return True if AWS credentials and a region are configured."""
    session = boto3.session.Session(region_name=AWS_REGION)
    return session.get_credentials() is not None and bool(session.region_name)


def feature_types(flags: FeatureFlags) -> list[str]:
    features: list[str] = []
    if flags.detect_tables:
        features.append("TABLES")
    if flags.detect_forms:
        features.append("FORMS")
    return features


def document_param(source: OcrSource) -> dict[str, Any]:
    if source.locator is not None:
        return {"S3Object": {"Bucket": source.locator.bucket, "Name": source.locator.key}}
    return {"Bytes": source.data}


def _child_ids(block: dict[str, Any]) -> list[str]:
    ids: list[str] = []
    for relationship in block.get("Relationships") or []:
        if relationship.get("Type") == "CHILD":
            ids.extend(relationship.get("Ids") or [])
    return ids


def parse_blocks(response: dict[str, Any]) -> list[RecognizedBlock]:
    """Convert a Textract response's ``Blocks`` into :class:`RecognizedBlock` s."""

    blocks: list[RecognizedBlock] = []
    for raw in response.get("Blocks") or []:
        block_type = _BLOCK_TYPES.get(raw.get("BlockType", ""))
        if block_type is None:
            continue
        box = (raw.get("Geometry") or {}).get("BoundingBox")
        blocks.append(
            RecognizedBlock(
                id=raw.get("Id") or f"block-{len(blocks)}",
                block_type=block_type,
                page=raw.get("Page") or 1,
                text=raw.get("Text"),
                bbox=BoundingBox(
                    top=box.get("Top", 0.0),
                    left=box.get("Left", 0.0),
                    width=box.get("Width", 0.0),
                    height=box.get("Height", 0.0),
                ) if box else None,
                confidence=raw.get("Confidence"),
                row_index=raw.get("RowIndex"),
                column_index=raw.get("ColumnIndex"),
                child_ids=_child_ids(raw),
            )
        )
    return blocks


class TextractBackend:
    """Synchronous Textract calls with adaptive client-side retries."""

    name = "textract"

    def __init__(self, client: Any = None, region: str | None = None) -> None:
        self.region = region or AWS_REGION
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            if not self.region:
                raise MissingDependencyError(
                    "AWS region not configured. Set AWS_REGION to use Textract."
                )
            self._client = boto3.client(
                "textract",
                region_name=self.region,
                config=Config(retries={"max_attempts": 3, "mode": "adaptive"}),
            )
        return self._client

    def _call(self, operation: str, **kwargs: Any) -> list[RecognizedBlock]:
        try:
            response = getattr(self.client, operation)(**kwargs)
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code", "")
            message = exc.response.get("Error", {}).get("Message", str(exc))
            if code == UNSUPPORTED_DOCUMENT_CODE:
                raise UnsupportedDocumentError(
                    f"Textract rejected the document: {message}"
                ) from exc
            raise OcrBackendError(f"Textract {operation} failed ({code}): {message}") from exc
        except BotoCoreError as exc:
            raise OcrBackendError(f"Textract {operation} failed: {exc}") from exc

        blocks = parse_blocks(response)
        if logger.isEnabledFor(logging.DEBUG):
            counts: dict[str, int] = {}
            for block in blocks:
                counts[block.block_type.value] = counts.get(block.block_type.value, 0) + 1
            logger.debug("Textract %s returned block types: %s", operation, counts)
        return blocks

    def detect_text(self, source: OcrSource) -> list[RecognizedBlock]:
        return self._call("detect_document_text", Document=document_param(source))

    def analyze_document(self, source: OcrSource, flags: FeatureFlags) -> list[RecognizedBlock]:
        features = feature_types(flags)
        if not features:
            return self.detect_text(source)
        return self._call(
            "analyze_document",
            Document=document_param(source),
            FeatureTypes=features,
        )
