"""S3 object storage read."""

from __future__ import annotations

import logging
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ..config import AWS_REGION, AWS_S3_BUCKET
from ..schema import StorageLocator
from ..utils import StorageError

logger = logging.getLogger(__name__)


def is_available(bucket: str | None = None) -> bool:
    """Return True if a bucket (given or configured) and AWS credentials are present."""
    if not (bucket or AWS_S3_BUCKET):
        return False
    return boto3.session.Session(region_name=AWS_REGION).get_credentials() is not None


def default_locator(key: str) -> StorageLocator:
    """Locator for *key* in the configured ``AWS_S3_BUCKET``."""
    if not AWS_S3_BUCKET:
        raise StorageError("AWS_S3_BUCKET not configured.")
    return StorageLocator(bucket=AWS_S3_BUCKET, key=key)


class S3Storage:
    """Downloads whole objects into memory."""

    def __init__(self, client: Any = None, region: str | None = None) -> None:
        self.region = region or AWS_REGION
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = boto3.client(
                "s3",
                region_name=self.region,
                config=Config(retries={"max_attempts": 10, "mode": "adaptive"}),
            )
        return self._client

    def download(self, locator: StorageLocator) -> bytes:
        logger.info("Downloading %s", locator)
        try:
            response = self.client.get_object(Bucket=locator.bucket, Key=locator.key)
            body = response["Body"].read()
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code", "")
            raise StorageError(f"Download of {locator} failed ({code}): {exc}") from exc
        except BotoCoreError as exc:
            raise StorageError(f"Download of {locator} failed: {exc}") from exc
        logger.info("Downloaded %s (%d bytes)", locator, len(body))
        return body
