"""Tests for docextract.providers.storage."""

from __future__ import annotations

import io
import unittest
from unittest.mock import MagicMock, patch

from botocore.exceptions import ClientError, EndpointConnectionError

from docextract.providers.storage import S3Storage, default_locator, is_available
from docextract.schema import StorageLocator
from docextract.utils import StorageError

LOCATOR = StorageLocator(bucket="docs", key="incoming/a.pdf")


class TestS3Storage(unittest.TestCase):
    def setUp(self) -> None:
        self.client = MagicMock()
        self.storage = S3Storage(client=self.client)

    def test_download(self) -> None:
        self.client.get_object.return_value = {"Body": io.BytesIO(b"%PDF-1.4")}
        self.assertEqual(self.storage.download(LOCATOR), b"%PDF-1.4")
        self.client.get_object.assert_called_once_with(Bucket="docs", Key="incoming/a.pdf")

    def test_client_error(self) -> None:
        self.client.get_object.side_effect = ClientError(
            {"Error": {"Code": "NoSuchKey", "Message": "gone"}}, "GetObject"
        )
        with self.assertRaises(StorageError) as ctx:
            self.storage.download(LOCATOR)
        self.assertIn("NoSuchKey", str(ctx.exception))
        self.assertIn("s3://docs/incoming/a.pdf", str(ctx.exception))

    def test_connection_error(self) -> None:
        self.client.get_object.side_effect = EndpointConnectionError(endpoint_url="https://s3")
        with self.assertRaises(StorageError):
            self.storage.download(LOCATOR)


class TestDefaultLocator(unittest.TestCase):
    @patch("docextract.providers.storage.AWS_S3_BUCKET", "uploads")
    def test_uses_configured_bucket(self) -> None:
        self.assertEqual(default_locator("a.pdf"), StorageLocator(bucket="uploads", key="a.pdf"))

    @patch("docextract.providers.storage.AWS_S3_BUCKET", None)
    def test_requires_bucket(self) -> None:
        with self.assertRaises(StorageError):
            default_locator("a.pdf")


class TestIsAvailable(unittest.TestCase):
    @patch("docextract.providers.storage.AWS_S3_BUCKET", None)
    def test_no_bucket_anywhere(self) -> None:
        self.assertFalse(is_available())

    @patch("docextract.providers.storage.AWS_S3_BUCKET", None)
    @patch("docextract.providers.storage.boto3.session.Session")
    def test_explicit_bucket_with_credentials(self, session) -> None:
        session.return_value.get_credentials.return_value = object()
        self.assertTrue(is_available("docs"))

    @patch("docextract.providers.storage.AWS_S3_BUCKET", "uploads")
    @patch("docextract.providers.storage.boto3.session.Session")
    def test_configured_bucket_without_credentials(self, session) -> None:
        session.return_value.get_credentials.return_value = None
        self.assertFalse(is_available())


if __name__ == "__main__":
    unittest.main()
