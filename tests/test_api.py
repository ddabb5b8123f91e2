"""Tests for docextract.api endpoints."""

from __future__ import annotations

import io
import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient

from docextract.api import app
from docextract.schema import ExtractionMethod, FeatureFlags, ProcessedDocument
from docextract.utils import EmptyContentError


class TestHealthAndConfig(unittest.TestCase):
    def setUp(self) -> None:
        self.client = TestClient(app, raise_server_exceptions=False)

    def test_health(self) -> None:
        r = self.client.get("/health")
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json(), {"status": "ok"})

    def test_api_config(self) -> None:
        data = self.client.get("/api/config").json()
        self.assertIn(data["ocr_engine"], ("textract", "tesseract"))
        self.assertIsInstance(data["max_file_size_bytes"], int)
        self.assertIn("pdf", data["supported_extensions"])


class TestUploadLimits(unittest.TestCase):
    def setUp(self) -> None:
        self.client = TestClient(app, raise_server_exceptions=False)

    @patch("docextract.api.MAX_FILE_SIZE_BYTES", 100)
    def test_oversized_upload_returns_413(self) -> None:
        r = self.client.post(
            "/api/extract",
            files={"file": ("big.pdf", io.BytesIO(b"x" * 200), "application/pdf")},
        )
        self.assertEqual(r.status_code, 413)
        self.assertIn("too large", r.json()["detail"].lower())

    def test_empty_upload_returns_400(self) -> None:
        r = self.client.post(
            "/api/extract",
            files={"file": ("empty.pdf", io.BytesIO(b""), "application/pdf")},
        )
        self.assertEqual(r.status_code, 400)
        self.assertIn("empty", r.json()["detail"].lower())


class TestExtractEndpoint(unittest.TestCase):
    def setUp(self) -> None:
        self.client = TestClient(app, raise_server_exceptions=False)

    @patch("docextract.api.process_document")
    def test_extract_returns_document(self, process) -> None:
        process.return_value = ProcessedDocument(
            text="hello",
            method=ExtractionMethod.IMAGE_FALLBACK_OCR,
            confidence=91.5,
            file_type="pdf",
            size_bytes=8,
            page_count=2,
        )
        r = self.client.post(
            "/api/extract?detect_tables=true",
            files={"file": ("scan.PDF", io.BytesIO(b"%PDF-1.4"), "application/pdf")},
        )
        self.assertEqual(r.status_code, 200)
        body = r.json()
        self.assertEqual(body["text"], "hello")
        self.assertEqual(body["method"], "image-fallback OCR")
        self.assertEqual(body["page_count"], 2)

        args, kwargs = process.call_args
        self.assertEqual(args, (b"%PDF-1.4", "pdf"))
        self.assertEqual(kwargs["flags"], FeatureFlags(detect_tables=True, detect_forms=False))
        self.assertTrue(kwargs["use_ocr"])

    @patch("docextract.api.process_document", side_effect=EmptyContentError("nothing found"))
    def test_extraction_error_returns_400(self, _process) -> None:
        r = self.client.post(
            "/api/extract",
            files={"file": ("blank.png", io.BytesIO(b"\x89PNG"), "image/png")},
        )
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.json()["detail"], "nothing found")

    @patch("docextract.api.process_document", side_effect=RuntimeError("boom"))
    def test_unexpected_error_returns_500(self, _process) -> None:
        r = self.client.post(
            "/api/extract",
            files={"file": ("a.pdf", io.BytesIO(b"%PDF"), "application/pdf")},
        )
        self.assertEqual(r.status_code, 500)
        self.assertEqual(r.json()["detail"], "boom")


if __name__ == "__main__":
    unittest.main()
