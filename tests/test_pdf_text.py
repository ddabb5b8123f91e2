"""Tests for docextract.pdf_text."""

from __future__ import annotations

import unittest

import fitz

from docextract.pdf_text import extract_native_text
from docextract.utils import PdfProcessingError


def _pdf(*pages: str, password: str | None = None) -> bytes:
    doc = fitz.open()
    for text in pages:
        page = doc.new_page()
        if text:
            page.insert_text((72, 72), text)
    if password:
        data = doc.tobytes(encryption=fitz.PDF_ENCRYPT_AES_256, user_pw=password, owner_pw=password)
    else:
        data = doc.tobytes()
    doc.close()
    return data


class TestExtractNativeText(unittest.TestCase):
    def test_pages_and_full_text(self) -> None:
        text, pages = extract_native_text(_pdf("First page", "", "Third page"))
        self.assertEqual(text, "First page\nThird page")
        self.assertEqual([p["page_number"] for p in pages], [1, 2, 3])
        self.assertEqual(pages[1]["char_count"], 0)
        self.assertEqual(pages[2]["text"], "Third page")

    def test_garbage_bytes(self) -> None:
        with self.assertRaises(PdfProcessingError):
            extract_native_text(b"definitely not a pdf")

    def test_password_protected(self) -> None:
        with self.assertRaises(PdfProcessingError):
            extract_native_text(_pdf("secret", password="hunter2"))


if __name__ == "__main__":
    unittest.main()
