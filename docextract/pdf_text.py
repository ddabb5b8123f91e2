"""Embedded-text extraction with PyMuPDF (fitz).

Last resort for PDFs the OCR chain gave up on: no layout reconstruction,
just each page's text layer in reading order.
"""

from __future__ import annotations

import fitz  # PyMuPDF

from .utils import PdfProcessingError


def extract_native_text(data: bytes) -> tuple[str, list[dict]]:
    """Read the text layer of in-memory PDF *data*.

    Returns ``(full_text, pages)``; each page entry is
    ``{"page_number", "text", "char_count"}`` and pages without text are
    left out of ``full_text``.
    """
    try:
        doc = fitz.open(stream=data, filetype="pdf")
    except Exception as exc:
        raise PdfProcessingError(f"PDF could not be opened: {exc}") from exc

    with doc:
        if doc.needs_pass:
            raise PdfProcessingError("PDF is password protected.")
        pages = []
        for number, page in enumerate(doc, start=1):
            page_text = page.get_text("text", sort=True).strip()
            pages.append({"page_number": number, "text": page_text, "char_count": len(page_text)})

    return "\n".join(p["text"] for p in pages if p["text"]), pages
