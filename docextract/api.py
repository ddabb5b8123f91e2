"""FastAPI app for synchronous document text extraction."""

from __future__ import annotations

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.responses import JSONResponse

from .config import (
    DETECT_FORMS,
    DETECT_TABLES,
    MAX_FILE_SIZE_BYTES,
    OCR_ENGINE,
    SYNC_SIZE_WARNING_BYTES,
    UPLOAD_CHUNK_SIZE,
    log_startup_config,
)
from .formats import supported_extensions
from .pipeline import process_document
from .schema import FeatureFlags
from .utils import ExtractionError

app = FastAPI(title="Document text extraction")


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------
@app.on_event("startup")
def _startup() -> None:
    log_startup_config()


# ---------------------------------------------------------------------------
# Global error handler
# ---------------------------------------------------------------------------
@app.exception_handler(Exception)
async def _unhandled_exception_handler(request, exc: Exception):  # noqa: ARG001
    if isinstance(exc, HTTPException):
        raise exc
    return JSONResponse(
        status_code=500,
        content={"detail": str(exc) or "Internal server error"},
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
async def _read_upload(file: UploadFile) -> bytes:
    """Read *file* in chunks; enforce size limit."""
    if not file.filename:
        raise HTTPException(status_code=400, detail="No file provided.")
    chunks: list[bytes] = []
    total = 0
    while True:
        chunk = await file.read(UPLOAD_CHUNK_SIZE)
        if not chunk:
            break
        total += len(chunk)
        if total > MAX_FILE_SIZE_BYTES:
            raise HTTPException(
                status_code=413,
                detail=f"File too large (limit {MAX_FILE_SIZE_BYTES // (1024*1024)} MB).",
            )
        chunks.append(chunk)
    if total == 0:
        raise HTTPException(status_code=400, detail="Uploaded file is empty.")
    return b"".join(chunks)


def _file_type(filename: str) -> str:
    return filename.rsplit(".", 1)[-1].lower() if "." in filename else "pdf"


# ---------------------------------------------------------------------------
# Health / config
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/api/config")
async def api_config():
    """Expose limits and supported types so clients can pre-validate uploads."""
    return {
        "ocr_engine": OCR_ENGINE,
        "max_file_size_bytes": MAX_FILE_SIZE_BYTES,
        "sync_size_warning_bytes": SYNC_SIZE_WARNING_BYTES,
        "supported_extensions": supported_extensions(),
    }


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------
@app.post("/api/extract")
async def api_extract_endpoint(
    file: UploadFile = File(...),
    detect_tables: bool = DETECT_TABLES,
    detect_forms: bool = DETECT_FORMS,
    use_ocr: bool = True,
):
    """Extract text from an uploaded document (sync, within the request)."""
    data = await _read_upload(file)
    try:
        result = process_document(
            data,
            _file_type(file.filename),
            flags=FeatureFlags(detect_tables=detect_tables, detect_forms=detect_forms),
            use_ocr=use_ocr,
        )
    except ExtractionError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return result.model_dump(mode="json")
