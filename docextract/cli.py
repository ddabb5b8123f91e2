"""Command-line interface for document text extraction."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .config import DETECT_FORMS, DETECT_TABLES, OCR_ENGINE
from .ocr import get_backend, is_backend_available
from .pipeline import load_document, process_document
from .providers.storage import default_locator
from .providers.storage import is_available as storage_available
from .schema import FeatureFlags, StorageLocator
from .utils import ExtractionError, MissingDependencyError

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""

    parser = argparse.ArgumentParser(
        description="Extract text from a PDF or image with OCR and fallbacks."
    )
    parser.add_argument(
        "path",
        nargs="?",
        default=None,
        help="Path to the document. Omit to read from --s3-key.",
    )
    parser.add_argument(
        "--s3-bucket",
        type=str,
        default=None,
        help="Bucket holding the document (default: AWS_S3_BUCKET).",
    )
    parser.add_argument("--s3-key", type=str, default=None, help="Object key of the document.")
    parser.add_argument(
        "--file-type",
        type=str,
        default=None,
        help="Document type (pdf, png, jpg, tiff). Defaults to the path/key extension.",
    )
    parser.add_argument(
        "--detect-tables",
        action=argparse.BooleanOptionalAction,
        default=DETECT_TABLES,
        help="Run table analysis and append rendered tables.",
    )
    parser.add_argument(
        "--detect-forms",
        action=argparse.BooleanOptionalAction,
        default=DETECT_FORMS,
        help="Run form analysis.",
    )
    parser.add_argument(
        "--engine",
        choices=("textract", "tesseract"),
        default=OCR_ENGINE,
        help=f"OCR backend (default: {OCR_ENGINE}).",
    )
    parser.add_argument(
        "--no-ocr",
        action="store_true",
        help="Skip OCR and use native PDF text extraction only.",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Logging verbosity (default: WARNING).",
    )
    return parser


def _resolve_locator(args: argparse.Namespace) -> StorageLocator | None:
    if not args.s3_key:
        return None
    if args.s3_bucket:
        return StorageLocator(bucket=args.s3_bucket, key=args.s3_key)
    return default_locator(args.s3_key)


def main(argv: list[str] | None = None) -> int:
    """Entry point for the CLI."""

    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.path is None and not args.s3_key:
        parser.error("a path or --s3-key is required")

    try:
        locator = _resolve_locator(args)
        name = args.path or locator.key
        file_type = args.file_type or Path(name).suffix.lstrip(".") or "pdf"

        if args.path is not None:
            data = Path(args.path).expanduser().read_bytes()
        else:
            if not storage_available(locator.bucket):
                raise MissingDependencyError(
                    f"Cannot read {locator}: AWS credentials are not configured."
                )
            data = load_document(locator)

        use_ocr = not args.no_ocr
        if use_ocr and not is_backend_available(args.engine):
            logger.warning("%s OCR is not available; using native text only", args.engine)
            use_ocr = False
        backend = get_backend(args.engine) if use_ocr else None

        result = process_document(
            data,
            file_type,
            locator=locator,
            flags=FeatureFlags(detect_tables=args.detect_tables, detect_forms=args.detect_forms),
            use_ocr=use_ocr,
            backend=backend,
        )
        print(result.model_dump_json(indent=2))
        return 0
    except (ExtractionError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except Exception as exc:  # pragma: no cover - safety net
        print(f"Unexpected error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
