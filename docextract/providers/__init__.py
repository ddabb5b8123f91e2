"""External capabilities consumed by the extraction pipeline.

Each module wraps one outside service behind a narrow interface: OCR
backends (AWS Textract, local Tesseract) and object storage (S3). Backends
translate their native errors into the ``docextract.utils`` taxonomy so the
fallback chain can tell an unsupported document apart from a transient error.
"""
