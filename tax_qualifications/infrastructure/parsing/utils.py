"""Shared parsing utilities for CSV and spreadsheet ingestion."""
from __future__ import annotations

import re
from io import BytesIO
from pathlib import Path
from typing import BinaryIO

from tax_qualifications.domain.errors import FileTooLargeError, UnsupportedFileError

SUPPORTED_EXTENSIONS = (".csv", ".xlsx", ".xls")


def ensure_bytes(source: BinaryIO | BytesIO | Path | bytes) -> bytes:
    if isinstance(source, bytes):
        return source
    if isinstance(source, BytesIO):
        return source.getvalue()
    if isinstance(source, Path):
        return source.read_bytes()
    if hasattr(source, "read"):
        return source.read()
    raise TypeError(f"Unsupported source type: {type(source)!r}")


def normalize_header(header: object) -> str:
    return re.sub(r"\s+", "_", str(header).strip().lower())


def file_extension(filename: str) -> str:
    extension = Path(filename).suffix.lower()
    if extension not in SUPPORTED_EXTENSIONS:
        raise UnsupportedFileError("Formato de archivo no soportado. Use CSV, XLSX o XLS")
    return extension


def check_upload_size(size: int, max_bytes: int) -> None:
    if size > max_bytes:
        limit_mb = max_bytes / (1024 * 1024)
        raise FileTooLargeError(f"El archivo supera el tamaño máximo permitido ({limit_mb:g} MB)")
