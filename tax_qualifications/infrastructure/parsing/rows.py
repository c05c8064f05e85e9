"""Row parser: CSV and spreadsheet uploads to ordered raw rows."""
from __future__ import annotations

import logging
import math
import zipfile
from io import BytesIO
from pathlib import Path
from typing import Any, BinaryIO, Sequence

import pandas as pd
from openpyxl.utils.exceptions import InvalidFileException
from xlrd import XLRDError

from tax_qualifications.domain.errors import FileParseError
from tax_qualifications.domain.models import RawRow
from tax_qualifications.domain.normalization import EXPECTED_COLUMNS
from tax_qualifications.infrastructure.parsing.utils import (
    ensure_bytes,
    file_extension,
    normalize_header,
)

LOGGER = logging.getLogger(__name__)

EXCEL_ENGINES = {".xlsx": "openpyxl", ".xls": "xlrd"}

# Header occupies line 1, so data row ``i`` (0-based) is line ``i + 2``.
FIRST_DATA_ROW = 2

_READ_ERRORS = (ValueError, OSError, KeyError, IndexError, zipfile.BadZipFile, InvalidFileException, XLRDError)


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and not value.strip()


def _warn_missing_columns(headers: Sequence[str]) -> None:
    missing = [column for column in EXPECTED_COLUMNS if column not in headers]
    if missing:
        LOGGER.warning("Upload is missing expected columns: %s", ", ".join(missing))


def read_csv_rows(data: bytes) -> list[RawRow]:
    try:
        frame = pd.read_csv(
            BytesIO(data),
            dtype=str,
            encoding="utf-8-sig",
            keep_default_na=False,
            skip_blank_lines=False,
        )
    except pd.errors.EmptyDataError as exc:
        raise FileParseError("El archivo está vacío") from exc
    except _READ_ERRORS as exc:
        raise FileParseError(f"Error al parsear CSV: {exc}") from exc

    frame.columns = [normalize_header(column) for column in frame.columns]
    _warn_missing_columns(list(frame.columns))
    rows: list[RawRow] = []
    for index, values in enumerate(frame.to_dict("records")):
        if all(_is_blank(value) for value in values.values()):
            continue
        rows.append(RawRow(row_number=index + FIRST_DATA_ROW, values=values))
    return rows


def read_excel_rows(data: bytes, extension: str) -> list[RawRow]:
    """Read the first sheet; row 0 holds the headers, later rows map positionally."""
    try:
        frame = pd.read_excel(
            BytesIO(data),
            sheet_name=0,
            header=None,
            dtype=object,
            engine=EXCEL_ENGINES[extension],
        )
    except _READ_ERRORS as exc:
        raise FileParseError(f"Error al procesar Excel: {exc}") from exc

    if frame.empty:
        raise FileParseError("El archivo está vacío")

    matrix = frame.to_numpy(dtype=object).tolist()
    headers = [normalize_header(value) if not _is_blank(value) else "" for value in matrix[0]]
    _warn_missing_columns(headers)
    rows: list[RawRow] = []
    for index, cells in enumerate(matrix[1:], start=1):
        if all(_is_blank(cell) for cell in cells):
            continue
        values = {header: ("" if _is_blank(cell) else cell) for header, cell in zip(headers, cells) if header}
        rows.append(RawRow(row_number=index + 1, values=values))
    return rows


def read_rows(source: BinaryIO | BytesIO | Path | bytes, filename: str) -> list[RawRow]:
    """Parse an uploaded file into raw rows numbered as in the source file.

    Raises :class:`FileParseError` for unsupported, unreadable or empty files;
    never returns a partial list.
    """
    extension = file_extension(filename)
    data = ensure_bytes(source)
    if not data:
        raise FileParseError("El archivo está vacío")
    if extension == ".csv":
        rows = read_csv_rows(data)
    else:
        rows = read_excel_rows(data, extension)
    LOGGER.info("Parsed %d rows from %s", len(rows), filename)
    return rows
