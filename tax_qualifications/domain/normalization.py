"""Row normalizer: localized spreadsheet columns to the canonical draft shape."""
from __future__ import annotations

import math
import numbers
from typing import Any, Mapping

from .models import FACTOR_KEYS

# Canonical field -> column name in the upload template.
TEXT_COLUMNS = {
    "instrument": "instrumento",
    "market": "mercado",
    "period": "periodo",
    "qualification_type": "tipo_calificacion",
}
AMOUNT_COLUMN = "monto"
OFFICIAL_COLUMN = "es_oficial"

EXPECTED_COLUMNS: tuple[str, ...] = (
    *TEXT_COLUMNS.values(),
    *FACTOR_KEYS,
    AMOUNT_COLUMN,
    OFFICIAL_COLUMN,
)

_TRUE_TEXT = {"true", "1"}


def _is_blank(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and not value.strip()


def parse_number(value: object) -> float:
    """Coerce a cell to float.

    Blank cells become 0. Comma decimals are accepted. Text that still does not
    parse becomes NaN, which the validator reports as a format error.
    """
    if _is_blank(value) or isinstance(value, bool):
        return 0.0
    if isinstance(value, numbers.Real):
        return float(value)
    text = str(value).strip().replace(",", ".")
    try:
        return float(text)
    except ValueError:
        return math.nan


def parse_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, numbers.Real):
        return value == 1
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_TEXT
    return False


def clean_text(value: object) -> str:
    if _is_blank(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def normalize_row(values: Mapping[str, Any], broker_id: str) -> dict[str, Any]:
    """Map one raw row to a partial canonical record (a draft)."""
    draft: dict[str, Any] = {"broker_id": broker_id}
    for field_name, column in TEXT_COLUMNS.items():
        draft[field_name] = clean_text(values.get(column))
    draft["factors"] = {key: parse_number(values.get(key)) for key in FACTOR_KEYS}
    draft["amount"] = parse_number(values.get(AMOUNT_COLUMN))
    draft["is_official"] = parse_bool(values.get(OFFICIAL_COLUMN))
    return draft


def sanitize_draft(data: Mapping[str, Any], broker_id: str) -> dict[str, Any]:
    """Normalize a draft already keyed by canonical field names (manual entry)."""
    draft: dict[str, Any] = {"broker_id": broker_id}
    for field_name in TEXT_COLUMNS:
        draft[field_name] = clean_text(data.get(field_name))
    factors = data.get("factors")
    if isinstance(factors, Mapping):
        draft["factors"] = {key: parse_number(factors.get(key)) for key in FACTOR_KEYS}
    else:
        draft["factors"] = None
    amount = data.get("amount")
    draft["amount"] = None if amount is None else parse_number(amount)
    draft["is_official"] = parse_bool(data.get("is_official"))
    return draft
