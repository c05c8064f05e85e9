"""Row validator for tax qualification drafts.

Every problem in a row is collected rather than stopping at the first one, so a
single pass yields the complete error report for a file.
"""
from __future__ import annotations

import math
import numbers
import re
from dataclasses import dataclass
from typing import Any, Mapping

from .models import (
    FACTOR_KEYS,
    ErrorType,
    ProcessedRecord,
    RawRow,
    RecordStatus,
    TaxQualification,
    ValidationError,
)
from .normalization import normalize_row

MAX_FACTOR_SUM = 1.0
FACTOR_SUM_EPSILON = 1e-9

_QUARTER_PATTERN = re.compile(r"^\d{4}-Q[1-4]$")
_MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")
_YEAR_PATTERN = re.compile(r"^\d{4}$")

REQUIRED_TEXT_FIELDS = {
    "instrument": "El campo instrumento es requerido",
    "market": "El campo mercado es requerido",
    "period": "El campo período es requerido",
    "qualification_type": "El campo tipo de calificación es requerido",
}


@dataclass(frozen=True)
class FactorSumCheck:
    is_valid: bool
    total: float
    error: str | None = None


def _is_number(value: object) -> bool:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        return False
    return math.isfinite(value)


def validate_factors_sum(factors: Mapping[str, float]) -> FactorSumCheck:
    total = math.fsum(float(factors[key]) for key in FACTOR_KEYS)
    if total <= MAX_FACTOR_SUM + FACTOR_SUM_EPSILON:
        return FactorSumCheck(is_valid=True, total=total)
    return FactorSumCheck(
        is_valid=False,
        total=total,
        error=f"La suma de los factores ({total:.4f}) supera el límite permitido de 1 (100%)",
    )


def validate_period_format(period: str) -> bool:
    """Accept ``YYYY``, ``YYYY-MM`` and ``YYYY-Qn`` fiscal periods."""
    return bool(
        _QUARTER_PATTERN.match(period)
        or _MONTH_PATTERN.match(period)
        or _YEAR_PATTERN.match(period)
    )


def validate_qualification(
    draft: Mapping[str, Any],
    row_number: int,
    check_period_format: bool = True,
) -> list[ValidationError]:
    errors: list[ValidationError] = []

    for field_name, message in REQUIRED_TEXT_FIELDS.items():
        value = draft.get(field_name)
        if not isinstance(value, str) or not value.strip():
            errors.append(ValidationError(row_number, field_name, value, message))

    period = draft.get("period")
    if check_period_format and isinstance(period, str) and period.strip():
        if not validate_period_format(period.strip()):
            errors.append(
                ValidationError(
                    row_number,
                    "period",
                    period,
                    f"El período '{period}' debe tener formato AAAA, AAAA-MM o AAAA-Qn",
                    ErrorType.FORMAT,
                )
            )

    amount = draft.get("amount")
    if amount is None:
        errors.append(ValidationError(row_number, "amount", amount, "El campo monto es requerido"))
    elif not _is_number(amount):
        errors.append(
            ValidationError(row_number, "amount", amount, "El monto debe ser un número válido", ErrorType.FORMAT)
        )
    elif amount < 0:
        errors.append(ValidationError(row_number, "amount", amount, "El monto no puede ser negativo"))

    factors = draft.get("factors")
    if not isinstance(factors, Mapping):
        errors.append(
            ValidationError(row_number, "factors", factors, "Los factores tributarios son requeridos")
        )
        return errors

    factor_failed = False
    for key in FACTOR_KEYS:
        value = factors.get(key)
        label = key.upper()
        if value is None:
            errors.append(ValidationError(row_number, key, value, f"El factor {label} es requerido"))
        elif not _is_number(value):
            errors.append(
                ValidationError(
                    row_number, key, value, f"El factor {label} debe ser un número válido", ErrorType.FORMAT
                )
            )
        elif value < 0 or value > 1:
            errors.append(
                ValidationError(row_number, key, value, f"El factor {label} debe estar entre 0 y 1")
            )
        else:
            continue
        factor_failed = True

    if not factor_failed:
        check = validate_factors_sum(factors)
        if not check.is_valid:
            errors.append(
                ValidationError(row_number, "factors", check.total, check.error or "", ErrorType.FACTOR_SUM)
            )

    return errors


def process_row(raw: RawRow, broker_id: str, check_period_format: bool = True) -> ProcessedRecord:
    """Normalize and validate one raw row into a :class:`ProcessedRecord`."""
    try:
        draft = normalize_row(raw.values, broker_id)
        errors = validate_qualification(draft, raw.row_number, check_period_format)
        if errors:
            return ProcessedRecord(raw.row_number, None, RecordStatus.ERROR, tuple(errors))
        return ProcessedRecord(raw.row_number, TaxQualification.from_draft(draft), RecordStatus.SUCCESS)
    except (TypeError, ValueError, KeyError) as exc:
        error = ValidationError(
            raw.row_number,
            "general",
            dict(raw.values),
            f"Error al procesar la fila: {exc}",
            ErrorType.FORMAT,
        )
        return ProcessedRecord(raw.row_number, None, RecordStatus.ERROR, (error,))
