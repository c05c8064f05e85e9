"""Domain models for the tax qualification pipeline.

These dataclasses capture the canonical schema for qualification records, the
per-row outcome of an upload and the accounts and audit entries around them.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping

FACTOR_KEYS: tuple[str, ...] = tuple(f"f{number}" for number in range(8, 20))


class Role(str, Enum):
    BROKER = "Corredor"
    ADMIN = "Administrador"


class RecordStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    UPDATED = "updated"


class ErrorType(str, Enum):
    VALIDATION = "validation"
    FORMAT = "format"
    FACTOR_SUM = "factorSum"
    DUPLICATE = "duplicate"


class AuditAction(str, Enum):
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    UPLOAD = "UPLOAD"
    EXPORT = "EXPORT"
    PASSWORD_RESET = "PASSWORD_RESET"


class AuditResource(str, Enum):
    SYSTEM = "system"
    USER = "user"
    QUALIFICATION = "qualification"
    REPORT = "report"


def qualification_id(broker_id: str, instrument: str, market: str, period: str) -> str:
    """Derive the document id for a (broker, instrument, market, period) tuple."""
    raw = f"{broker_id}-{instrument}-{market}-{period}".lower()
    raw = re.sub(r"\s+", "-", raw)
    return re.sub(r"[^a-z0-9-]", "", raw)


def lookup_key(instrument: str, market: str, period: str) -> str:
    return f"{instrument}-{market}-{period}".lower()


@dataclass(frozen=True)
class TaxFactors:
    """Regulatory weighting coefficients F8 to F19, each expected in [0, 1]."""

    f8: float = 0.0
    f9: float = 0.0
    f10: float = 0.0
    f11: float = 0.0
    f12: float = 0.0
    f13: float = 0.0
    f14: float = 0.0
    f15: float = 0.0
    f16: float = 0.0
    f17: float = 0.0
    f18: float = 0.0
    f19: float = 0.0

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> TaxFactors:
        return cls(**{key: float(values[key]) for key in FACTOR_KEYS})

    def as_dict(self) -> dict[str, float]:
        return {key: getattr(self, key) for key in FACTOR_KEYS}

    def total(self) -> float:
        return math.fsum(self.as_dict().values())


@dataclass(frozen=True)
class TaxQualification:
    """One tax-treatment record for an instrument/market/period/broker tuple."""

    broker_id: str
    instrument: str
    market: str
    period: str
    qualification_type: str
    factors: TaxFactors
    amount: float
    is_official: bool = False
    id: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted: bool = False
    deleted_at: datetime | None = None

    def key(self) -> str:
        return lookup_key(self.instrument, self.market, self.period)

    def derive_id(self) -> str:
        return qualification_id(self.broker_id, self.instrument, self.market, self.period)

    @classmethod
    def from_draft(cls, draft: Mapping[str, Any]) -> TaxQualification:
        """Build a record from a normalized draft that already passed validation."""
        return cls(
            broker_id=str(draft["broker_id"]),
            instrument=draft["instrument"],
            market=draft["market"],
            period=draft["period"],
            qualification_type=draft["qualification_type"],
            factors=TaxFactors.from_mapping(draft["factors"]),
            amount=float(draft["amount"]),
            is_official=bool(draft.get("is_official", False)),
        )


@dataclass(frozen=True)
class ValidationError:
    """A field-level problem found in one input row."""

    row: int
    field: str
    value: Any
    message: str
    error_type: ErrorType = ErrorType.VALIDATION


@dataclass(frozen=True)
class ProcessedRecord:
    """Outcome of running one input row through normalization and validation."""

    row_number: int
    data: TaxQualification | None
    status: RecordStatus
    errors: tuple[ValidationError, ...] = ()
    is_duplicate: bool = False
    existing_id: str | None = None

    @property
    def is_error(self) -> bool:
        return self.status is RecordStatus.ERROR or self.data is None


@dataclass(frozen=True)
class UserProfile:
    uid: str
    first_name: str
    last_name: str
    national_id: str
    email: str
    role: Role
    created_at: datetime | None = None
    active: bool = True
    created_by: str | None = None

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class AuditLog:
    """Append-only record of a sensitive system event."""

    timestamp: datetime
    user_id: str
    user_email: str
    user_name: str
    action: AuditAction
    resource: AuditResource
    details: str
    resource_id: str | None = None
    changes: Mapping[str, Any] | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)
    id: str = ""


@dataclass(frozen=True)
class RawRow:
    """One data line of an uploaded file, keyed by normalized header name."""

    row_number: int
    values: Mapping[str, Any]
