"""Encode and decode records at the storage boundary.

Documents carry a ``schemaVersion``. Documents written before versioning
(no field) are read as version 1; anything that does not match the expected
shape raises :class:`RecordSchemaError` instead of leaking into the domain.
"""
from __future__ import annotations

import math
import numbers
from datetime import datetime, timezone
from typing import Any, Mapping

from tax_qualifications.domain.errors import RecordSchemaError
from tax_qualifications.domain.models import (
    FACTOR_KEYS,
    AuditAction,
    AuditLog,
    AuditResource,
    Role,
    TaxFactors,
    TaxQualification,
    UserProfile,
)

SCHEMA_VERSION = 1


def _check_version(document: Mapping[str, Any]) -> None:
    version = document.get("schemaVersion", SCHEMA_VERSION)
    if version != SCHEMA_VERSION:
        raise RecordSchemaError(f"Document {document.get('id')!r} has unsupported schema version {version!r}")


def _text(document: Mapping[str, Any], key: str, required: bool = True) -> str:
    value = document.get(key)
    if value is None and not required:
        return ""
    if not isinstance(value, str):
        raise RecordSchemaError(f"Document {document.get('id')!r}: field {key!r} must be text, got {value!r}")
    return value


def _number(document: Mapping[str, Any], key: str) -> float:
    value = document.get(key)
    if isinstance(value, bool) or not isinstance(value, numbers.Real) or not math.isfinite(value):
        raise RecordSchemaError(f"Document {document.get('id')!r}: field {key!r} must be numeric, got {value!r}")
    return float(value)


def _timestamp(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError as exc:
            raise RecordSchemaError(f"Invalid timestamp {value!r}") from exc
    if not isinstance(value, datetime):
        raise RecordSchemaError(f"Invalid timestamp {value!r}")
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def encode_qualification(record: TaxQualification) -> dict[str, Any]:
    return {
        "id": record.id,
        "brokerId": record.broker_id,
        "instrument": record.instrument,
        "market": record.market,
        "period": record.period,
        "qualificationType": record.qualification_type,
        "factors": record.factors.as_dict(),
        "amount": record.amount,
        "isOfficial": record.is_official,
        "createdAt": record.created_at,
        "updatedAt": record.updated_at,
        "deleted": record.deleted,
        "deletedAt": record.deleted_at,
        "schemaVersion": SCHEMA_VERSION,
    }


def decode_qualification(document: Mapping[str, Any]) -> TaxQualification:
    _check_version(document)
    factors = document.get("factors")
    if not isinstance(factors, Mapping):
        raise RecordSchemaError(f"Document {document.get('id')!r}: factors must be a mapping")
    factor_values = {key: _number(factors, key) for key in FACTOR_KEYS}
    return TaxQualification(
        id=_text(document, "id"),
        broker_id=_text(document, "brokerId"),
        instrument=_text(document, "instrument"),
        market=_text(document, "market"),
        period=_text(document, "period"),
        qualification_type=_text(document, "qualificationType", required=False),
        factors=TaxFactors(**factor_values),
        amount=_number(document, "amount"),
        is_official=bool(document.get("isOfficial", False)),
        created_at=_timestamp(document.get("createdAt")),
        updated_at=_timestamp(document.get("updatedAt")),
        deleted=bool(document.get("deleted", False)),
        deleted_at=_timestamp(document.get("deletedAt")),
    )


def encode_user(profile: UserProfile) -> dict[str, Any]:
    document: dict[str, Any] = {
        "uid": profile.uid,
        "Nombre": profile.first_name,
        "Apellido": profile.last_name,
        "Rut": profile.national_id,
        "email": profile.email,
        "rol": Role(profile.role).value,
        "FechaCreacion": profile.created_at,
        "activo": profile.active,
        "schemaVersion": SCHEMA_VERSION,
    }
    if profile.created_by:
        document["creadoPor"] = profile.created_by
    return document


def decode_user(document: Mapping[str, Any]) -> UserProfile:
    _check_version(document)
    try:
        role = Role(document.get("rol"))
    except ValueError as exc:
        raise RecordSchemaError(f"User {document.get('id')!r} has unknown role {document.get('rol')!r}") from exc
    uid = document.get("uid") or document.get("id")
    if not isinstance(uid, str) or not uid:
        raise RecordSchemaError("User document has no uid")
    return UserProfile(
        uid=uid,
        first_name=_text(document, "Nombre", required=False),
        last_name=_text(document, "Apellido", required=False),
        national_id=_text(document, "Rut", required=False),
        email=_text(document, "email"),
        role=role,
        created_at=_timestamp(document.get("FechaCreacion")),
        active=bool(document.get("activo", True)),
        created_by=document.get("creadoPor"),
    )


def encode_audit(entry: AuditLog) -> dict[str, Any]:
    document: dict[str, Any] = {
        "timestamp": entry.timestamp,
        "userId": entry.user_id,
        "userEmail": entry.user_email,
        "userName": entry.user_name,
        "action": AuditAction(entry.action).value,
        "resource": AuditResource(entry.resource).value,
        "details": entry.details,
        "metadata": dict(entry.metadata),
        "schemaVersion": SCHEMA_VERSION,
    }
    if entry.resource_id is not None:
        document["resourceId"] = entry.resource_id
    if entry.changes is not None:
        document["changes"] = dict(entry.changes)
    return document


def decode_audit(document: Mapping[str, Any]) -> AuditLog:
    _check_version(document)
    timestamp = _timestamp(document.get("timestamp"))
    if timestamp is None:
        raise RecordSchemaError(f"Audit log {document.get('id')!r} has no timestamp")
    try:
        action = AuditAction(document.get("action"))
        resource = AuditResource(document.get("resource"))
    except ValueError as exc:
        raise RecordSchemaError(f"Audit log {document.get('id')!r}: {exc}") from exc
    return AuditLog(
        id=str(document.get("id", "")),
        timestamp=timestamp,
        user_id=_text(document, "userId", required=False),
        user_email=_text(document, "userEmail", required=False),
        user_name=_text(document, "userName", required=False),
        action=action,
        resource=resource,
        details=_text(document, "details", required=False),
        resource_id=document.get("resourceId"),
        changes=document.get("changes"),
        metadata=document.get("metadata") or {},
    )
