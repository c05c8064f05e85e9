"""Renderers for administrator exports."""
from __future__ import annotations

import csv
import io
import json
from datetime import datetime
from typing import Any, Mapping, Sequence

from tax_qualifications.domain.models import UserProfile

USER_COLUMNS = ["id", "Nombre", "Apellido", "email", "Rut", "rol", "activo", "FechaCreacion"]


def _json_default(value: Any) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def render_backup_json(backup: Mapping[str, Any]) -> bytes:
    return json.dumps(backup, ensure_ascii=False, indent=2, default=_json_default).encode("utf-8")


def backup_filename(backup: Mapping[str, Any]) -> str:
    export_date = str(backup.get("exportDate") or "")[:10]
    return f"nuam-backup-{export_date}.json"


def render_users_csv(profiles: Sequence[UserProfile]) -> bytes:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=USER_COLUMNS, quoting=csv.QUOTE_NONNUMERIC)
    writer.writeheader()
    for profile in profiles:
        writer.writerow(
            {
                "id": profile.uid,
                "Nombre": profile.first_name,
                "Apellido": profile.last_name,
                "email": profile.email,
                "Rut": profile.national_id,
                "rol": profile.role.value,
                "activo": "true" if profile.active else "false",
                "FechaCreacion": profile.created_at.isoformat() if profile.created_at else "",
            }
        )
    return buffer.getvalue().encode("utf-8")
