"""Administrator data exports. Qualifications are never part of an export."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Sequence

from tax_qualifications.application.audit import AuditLogger
from tax_qualifications.domain.models import UserProfile
from tax_qualifications.domain.rbac import Permission, require
from tax_qualifications.domain.reconciliation import utc_now
from tax_qualifications.domain.repositories import AuditLogRepository, UserRepository
from tax_qualifications.infrastructure.storage.codec import encode_audit, encode_user, isoformat

BACKUP_VERSION = "1.0.0"
BACKUP_NOTE = "Las calificaciones tributarias NO están incluidas por políticas de seguridad RBAC"


class BackupService:
    def __init__(
        self,
        users: UserRepository,
        audit_logs: AuditLogRepository,
        audit: AuditLogger,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._users = users
        self._audit_logs = audit_logs
        self._audit = audit
        self._clock = clock

    def export_backup(self, actor: UserProfile) -> dict[str, Any]:
        require(actor, Permission.PERFORM_MAINTENANCE)
        users = []
        for profile in self._users.list_all():
            document = encode_user(profile)
            document["FechaCreacion"] = isoformat(profile.created_at)
            users.append({"id": profile.uid, **document})
        audit_logs = []
        for entry in self._audit_logs.list_all():
            document = encode_audit(entry)
            document["timestamp"] = isoformat(entry.timestamp)
            audit_logs.append({"id": entry.id, **document})

        backup = {
            "exportDate": isoformat(self._clock()),
            "version": BACKUP_VERSION,
            "data": {"users": users, "auditLogs": audit_logs},
            "metadata": {
                "totalUsers": len(users),
                "totalLogs": len(audit_logs),
                "note": BACKUP_NOTE,
            },
        }
        self._audit.log_data_export(actor, "Admin Data (Users + Logs)", len(users) + len(audit_logs))
        return backup

    def export_users(self, actor: UserProfile) -> Sequence[UserProfile]:
        require(actor, Permission.PERFORM_MAINTENANCE)
        profiles = list(self._users.list_all())
        self._audit.log_data_export(actor, "Users", len(profiles))
        return profiles
