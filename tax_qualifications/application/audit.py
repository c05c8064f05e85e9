"""Audit trail of sensitive actions.

Audit writes are best-effort: a failure is logged and reported as an empty id,
the action being audited goes ahead regardless.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Mapping, Sequence

from tax_qualifications.domain.models import (
    AuditAction,
    AuditLog,
    AuditResource,
    TaxQualification,
    UserProfile,
)
from tax_qualifications.domain.rbac import Permission, require
from tax_qualifications.domain.reconciliation import utc_now
from tax_qualifications.domain.repositories import AuditLogRepository
from tax_qualifications.domain.results import BulkUploadResult
from tax_qualifications.infrastructure.storage.codec import encode_qualification, encode_user

LOGGER = logging.getLogger(__name__)


class AuditLogger:
    def __init__(self, repository: AuditLogRepository, clock: Callable[[], datetime] = utc_now) -> None:
        self._repository = repository
        self._clock = clock

    def log(
        self,
        actor: UserProfile,
        action: AuditAction,
        resource: AuditResource,
        details: str,
        resource_id: str | None = None,
        changes: Mapping[str, Any] | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> str:
        entry = AuditLog(
            timestamp=self._clock(),
            user_id=actor.uid,
            user_email=actor.email,
            user_name=actor.display_name,
            action=action,
            resource=resource,
            details=details,
            resource_id=resource_id,
            changes=changes,
            metadata=dict(metadata or {}),
        )
        try:
            entry_id = self._repository.append(entry)
        except Exception:
            LOGGER.exception("Could not record audit event %s/%s for %s", action.value, resource.value, actor.email)
            return ""
        LOGGER.info("Audit %s on %s by %s", action.value, resource.value, actor.email)
        return entry_id

    def list_recent(self, actor: UserProfile, limit: int = 100) -> Sequence[AuditLog]:
        require(actor, Permission.VIEW_AUDIT_LOGS)
        return list(self._repository.list_all())[:limit]

    def log_login(self, actor: UserProfile) -> str:
        return self.log(actor, AuditAction.LOGIN, AuditResource.SYSTEM, "Inicio de sesión exitoso")

    def log_logout(self, actor: UserProfile) -> str:
        return self.log(actor, AuditAction.LOGOUT, AuditResource.SYSTEM, "Cierre de sesión")

    def log_user_created(self, actor: UserProfile, profile: UserProfile) -> str:
        return self.log(
            actor,
            AuditAction.CREATE,
            AuditResource.USER,
            f"Nuevo usuario creado: {profile.display_name} ({profile.role.value})",
            resource_id=profile.uid,
            changes={"after": encode_user(profile)},
        )

    def log_user_updated(self, actor: UserProfile, before: UserProfile, after: UserProfile) -> str:
        return self.log(
            actor,
            AuditAction.UPDATE,
            AuditResource.USER,
            f"Usuario actualizado: {after.display_name}",
            resource_id=after.uid,
            changes={"before": encode_user(before), "after": encode_user(after)},
        )

    def log_user_toggle_active(self, actor: UserProfile, target: UserProfile, active: bool) -> str:
        state = "activado" if active else "desactivado"
        return self.log(
            actor,
            AuditAction.UPDATE,
            AuditResource.USER,
            f"Usuario {state}: {target.display_name}",
            resource_id=target.uid,
            metadata={"activo": active},
        )

    def log_password_reset(self, actor: UserProfile, target: UserProfile) -> str:
        return self.log(
            actor,
            AuditAction.PASSWORD_RESET,
            AuditResource.USER,
            f"Contraseña restablecida para: {target.email}",
            resource_id=target.uid,
        )

    def log_bulk_upload(self, actor: UserProfile, result: BulkUploadResult) -> str:
        successful = result.added + result.updated
        return self.log(
            actor,
            AuditAction.UPLOAD,
            AuditResource.QUALIFICATION,
            f"Carga masiva: {successful} exitosos, {result.errors} errores de {result.total_records} total",
            metadata={
                "totalRecords": result.total_records,
                "successCount": successful,
                "errorCount": result.errors,
                "added": result.added,
                "updated": result.updated,
            },
        )

    def log_qualification_created(self, actor: UserProfile, record: TaxQualification) -> str:
        return self.log(
            actor,
            AuditAction.CREATE,
            AuditResource.QUALIFICATION,
            f"Calificación creada: {record.instrument or 'N/A'}",
            resource_id=record.id,
            changes={"after": encode_qualification(record)},
        )

    def log_qualification_updated(self, actor: UserProfile, before: TaxQualification, after: TaxQualification) -> str:
        return self.log(
            actor,
            AuditAction.UPDATE,
            AuditResource.QUALIFICATION,
            f"Calificación actualizada: {after.instrument or 'N/A'}",
            resource_id=after.id,
            changes={"before": encode_qualification(before), "after": encode_qualification(after)},
        )

    def log_qualification_deleted(self, actor: UserProfile, record: TaxQualification) -> str:
        return self.log(
            actor,
            AuditAction.DELETE,
            AuditResource.QUALIFICATION,
            f"Calificación eliminada: {record.instrument or 'N/A'}",
            resource_id=record.id,
            changes={"before": encode_qualification(record)},
        )

    def log_data_export(self, actor: UserProfile, export_type: str, record_count: int) -> str:
        return self.log(
            actor,
            AuditAction.EXPORT,
            AuditResource.REPORT,
            f"Exportación de {export_type}: {record_count} registros",
            metadata={"exportType": export_type, "recordCount": record_count},
        )
