"""Wiring of repositories and services over a single document store."""
from __future__ import annotations

from dataclasses import dataclass

from tax_qualifications.application.audit import AuditLogger
from tax_qualifications.application.backup import BackupService
from tax_qualifications.application.qualifications import QualificationService
from tax_qualifications.application.use_cases import BulkUploadContext, BulkUploadUseCase
from tax_qualifications.application.users import UserAdministration
from tax_qualifications.config import SETTINGS, Settings
from tax_qualifications.infrastructure.repositories.account_directory import DocumentAccountDirectory
from tax_qualifications.infrastructure.repositories.document_repositories import (
    DocumentAuditLogRepository,
    DocumentQualificationRepository,
    DocumentUserRepository,
)
from tax_qualifications.infrastructure.storage.document_store import DocumentStore


@dataclass(slots=True)
class ServiceRegistry:
    bulk_upload: BulkUploadUseCase
    qualifications: QualificationService
    users: UserAdministration
    backup: BackupService
    audit: AuditLogger


def build_services(store: DocumentStore, settings: Settings = SETTINGS) -> ServiceRegistry:
    qualifications = DocumentQualificationRepository(store)
    users = DocumentUserRepository(store)
    audit_logs = DocumentAuditLogRepository(store)
    audit = AuditLogger(audit_logs)
    return ServiceRegistry(
        bulk_upload=BulkUploadUseCase(BulkUploadContext(qualifications, audit, settings)),
        qualifications=QualificationService(
            qualifications, audit, check_period_format=settings.strict_period_format
        ),
        users=UserAdministration(users, DocumentAccountDirectory(store), audit),
        backup=BackupService(users, audit_logs, audit),
        audit=audit,
    )
