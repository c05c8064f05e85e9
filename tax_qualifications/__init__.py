"""Bulk upload and reconciliation of broker tax qualifications."""
from tax_qualifications.application.services import ServiceRegistry, build_services
from tax_qualifications.application.use_cases import BulkUploadContext, BulkUploadUseCase
from tax_qualifications.domain.reconciliation import ReconciliationEngine
from tax_qualifications.infrastructure.storage.memory_store import InMemoryDocumentStore
from tax_qualifications.infrastructure.storage.mongo_store import MongoDocumentStore

__all__ = [
    "BulkUploadUseCase",
    "BulkUploadContext",
    "ReconciliationEngine",
    "ServiceRegistry",
    "build_services",
    "InMemoryDocumentStore",
    "MongoDocumentStore",
]
