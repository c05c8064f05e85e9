"""Document-store-backed repositories for qualifications, users and audit logs."""
from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Sequence, TypeVar

from tax_qualifications.config import (
    AUDIT_COLLECTION,
    QUALIFICATIONS_COLLECTION,
    USERS_COLLECTION,
)
from tax_qualifications.domain.errors import RecordSchemaError
from tax_qualifications.domain.models import AuditLog, TaxQualification, UserProfile
from tax_qualifications.domain.repositories import (
    AuditLogRepository,
    QualificationRepository,
    UserRepository,
)
from tax_qualifications.infrastructure.storage.codec import (
    decode_audit,
    decode_qualification,
    decode_user,
    encode_audit,
    encode_qualification,
    encode_user,
)
from tax_qualifications.infrastructure.storage.document_store import (
    Document,
    DocumentStore,
    WriteOperation,
)

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


def _decode_all(documents: Sequence[Document], decode: Callable[[Document], T], collection: str) -> list[T]:
    """Decode documents, quarantining the ones that do not match the schema."""
    decoded: list[T] = []
    for document in documents:
        try:
            decoded.append(decode(document))
        except RecordSchemaError as exc:
            LOGGER.warning("Skipping malformed %s document %s: %s", collection, document.get("id"), exc)
    return decoded


class DocumentQualificationRepository(QualificationRepository):
    def __init__(self, store: DocumentStore, collection: str = QUALIFICATIONS_COLLECTION) -> None:
        self._store = store
        self._collection = collection

    def list_by_broker(self, broker_id: str) -> Sequence[TaxQualification]:
        documents = self._store.query(self._collection, {"brokerId": broker_id})
        return _decode_all(documents, decode_qualification, self._collection)

    def get(self, qualification_id: str) -> TaxQualification | None:
        document = self._store.get(self._collection, qualification_id)
        return decode_qualification(document) if document is not None else None

    def save(self, record: TaxQualification) -> None:
        self._store.set(self._collection, record.id, encode_qualification(record))

    def merge(self, qualification_id: str, fields: Mapping[str, Any]) -> None:
        self._store.set(self._collection, qualification_id, fields, merge=True)

    def commit_batch(self, records: Sequence[TaxQualification]) -> None:
        self._store.commit_batch(
            [WriteOperation(self._collection, record.id, encode_qualification(record)) for record in records]
        )


class DocumentUserRepository(UserRepository):
    def __init__(self, store: DocumentStore, collection: str = USERS_COLLECTION) -> None:
        self._store = store
        self._collection = collection

    def get(self, uid: str) -> UserProfile | None:
        document = self._store.get(self._collection, uid)
        return decode_user(document) if document is not None else None

    def save(self, profile: UserProfile) -> None:
        self._store.set(self._collection, profile.uid, encode_user(profile), merge=True)

    def list_all(self) -> Sequence[UserProfile]:
        return _decode_all(self._store.query(self._collection), decode_user, self._collection)


class DocumentAuditLogRepository(AuditLogRepository):
    def __init__(self, store: DocumentStore, collection: str = AUDIT_COLLECTION) -> None:
        self._store = store
        self._collection = collection

    def append(self, entry: AuditLog) -> str:
        return self._store.add(self._collection, encode_audit(entry))

    def list_all(self) -> Sequence[AuditLog]:
        entries = _decode_all(self._store.query(self._collection), decode_audit, self._collection)
        return sorted(entries, key=lambda entry: entry.timestamp, reverse=True)
