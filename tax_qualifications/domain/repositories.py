"""Repository interfaces anchoring the domain layer."""
from __future__ import annotations

from typing import Any, Mapping, Protocol, Sequence

from .models import AuditLog, TaxQualification, UserProfile


class QualificationRepository(Protocol):
    """Stores tax qualifications, segregated by broker."""

    def list_by_broker(self, broker_id: str) -> Sequence[TaxQualification]:
        ...

    def get(self, qualification_id: str) -> TaxQualification | None:
        ...

    def save(self, record: TaxQualification) -> None:
        ...

    def merge(self, qualification_id: str, fields: Mapping[str, Any]) -> None:
        ...

    def commit_batch(self, records: Sequence[TaxQualification]) -> None:
        """Write every record in one atomic operation."""
        ...


class UserRepository(Protocol):
    def get(self, uid: str) -> UserProfile | None:
        ...

    def save(self, profile: UserProfile) -> None:
        ...

    def list_all(self) -> Sequence[UserProfile]:
        ...


class AuditLogRepository(Protocol):
    def append(self, entry: AuditLog) -> str:
        ...

    def list_all(self) -> Sequence[AuditLog]:
        ...


class AccountDirectory(Protocol):
    """Sign-in accounts; profiles live in :class:`UserRepository`."""

    def create_account(self, email: str, password: str, display_name: str) -> str:
        ...

    def set_disabled(self, uid: str, disabled: bool) -> None:
        ...

    def verify(self, email: str, password: str) -> str | None:
        ...

    def reset_password(self, uid: str, new_password: str) -> None:
        ...
