"""Manual management of a broker's qualifications: entry, edits, soft delete, search."""
from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Sequence

from tax_qualifications.application.audit import AuditLogger
from tax_qualifications.application.dto import BrokerStats, QualificationFilters
from tax_qualifications.domain.errors import InvalidQualificationError, NotFoundError
from tax_qualifications.domain.models import (
    ErrorType,
    TaxQualification,
    UserProfile,
    ValidationError,
)
from tax_qualifications.domain.normalization import sanitize_draft
from tax_qualifications.domain.rbac import Permission, require
from tax_qualifications.domain.reconciliation import utc_now
from tax_qualifications.domain.repositories import QualificationRepository
from tax_qualifications.domain.validation import validate_factors_sum, validate_qualification

LOGGER = logging.getLogger(__name__)

MANUAL_ENTRY_ROW = 0
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _find_by_key(records: Sequence[TaxQualification], key: str) -> TaxQualification | None:
    return next((record for record in records if record.key() == key), None)


def _duplicate_key_error(record: TaxQualification) -> InvalidQualificationError:
    return InvalidQualificationError(
        [
            ValidationError(
                MANUAL_ENTRY_ROW,
                "instrument",
                record.instrument,
                "Ya existe una calificación para este instrumento, mercado y período",
                ErrorType.DUPLICATE,
            )
        ]
    )


def _record_to_draft(record: TaxQualification) -> dict[str, Any]:
    return {
        "instrument": record.instrument,
        "market": record.market,
        "period": record.period,
        "qualification_type": record.qualification_type,
        "factors": record.factors.as_dict(),
        "amount": record.amount,
        "is_official": record.is_official,
    }


class QualificationService:
    """Single-record operations, restricted to the broker that owns the data.

    Updates are last-write-wins: there is no version check between read and write.
    """

    def __init__(
        self,
        repository: QualificationRepository,
        audit: AuditLogger,
        clock: Callable[[], datetime] = utc_now,
        check_period_format: bool = True,
    ) -> None:
        self._repository = repository
        self._audit = audit
        self._clock = clock
        self._check_period_format = check_period_format

    def _validated(self, data: Mapping[str, Any], broker_id: str) -> TaxQualification:
        draft = sanitize_draft(data, broker_id)
        errors = validate_qualification(draft, MANUAL_ENTRY_ROW, self._check_period_format)
        if errors:
            raise InvalidQualificationError(errors)
        return TaxQualification.from_draft(draft)

    def _owned(self, actor: UserProfile, qualification_id: str, permission: Permission) -> TaxQualification:
        record = self._repository.get(qualification_id)
        if record is None or record.deleted:
            raise NotFoundError(f"Calificación {qualification_id} no encontrada")
        require(actor, permission, owner_id=record.broker_id)
        return record

    def active_records(self, broker_id: str) -> list[TaxQualification]:
        return [record for record in self._repository.list_by_broker(broker_id) if not record.deleted]

    def create(self, actor: UserProfile, data: Mapping[str, Any]) -> TaxQualification:
        require(actor, Permission.CREATE_QUALIFICATION)
        record = self._validated(data, actor.uid)
        if _find_by_key(self.active_records(actor.uid), record.key()) is not None:
            raise _duplicate_key_error(record)
        now = self._clock()
        record = replace(record, id=record.derive_id(), created_at=now, updated_at=now)
        self._repository.save(record)
        LOGGER.info("Qualification %s created by %s", record.id, actor.uid)
        self._audit.log_qualification_created(actor, record)
        return record

    def update(self, actor: UserProfile, qualification_id: str, changes: Mapping[str, Any]) -> TaxQualification:
        before = self._owned(actor, qualification_id, Permission.EDIT_QUALIFICATION)
        merged = _record_to_draft(before)
        merged.update(changes)
        candidate = self._validated(merged, before.broker_id)
        others = [record for record in self.active_records(before.broker_id) if record.id != before.id]
        if _find_by_key(others, candidate.key()) is not None:
            raise _duplicate_key_error(candidate)
        after = replace(
            candidate,
            id=before.id,
            created_at=before.created_at,
            updated_at=self._clock(),
        )
        self._repository.save(after)
        self._audit.log_qualification_updated(actor, before, after)
        return after

    def soft_delete(self, actor: UserProfile, qualification_id: str) -> None:
        record = self._owned(actor, qualification_id, Permission.DELETE_QUALIFICATION)
        self._repository.merge(qualification_id, {"deleted": True, "deletedAt": self._clock()})
        LOGGER.info("Qualification %s soft-deleted by %s", qualification_id, actor.uid)
        self._audit.log_qualification_deleted(actor, record)

    def get(self, actor: UserProfile, qualification_id: str) -> TaxQualification:
        return self._owned(actor, qualification_id, Permission.VIEW_QUALIFICATIONS)

    def list_for_broker(self, actor: UserProfile, max_results: int = 100) -> list[TaxQualification]:
        require(actor, Permission.VIEW_QUALIFICATIONS)
        records = sorted(
            self.active_records(actor.uid),
            key=lambda record: record.updated_at or _EPOCH,
            reverse=True,
        )
        return records[:max_results]

    def search(self, actor: UserProfile, filters: QualificationFilters) -> list[TaxQualification]:
        require(actor, Permission.VIEW_QUALIFICATIONS)
        exact = {
            "instrument": filters.instrument,
            "market": filters.market,
            "period": filters.period,
            "qualification_type": filters.qualification_type,
        }
        results: list[TaxQualification] = []
        for record in self.active_records(actor.uid):
            if any(value and getattr(record, name) != value for name, value in exact.items()):
                continue
            if filters.min_amount is not None and record.amount < filters.min_amount:
                continue
            if filters.max_amount is not None and record.amount > filters.max_amount:
                continue
            results.append(record)
        return results

    def broker_stats(self, actor: UserProfile) -> BrokerStats:
        require(actor, Permission.GENERATE_REPORTS)
        records = self.active_records(actor.uid)
        validated = sum(1 for record in records if validate_factors_sum(record.factors.as_dict()).is_valid)
        rate = validated / len(records) * 100 if records else 100.0
        return BrokerStats(
            total_qualifications=len(records),
            validated_factors=validated,
            success_rate=round(rate, 1),
        )

