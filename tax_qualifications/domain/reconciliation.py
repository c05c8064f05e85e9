"""Reconciliation of validated upload rows against a broker's stored records."""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable, Sequence, TypeVar

from .models import (
    ErrorType,
    ProcessedRecord,
    RecordStatus,
    TaxQualification,
    ValidationError,
)
from .repositories import QualificationRepository

LOGGER = logging.getLogger(__name__)

# Hard limit of operations per atomic write in the document store.
MAX_BATCH_SIZE = 500

ProgressCallback = Callable[[int, int, str], None]

T = TypeVar("T")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def partition(items: Sequence[T], size: int) -> tuple[tuple[T, ...], ...]:
    if size <= 0:
        raise ValueError("Batch size must be positive")
    return tuple(tuple(items[start:start + size]) for start in range(0, len(items), size))


def notify(callback: ProgressCallback | None, processed: int, total: int, phase: str) -> None:
    if callback is not None:
        callback(processed, total, phase)


@dataclass(frozen=True)
class ReconciliationPlan:
    """Classified rows plus the write set, already split into commit batches."""

    records: tuple[ProcessedRecord, ...]
    writes: tuple[TaxQualification, ...]
    batches: tuple[tuple[TaxQualification, ...], ...]
    existing_count: int

    @property
    def total_writes(self) -> int:
        return len(self.writes)


class ReconciliationEngine:
    """Classifies rows as new or update with one bulk read per upload.

    Rows are matched case-insensitively on instrument, market and period; the
    qualification type is not part of the key. Rows accepted earlier in the same
    upload take part in matching, so the write set holds one write per key.
    """

    def __init__(
        self,
        repository: QualificationRepository,
        batch_size: int = MAX_BATCH_SIZE,
        progress_interval: int = 100,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if not 0 < batch_size <= MAX_BATCH_SIZE:
            raise ValueError(f"Batch size must be between 1 and {MAX_BATCH_SIZE}")
        self._repository = repository
        self._batch_size = batch_size
        self._progress_interval = max(progress_interval, 1)
        self._clock = clock

    def reconcile(
        self,
        records: Sequence[ProcessedRecord],
        broker_id: str,
        on_progress: ProgressCallback | None = None,
    ) -> ReconciliationPlan:
        total = len(records)
        notify(on_progress, 0, total, "Cargando registros existentes...")
        existing = self._repository.list_by_broker(broker_id)
        lookup = {record.key(): record for record in existing}
        claimed_ids = {record.id: record.key() for record in existing}
        LOGGER.info("Loaded %d existing qualifications for broker %s", len(lookup), broker_id)

        notify(on_progress, 0, total, "Preparando operaciones...")
        now = self._clock()
        writes: dict[str, TaxQualification] = {}
        classified: list[ProcessedRecord] = []
        for index, record in enumerate(records, start=1):
            classified.append(self._classify(record, broker_id, now, lookup, claimed_ids, writes))
            if index % self._progress_interval == 0 or index == total:
                notify(on_progress, index, total, "Procesando registros...")

        write_set = tuple(writes.values())
        batches = partition(write_set, self._batch_size)
        LOGGER.info("Prepared %d writes in %d batches", len(write_set), len(batches))
        return ReconciliationPlan(
            records=tuple(classified),
            writes=write_set,
            batches=batches,
            existing_count=len(existing),
        )

    @staticmethod
    def _classify(
        record: ProcessedRecord,
        broker_id: str,
        now: datetime,
        lookup: dict[str, TaxQualification],
        claimed_ids: dict[str, str],
        writes: dict[str, TaxQualification],
    ) -> ProcessedRecord:
        if record.is_error or record.data is None:
            return record

        data = replace(record.data, broker_id=broker_id)
        key = data.key()
        match = lookup.get(key)
        if match is not None:
            # A matching soft-deleted record is revived by the full overwrite.
            updated = replace(
                data,
                id=match.id,
                created_at=match.created_at or now,
                updated_at=now,
                deleted=False,
                deleted_at=None,
            )
            lookup[key] = updated
            writes[updated.id] = updated
            return replace(
                record,
                data=updated,
                status=RecordStatus.UPDATED,
                is_duplicate=True,
                existing_id=match.id,
            )

        new_id = data.derive_id()
        owner_key = claimed_ids.get(new_id)
        if owner_key is not None and owner_key != key:
            error = ValidationError(
                record.row_number,
                "id",
                new_id,
                f"El identificador '{new_id}' ya pertenece a otro registro ({owner_key})",
                ErrorType.DUPLICATE,
            )
            return replace(
                record,
                data=None,
                status=RecordStatus.ERROR,
                errors=(error,),
                is_duplicate=True,
                existing_id=new_id,
            )

        created = replace(data, id=new_id, created_at=now, updated_at=now)
        lookup[key] = created
        claimed_ids[new_id] = key
        writes[new_id] = created
        return replace(record, data=created, status=RecordStatus.SUCCESS)
