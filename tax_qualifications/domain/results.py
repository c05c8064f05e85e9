"""Domain-level results for a bulk upload run."""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, Sequence

from .models import ProcessedRecord, RecordStatus, ValidationError


@dataclass(frozen=True)
class BulkUploadResult:
    total_records: int
    added: int
    updated: int
    errors: int
    success_records: Sequence[ProcessedRecord] = field(default_factory=tuple)
    error_records: Sequence[ProcessedRecord] = field(default_factory=tuple)
    processing_time_ms: int = 0

    def has_errors(self) -> bool:
        return self.errors > 0

    def iter_all_errors(self) -> Iterable[ValidationError]:
        for record in self.error_records:
            yield from record.errors


def summarize(
    records: Sequence[ProcessedRecord],
    started_at: float,
    clock: Callable[[], float] = time.perf_counter,
) -> BulkUploadResult:
    """Tally a classified record list into a :class:`BulkUploadResult`.

    ``started_at`` must come from the same monotonic ``clock``.
    """
    success_records: list[ProcessedRecord] = []
    error_records: list[ProcessedRecord] = []
    added = updated = 0
    for record in records:
        if record.is_error:
            error_records.append(record)
        elif record.status is RecordStatus.UPDATED:
            updated += 1
            success_records.append(record)
        else:
            added += 1
            success_records.append(record)

    elapsed_ms = int(round((clock() - started_at) * 1000))
    return BulkUploadResult(
        total_records=len(records),
        added=added,
        updated=updated,
        errors=len(error_records),
        success_records=tuple(success_records),
        error_records=tuple(error_records),
        processing_time_ms=max(elapsed_ms, 0),
    )
