"""Application services orchestrating the bulk upload workflow."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable

from tax_qualifications.application.audit import AuditLogger
from tax_qualifications.application.batch_committer import BatchCommitter
from tax_qualifications.application.dto import UploadRequest
from tax_qualifications.config import SETTINGS, Settings
from tax_qualifications.domain.models import ProcessedRecord
from tax_qualifications.domain.rbac import Permission, require
from tax_qualifications.domain.reconciliation import (
    ProgressCallback,
    ReconciliationEngine,
    notify,
)
from tax_qualifications.domain.repositories import QualificationRepository
from tax_qualifications.domain.results import BulkUploadResult, summarize
from tax_qualifications.domain.validation import process_row
from tax_qualifications.infrastructure.parsing.rows import read_rows
from tax_qualifications.infrastructure.parsing.utils import check_upload_size

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class BulkUploadContext:
    repository: QualificationRepository
    audit: AuditLogger
    settings: Settings = field(default_factory=lambda: SETTINGS)


class BulkUploadUseCase:
    def __init__(self, context: BulkUploadContext, clock: Callable[[], float] = time.perf_counter) -> None:
        self._context = context
        self._clock = clock
        settings = context.settings
        self._engine = ReconciliationEngine(
            context.repository,
            batch_size=settings.batch_size,
            progress_interval=settings.progress_interval,
        )
        self._committer = BatchCommitter(context.repository, max_workers=settings.max_commit_workers)

    def validate_file(self, request: UploadRequest) -> list[ProcessedRecord]:
        """Parse, normalize and validate every row without touching the store."""
        require(request.actor, Permission.BULK_UPLOAD)
        check_upload_size(request.size, self._context.settings.max_upload_bytes)
        rows = read_rows(request.content, request.filename)
        strict = self._context.settings.strict_period_format
        return [process_row(row, request.actor.uid, check_period_format=strict) for row in rows]

    def execute(self, request: UploadRequest, on_progress: ProgressCallback | None = None) -> BulkUploadResult:
        started_at = self._clock()
        broker_id = request.actor.uid
        records = self.validate_file(request)
        LOGGER.info("Bulk upload of %d rows for broker %s started", len(records), broker_id)

        plan = self._engine.reconcile(records, broker_id, on_progress)
        total = len(records)
        notify(on_progress, total, total, "Guardando en base de datos...")
        self._committer.commit(plan.batches, on_progress)

        result = summarize(plan.records, started_at, self._clock)
        LOGGER.info(
            "Bulk upload finished in %.2fs: added=%d updated=%d errors=%d",
            result.processing_time_ms / 1000,
            result.added,
            result.updated,
            result.errors,
        )
        self._context.audit.log_bulk_upload(request.actor, result)
        return result
