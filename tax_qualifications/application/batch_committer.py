"""Concurrent commit of reconciled write batches."""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Sequence

from tax_qualifications.domain.errors import BulkUploadError
from tax_qualifications.domain.models import TaxQualification
from tax_qualifications.domain.reconciliation import ProgressCallback, notify
from tax_qualifications.domain.repositories import QualificationRepository

LOGGER = logging.getLogger(__name__)


class BatchCommitter:
    """Fans batches out to a thread pool, each batch one atomic store write.

    A failed batch fails the whole upload. Batches that already committed stay
    committed, batches not yet started are cancelled, and nothing is retried.
    """

    def __init__(self, repository: QualificationRepository, max_workers: int = 8) -> None:
        self._repository = repository
        self._max_workers = max(max_workers, 1)

    def commit(
        self,
        batches: Sequence[Sequence[TaxQualification]],
        on_progress: ProgressCallback | None = None,
    ) -> int:
        if not batches:
            return 0
        total_batches = len(batches)
        total_operations = sum(len(batch) for batch in batches)
        LOGGER.info("Committing %d operations in %d batches", total_operations, total_batches)

        completed = 0
        committed_operations = 0
        workers = min(self._max_workers, total_batches)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="batch-commit") as executor:
            futures = {
                executor.submit(self._repository.commit_batch, batch): len(batch) for batch in batches
            }
            try:
                for future in as_completed(futures):
                    future.result()
                    completed += 1
                    committed_operations += futures[future]
                    LOGGER.debug("Batch %d/%d committed", completed, total_batches)
                    notify(
                        on_progress,
                        committed_operations,
                        total_operations,
                        f"Guardando lote {completed}/{total_batches}...",
                    )
            except Exception as exc:
                for pending in futures:
                    pending.cancel()
                LOGGER.error(
                    "Bulk upload failed after %d of %d batches committed: %s", completed, total_batches, exc
                )
                raise BulkUploadError("Error al procesar la carga masiva") from exc
        return completed
