from dataclasses import replace
from datetime import datetime, timezone

import pytest

from tax_qualifications.domain.models import (
    ErrorType,
    ProcessedRecord,
    RecordStatus,
    TaxFactors,
    TaxQualification,
    ValidationError,
)
from tax_qualifications.domain.reconciliation import ReconciliationEngine, partition
from tax_qualifications.infrastructure.repositories.document_repositories import DocumentQualificationRepository

FIXED_NOW = datetime(2024, 4, 1, 12, 0, tzinfo=timezone.utc)


def make_qualification(instrument="Acción ABC", market="BVC", period="2024-Q1", amount=1000.0) -> TaxQualification:
    return TaxQualification(
        broker_id="broker-1",
        instrument=instrument,
        market=market,
        period=period,
        qualification_type="Dividendos",
        factors=TaxFactors(f8=0.5),
        amount=amount,
    )


def make_processed(row: int, **kwargs) -> ProcessedRecord:
    return ProcessedRecord(row, make_qualification(**kwargs), RecordStatus.SUCCESS)


def make_error(row: int) -> ProcessedRecord:
    error = ValidationError(row, "amount", -1.0, "El monto no puede ser negativo")
    return ProcessedRecord(row, None, RecordStatus.ERROR, (error,))


def make_engine(store, **kwargs) -> tuple[ReconciliationEngine, DocumentQualificationRepository]:
    repository = DocumentQualificationRepository(store)
    return ReconciliationEngine(repository, clock=lambda: FIXED_NOW, **kwargs), repository


def test_new_rows_get_derived_ids(store):
    engine, _ = make_engine(store)

    plan = engine.reconcile([make_processed(2)], "broker-1")

    record = plan.records[0]
    assert record.status is RecordStatus.SUCCESS
    assert record.data.id == "broker-1-accin-abc-bvc-2024-q1"
    assert record.data.created_at == FIXED_NOW
    assert plan.total_writes == 1
    assert plan.existing_count == 0


def test_second_run_classifies_everything_as_update(store):
    engine, repository = make_engine(store)
    records = [make_processed(2), make_processed(3, instrument="XYZ")]
    first = engine.reconcile(records, "broker-1")
    for batch in first.batches:
        repository.commit_batch(batch)

    later = ReconciliationEngine(repository, clock=lambda: datetime(2024, 5, 1, tzinfo=timezone.utc))
    second = later.reconcile(records, "broker-1")

    assert [record.status for record in second.records] == [RecordStatus.UPDATED, RecordStatus.UPDATED]
    assert all(record.is_duplicate for record in second.records)
    assert [record.existing_id for record in second.records] == [record.data.id for record in first.records]
    assert all(record.data.created_at == FIXED_NOW for record in second.records)
    assert store.count("taxQualifications") == 2


def test_key_matching_ignores_case(store):
    engine, repository = make_engine(store)
    existing = replace(
        make_qualification(instrument="ACCIÓN ABC", market="bvc", period="2024-q1"),
        id="stored-id",
        created_at=FIXED_NOW,
    )
    repository.save(existing)

    plan = engine.reconcile([make_processed(2)], "broker-1")

    assert plan.records[0].status is RecordStatus.UPDATED
    assert plan.records[0].existing_id == "stored-id"
    assert [write.id for write in plan.writes] == ["stored-id"]


def test_qualification_type_is_not_part_of_the_key(store):
    engine, repository = make_engine(store)
    repository.save(replace(make_qualification(), id="stored-id", qualification_type="Intereses"))

    plan = engine.reconcile([make_processed(2)], "broker-1")

    assert plan.records[0].status is RecordStatus.UPDATED
    assert plan.writes[0].qualification_type == "Dividendos"


def test_repeated_key_within_upload_writes_once(store):
    engine, _ = make_engine(store)

    plan = engine.reconcile([make_processed(2, amount=1.0), make_processed(3, amount=2.0)], "broker-1")

    assert [record.status for record in plan.records] == [RecordStatus.SUCCESS, RecordStatus.UPDATED]
    assert plan.records[1].existing_id == plan.records[0].data.id
    assert plan.total_writes == 1
    assert plan.writes[0].amount == 2.0


def test_error_rows_pass_through_untouched(store):
    engine, _ = make_engine(store)
    error = make_error(4)

    plan = engine.reconcile([make_processed(2), error], "broker-1")

    assert plan.records[1] is error
    assert plan.total_writes == 1


def test_id_owned_by_another_key_is_a_duplicate_error(store):
    engine, repository = make_engine(store)
    other = replace(make_qualification(instrument="a-b", market="x", period="2024"), id="broker-1-a-b-x-2024")
    repository.save(other)

    plan = engine.reconcile([make_processed(2, instrument="a b", market="x", period="2024")], "broker-1")

    record = plan.records[0]
    assert record.status is RecordStatus.ERROR
    assert record.errors[0].error_type is ErrorType.DUPLICATE
    assert plan.total_writes == 0


def test_soft_deleted_match_is_revived(store):
    engine, repository = make_engine(store)
    repository.save(replace(make_qualification(), id="stored-id", deleted=True, deleted_at=FIXED_NOW))

    plan = engine.reconcile([make_processed(2)], "broker-1")

    assert plan.writes[0].deleted is False
    assert plan.writes[0].deleted_at is None


def test_writes_are_split_into_batches_of_500(store):
    engine, _ = make_engine(store)
    records = [make_processed(index + 2, instrument=f"INST{index}") for index in range(1001)]

    plan = engine.reconcile(records, "broker-1")

    assert [len(batch) for batch in plan.batches] == [500, 500, 1]


def test_progress_reports_each_phase(store):
    engine, _ = make_engine(store, progress_interval=2)
    calls = []

    engine.reconcile(
        [make_processed(2), make_processed(3, instrument="B"), make_processed(4, instrument="C")],
        "broker-1",
        on_progress=lambda processed, total, phase: calls.append((processed, total, phase)),
    )

    assert calls == [
        (0, 3, "Cargando registros existentes..."),
        (0, 3, "Preparando operaciones..."),
        (2, 3, "Procesando registros..."),
        (3, 3, "Procesando registros..."),
    ]


def test_batch_size_above_store_limit_is_rejected(store):
    with pytest.raises(ValueError):
        make_engine(store, batch_size=501)


def test_partition():
    assert partition([1, 2, 3], 2) == ((1, 2), (3,))
    assert partition([], 2) == ()
