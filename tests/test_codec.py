from datetime import datetime, timezone

import pytest

from tax_qualifications.domain.errors import RecordSchemaError
from tax_qualifications.domain.models import FACTOR_KEYS, Role, TaxFactors, TaxQualification
from tax_qualifications.infrastructure.repositories.document_repositories import (
    DocumentQualificationRepository,
    DocumentUserRepository,
)
from tax_qualifications.infrastructure.storage.codec import (
    SCHEMA_VERSION,
    decode_qualification,
    decode_user,
    encode_qualification,
)


def make_document(**overrides):
    document = {
        "id": "broker-1-abc-bvc-2024",
        "brokerId": "broker-1",
        "instrument": "ABC",
        "market": "BVC",
        "period": "2024",
        "qualificationType": "Dividendos",
        "factors": {key: 0.0 for key in FACTOR_KEYS},
        "amount": 10,
        "isOfficial": False,
        "createdAt": "2024-01-01T00:00:00",
        "updatedAt": datetime(2024, 2, 1, tzinfo=timezone.utc),
    }
    document.update(overrides)
    return document


def test_encoded_documents_carry_schema_version():
    record = TaxQualification("b1", "ABC", "BVC", "2024", "Dividendos", TaxFactors(), 1.0, id="x")

    assert encode_qualification(record)["schemaVersion"] == SCHEMA_VERSION


def test_unversioned_documents_read_as_current():
    record = decode_qualification(make_document())

    assert record.amount == 10.0
    assert record.created_at == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert record.deleted is False


@pytest.mark.parametrize(
    "overrides",
    [
        {"schemaVersion": 2},
        {"amount": "diez"},
        {"factors": None},
        {"factors": {"f8": 0.1}},
        {"instrument": None},
        {"createdAt": "ayer"},
    ],
)
def test_malformed_documents_raise(overrides):
    with pytest.raises(RecordSchemaError):
        decode_qualification(make_document(**overrides))


def test_unknown_role_is_a_schema_error():
    with pytest.raises(RecordSchemaError):
        decode_user({"id": "u1", "email": "a@b.c", "rol": "Invitado"})


def test_user_document_keys():
    profile = decode_user(
        {"id": "u1", "Nombre": "Ana", "Apellido": "Díaz", "Rut": "1-9", "email": "a@b.c", "rol": "Corredor"}
    )

    assert profile.uid == "u1"
    assert profile.role is Role.BROKER
    assert profile.active is True


def test_repository_skips_malformed_documents(store, caplog):
    store.set("taxQualifications", "good", make_document(id="good"))
    store.set("taxQualifications", "bad", make_document(id="bad", amount=None))

    records = DocumentQualificationRepository(store).list_by_broker("broker-1")

    assert [record.id for record in records] == ["good"]
    assert "Skipping malformed" in caplog.text


def test_user_repository_skips_malformed_documents(store):
    store.set("users", "u1", {"email": "a@b.c", "rol": "Corredor"})
    store.set("users", "u2", {"email": "c@d.e", "rol": "???"})

    assert [profile.uid for profile in DocumentUserRepository(store).list_all()] == ["u1"]
