from unittest.mock import MagicMock

import pytest
from pymongo import ReplaceOne, UpdateOne
from pymongo.errors import OperationFailure

from tax_qualifications.infrastructure.storage.document_store import WriteOperation
from tax_qualifications.infrastructure.storage.mongo_store import MongoDocumentStore


@pytest.fixture
def client():
    return MagicMock()


def test_batch_runs_in_one_transaction(client):
    store = MongoDocumentStore(db_name="test", client=client)

    store.commit_batch(
        [
            WriteOperation("taxQualifications", "a", {"id": "a", "amount": 1.0}),
            WriteOperation("taxQualifications", "b", {"deleted": True}, merge=True),
        ]
    )

    session = client.start_session.return_value.__enter__.return_value
    session.start_transaction.assert_called_once_with()
    session.with_transaction.assert_not_called()
    collection = client["test"]["taxQualifications"]
    requests = collection.bulk_write.call_args.args[0]
    assert requests == [
        ReplaceOne({"_id": "a"}, {"amount": 1.0}, upsert=True),
        UpdateOne({"_id": "b"}, {"$set": {"deleted": True}}, upsert=True),
    ]
    assert collection.bulk_write.call_args.kwargs["session"] is session


def test_oversized_batch_never_reaches_the_server(client):
    store = MongoDocumentStore(db_name="test", client=client)

    with pytest.raises(ValueError):
        store.commit_batch([WriteOperation("items", str(index), {}) for index in range(501)])

    client.start_session.assert_not_called()


def test_documents_expose_id(client):
    client["test"]["users"].find_one.return_value = {"_id": "u1", "email": "a@b.c"}
    store = MongoDocumentStore(db_name="test", client=client)

    assert store.get("users", "u1") == {"id": "u1", "email": "a@b.c"}


def test_failed_write_is_not_retried(client):
    collection = client["test"]["items"]
    collection.bulk_write.side_effect = OperationFailure("write conflict")
    store = MongoDocumentStore(db_name="test", client=client)

    with pytest.raises(OperationFailure):
        store.commit_batch([WriteOperation("items", "a", {"value": 1})])

    assert collection.bulk_write.call_count == 1
