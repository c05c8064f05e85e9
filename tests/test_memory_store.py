import pytest

from tax_qualifications.infrastructure.storage.document_store import WriteOperation


def test_set_get_and_query(store):
    store.set("items", "a", {"kind": "x", "value": 1})
    store.set("items", "b", {"kind": "y", "value": 2})

    assert store.get("items", "a") == {"id": "a", "kind": "x", "value": 1}
    assert store.get("items", "missing") is None
    assert [doc["id"] for doc in store.query("items", {"kind": "y"})] == ["b"]
    assert len(store.query("items")) == 2


def test_merge_updates_only_given_fields(store):
    store.set("items", "a", {"kind": "x", "value": 1})

    store.set("items", "a", {"value": 5}, merge=True)

    assert store.get("items", "a") == {"id": "a", "kind": "x", "value": 5}


def test_returned_documents_are_copies(store):
    store.set("items", "a", {"nested": {"value": 1}})

    store.get("items", "a")["nested"]["value"] = 99

    assert store.get("items", "a")["nested"]["value"] == 1


def test_add_generates_ids(store):
    first = store.add("items", {"value": 1})
    second = store.add("items", {"value": 2})

    assert first != second
    assert store.count("items") == 2


def test_batch_above_limit_is_rejected_atomically(store):
    operations = [WriteOperation("items", f"id-{index}", {"value": index}) for index in range(501)]

    with pytest.raises(ValueError):
        store.commit_batch(operations)

    assert store.count("items") == 0


def test_empty_document_id_is_rejected(store):
    with pytest.raises(ValueError):
        store.commit_batch([WriteOperation("items", "ok", {}), WriteOperation("items", "", {})])

    assert store.get("items", "ok") is None
