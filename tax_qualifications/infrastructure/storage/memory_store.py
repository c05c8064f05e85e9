"""In-process document store used by tests and local runs."""
from __future__ import annotations

import copy
import threading
from collections import defaultdict
from typing import Any, Mapping, Sequence
from uuid import uuid4

from .document_store import Document, WriteOperation, check_batch, strip_id


class InMemoryDocumentStore:
    def __init__(self) -> None:
        self._collections: dict[str, dict[str, Document]] = defaultdict(dict)
        self._lock = threading.RLock()
        self.committed_batches = 0

    def get(self, collection: str, doc_id: str) -> Document | None:
        with self._lock:
            stored = self._collections[collection].get(doc_id)
            if stored is None:
                return None
            return self._export(doc_id, stored)

    def query(self, collection: str, filters: Mapping[str, Any] | None = None) -> list[Document]:
        filters = filters or {}
        with self._lock:
            return [
                self._export(doc_id, stored)
                for doc_id, stored in self._collections[collection].items()
                if all(stored.get(name) == value for name, value in filters.items())
            ]

    def set(self, collection: str, doc_id: str, data: Mapping[str, Any], merge: bool = False) -> None:
        self.commit_batch([WriteOperation(collection, doc_id, data, merge)])

    def add(self, collection: str, data: Mapping[str, Any]) -> str:
        doc_id = uuid4().hex
        self.set(collection, doc_id, data)
        return doc_id

    def commit_batch(self, operations: Sequence[WriteOperation]) -> None:
        check_batch(operations)
        with self._lock:
            for operation in operations:
                target = self._collections[operation.collection]
                payload = copy.deepcopy(strip_id(operation.data))
                if operation.merge and operation.doc_id in target:
                    target[operation.doc_id].update(payload)
                else:
                    target[operation.doc_id] = payload
            self.committed_batches += 1

    def count(self, collection: str) -> int:
        with self._lock:
            return len(self._collections[collection])

    @staticmethod
    def _export(doc_id: str, stored: Document) -> Document:
        document = copy.deepcopy(stored)
        document["id"] = doc_id
        return document
