"""MongoDB-backed document store."""
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Mapping, Sequence
from uuid import uuid4

from pymongo import MongoClient, ReplaceOne, UpdateOne
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError

from .document_store import Document, WriteOperation, check_batch, strip_id

LOGGER = logging.getLogger(__name__)


class MongoDocumentStore:
    def __init__(
        self,
        connection_string: str = "mongodb://localhost:27017/",
        db_name: str = "tax_qualifications",
        client: MongoClient | None = None,
    ) -> None:
        if client is None:
            # directConnection only works for single-node localhost setups.
            is_localhost = "localhost" in connection_string or "127.0.0.1" in connection_string
            client = MongoClient(
                connection_string,
                serverSelectionTimeoutMS=8000,
                connectTimeoutMS=8000,
                socketTimeoutMS=8000,
                directConnection=is_localhost,
                tz_aware=True,
            )
        self._client = client
        self._db = client[db_name]
        self.db_name = db_name

    def ping(self) -> bool:
        try:
            self._client.admin.command("ping")
        except (ConnectionFailure, ServerSelectionTimeoutError) as exc:
            LOGGER.warning("MongoDB %s unreachable: %s", self.db_name, exc)
            return False
        return True

    def get(self, collection: str, doc_id: str) -> Document | None:
        return self._export(self._db[collection].find_one({"_id": doc_id}))

    def query(self, collection: str, filters: Mapping[str, Any] | None = None) -> list[Document]:
        return [self._export(doc) for doc in self._db[collection].find(dict(filters or {}))]

    def set(self, collection: str, doc_id: str, data: Mapping[str, Any], merge: bool = False) -> None:
        if merge:
            self._db[collection].update_one({"_id": doc_id}, {"$set": strip_id(data)}, upsert=True)
        else:
            self._db[collection].replace_one({"_id": doc_id}, strip_id(data), upsert=True)

    def add(self, collection: str, data: Mapping[str, Any]) -> str:
        doc_id = uuid4().hex
        self._db[collection].insert_one({"_id": doc_id, **strip_id(data)})
        return doc_id

    def commit_batch(self, operations: Sequence[WriteOperation]) -> None:
        check_batch(operations)
        if not operations:
            return
        grouped: dict[str, list[ReplaceOne | UpdateOne]] = defaultdict(list)
        for operation in operations:
            payload = strip_id(operation.data)
            if operation.merge:
                request = UpdateOne({"_id": operation.doc_id}, {"$set": payload}, upsert=True)
            else:
                request = ReplaceOne({"_id": operation.doc_id}, payload, upsert=True)
            grouped[operation.collection].append(request)

        # Multi-document transactions need a replica set (Atlas or a local rs).
        # A single attempt: the transaction aborts on the first error.
        with self._client.start_session() as session:
            with session.start_transaction():
                for collection, requests in grouped.items():
                    self._db[collection].bulk_write(requests, ordered=True, session=session)

    def close(self) -> None:
        self._client.close()

    @staticmethod
    def _export(document: Mapping[str, Any] | None) -> Document | None:
        if document is None:
            return None
        exported = dict(document)
        exported["id"] = str(exported.pop("_id"))
        return exported
