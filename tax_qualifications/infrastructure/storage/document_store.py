"""Document store capability consumed by the repositories."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol, Sequence

# Operations accepted by a single atomic batch commit.
MAX_BATCH_OPERATIONS = 500

Document = dict[str, Any]


@dataclass(frozen=True)
class WriteOperation:
    collection: str
    doc_id: str
    data: Mapping[str, Any] = field(default_factory=dict)
    merge: bool = False


class DocumentStore(Protocol):
    """Flat collections of schemaless documents keyed by string id.

    Returned documents always carry their key under ``"id"``.
    """

    def get(self, collection: str, doc_id: str) -> Document | None:
        ...

    def query(self, collection: str, filters: Mapping[str, Any] | None = None) -> list[Document]:
        """Return documents whose fields equal every value in ``filters``."""
        ...

    def set(self, collection: str, doc_id: str, data: Mapping[str, Any], merge: bool = False) -> None:
        ...

    def add(self, collection: str, data: Mapping[str, Any]) -> str:
        ...

    def commit_batch(self, operations: Sequence[WriteOperation]) -> None:
        """Apply all operations atomically, or none of them."""
        ...


def check_batch(operations: Sequence[WriteOperation]) -> None:
    if len(operations) > MAX_BATCH_OPERATIONS:
        raise ValueError(
            f"A batch accepts at most {MAX_BATCH_OPERATIONS} operations, got {len(operations)}"
        )
    for operation in operations:
        if not operation.doc_id:
            raise ValueError(f"Write to {operation.collection} has an empty document id")


def strip_id(data: Mapping[str, Any]) -> Document:
    return {key: value for key, value in data.items() if key != "id"}
