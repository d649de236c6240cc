"""Store interfaces shared by every driver.

A document store runs collection-scoped queries as live subscriptions that
deliver full ordered snapshots, single-document writes, and all-or-nothing
multi-document commits. A presence store delivers the live value at a key.
"""

import copy
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from google.cloud.firestore import SERVER_TIMESTAMP

CancelHandle = Callable[[], None]
SnapshotCallback = Callable[[list[dict[str, Any]]], None]
ErrorCallback = Callable[[Exception], None]
ValueCallback = Callable[[Any], None]

SUPPORTED_OPERATORS = frozenset({"==", "array_contains"})


class StoreWriteError(Exception):
    """Raised when the store rejects an insert, delete or commit."""


@dataclass(frozen=True)
class QuerySpec:
    """A live query against one collection.

    When ``order_by`` and ``limit`` are both set the query covers the
    ``limit`` most recent documents by that field; snapshots are always
    delivered in ascending order.
    """

    collection: str
    filters: tuple[tuple[str, str, Any], ...] = ()
    order_by: str | None = None
    limit: int | None = None

    def __post_init__(self) -> None:
        for _, op, _ in self.filters:
            if op not in SUPPORTED_OPERATORS:
                raise ValueError(f"Unsupported filter operator: {op}")


@dataclass
class WriteOp:
    """One document write inside a commit.

    ``doc_id=None`` asks the store to allocate an id. ``merge=True`` applies
    ``data`` as a patch over the existing document.
    """

    collection: str
    data: dict[str, Any]
    doc_id: str | None = None
    merge: bool = False


def merge_patch(existing: dict[str, Any], patch: dict[str, Any]) -> dict[str, Any]:
    """Apply ``patch`` to ``existing``, only overwriting keys present in the patch.

    Nested mappings merge recursively, matching Firestore ``set(merge=True)``.
    """
    result = copy.deepcopy(existing)
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = merge_patch(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def validate_document_id(doc_id: str) -> None:
    """Reject ids that cannot name a single document."""
    if not isinstance(doc_id, str) or not doc_id:
        raise StoreWriteError("Document id must be a non-empty string")
    if "/" in doc_id or doc_id in (".", ".."):
        raise StoreWriteError(f"Invalid document id: {doc_id!r}")


class BaseDocumentStore(ABC):
    """Abstract document store with live snapshot subscriptions."""

    @abstractmethod
    def subscribe(
        self,
        spec: QuerySpec,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback | None = None,
    ) -> CancelHandle:
        """Start a live query.

        Args:
            spec: Query to run.
            on_snapshot: Called with the full ordered result list, each
                document as a dict carrying its ``id``.
            on_error: Called if the stream breaks.

        Returns:
            Callable that cancels the subscription.
        """

    @abstractmethod
    async def add(self, collection: str, data: dict[str, Any]) -> str:
        """Insert a document with a store-assigned id and return the id."""

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> None:
        """Hard-delete a document by id."""

    @abstractmethod
    async def commit(self, writes: list[WriteOp]) -> list[str]:
        """Apply all writes atomically and return the written document ids."""

    @abstractmethod
    async def health_check(self) -> dict[str, Any]:
        """Return ``{"status": ..., "latency_ms": ...}``."""


class BasePresenceStore(ABC):
    """Abstract low-latency key/value store for presence and typing."""

    @abstractmethod
    def subscribe(self, path: str, on_value: ValueCallback) -> CancelHandle:
        """Deliver the full current value at ``path`` on every change."""
