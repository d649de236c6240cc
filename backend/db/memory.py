"""Process-local document and presence stores.

Same contract as the Firebase drivers: live queries deliver full ordered
snapshots, server timestamps resolve to strictly increasing UTC datetimes,
merge writes patch nested maps, and commits are all-or-nothing. Snapshots are
delivered inline, before the write call returns.
"""

import copy
import itertools
import logging
import uuid
from collections import defaultdict
from datetime import UTC, datetime, timedelta
from typing import Any

from db.base import (
    SERVER_TIMESTAMP,
    BaseDocumentStore,
    BasePresenceStore,
    CancelHandle,
    ErrorCallback,
    QuerySpec,
    SnapshotCallback,
    StoreWriteError,
    ValueCallback,
    WriteOp,
    merge_patch,
    validate_document_id,
)

logger = logging.getLogger(__name__)


def _matches(doc: dict[str, Any], spec: QuerySpec) -> bool:
    for field_name, op, value in spec.filters:
        actual = doc.get(field_name)
        if op == "==" and actual != value:
            return False
        if op == "array_contains" and (
            not isinstance(actual, list) or value not in actual
        ):
            return False
    if spec.order_by and doc.get(spec.order_by) is None:
        return False
    return True


class InMemoryDocumentStore(BaseDocumentStore):
    """Dictionary-backed document store."""

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = defaultdict(dict)
        self._subscribers: dict[int, tuple[QuerySpec, SnapshotCallback]] = {}
        self._tokens = itertools.count()
        self._last_timestamp: datetime | None = None

    # --- Reads ---

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """Return a copy of one document, or None."""
        doc = self._collections[collection].get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    def documents(self, collection: str) -> list[dict[str, Any]]:
        """Return copies of every document in a collection, ids included."""
        return [
            {"id": doc_id, **copy.deepcopy(doc)}
            for doc_id, doc in self._collections[collection].items()
        ]

    def run_query(self, spec: QuerySpec) -> list[dict[str, Any]]:
        docs = [
            {"id": doc_id, **copy.deepcopy(doc)}
            for doc_id, doc in self._collections[spec.collection].items()
            if _matches(doc, spec)
        ]
        if spec.order_by:
            docs.sort(key=lambda d: d[spec.order_by])
            if spec.limit is not None:
                docs = docs[-spec.limit :] if spec.limit else []
        elif spec.limit is not None:
            docs = docs[: spec.limit]
        return docs

    # --- Subscriptions ---

    def subscribe(
        self,
        spec: QuerySpec,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback | None = None,
    ) -> CancelHandle:
        token = next(self._tokens)
        self._subscribers[token] = (spec, on_snapshot)
        on_snapshot(self.run_query(spec))

        def cancel() -> None:
            self._subscribers.pop(token, None)

        return cancel

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def _notify(self, collections: set[str]) -> None:
        for token, (spec, callback) in list(self._subscribers.items()):
            if spec.collection not in collections:
                continue
            # A previous callback may have cancelled this one
            if token not in self._subscribers:
                continue
            callback(self.run_query(spec))

    # --- Writes ---

    def _server_timestamp(self) -> datetime:
        now = datetime.now(UTC)
        if self._last_timestamp is not None and now <= self._last_timestamp:
            now = self._last_timestamp + timedelta(microseconds=1)
        self._last_timestamp = now
        return now

    def _resolve(self, value: Any) -> Any:
        if value is SERVER_TIMESTAMP:
            return self._server_timestamp()
        if isinstance(value, dict):
            return {k: self._resolve(v) for k, v in value.items()}
        if isinstance(value, list):
            return [self._resolve(v) for v in value]
        return copy.deepcopy(value)

    async def add(self, collection: str, data: dict[str, Any]) -> str:
        validate_document_id(collection)
        doc_id = uuid.uuid4().hex[:20]
        self._collections[collection][doc_id] = self._resolve(data)
        logger.debug("Added %s/%s", collection, doc_id)
        self._notify({collection})
        return doc_id

    async def delete(self, collection: str, doc_id: str) -> None:
        validate_document_id(collection)
        validate_document_id(doc_id)
        if self._collections[collection].pop(doc_id, None) is not None:
            logger.debug("Deleted %s/%s", collection, doc_id)
            self._notify({collection})

    async def commit(self, writes: list[WriteOp]) -> list[str]:
        # Validate every write before touching any document
        for op in writes:
            validate_document_id(op.collection)
            if op.doc_id is not None:
                validate_document_id(op.doc_id)
            if not isinstance(op.data, dict):
                raise StoreWriteError("Document data must be a mapping")

        doc_ids: list[str] = []
        for op in writes:
            doc_id = op.doc_id or uuid.uuid4().hex[:20]
            data = self._resolve(op.data)
            current = self._collections[op.collection].get(doc_id)
            if op.merge and current is not None:
                data = merge_patch(current, data)
            self._collections[op.collection][doc_id] = data
            doc_ids.append(doc_id)

        if writes:
            self._notify({op.collection for op in writes})
        return doc_ids

    async def health_check(self) -> dict[str, Any]:
        return {"status": "healthy", "latency_ms": 0.0}


class InMemoryPresenceStore(BasePresenceStore):
    """Dictionary-backed presence/typing store."""

    def __init__(self) -> None:
        self._values: dict[str, Any] = {}
        self._listeners: dict[int, tuple[str, ValueCallback]] = {}
        self._tokens = itertools.count()

    def set(self, path: str, value: Any) -> None:
        """Write a value and notify listeners on that path."""
        self._values[path] = copy.deepcopy(value)
        for token, (listen_path, callback) in list(self._listeners.items()):
            if listen_path == path and token in self._listeners:
                callback(copy.deepcopy(value))

    def subscribe(self, path: str, on_value: ValueCallback) -> CancelHandle:
        token = next(self._tokens)
        self._listeners[token] = (path, on_value)
        on_value(copy.deepcopy(self._values.get(path)))

        def cancel() -> None:
            self._listeners.pop(token, None)

        return cancel

    @property
    def listener_count(self) -> int:
        return len(self._listeners)
