"""Store drivers: Firestore documents, Realtime Database presence, in-memory."""

from db.base import (
    SERVER_TIMESTAMP,
    BaseDocumentStore,
    BasePresenceStore,
    CancelHandle,
    QuerySpec,
    StoreWriteError,
    WriteOp,
    merge_patch,
)
from db.memory import InMemoryDocumentStore, InMemoryPresenceStore

__all__ = [
    "SERVER_TIMESTAMP",
    "BaseDocumentStore",
    "BasePresenceStore",
    "CancelHandle",
    "QuerySpec",
    "StoreWriteError",
    "WriteOp",
    "merge_patch",
    "InMemoryDocumentStore",
    "InMemoryPresenceStore",
]
