"""Firestore document store.

Collections used by the chat core:
- `users/{id}` - profiles, read-only here
- `groups/{id}` - group settings with a `members` uid array
- `messages/{id}` - direct and group messages
- `aiMessages/{id}` - assistant conversation turns
- `conversations/{conversationId}` - per-pair metadata, merge-upserted

Writes go through the async client. Live queries use the sync client's watch
(`on_snapshot`), whose callbacks run on a background thread and are handed
back to the event loop in arrival order.
"""

import asyncio
import base64
import json
import logging
import os
import time
from datetime import UTC, datetime
from typing import Any

import firebase_admin
from firebase_admin import credentials
from google.cloud import firestore
from google.cloud.firestore_v1 import AsyncClient
from google.cloud.firestore_v1.base_query import FieldFilter
from google.oauth2 import service_account

from config import get_settings
from db.base import (
    BaseDocumentStore,
    CancelHandle,
    ErrorCallback,
    QuerySpec,
    SnapshotCallback,
    StoreWriteError,
    WriteOp,
    validate_document_id,
)

logger = logging.getLogger(__name__)

# Firestore rejects batches above this many writes
MAX_BATCH_WRITES = 500


def load_firebase_credentials(creds_value: str) -> dict:
    """Load Firebase credentials from JSON string, file path, or base64."""
    if os.path.isfile(creds_value):
        with open(creds_value) as f:
            return json.load(f)

    try:
        return json.loads(creds_value)
    except json.JSONDecodeError:
        pass

    try:
        decoded = base64.b64decode(creds_value).decode("utf-8")
        return json.loads(decoded)
    except (ValueError, UnicodeDecodeError):
        pass

    raise ValueError("FIREBASE_CREDENTIALS is not valid JSON, file path, or base64")


def initialize_firebase_app() -> dict:
    """Initialize the default firebase_admin app once; return the credentials."""
    settings = get_settings()
    creds_dict = load_firebase_credentials(settings.firebase_credentials)

    if not firebase_admin._apps:
        cred = credentials.Certificate(creds_dict)
        firebase_admin.initialize_app(
            cred, {"databaseURL": settings.firebase_database_url}
        )
    return creds_dict


def _snapshot_to_dicts(docs, reverse: bool) -> list[dict[str, Any]]:
    results = []
    for doc in docs:
        data = doc.to_dict() or {}
        data["id"] = doc.id
        results.append(data)
    if reverse:
        results.reverse()
    return results


class FirestoreService(BaseDocumentStore):
    """Firestore-backed document store."""

    _initialized: bool = False
    _db: AsyncClient | None = None
    _watch_db: firestore.Client | None = None

    def __init__(self) -> None:
        """Initialize Firestore clients (singleton pattern)."""
        if FirestoreService._initialized:
            self.db = FirestoreService._db
            self.watch_db = FirestoreService._watch_db
            return

        try:
            creds_dict = initialize_firebase_app()
            gcp_credentials = service_account.Credentials.from_service_account_info(
                creds_dict
            )
            project = creds_dict.get("project_id")

            FirestoreService._db = AsyncClient(
                project=project, credentials=gcp_credentials
            )
            FirestoreService._watch_db = firestore.Client(
                project=project, credentials=gcp_credentials
            )
            self.db = FirestoreService._db
            self.watch_db = FirestoreService._watch_db

            FirestoreService._initialized = True
            logger.info("Firestore client initialized successfully")
        except Exception as e:
            logger.error("Failed to initialize Firestore: %s", e)
            raise

    # --- Live queries ---

    def _build_query(self, spec: QuerySpec):
        query = self.watch_db.collection(spec.collection)
        for field_name, op, value in spec.filters:
            query = query.where(filter=FieldFilter(field_name, op, value))
        if spec.order_by:
            # Newest first so the limit keeps the most recent window
            query = query.order_by(
                spec.order_by, direction=firestore.Query.DESCENDING
            )
        if spec.limit is not None:
            query = query.limit(spec.limit)
        return query

    def subscribe(
        self,
        spec: QuerySpec,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback | None = None,
    ) -> CancelHandle:
        loop = asyncio.get_running_loop()
        reverse = spec.order_by is not None

        def handle_snapshot(docs, changes, read_time) -> None:
            try:
                results = _snapshot_to_dicts(docs, reverse)
            except Exception as e:
                logger.error("Failed to decode snapshot for %s: %s", spec.collection, e)
                if on_error:
                    loop.call_soon_threadsafe(on_error, e)
                return
            loop.call_soon_threadsafe(on_snapshot, results)

        try:
            watch = self._build_query(spec).on_snapshot(handle_snapshot)
        except Exception as e:
            logger.error("Failed to subscribe to %s: %s", spec.collection, e)
            raise

        logger.debug("Watching %s (%d filters)", spec.collection, len(spec.filters))
        return watch.unsubscribe

    # --- Writes ---

    async def add(self, collection: str, data: dict[str, Any]) -> str:
        """Insert a document with an auto-generated id."""
        try:
            doc_ref = self.db.collection(collection).document()
            await doc_ref.set(data)
            logger.debug("Added %s/%s", collection, doc_ref.id)
            return doc_ref.id

        except Exception as e:
            logger.error("Failed to add document to %s: %s", collection, e)
            raise StoreWriteError(f"Failed to add document: {e}") from e

    async def delete(self, collection: str, doc_id: str) -> None:
        """Delete a document by id."""
        try:
            await self.db.collection(collection).document(doc_id).delete()
            logger.info("Deleted %s/%s", collection, doc_id)

        except Exception as e:
            logger.error("Failed to delete %s/%s: %s", collection, doc_id, e)
            raise StoreWriteError(f"Failed to delete document: {e}") from e

    async def commit(self, writes: list[WriteOp]) -> list[str]:
        """Commit all writes in one batch."""
        if len(writes) > MAX_BATCH_WRITES:
            raise StoreWriteError(
                f"Batch of {len(writes)} writes exceeds limit of {MAX_BATCH_WRITES}"
            )

        try:
            batch = self.db.batch()
            doc_ids = []
            for op in writes:
                if op.doc_id is not None:
                    validate_document_id(op.doc_id)
                collection_ref = self.db.collection(op.collection)
                doc_ref = (
                    collection_ref.document(op.doc_id)
                    if op.doc_id is not None
                    else collection_ref.document()
                )
                batch.set(doc_ref, op.data, merge=op.merge)
                doc_ids.append(doc_ref.id)

            if writes:
                await batch.commit()
            logger.debug("Committed batch of %d writes", len(writes))
            return doc_ids

        except Exception as e:
            logger.error("Failed to commit batch: %s", e)
            raise StoreWriteError(f"Failed to commit batch: {e}") from e

    async def health_check(self) -> dict[str, Any]:
        """Check Firestore connection health."""
        start = time.time()
        try:
            test_ref = self.db.collection("_health_check").document("test")
            await test_ref.set({"timestamp": datetime.now(UTC)})
            await test_ref.get()

            latency = (time.time() - start) * 1000
            return {"status": "healthy", "latency_ms": round(latency, 2)}
        except Exception as e:
            return {"status": "unhealthy", "error": str(e)}
