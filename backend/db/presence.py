"""Realtime Database presence store.

Presence lives at `status/{uid}` as `{status, lastChanged}` and typing flags
at `typing/{uid}`. Both are written by the clients themselves; this module
only listens.
"""

import asyncio
import copy
import logging
import threading
from typing import Any

from firebase_admin import db as rtdb

from db.base import BasePresenceStore, CancelHandle, ValueCallback
from db.firestore import initialize_firebase_app

logger = logging.getLogger(__name__)


def apply_event(current: Any, event_type: str, path: str, data: Any) -> Any:
    """Fold one listener event into the cached value at the listened path.

    ``put`` replaces the value at ``path``; ``patch`` merges ``data`` into it.
    ``path`` is relative to the listened reference, ``"/"`` meaning the root.
    """
    keys = [part for part in path.split("/") if part]

    if not keys:
        if event_type == "patch" and isinstance(current, dict) and isinstance(data, dict):
            merged = copy.deepcopy(current)
            merged.update(data)
            return {k: v for k, v in merged.items() if v is not None}
        return copy.deepcopy(data)

    root = copy.deepcopy(current) if isinstance(current, dict) else {}
    node = root
    for key in keys[:-1]:
        child = node.get(key)
        if not isinstance(child, dict):
            child = {}
            node[key] = child
        node = child

    leaf = keys[-1]
    if event_type == "patch" and isinstance(node.get(leaf), dict) and isinstance(data, dict):
        node[leaf] = apply_event(node[leaf], "patch", "/", data)
    elif data is None:
        node.pop(leaf, None)
    else:
        node[leaf] = copy.deepcopy(data)
    return root or None


class RealtimePresenceStore(BasePresenceStore):
    """Presence store backed by firebase_admin.db listeners."""

    def __init__(self) -> None:
        initialize_firebase_app()

    def subscribe(self, path: str, on_value: ValueCallback) -> CancelHandle:
        """Start a listener on ``path`` without blocking the event loop.

        ``listen`` connects its HTTP stream before returning, so it runs on a
        worker thread. A cancel that lands before the connect finishes closes
        the listener as soon as it exists.
        """
        loop = asyncio.get_running_loop()
        state: dict[str, Any] = {"value": None, "registration": None, "cancelled": False}
        lock = threading.Lock()

        def handle_event(event) -> None:
            state["value"] = apply_event(
                state["value"], event.event_type, event.path, event.data
            )
            loop.call_soon_threadsafe(on_value, copy.deepcopy(state["value"]))

        def open_listener() -> None:
            registration = rtdb.reference(path).listen(handle_event)
            with lock:
                if not state["cancelled"]:
                    state["registration"] = registration
                    logger.debug("Listening on %s", path)
                    return
            registration.close()

        def on_opened(future: asyncio.Future) -> None:
            if not future.cancelled() and future.exception() is not None:
                logger.error("Could not listen on %s: %s", path, future.exception())

        loop.run_in_executor(None, open_listener).add_done_callback(on_opened)

        def cancel() -> None:
            with lock:
                state["cancelled"] = True
                registration, state["registration"] = state["registration"], None
            if registration is not None:
                registration.close()
                logger.debug("Stopped listening on %s", path)

        return cancel
