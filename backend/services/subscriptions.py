"""Live subscriptions over the document and presence stores.

A Subscription wraps one driver-level stream and guarantees that nothing is
delivered after cancel(), even when the driver already queued a callback on
the event loop. A SubscriptionSlot holds the one live stream for a slice of
state and swaps it cancel-first, so two streams for the same slice never
overlap.
"""

import logging
from collections.abc import Callable
from typing import Any

from db.base import (
    BaseDocumentStore,
    BasePresenceStore,
    CancelHandle,
    QuerySpec,
)

logger = logging.getLogger(__name__)


class Subscription:
    """One cancelable stream of ordered snapshots."""

    def __init__(self, name: str, on_delivery: Callable[[Any], None]) -> None:
        self.name = name
        self._on_delivery = on_delivery
        self._cancel_handle: CancelHandle | None = None
        self._active = False
        self.stalled = False
        self.deliveries = 0

    @property
    def active(self) -> bool:
        return self._active

    def start(self, open_stream: Callable[["Subscription"], CancelHandle]) -> None:
        """Open the driver stream.

        Failures leave the subscription stalled instead of raising.
        """
        self._active = True
        try:
            handle = open_stream(self)
        except Exception as e:
            logger.error("Subscription %s failed to start: %s", self.name, e)
            self.stalled = True
            return

        if self._active:
            self._cancel_handle = handle
        else:
            # Cancelled from inside an inline first delivery
            self._close_handle(handle)

    def deliver(self, payload: Any) -> None:
        if not self._active:
            logger.debug("Dropped late delivery on cancelled %s", self.name)
            return
        self.deliveries += 1
        try:
            self._on_delivery(payload)
        except Exception:
            logger.exception("Snapshot handler failed on %s", self.name)

    def fail(self, error: Exception) -> None:
        if not self._active:
            return
        logger.warning("Subscription %s stalled: %s", self.name, error)
        self.stalled = True

    def cancel(self) -> None:
        if not self._active:
            return
        self._active = False
        handle, self._cancel_handle = self._cancel_handle, None
        if handle is not None:
            self._close_handle(handle)
        logger.debug("Cancelled %s after %d deliveries", self.name, self.deliveries)

    def _close_handle(self, handle: CancelHandle) -> None:
        try:
            handle()
        except Exception as e:
            logger.warning("Error while cancelling %s: %s", self.name, e)


def subscribe_query(
    store: BaseDocumentStore,
    name: str,
    spec: QuerySpec,
    on_snapshot: Callable[[list[dict[str, Any]]], None],
) -> Subscription:
    """Open a live query and return its Subscription."""
    subscription = Subscription(name, on_snapshot)
    subscription.start(
        lambda sub: store.subscribe(spec, sub.deliver, on_error=sub.fail)
    )
    return subscription


def subscribe_value(
    store: BasePresenceStore,
    name: str,
    path: str,
    on_value: Callable[[Any], None],
) -> Subscription:
    """Listen on a presence-store key and return its Subscription."""
    subscription = Subscription(name, on_value)
    subscription.start(lambda sub: store.subscribe(path, sub.deliver))
    return subscription


class SubscriptionSlot:
    """Holds at most one live Subscription for a slice of state."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.current: Subscription | None = None

    def replace(self, factory: Callable[[], Subscription] | None) -> None:
        """Cancel the current stream, then start the one ``factory`` opens."""
        self.cancel()
        if factory is not None:
            self.current = factory()

    def cancel(self) -> None:
        if self.current is not None:
            self.current.cancel()
            self.current = None
