"""Chat state reconciliation.

Turns the independent live streams of one session (users, groups, messages
for the selected target, presence and typing of a direct peer) into a single
state. Every stream owns exactly one slice and replaces it wholesale on each
snapshot, so slices never depend on the arrival order of other streams.
"""

import asyncio
import logging
from typing import Any

from db.base import BaseDocumentStore, BasePresenceStore
from services.identity import (
    ASSISTANT,
    DEFAULT_MESSAGE_WINDOW,
    NO_TARGET,
    DirectUser,
    GroupTarget,
    InvalidSelectionError,
    NoTarget,
    Target,
    active_target_filter,
    groups_query,
    presence_path,
    typing_path,
    users_query,
)
from services.subscriptions import SubscriptionSlot, subscribe_query, subscribe_value
from services.types import Group, Identity, Message, PresenceRecord, User

logger = logging.getLogger(__name__)


class ChatStateReconciler:
    """Owns the in-memory chat state of one session.

    Args:
        identity: The authenticated user the session belongs to.
        store: Document store driver.
        presence_store: Presence/typing store driver.
        message_window: Number of most recent messages kept live.
    """

    def __init__(
        self,
        identity: Identity,
        store: BaseDocumentStore,
        presence_store: BasePresenceStore,
        message_window: int = DEFAULT_MESSAGE_WINDOW,
    ) -> None:
        self.identity = identity
        self.store = store
        self.presence_store = presence_store
        self.message_window = message_window

        self.users: list[User] = []
        self.groups: list[Group] = []
        self.messages: list[Message] = []
        self.presence: dict[str, PresenceRecord] = {}
        self.typing: dict[str, Any] = {}
        self.target: Target = NO_TARGET

        self.version = 0
        self._changed = asyncio.Event()
        self._closed = False

        self._users_slot = SubscriptionSlot("users")
        self._groups_slot = SubscriptionSlot("groups")
        self._messages_slot = SubscriptionSlot("messages")
        self._presence_slot = SubscriptionSlot("presence")
        self._typing_slot = SubscriptionSlot("typing")

    # --- Derived state ---

    @property
    def current_user(self) -> User | None:
        """The users[] record of the authenticated identity."""
        for user in self.users:
            if user.uid == self.identity.uid:
                return user
        return None

    @property
    def closed(self) -> bool:
        return self._closed

    def find_user(self, uid: str) -> User | None:
        return next((u for u in self.users if u.uid == uid), None)

    def find_group(self, group_id: str) -> Group | None:
        return next((g for g in self.groups if g.id == group_id), None)

    def find_message(self, message_id: str) -> Message | None:
        return next((m for m in self.messages if m.id == message_id), None)

    # --- Lifecycle ---

    def start(self) -> None:
        """Subscribe to the users and groups streams."""
        uid = self.identity.uid
        self._users_slot.replace(
            lambda: subscribe_query(
                self.store, "users", users_query(), self.apply_users
            )
        )
        self._groups_slot.replace(
            lambda: subscribe_query(
                self.store, f"groups:{uid}", groups_query(uid), self.apply_groups
            )
        )
        logger.info("Reconciler started for %s", uid)

    def close(self) -> None:
        """Tear down every live subscription."""
        if self._closed:
            return
        for slot in self._slots():
            slot.cancel()
        self._closed = True
        self._bump()
        logger.info("Reconciler closed for %s", self.identity.uid)

    def _slots(self) -> list[SubscriptionSlot]:
        return [
            self._users_slot,
            self._groups_slot,
            self._messages_slot,
            self._presence_slot,
            self._typing_slot,
        ]

    # --- Selection ---

    def select_user(self, uid: str) -> None:
        if not uid:
            raise InvalidSelectionError("User uid is required")
        self._switch(DirectUser(uid))

    def select_group(self, group_id: str) -> None:
        if not group_id:
            raise InvalidSelectionError("Group id is required")
        self._switch(GroupTarget(group_id))

    def select_assistant(self) -> None:
        self._switch(ASSISTANT)

    def clear_selection(self) -> None:
        self._switch(NO_TARGET)

    def _switch(self, target: Target) -> None:
        """Point the per-target streams at ``target``.

        Old streams are cancelled and messages cleared before any new stream
        opens, so a late snapshot of the previous target cannot land.
        """
        if self._closed:
            raise RuntimeError("Reconciler is closed")

        self.target = target
        self._messages_slot.cancel()
        self._presence_slot.cancel()
        self._typing_slot.cancel()
        self.messages = []
        self._bump()
        logger.debug("Selected %s for %s", target, self.identity.uid)

        if isinstance(target, NoTarget):
            return

        spec = active_target_filter(target, self.identity.uid, self.message_window)
        self._messages_slot.replace(
            lambda: subscribe_query(
                self.store, f"messages:{target.kind}", spec, self.apply_messages
            )
        )

        if isinstance(target, DirectUser):
            peer = target.uid
            self._presence_slot.replace(
                lambda: subscribe_value(
                    self.presence_store,
                    f"presence:{peer}",
                    presence_path(peer),
                    lambda value: self.apply_presence(peer, value),
                )
            )
            self._typing_slot.replace(
                lambda: subscribe_value(
                    self.presence_store,
                    f"typing:{peer}",
                    typing_path(peer),
                    lambda value: self.apply_typing(peer, value),
                )
            )

    # --- Snapshot application ---

    def apply_users(self, docs: list[dict[str, Any]]) -> None:
        self.users = [User.from_document(doc) for doc in docs]
        self._bump()

    def apply_groups(self, docs: list[dict[str, Any]]) -> None:
        self.groups = [Group.from_document(doc) for doc in docs]
        self._bump()

    def apply_messages(self, docs: list[dict[str, Any]]) -> None:
        self.messages = [Message.from_document(doc) for doc in docs]
        self._bump()

    def apply_presence(self, uid: str, value: Any) -> None:
        self.presence[uid] = PresenceRecord.from_value(value)
        self._bump()

    def apply_typing(self, uid: str, value: Any) -> None:
        self.typing[uid] = value
        self._bump()

    # --- Change notification ---

    def mark_changed(self) -> None:
        """Signal a change made outside the snapshot slices."""
        self._bump()

    def _bump(self) -> None:
        self.version += 1
        changed, self._changed = self._changed, asyncio.Event()
        changed.set()

    async def wait_for_change(self, since: int) -> int:
        """Wait until the state moves past version ``since``."""
        while self.version <= since and not self._closed:
            await self._changed.wait()
        return self.version
