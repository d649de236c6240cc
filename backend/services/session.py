"""Per-user chat sessions.

A session binds one authenticated identity to its reconciler and to the
shared coordinators, and keeps the unsent draft so a failed send can be
retried without retyping.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass

from services.identity import AssistantTarget, InvalidSelectionError
from services.messaging import MessageCoordinator, SubmitResult
from services.projection import ChatView, project
from services.reconciler import ChatStateReconciler
from services.types import Attachment, Identity

logger = logging.getLogger(__name__)


class MessageNotFoundError(Exception):
    """Raised when a message id is not in the current message list."""


@dataclass
class Draft:
    """Text and attachment waiting to be sent."""

    text: str = ""
    attachment: Attachment | None = None

    @property
    def empty(self) -> bool:
        return not self.text.strip() and self.attachment is None

    def clear(self) -> None:
        self.text = ""
        self.attachment = None


class ChatSession:
    """Live chat state and actions for one user."""

    def __init__(
        self,
        identity: Identity,
        reconciler: ChatStateReconciler,
        coordinator: MessageCoordinator,
    ) -> None:
        self.identity = identity
        self.reconciler = reconciler
        self.coordinator = coordinator
        self.draft = Draft()
        self.loading = False
        self.ai_loading = False

    def start(self) -> None:
        self.reconciler.start()

    def close(self) -> None:
        self.reconciler.close()

    # --- Selection ---

    def select(self, kind: str, target_id: str | None = None) -> None:
        """Select a conversation by kind: user, group, assistant or none."""
        if kind == "user":
            self.reconciler.select_user(target_id or "")
        elif kind == "group":
            self.reconciler.select_group(target_id or "")
        elif kind == "assistant":
            self.reconciler.select_assistant()
        elif kind == "none":
            self.reconciler.clear_selection()
        else:
            raise InvalidSelectionError(f"Unknown target kind: {kind}")

    # --- Actions ---

    async def submit(
        self, text: str, attachment: Attachment | None = None
    ) -> SubmitResult:
        """Send a message to the selected target.

        The draft is cleared only when the send succeeds; on failure it stays
        in place for ``retry()`` and the error propagates.
        """
        self.draft = Draft(text=text, attachment=attachment)
        return await self._send_draft()

    async def retry(self) -> SubmitResult:
        """Send the draft preserved by a failed submit."""
        return await self._send_draft()

    async def _send_draft(self) -> SubmitResult:
        target = self.reconciler.target
        self.loading = True
        self.ai_loading = isinstance(target, AssistantTarget)
        self.reconciler.mark_changed()
        try:
            result = await self.coordinator.submit(
                self.identity,
                target,
                self.draft.text,
                self.draft.attachment,
                current_user=self.reconciler.current_user,
            )
        except Exception as e:
            logger.warning("Send failed for %s, draft kept: %s", self.identity.uid, e)
            raise
        finally:
            self.loading = False
            self.ai_loading = False
            self.reconciler.mark_changed()

        self.draft.clear()
        return result

    async def forward(self, message_id: str, recipient_uids: list[str]) -> list[str]:
        message = self.reconciler.find_message(message_id)
        if message is None:
            raise MessageNotFoundError(f"Message {message_id} is not in view")
        return await self.coordinator.forward(
            self.identity,
            message,
            recipient_uids,
            current_user=self.reconciler.current_user,
        )

    async def delete(self, message_id: str, is_ai: bool) -> None:
        await self.coordinator.delete(message_id, is_ai)

    # --- View ---

    def view(self) -> ChatView:
        return project(
            self.reconciler,
            draft_text=self.draft.text,
            loading=self.loading,
            ai_loading=self.ai_loading,
        )


class SessionRegistry:
    """One ChatSession per uid for the lifetime of the process."""

    def __init__(self, factory: Callable[[Identity], ChatSession]) -> None:
        self._factory = factory
        self._sessions: dict[str, ChatSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, uid: str) -> ChatSession | None:
        return self._sessions.get(uid)

    def open(self, identity: Identity) -> ChatSession:
        """Return the caller's session, starting it on first use."""
        session = self._sessions.get(identity.uid)
        if session is not None:
            return session

        session = self._factory(identity)
        session.start()
        self._sessions[identity.uid] = session
        logger.info("Opened session for %s (%d active)", identity.uid, len(self))
        return session

    def close(self, uid: str) -> bool:
        session = self._sessions.pop(uid, None)
        if session is None:
            return False
        session.close()
        logger.info("Closed session for %s (%d active)", uid, len(self))
        return True

    def close_all(self) -> None:
        for uid in list(self._sessions):
            self.close(uid)
