"""Assistant turn state machine.

One turn: persist the user message, generate a reply, persist exactly one
assistant message. Generation failures never escape: they become an
error-flavored assistant message, so every user turn gets a response.

    USER_TURN_PENDING -> GENERATING -> ASSISTANT_TURN_SAVED
                                    -> ERROR_TURN_SAVED

Turns against the same assistant stream are single-flight: a second turn
submitted while one is generating is rejected before anything is written.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum

from db.base import SERVER_TIMESTAMP, BaseDocumentStore
from llm.base import BaseLLMService
from llm.prompts import ASSISTANT_SYSTEM_PROMPT, DEFAULT_IMAGE_PROMPT
from services.identity import AI_MESSAGES_COLLECTION
from services.types import FileData, Identity
from services.uploads import UploadService

logger = logging.getLogger(__name__)

AI_ERROR_REPLY = (
    "Sorry, I encountered an error while processing your request. Please try again."
)


class AITurnInProgressError(Exception):
    """Raised when a turn is submitted while the previous one is generating."""


class TurnState(str, Enum):
    USER_TURN_PENDING = "user_turn_pending"
    GENERATING = "generating"
    ASSISTANT_TURN_SAVED = "assistant_turn_saved"
    ERROR_TURN_SAVED = "error_turn_saved"


@dataclass
class AITurn:
    """Outcome of one assistant exchange."""

    owner_uid: str
    state: TurnState = TurnState.USER_TURN_PENDING
    user_message_id: str | None = None
    reply_message_id: str | None = None
    reply_text: str | None = None
    called_backend: bool = False

    @property
    def is_error(self) -> bool:
        return self.state is TurnState.ERROR_TURN_SAVED


def file_acknowledgement(file_data: FileData, text: str) -> str:
    """Canned reply for attachments the assistant does not read."""
    reply = f'I received your {file_data.category} file "{file_data.name}". '
    if text.strip():
        return reply + f"Regarding your message: {text}"
    return reply + "How can I help you with this file?"


class AITurnController:
    """Drives assistant turns for every user of the process."""

    def __init__(
        self,
        store: BaseDocumentStore,
        llm: BaseLLMService,
        uploads: UploadService,
    ) -> None:
        self.store = store
        self.llm = llm
        self.uploads = uploads
        self._locks: dict[str, asyncio.Lock] = {}

    def in_flight(self, owner_uid: str) -> bool:
        lock = self._locks.get(owner_uid)
        return lock is not None and lock.locked()

    async def run_turn(
        self,
        identity: Identity,
        text: str,
        file_data: FileData | None = None,
    ) -> AITurn:
        """Run one full turn for ``identity``'s assistant stream.

        Raises:
            AITurnInProgressError: If a turn for this stream is still running.
            StoreWriteError: If the store rejects the user or reply message.
        """
        lock = self._locks.setdefault(identity.uid, asyncio.Lock())
        if lock.locked():
            logger.warning("Rejected concurrent assistant turn for %s", identity.uid)
            raise AITurnInProgressError("The assistant is still answering")

        try:
            async with lock:
                return await self._run_locked(identity, text, file_data)
        finally:
            # Nobody waits on these locks, so a released one can go
            if not lock.locked() and self._locks.get(identity.uid) is lock:
                del self._locks[identity.uid]

    async def _run_locked(
        self, identity: Identity, text: str, file_data: FileData | None
    ) -> AITurn:
        turn = AITurn(owner_uid=identity.uid)
        turn.user_message_id = await self.store.add(
            AI_MESSAGES_COLLECTION,
            {
                "text": text,
                "timestamp": SERVER_TIMESTAMP,
                "userId": identity.uid,
                "isAI": False,
                "fileData": file_data.to_document() if file_data else None,
            },
        )
        self._advance(turn, TurnState.GENERATING)

        try:
            reply = await self._generate(turn, text, file_data)
            is_error = False
        except Exception:
            logger.exception("Assistant generation failed for %s", identity.uid)
            reply, is_error = AI_ERROR_REPLY, True

        reply_doc = {
            "text": reply,
            "timestamp": SERVER_TIMESTAMP,
            "userId": identity.uid,
            "isAI": True,
        }
        if is_error:
            reply_doc["isError"] = True

        turn.reply_message_id = await self.store.add(
            AI_MESSAGES_COLLECTION, reply_doc
        )
        turn.reply_text = reply
        self._advance(
            turn,
            TurnState.ERROR_TURN_SAVED if is_error else TurnState.ASSISTANT_TURN_SAVED,
        )
        return turn

    async def _generate(
        self, turn: AITurn, text: str, file_data: FileData | None
    ) -> str:
        if file_data is None:
            turn.called_backend = True
            return await self.llm.generate(text, ASSISTANT_SYSTEM_PROMPT)

        if not file_data.is_image:
            return file_acknowledgement(file_data, text)

        image, media_type = await self.uploads.fetch(file_data.url)
        if not media_type.startswith("image/"):
            media_type = file_data.type
        turn.called_backend = True
        return await self.llm.generate_with_image(
            text.strip() or DEFAULT_IMAGE_PROMPT,
            ASSISTANT_SYSTEM_PROMPT,
            image,
            media_type,
        )

    def _advance(self, turn: AITurn, state: TurnState) -> None:
        logger.debug(
            "Assistant turn for %s: %s -> %s",
            turn.owner_uid,
            turn.state.value,
            state.value,
        )
        turn.state = state
