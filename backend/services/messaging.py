"""Message send, forward and delete.

Writes are fire-and-forget: nothing here waits for the write to come back
through a live query. The session's subscriptions pick up the echo.
"""

import logging
from dataclasses import dataclass
from typing import Any

from db.base import SERVER_TIMESTAMP, BaseDocumentStore, WriteOp
from services.ai_turn import AITurn, AITurnController, AITurnInProgressError
from services.identity import (
    AI_MESSAGES_COLLECTION,
    CONVERSATIONS_COLLECTION,
    MESSAGES_COLLECTION,
    AssistantTarget,
    InvalidSelectionError,
    NoTarget,
    Target,
    conversation_key,
    routing_fields,
)
from services.types import Attachment, FileData, Identity, Message, User
from services.uploads import UploadService

logger = logging.getLogger(__name__)

UNKNOWN_SENDER = "Unknown"
AI_SENDER = "AI"


class EmptyMessageError(Exception):
    """Raised when a message has neither text nor an attachment."""


@dataclass
class SubmitResult:
    """What a successful submit wrote."""

    target: Target
    message_id: str | None = None
    file_data: FileData | None = None
    ai_turn: AITurn | None = None


def sender_fields(identity: Identity, current_user: User | None) -> dict[str, Any]:
    """Sender identity stamped on outgoing messages."""
    name = current_user.name if current_user else None
    photo = current_user.photo_url if current_user else None
    return {
        "uid": identity.uid,
        "photoURL": photo or None,
        "displayName": name or identity.display_name or UNKNOWN_SENDER,
    }


def original_sender(message: Message) -> str:
    if message.uid:
        return message.uid
    return AI_SENDER if message.is_ai else UNKNOWN_SENDER


def last_message_preview(text: str | None, file_data: FileData | None) -> str:
    if text:
        return text
    if file_data:
        return f"📎 {file_data.name}"
    return "File"


class MessageCoordinator:
    """Builds and writes outgoing messages for one process."""

    def __init__(
        self,
        store: BaseDocumentStore,
        uploads: UploadService,
        ai_turns: AITurnController,
    ) -> None:
        self.store = store
        self.uploads = uploads
        self.ai_turns = ai_turns

    async def submit(
        self,
        identity: Identity,
        target: Target,
        text: str,
        attachment: Attachment | None = None,
        current_user: User | None = None,
    ) -> SubmitResult:
        """Send ``text`` (and optional attachment) to ``target``.

        Raises:
            EmptyMessageError: Nothing to send.
            InvalidSelectionError: No target selected.
            AITurnInProgressError: An assistant turn is still running.
            UploadError: The attachment upload failed.
            StoreWriteError: The store rejected the message.
        """
        if not text.strip() and attachment is None:
            raise EmptyMessageError("Message is empty")
        if isinstance(target, NoTarget):
            raise InvalidSelectionError("No conversation selected")

        is_assistant = isinstance(target, AssistantTarget)
        if is_assistant and self.ai_turns.in_flight(identity.uid):
            raise AITurnInProgressError("The assistant is still answering")

        file_data = None
        if attachment is not None:
            result = await self.uploads.upload(attachment)
            file_data = FileData.from_upload(attachment, result)

        if is_assistant:
            turn = await self.ai_turns.run_turn(identity, text, file_data)
            return SubmitResult(
                target=target,
                message_id=turn.user_message_id,
                file_data=file_data,
                ai_turn=turn,
            )

        payload = {
            "text": text,
            "timestamp": SERVER_TIMESTAMP,
            **sender_fields(identity, current_user),
            "fileData": file_data.to_document() if file_data else None,
            **routing_fields(target, identity.uid),
        }
        message_id = await self.store.add(MESSAGES_COLLECTION, payload)
        logger.info("Sent message %s to %s", message_id, target)
        return SubmitResult(target=target, message_id=message_id, file_data=file_data)

    async def forward(
        self,
        identity: Identity,
        message: Message,
        recipient_uids: list[str],
        current_user: User | None = None,
    ) -> list[str]:
        """Forward ``message`` to every recipient in one atomic commit.

        Each recipient gets a new message plus a merge-upsert of the pair's
        conversation metadata. Duplicated recipients are sent twice.

        Returns:
            Ids of the new message documents, in recipient order.

        Raises:
            StoreWriteError: The commit was rejected; nothing was written.
        """
        sender = sender_fields(identity, current_user)
        file_doc = message.file_data.to_document() if message.file_data else None
        preview = last_message_preview(message.text, message.file_data)

        writes: list[WriteOp] = []
        for recipient in recipient_uids:
            key = conversation_key(identity.uid, recipient)
            writes.append(
                WriteOp(
                    collection=MESSAGES_COLLECTION,
                    data={
                        "text": message.text,
                        "timestamp": SERVER_TIMESTAMP,
                        **sender,
                        "forwarded": True,
                        "originalSender": original_sender(message),
                        "fileData": file_doc,
                        "conversationId": key,
                        "receiverId": recipient,
                    },
                )
            )
            writes.append(
                WriteOp(
                    collection=CONVERSATIONS_COLLECTION,
                    doc_id=key,
                    merge=True,
                    data={
                        "participants": sorted([identity.uid, recipient]),
                        "lastMessage": preview,
                        "lastMessageTimestamp": SERVER_TIMESTAMP,
                        "unreadCount": {recipient: 1},
                    },
                )
            )

        doc_ids = await self.store.commit(writes)
        logger.info(
            "Forwarded message %s to %d recipients", message.id, len(recipient_uids)
        )
        return doc_ids[::2]

    async def delete(self, message_id: str, is_ai: bool) -> None:
        """Hard-delete a message from the assistant or the regular stream."""
        collection = AI_MESSAGES_COLLECTION if is_ai else MESSAGES_COLLECTION
        await self.store.delete(collection, message_id)
        logger.info("Deleted message %s from %s", message_id, collection)
