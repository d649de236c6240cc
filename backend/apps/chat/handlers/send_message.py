"""POST /chat/messages - Send a message to the selected conversation."""

import logging
import uuid
from typing import Any

from fastapi import Depends, File, Form, UploadFile
from fastapi.responses import JSONResponse

from apps.chat.errors import CHAT_ERRORS, chat_error_response
from dependencies import get_session
from responses import ResponseCode, success_response
from services import Attachment, ChatSession, SubmitResult

logger = logging.getLogger(__name__)


def _result_data(result: SubmitResult) -> dict[str, Any]:
    data: dict[str, Any] = {
        "target": result.target.kind,
        "message_id": result.message_id,
        "file": result.file_data.to_document() if result.file_data else None,
        "assistant": None,
    }
    if result.ai_turn is not None:
        turn = result.ai_turn
        data["assistant"] = {
            "state": turn.state.value,
            "reply_message_id": turn.reply_message_id,
            "is_error": turn.is_error,
        }
    return data


# --- Handlers ---


async def send_message(
    text: str = Form(default="", max_length=4000),
    file: UploadFile | None = File(default=None),
    session: ChatSession = Depends(get_session),
) -> JSONResponse:
    """Send text and/or one file to the selected conversation.

    For the assistant the call returns once the reply (or error turn) has
    been written. A failed send keeps the draft for POST /chat/messages/retry.
    """
    request_id = str(uuid.uuid4())[:8]

    attachment = None
    if file is not None and file.filename:
        attachment = Attachment(
            filename=file.filename,
            content_type=file.content_type or "application/octet-stream",
            data=await file.read(),
        )

    logger.info(
        "[%s] Send from %s (%d chars, file=%s)",
        request_id,
        session.identity.uid,
        len(text),
        attachment.filename if attachment else None,
    )

    try:
        result = await session.submit(text, attachment)
    except CHAT_ERRORS as e:
        return chat_error_response(e, request_id)

    return success_response(ResponseCode.MESSAGE_SENT, _result_data(result), request_id)


async def retry_message(session: ChatSession = Depends(get_session)) -> JSONResponse:
    """Resend the draft kept from the last failed send."""
    request_id = str(uuid.uuid4())[:8]
    logger.info("[%s] Retry draft for %s", request_id, session.identity.uid)

    try:
        result = await session.retry()
    except CHAT_ERRORS as e:
        return chat_error_response(e, request_id)

    return success_response(ResponseCode.MESSAGE_SENT, _result_data(result), request_id)
