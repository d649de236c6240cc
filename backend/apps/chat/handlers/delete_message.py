"""DELETE /chat/messages/{message_id} - Delete a message."""

import logging
import uuid

from fastapi import Depends, Query
from fastapi.responses import JSONResponse

from apps.chat.errors import CHAT_ERRORS, chat_error_response
from dependencies import get_session
from responses import ResponseCode, success_response
from services import ChatSession

logger = logging.getLogger(__name__)


async def delete_message(
    message_id: str,
    is_ai: bool = Query(default=False, description="Delete from the assistant stream"),
    session: ChatSession = Depends(get_session),
) -> JSONResponse:
    """Delete one message; the live view drops it on the next snapshot."""
    request_id = str(uuid.uuid4())[:8]
    logger.info("[%s] Delete message %s (ai=%s)", request_id, message_id, is_ai)

    try:
        await session.delete(message_id, is_ai)
    except CHAT_ERRORS as e:
        return chat_error_response(e, request_id)

    return success_response(
        ResponseCode.MESSAGE_DELETED, {"deleted_message_id": message_id}, request_id
    )
