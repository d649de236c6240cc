"""POST /chat/messages/{message_id}/forward - Forward a message to users."""

import logging
import uuid

from fastapi import Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from apps.chat.errors import CHAT_ERRORS, chat_error_response
from dependencies import get_session
from responses import ResponseCode, success_response
from services import ChatSession

logger = logging.getLogger(__name__)


# --- Request Schema ---


class ForwardRequest(BaseModel):
    """Request body for forwarding a message."""

    recipient_ids: list[str] = Field(
        ..., max_length=100, description="uids of the users to forward to"
    )


# --- Handler ---


async def forward_message(
    message_id: str,
    request: ForwardRequest,
    session: ChatSession = Depends(get_session),
) -> JSONResponse:
    """Forward a message of the open conversation to each recipient.

    All copies and conversation summaries are written in one atomic batch.
    """
    request_id = str(uuid.uuid4())[:8]
    logger.info(
        "[%s] Forward %s to %d recipients",
        request_id,
        message_id,
        len(request.recipient_ids),
    )

    try:
        message_ids = await session.forward(message_id, request.recipient_ids)
    except CHAT_ERRORS as e:
        return chat_error_response(e, request_id)

    return success_response(
        ResponseCode.MESSAGE_FORWARDED, {"message_ids": message_ids}, request_id
    )
