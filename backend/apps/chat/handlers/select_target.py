"""POST /chat/selection - Choose the active conversation."""

import logging
import uuid
from typing import Literal

from fastapi import Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from apps.chat.errors import CHAT_ERRORS, chat_error_response
from dependencies import get_session
from responses import ResponseCode, success_response
from services import ChatSession

logger = logging.getLogger(__name__)


# --- Request Schema ---


class SelectionRequest(BaseModel):
    """Request body for selecting a conversation."""

    kind: Literal["user", "group", "assistant", "none"] = Field(
        ..., description="Kind of conversation to open"
    )
    id: str | None = Field(
        None,
        max_length=128,
        description="Peer uid for 'user', group id for 'group'. Ignored otherwise.",
    )


# --- Handler ---


async def select_target(
    request: SelectionRequest,
    session: ChatSession = Depends(get_session),
) -> JSONResponse:
    """Switch the session to a user, group, the assistant, or nothing.

    Messages of the previous conversation are dropped immediately; the new
    conversation's messages arrive through the live view.
    """
    request_id = str(uuid.uuid4())[:8]
    logger.info(
        "[%s] Select %s:%s for %s",
        request_id,
        request.kind,
        request.id,
        session.identity.uid,
    )

    try:
        session.select(request.kind, request.id)
    except CHAT_ERRORS as e:
        return chat_error_response(e, request_id)

    return success_response(
        ResponseCode.SELECTION_UPDATED,
        session.view().model_dump(mode="json"),
        request_id,
    )
