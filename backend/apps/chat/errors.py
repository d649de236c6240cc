"""Mapping from chat-core exceptions to API response codes."""

import logging

from fastapi.responses import JSONResponse

from db import StoreWriteError
from responses import ResponseCode, error_response
from services import (
    AITurnInProgressError,
    EmptyMessageError,
    FileTooLargeError,
    InvalidSelectionError,
    MessageNotFoundError,
    UploadError,
)

logger = logging.getLogger(__name__)

# Subclasses must come before their bases
CHAT_ERROR_MAP: dict[type[Exception], ResponseCode] = {
    InvalidSelectionError: ResponseCode.INVALID_SELECTION,
    EmptyMessageError: ResponseCode.EMPTY_MESSAGE,
    MessageNotFoundError: ResponseCode.MESSAGE_NOT_FOUND,
    AITurnInProgressError: ResponseCode.AI_TURN_IN_PROGRESS,
    FileTooLargeError: ResponseCode.FILE_TOO_LARGE,
    UploadError: ResponseCode.UPLOAD_FAILED,
    StoreWriteError: ResponseCode.WRITE_FAILED,
}

CHAT_ERRORS = tuple(CHAT_ERROR_MAP)


def chat_error_response(error: Exception, request_id: str) -> JSONResponse:
    """Build the error response for a known chat-core exception."""
    code = next(
        code for exc_type, code in CHAT_ERROR_MAP.items() if isinstance(error, exc_type)
    )
    log_fn = logger.warning if code.value.startswith("1") else logger.error
    log_fn("[%s] %s: %s", request_id, type(error).__name__, error)
    return error_response(code, str(error) or None, request_id)
