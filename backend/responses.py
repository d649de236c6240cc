"""Standardized response infrastructure for API endpoints.

Provides consistent response format with structured codes and messages.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from fastapi.responses import JSONResponse


class ResponseCode(str, Enum):
    """Response codes for API responses.

    Ranges: 0xxx=Success, 1xxx=Client Error, 2xxx=Server Error, 3xxx=External Service
    """

    # Success codes
    SUCCESS = "0000"
    SESSION_OPENED = "0001"
    SESSION_CLOSED = "0002"
    MESSAGE_SENT = "0003"
    MESSAGE_FORWARDED = "0004"
    MESSAGE_DELETED = "0005"
    SELECTION_UPDATED = "0006"

    # Client errors
    VALIDATION_ERROR = "1000"
    INVALID_SELECTION = "1001"
    EMPTY_MESSAGE = "1002"
    FILE_TOO_LARGE = "1003"
    MESSAGE_NOT_FOUND = "1004"
    SESSION_NOT_FOUND = "1005"
    UNAUTHORIZED = "1006"
    AI_TURN_IN_PROGRESS = "1007"

    # Server errors
    INTERNAL_ERROR = "2000"
    WRITE_FAILED = "2001"

    # External service errors
    UPLOAD_FAILED = "3000"
    RATE_LIMIT = "3001"


# Response messages mapped to codes
RESPONSE_MESSAGES: dict[ResponseCode, str] = {
    ResponseCode.SUCCESS: "Operation completed successfully",
    ResponseCode.SESSION_OPENED: "Chat session opened",
    ResponseCode.SESSION_CLOSED: "Chat session closed",
    ResponseCode.MESSAGE_SENT: "Message sent",
    ResponseCode.MESSAGE_FORWARDED: "Message forwarded",
    ResponseCode.MESSAGE_DELETED: "Message deleted",
    ResponseCode.SELECTION_UPDATED: "Conversation selected",
    ResponseCode.VALIDATION_ERROR: "Request validation failed",
    ResponseCode.INVALID_SELECTION: "Select exactly one conversation first",
    ResponseCode.EMPTY_MESSAGE: "Message needs text or a file",
    ResponseCode.FILE_TOO_LARGE: "File exceeds maximum allowed size",
    ResponseCode.MESSAGE_NOT_FOUND: "Message not found",
    ResponseCode.SESSION_NOT_FOUND: "No open chat session",
    ResponseCode.UNAUTHORIZED: "Missing or invalid credentials",
    ResponseCode.AI_TURN_IN_PROGRESS: "The assistant is still answering",
    ResponseCode.INTERNAL_ERROR: "An internal error occurred",
    ResponseCode.WRITE_FAILED: "Failed to send message",
    ResponseCode.UPLOAD_FAILED: "Failed to upload file",
    ResponseCode.RATE_LIMIT: "Rate limit exceeded. Please wait and retry",
}

# HTTP status codes for each response code
HTTP_STATUS_MAP: dict[ResponseCode, int] = {
    ResponseCode.SUCCESS: 200,
    ResponseCode.SESSION_OPENED: 201,
    ResponseCode.SESSION_CLOSED: 200,
    ResponseCode.MESSAGE_SENT: 201,
    ResponseCode.MESSAGE_FORWARDED: 201,
    ResponseCode.MESSAGE_DELETED: 200,
    ResponseCode.SELECTION_UPDATED: 200,
    ResponseCode.VALIDATION_ERROR: 422,
    ResponseCode.INVALID_SELECTION: 400,
    ResponseCode.EMPTY_MESSAGE: 400,
    ResponseCode.FILE_TOO_LARGE: 413,
    ResponseCode.MESSAGE_NOT_FOUND: 404,
    ResponseCode.SESSION_NOT_FOUND: 404,
    ResponseCode.UNAUTHORIZED: 401,
    ResponseCode.AI_TURN_IN_PROGRESS: 409,
    ResponseCode.INTERNAL_ERROR: 500,
    ResponseCode.WRITE_FAILED: 502,
    ResponseCode.UPLOAD_FAILED: 502,
    ResponseCode.RATE_LIMIT: 429,
}


def get_message(code: ResponseCode) -> str:
    """Get the message for a response code."""
    return RESPONSE_MESSAGES.get(code, "Unknown error")


def get_http_status(code: ResponseCode) -> int:
    """Get HTTP status code for a response code."""
    return HTTP_STATUS_MAP.get(code, 500)


def success_dict(
    code: ResponseCode,
    data: Any = None,
    custom_message: str | None = None,
    request_id: str | None = None,
) -> dict[str, Any]:
    """Build a standardized success response dictionary."""
    return {
        "code": code.value,
        "success": True,
        "message": custom_message or get_message(code),
        "timestamp": datetime.now(UTC).isoformat(),
        "request_id": request_id,
        "data": data,
    }


def error_dict(
    code: ResponseCode,
    custom_message: str | None = None,
    error_details: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> dict[str, Any]:
    """Build a standardized error response dictionary."""
    return {
        "code": code.value,
        "success": False,
        "message": custom_message or get_message(code),
        "timestamp": datetime.now(UTC).isoformat(),
        "request_id": request_id,
        "error_details": error_details,
    }


# --- JSONResponse helpers ---


def success_response(
    code: ResponseCode,
    data: Any = None,
    request_id: str | None = None,
) -> JSONResponse:
    """Create a JSONResponse with success format."""
    return JSONResponse(
        content=success_dict(code, data, request_id=request_id),
        status_code=get_http_status(code),
    )


def error_response(
    code: ResponseCode,
    custom_message: str | None = None,
    request_id: str | None = None,
) -> JSONResponse:
    """Create a JSONResponse with error format."""
    return JSONResponse(
        content=error_dict(code, custom_message, request_id=request_id),
        status_code=get_http_status(code),
    )
