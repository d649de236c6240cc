"""DELETE /sessions - Close the caller's chat session."""

import logging
import uuid

from fastapi import Depends
from fastapi.responses import JSONResponse

from dependencies import get_identity, get_session_registry
from responses import ResponseCode, error_response, success_response
from services import Identity, SessionRegistry

logger = logging.getLogger(__name__)


async def close_session(
    identity: Identity = Depends(get_identity),
    registry: SessionRegistry = Depends(get_session_registry),
) -> JSONResponse:
    """Cancel every live subscription of the caller's session."""
    request_id = str(uuid.uuid4())[:8]

    if not registry.close(identity.uid):
        return error_response(ResponseCode.SESSION_NOT_FOUND, request_id=request_id)

    logger.info("[%s] Session closed for %s", request_id, identity.uid)
    return success_response(
        ResponseCode.SESSION_CLOSED, {"uid": identity.uid}, request_id
    )
