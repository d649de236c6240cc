"""POST /sessions - Open (or resume) the caller's chat session."""

import logging
import uuid

from fastapi import Depends
from fastapi.responses import JSONResponse

from dependencies import get_identity, get_session_registry
from responses import ResponseCode, success_response
from services import Identity, SessionRegistry

logger = logging.getLogger(__name__)


async def open_session(
    identity: Identity = Depends(get_identity),
    registry: SessionRegistry = Depends(get_session_registry),
) -> JSONResponse:
    """Start the users and groups streams for the caller.

    Opening twice returns the existing session unchanged.
    """
    request_id = str(uuid.uuid4())[:8]
    resumed = registry.get(identity.uid) is not None
    session = registry.open(identity)
    logger.info(
        "[%s] Session %s for %s",
        request_id,
        "resumed" if resumed else "opened",
        identity.uid,
    )

    return success_response(
        ResponseCode.SUCCESS if resumed else ResponseCode.SESSION_OPENED,
        session.view().model_dump(mode="json"),
        request_id,
    )
