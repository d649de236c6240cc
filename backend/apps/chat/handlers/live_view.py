"""WS /chat/ws - Push the chat view on every state change."""

import asyncio
import logging

from fastapi import Depends, WebSocket, WebSocketDisconnect, status
from starlette.websockets import WebSocketState

from dependencies import get_session_registry, get_ws_identity
from services import ChatSession, Identity, SessionRegistry

logger = logging.getLogger(__name__)


async def _push_views(websocket: WebSocket, session: ChatSession) -> None:
    reconciler = session.reconciler
    while not reconciler.closed:
        view = session.view()
        await websocket.send_json(view.model_dump(mode="json"))
        await reconciler.wait_for_change(view.version)


async def _drain(websocket: WebSocket) -> None:
    # Client frames carry nothing; reading them surfaces the disconnect
    while True:
        await websocket.receive_text()


async def live_view(
    websocket: WebSocket,
    identity: Identity | None = Depends(get_ws_identity),
    registry: SessionRegistry = Depends(get_session_registry),
) -> None:
    """Stream ChatView JSON frames until the client or the session goes away.

    The first frame is the current state; each later frame follows a change.
    """
    if identity is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    session = registry.open(identity)
    await websocket.accept()
    logger.info("Live view connected for %s", identity.uid)

    tasks = [
        asyncio.create_task(_push_views(websocket, session)),
        asyncio.create_task(_drain(websocket)),
    ]
    try:
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    for task in done:
        error = task.exception()
        if error is not None and not isinstance(error, WebSocketDisconnect):
            logger.error("Live view failed for %s: %s", identity.uid, error)
            if websocket.client_state == WebSocketState.CONNECTED:
                await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
            return

    if session.reconciler.closed:
        # Session closed over REST while the socket was open
        await websocket.close()
    logger.info("Live view disconnected for %s", identity.uid)
