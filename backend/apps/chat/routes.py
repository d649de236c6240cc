"""Chat routes - registers all chat endpoints."""

from fastapi import APIRouter

from apps.chat.handlers import (
    delete_message,
    forward_message,
    get_view,
    live_view,
    retry_message,
    select_target,
    send_message,
)
from services import ChatView

router = APIRouter(prefix="/chat", tags=["Chat"])

# GET /chat/view - Current chat state
router.get("/view", response_model=ChatView)(get_view)

# POST /chat/selection - Select conversation
router.post("/selection")(select_target)

# POST /chat/messages - Send message
router.post("/messages")(send_message)

# POST /chat/messages/retry - Resend failed draft
router.post("/messages/retry")(retry_message)

# POST /chat/messages/{message_id}/forward - Forward message
router.post("/messages/{message_id}/forward")(forward_message)

# DELETE /chat/messages/{message_id} - Delete message
router.delete("/messages/{message_id}")(delete_message)

# WS /chat/ws - Live view
router.websocket("/ws")(live_view)
