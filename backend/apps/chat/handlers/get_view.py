"""GET /chat/view - Current render-ready chat state."""

from fastapi import Depends

from dependencies import get_session
from services import ChatSession, ChatView

# --- Handler ---


async def get_view(session: ChatSession = Depends(get_session)) -> ChatView:
    """Return the projection of the caller's live chat state."""
    return session.view()
