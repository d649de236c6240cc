"""Session routes - open and close per-user chat sessions."""

from fastapi import APIRouter

from apps.sessions.handlers import close_session, open_session

router = APIRouter(prefix="/sessions", tags=["Sessions"])

# POST /sessions - Open session
router.post("")(open_session)

# DELETE /sessions - Close session
router.delete("")(close_session)
