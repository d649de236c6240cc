"""Session handlers."""

from apps.sessions.handlers.close_session import close_session
from apps.sessions.handlers.open_session import open_session

__all__ = ["open_session", "close_session"]
