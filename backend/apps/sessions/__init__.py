"""Sessions module - per-user chat session lifecycle."""

from apps.sessions.routes import router

__all__ = ["router"]
