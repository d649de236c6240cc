"""Chat module - conversation selection, messaging and the live view."""

from apps.chat.routes import router

__all__ = ["router"]
