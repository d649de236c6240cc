"""Chat handlers."""

from apps.chat.handlers.delete_message import delete_message
from apps.chat.handlers.forward_message import forward_message
from apps.chat.handlers.get_view import get_view
from apps.chat.handlers.live_view import live_view
from apps.chat.handlers.select_target import select_target
from apps.chat.handlers.send_message import retry_message, send_message

__all__ = [
    "get_view",
    "select_target",
    "send_message",
    "retry_message",
    "forward_message",
    "delete_message",
    "live_view",
]
