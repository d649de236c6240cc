"""Services module for the chat synchronization core.

Contains:
- Conversation identity and routing (identity)
- Live subscriptions and state reconciliation
- Message send/forward/delete coordination
- Assistant turn state machine
- File uploads
- View projection and per-user sessions

Note: Service instances are managed via dependencies.py using FastAPI DI.
"""

from services.identity import (
    ASSISTANT,
    NO_TARGET,
    AssistantTarget,
    DirectUser,
    GroupTarget,
    InvalidSelectionError,
    NoTarget,
    Target,
    active_target_filter,
    conversation_key,
)
from services.types import (
    Attachment,
    FileData,
    Group,
    Identity,
    Message,
    PresenceRecord,
    UploadResult,
    User,
)
from services.subscriptions import Subscription, SubscriptionSlot
from services.reconciler import ChatStateReconciler
from services.uploads import FileTooLargeError, UploadError, UploadService
from services.ai_turn import (
    AI_ERROR_REPLY,
    AITurn,
    AITurnController,
    AITurnInProgressError,
    TurnState,
)
from services.messaging import EmptyMessageError, MessageCoordinator, SubmitResult
from services.projection import ChatView, project
from services.session import (
    ChatSession,
    Draft,
    MessageNotFoundError,
    SessionRegistry,
)

__all__ = [
    # Identity
    "ASSISTANT",
    "NO_TARGET",
    "AssistantTarget",
    "DirectUser",
    "GroupTarget",
    "InvalidSelectionError",
    "NoTarget",
    "Target",
    "active_target_filter",
    "conversation_key",
    # Types
    "Attachment",
    "FileData",
    "Group",
    "Identity",
    "Message",
    "PresenceRecord",
    "UploadResult",
    "User",
    # Sync core
    "Subscription",
    "SubscriptionSlot",
    "ChatStateReconciler",
    # Protocol
    "AI_ERROR_REPLY",
    "AITurn",
    "AITurnController",
    "AITurnInProgressError",
    "TurnState",
    "EmptyMessageError",
    "MessageCoordinator",
    "SubmitResult",
    "FileTooLargeError",
    "UploadError",
    "UploadService",
    # Sessions
    "ChatSession",
    "ChatView",
    "Draft",
    "MessageNotFoundError",
    "SessionRegistry",
    "project",
]
