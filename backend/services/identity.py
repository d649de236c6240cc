"""Conversation identity and message routing.

Pure functions only. A 1:1 conversation is named by its two participants,
sorted and joined, so both sides derive the same key without coordination.
"""

from dataclasses import dataclass
from typing import Any

from db.base import QuerySpec

USERS_COLLECTION = "users"
GROUPS_COLLECTION = "groups"
MESSAGES_COLLECTION = "messages"
AI_MESSAGES_COLLECTION = "aiMessages"
CONVERSATIONS_COLLECTION = "conversations"

PRESENCE_PATH = "status"
TYPING_PATH = "typing"

KEY_SEPARATOR = "_"
DEFAULT_MESSAGE_WINDOW = 50


class InvalidSelectionError(Exception):
    """Raised when an operation needs exactly one active target and has none."""


# --- Targets ---


@dataclass(frozen=True)
class NoTarget:
    """Nothing selected."""

    kind = "none"


@dataclass(frozen=True)
class DirectUser:
    """A 1:1 conversation with another user."""

    uid: str
    kind = "user"


@dataclass(frozen=True)
class GroupTarget:
    """A group conversation."""

    group_id: str
    kind = "group"


@dataclass(frozen=True)
class AssistantTarget:
    """The caller's own assistant conversation."""

    kind = "assistant"


Target = NoTarget | DirectUser | GroupTarget | AssistantTarget

NO_TARGET = NoTarget()
ASSISTANT = AssistantTarget()


def conversation_key(uid_a: str, uid_b: str) -> str:
    """Derive the order-independent key of a 1:1 conversation."""
    return KEY_SEPARATOR.join(sorted([uid_a, uid_b]))


def presence_path(uid: str) -> str:
    return f"{PRESENCE_PATH}/{uid}"


def typing_path(uid: str) -> str:
    return f"{TYPING_PATH}/{uid}"


def messages_collection(target: Target) -> str:
    """Collection holding the messages of ``target``."""
    if isinstance(target, AssistantTarget):
        return AI_MESSAGES_COLLECTION
    if isinstance(target, (DirectUser, GroupTarget)):
        return MESSAGES_COLLECTION
    raise InvalidSelectionError(f"No message stream for target {target!r}")


def active_target_filter(
    target: Target, owner_uid: str, window: int = DEFAULT_MESSAGE_WINDOW
) -> QuerySpec:
    """Build the live message query for the selected target.

    Args:
        target: Current selection.
        owner_uid: Authenticated user's uid.
        window: How many of the most recent messages to keep live.

    Returns:
        Query ordered by ``timestamp``.

    Raises:
        InvalidSelectionError: If nothing (or something unknown) is selected.
    """
    if isinstance(target, DirectUser):
        field_name, value = "conversationId", conversation_key(owner_uid, target.uid)
    elif isinstance(target, GroupTarget):
        field_name, value = "groupId", target.group_id
    elif isinstance(target, AssistantTarget):
        field_name, value = "userId", owner_uid
    else:
        raise InvalidSelectionError(f"Cannot build a message filter for {target!r}")

    return QuerySpec(
        collection=messages_collection(target),
        filters=((field_name, "==", value),),
        order_by="timestamp",
        limit=window,
    )


def routing_fields(target: Target, owner_uid: str) -> dict[str, Any]:
    """The single routing tag a new message for ``target`` carries."""
    if isinstance(target, DirectUser):
        return {
            "conversationId": conversation_key(owner_uid, target.uid),
            "receiverId": target.uid,
        }
    if isinstance(target, GroupTarget):
        return {"groupId": target.group_id}
    if isinstance(target, AssistantTarget):
        return {"userId": owner_uid}
    raise InvalidSelectionError(f"Cannot route a message to {target!r}")


def users_query() -> QuerySpec:
    return QuerySpec(collection=USERS_COLLECTION)


def groups_query(member_uid: str) -> QuerySpec:
    return QuerySpec(
        collection=GROUPS_COLLECTION,
        filters=(("members", "array_contains", member_uid),),
    )
