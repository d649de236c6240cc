"""Render-ready projection of a session's chat state."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from services.identity import AssistantTarget, DirectUser, GroupTarget
from services.reconciler import ChatStateReconciler
from services.types import Message

ASSISTANT_NAME = "AI Assistant"


class FileView(BaseModel):
    url: str
    name: str
    size: int
    type: str


class MessageView(BaseModel):
    id: str
    text: str
    timestamp: datetime | None = None
    sender_uid: str | None = None
    sender_name: str
    sender_photo_url: str | None = None
    is_own: bool
    is_ai: bool = False
    is_error: bool = False
    forwarded: bool = False
    original_sender: str | None = Field(
        None, description="Display name of the original author of a forwarded message"
    )
    file: FileView | None = None


class TargetView(BaseModel):
    kind: str = Field(..., description="none, user, group or assistant")
    id: str | None = None
    title: str | None = None
    photo_url: str | None = None
    status: str | None = Field(None, description="online/offline for direct peers")
    last_changed: Any = None
    is_typing: bool = False


class UserView(BaseModel):
    uid: str
    name: str | None = None
    photo_url: str | None = None


class GroupView(BaseModel):
    id: str
    name: str | None = None
    member_count: int = 0


class ChatView(BaseModel):
    version: int
    target: TargetView
    users: list[UserView]
    groups: list[GroupView]
    messages: list[MessageView]
    can_compose: bool
    draft_text: str = ""
    loading: bool = False
    ai_loading: bool = False


def _target_view(state: ChatStateReconciler) -> TargetView:
    target = state.target
    if isinstance(target, DirectUser):
        peer = state.find_user(target.uid)
        presence = state.presence.get(target.uid)
        return TargetView(
            kind=target.kind,
            id=target.uid,
            title=(peer.name if peer else None) or target.uid,
            photo_url=peer.photo_url if peer else None,
            status=presence.status if presence else "offline",
            last_changed=presence.last_changed if presence else None,
            is_typing=bool(state.typing.get(target.uid)),
        )
    if isinstance(target, GroupTarget):
        group = state.find_group(target.group_id)
        return TargetView(
            kind=target.kind,
            id=target.group_id,
            title=(group.name if group else None) or "Group",
        )
    if isinstance(target, AssistantTarget):
        return TargetView(kind=target.kind, title=ASSISTANT_NAME)
    return TargetView(kind=target.kind)


def _display_name(state: ChatStateReconciler, uid: str | None) -> str | None:
    if uid is None:
        return None
    user = state.find_user(uid)
    return (user.name if user else None) or uid


def _message_view(state: ChatStateReconciler, message: Message) -> MessageView:
    own_uid = state.identity.uid
    assistant_stream = isinstance(state.target, AssistantTarget)

    if message.is_ai:
        is_own = False
        sender_uid, sender_name, photo = None, ASSISTANT_NAME, None
    elif assistant_stream:
        me = state.current_user
        is_own = True
        sender_uid = own_uid
        sender_name = (me.name if me else None) or state.identity.display_name or "You"
        photo = me.photo_url if me else None
    else:
        is_own = message.uid == own_uid
        sender_uid = message.uid
        sender_name = (
            message.display_name or _display_name(state, message.uid) or "Unknown"
        )
        photo = message.photo_url

    original = None
    if message.forwarded and message.original_sender:
        original = _display_name(state, message.original_sender)

    file_view = None
    if message.file_data:
        fd = message.file_data
        file_view = FileView(url=fd.url, name=fd.name, size=fd.size, type=fd.type)

    return MessageView(
        id=message.id,
        text=message.text or "",
        timestamp=message.timestamp,
        sender_uid=sender_uid,
        sender_name=sender_name,
        sender_photo_url=photo,
        is_own=is_own,
        is_ai=message.is_ai,
        is_error=message.is_error,
        forwarded=message.forwarded,
        original_sender=original,
        file=file_view,
    )


def project(
    state: ChatStateReconciler,
    *,
    draft_text: str = "",
    loading: bool = False,
    ai_loading: bool = False,
) -> ChatView:
    """Derive what a client should render from the current state."""
    own_uid = state.identity.uid
    return ChatView(
        version=state.version,
        target=_target_view(state),
        users=[
            UserView(uid=u.uid, name=u.name, photo_url=u.photo_url)
            for u in state.users
            if u.uid != own_uid
        ],
        groups=[
            GroupView(id=g.id, name=g.name, member_count=len(g.members))
            for g in state.groups
        ],
        messages=[_message_view(state, m) for m in state.messages],
        can_compose=state.target.kind != "none",
        draft_text=draft_text,
        loading=loading,
        ai_loading=ai_loading,
    )
