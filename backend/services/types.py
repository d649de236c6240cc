"""Shared types and dataclasses for the chat core.

Store documents arrive as plain dicts with camelCase keys; these types are
the typed view the reconciler and coordinators work with.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class Identity:
    """The authenticated principal a session or call acts for."""

    uid: str
    display_name: str | None = None
    photo_url: str | None = None


@dataclass
class User:
    """A registered user profile from the `users` collection."""

    id: str
    uid: str
    name: str | None = None
    photo_url: str | None = None
    profile: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "User":
        extra = {
            k: v for k, v in doc.items() if k not in ("id", "uid", "name", "photoURL")
        }
        return cls(
            id=doc.get("id", ""),
            uid=doc.get("uid", ""),
            name=doc.get("name"),
            photo_url=doc.get("photoURL"),
            profile=extra,
        )


@dataclass
class Group:
    """A group conversation from the `groups` collection."""

    id: str
    name: str | None = None
    members: list[str] = field(default_factory=list)
    settings: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "Group":
        extra = {k: v for k, v in doc.items() if k not in ("id", "name", "members")}
        return cls(
            id=doc.get("id", ""),
            name=doc.get("name"),
            members=list(doc.get("members") or []),
            settings=extra,
        )


@dataclass
class Attachment:
    """A file picked by the user, before upload."""

    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class UploadResult:
    """What the file service returns for a stored blob."""

    url: str
    public_id: str
    resource_type: str


@dataclass
class FileData:
    """File metadata embedded in a message."""

    url: str
    name: str
    size: int
    type: str
    public_id: str | None = None
    resource_type: str | None = None

    @property
    def category(self) -> str:
        """Top-level MIME category, e.g. ``image`` or ``application``."""
        return self.type.split("/")[0] if self.type else "unknown"

    @property
    def is_image(self) -> bool:
        return self.type.startswith("image/")

    def to_document(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "name": self.name,
            "size": self.size,
            "type": self.type,
            "publicId": self.public_id,
            "resourceType": self.resource_type,
        }

    @classmethod
    def from_document(cls, doc: dict[str, Any] | None) -> "FileData | None":
        if not doc:
            return None
        return cls(
            url=doc.get("url", ""),
            name=doc.get("name", ""),
            size=doc.get("size") or 0,
            type=doc.get("type") or "",
            public_id=doc.get("publicId"),
            resource_type=doc.get("resourceType"),
        )

    @classmethod
    def from_upload(cls, attachment: Attachment, result: UploadResult) -> "FileData":
        return cls(
            url=result.url,
            name=attachment.filename,
            size=attachment.size,
            type=attachment.content_type,
            public_id=result.public_id,
            resource_type=result.resource_type,
        )


@dataclass
class Message:
    """A message from `messages` or `aiMessages`.

    Exactly one routing field is set: ``conversation_id`` (direct),
    ``group_id`` (group) or ``user_id`` (assistant stream owner).
    """

    id: str
    text: str | None = ""
    timestamp: datetime | None = None
    uid: str | None = None
    display_name: str | None = None
    photo_url: str | None = None
    file_data: FileData | None = None
    conversation_id: str | None = None
    receiver_id: str | None = None
    group_id: str | None = None
    user_id: str | None = None
    is_ai: bool = False
    is_error: bool = False
    forwarded: bool = False
    original_sender: str | None = None

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "Message":
        return cls(
            id=doc.get("id", ""),
            text=doc.get("text"),
            timestamp=doc.get("timestamp"),
            uid=doc.get("uid"),
            display_name=doc.get("displayName"),
            photo_url=doc.get("photoURL"),
            file_data=FileData.from_document(doc.get("fileData")),
            conversation_id=doc.get("conversationId"),
            receiver_id=doc.get("receiverId"),
            group_id=doc.get("groupId"),
            user_id=doc.get("userId"),
            is_ai=bool(doc.get("isAI", False)),
            is_error=bool(doc.get("isError", False)),
            forwarded=bool(doc.get("forwarded", False)),
            original_sender=doc.get("originalSender"),
        )


@dataclass
class PresenceRecord:
    """Live online/offline state for one user."""

    status: str = "offline"
    last_changed: Any = None

    @property
    def online(self) -> bool:
        return self.status == "online"

    @classmethod
    def from_value(cls, value: Any) -> "PresenceRecord":
        if not isinstance(value, dict):
            return cls()
        return cls(
            status=value.get("status") or "offline",
            last_changed=value.get("lastChanged"),
        )
