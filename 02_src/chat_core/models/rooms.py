"""Room projection and directory models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from .messages import MessageStatus


class RoomType(str, Enum):
    """Conversation kind."""

    DIRECT = "DIRECT"
    GROUP = "GROUP"


class GroupStatus(str, Enum):
    """Whether a group still accepts activity."""

    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class SendMessagePermission(str, Enum):
    """Who may post into a group."""

    EVERYONE = "EVERYONE"
    ONLY_ADMIN = "ONLY_ADMIN"
    ONLY_OWNER = "ONLY_OWNER"


@dataclass
class Room:
    """
    One participant's view of a conversation.

    All views of the same conversation share room_id. sender_id is the
    viewer owning this row, receiver_id is the counterpart (or the group id).
    """

    id: str
    room_id: str
    sender_id: str
    receiver_id: str
    room_type: RoomType = RoomType.DIRECT
    latest_message: str = ""
    message_status: MessageStatus | None = None
    unread_count: int = 0
    time: datetime | None = None
    is_sender: bool = False
    avatar_receiver: str | None = None

    def to_dict(self) -> dict:
        """Render as a JSON-ready dict."""
        return {
            "id": self.id,
            "room_id": self.room_id,
            "sender_id": self.sender_id,
            "receiver_id": self.receiver_id,
            "room_type": self.room_type.value,
            "latest_message": self.latest_message,
            "message_status": (
                self.message_status.value if self.message_status else None
            ),
            "unread_count": self.unread_count,
            "time": self.time.isoformat() if self.time else None,
            "is_sender": self.is_sender,
            "avatar_receiver": self.avatar_receiver,
        }


@dataclass
class Group:
    """A group conversation. Its id doubles as the conversation key."""

    id: str
    owner: str
    name: str = ""
    members: list[str] = field(default_factory=list)
    admins: list[str] = field(default_factory=list)
    group_status: GroupStatus = GroupStatus.ACTIVE
    send_message_permission: SendMessagePermission = SendMessagePermission.EVERYONE


@dataclass
class User:
    """A chat user."""

    id: str  # e-mail in practice
    name: str
    avatar: str | None = None
