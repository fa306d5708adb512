"""Outbound real-time notification model."""

from dataclasses import dataclass
from enum import Enum

from .messages import Message
from .rooms import Room


class NotifyStatus(str, Enum):
    """Tag telling the client what happened."""

    SUCCESS = "SUCCESS"
    SENT = "SENT"
    SEEN = "SEEN"
    REVOKED_MESSAGE = "REVOKED_MESSAGE"
    CALL_REQUEST = "CALL_REQUEST"
    ERROR = "ERROR"


@dataclass
class UserNotify:
    """Event pushed to a user's channel. Never persisted."""

    status: NotifyStatus
    sender_id: str
    receiver_id: str
    message: Message | None = None
    room: Room | None = None

    def to_payload(self) -> dict:
        """Render as a JSON-ready dict."""
        return {
            "status": self.status.value,
            "sender_id": self.sender_id,
            "receiver_id": self.receiver_id,
            "message": self.message.to_dict() if self.message else None,
            "room": self.room.to_dict() if self.room else None,
        }
