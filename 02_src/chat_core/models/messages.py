"""Message-related data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Literal, Union

from ..errors import ValidationError


class MessageType(str, Enum):
    """Kind of message as shown to the user."""

    TEXT = "TEXT"
    IMAGE = "IMAGE"
    FILE = "FILE"
    VIDEO = "VIDEO"
    AUDIO = "AUDIO"
    AUDIO_CALL = "AUDIO_CALL"
    VIDEO_CALL = "VIDEO_CALL"
    SYSTEM = "SYSTEM"


class MessageStatus(str, Enum):
    """Delivery status of a message."""

    SENDING = "SENDING"
    SENT = "SENT"
    RECEIVED = "RECEIVED"
    SEEN = "SEEN"
    REVOKED = "REVOKED"
    ERROR = "ERROR"


class CallStatus(str, Enum):
    """Lifecycle of a call carried by a call message."""

    START = "START"
    ACCEPT = "ACCEPT"
    REJECT = "REJECT"
    END = "END"
    MISSED = "MISSED"


@dataclass
class TextContent:
    """Plain text body."""

    text: str
    kind: Literal["text"] = "text"

    def __str__(self) -> str:
        return self.text


@dataclass
class FileContent:
    """Reference to a single uploaded file."""

    filename: str
    extension: str
    kind: Literal["file"] = "file"

    @classmethod
    def from_filename(cls, name: str) -> "FileContent":
        """Split "report.final.pdf" into ("report", "pdf")."""
        parts = name.split(".")
        return cls(filename=parts[0], extension=parts[-1] if len(parts) > 1 else "")


@dataclass
class FileListContent:
    """Several files sent as one message (image group)."""

    files: list[FileContent] = field(default_factory=list)
    kind: Literal["files"] = "files"


@dataclass
class CallContent:
    """Call information attached to AUDIO_CALL / VIDEO_CALL messages."""

    call_status: CallStatus = CallStatus.START
    kind: Literal["call"] = "call"


MessageContent = Union[TextContent, FileContent, FileListContent, CallContent]


def content_to_dict(content: MessageContent) -> dict:
    """Serialize a content variant to a JSON-ready dict."""
    if content.kind == "text":
        return {"kind": "text", "text": content.text}
    if content.kind == "file":
        return {
            "kind": "file",
            "filename": content.filename,
            "extension": content.extension,
        }
    if content.kind == "files":
        return {
            "kind": "files",
            "files": [content_to_dict(f) for f in content.files],
        }
    if content.kind == "call":
        return {"kind": "call", "call_status": content.call_status.value}
    raise ValidationError(f"Unknown content kind: {content.kind}")


def content_from_dict(data: dict) -> MessageContent:
    """Rebuild a content variant from its dict form."""
    kind = data.get("kind")
    try:
        if kind == "text":
            return TextContent(text=data.get("text", ""))
        if kind == "file":
            return FileContent(filename=data["filename"], extension=data["extension"])
        if kind == "files":
            return FileListContent(files=[content_from_dict(f) for f in data["files"]])
        if kind == "call":
            return CallContent(call_status=CallStatus(data["call_status"]))
    except (KeyError, ValueError) as e:
        raise ValidationError(f"Malformed {kind} content: {e}") from e
    raise ValidationError(f"Unknown content kind: {kind}")


@dataclass
class Message:
    """A single chat message."""

    id: str
    sender_id: str
    receiver_id: str  # user id or group id
    room_id: str
    message_type: MessageType
    content: MessageContent
    message_status: MessageStatus = MessageStatus.SENDING
    send_date: datetime | None = None
    seen_date: datetime | None = None
    hidden_sender_side: bool = False
    sender_name: str | None = None
    sender_avatar: str | None = None

    def to_dict(self) -> dict:
        """Render as a JSON-ready dict."""
        return {
            "id": self.id,
            "sender_id": self.sender_id,
            "receiver_id": self.receiver_id,
            "room_id": self.room_id,
            "message_type": self.message_type.value,
            "content": content_to_dict(self.content),
            "message_status": self.message_status.value,
            "send_date": self.send_date.isoformat() if self.send_date else None,
            "seen_date": self.seen_date.isoformat() if self.seen_date else None,
            "hidden_sender_side": self.hidden_sender_side,
            "sender_name": self.sender_name,
            "sender_avatar": self.sender_avatar,
        }


@dataclass
class MessagePage:
    """One page of messages plus the store's page count."""

    messages: list[Message]
    total_page: int
