"""Inbound intents accepted by the delivery engine."""

from dataclasses import dataclass, field

from .messages import MessageContent, MessageStatus, MessageType


@dataclass
class FileUpload:
    """Raw file handed in by the client."""

    filename: str
    data: bytes
    content_type: str | None = None


@dataclass
class ChatIntent:
    """Request to send a text or single-file message."""

    sender_id: str
    receiver_id: str
    message_type: MessageType = MessageType.TEXT
    text: str | None = None
    file: FileUpload | None = None
    hidden_sender_side: bool = False


@dataclass
class ImageGroupIntent:
    """Request to send several images as one message."""

    sender_id: str
    receiver_id: str
    message_type: MessageType = MessageType.IMAGE
    files: list[FileUpload] = field(default_factory=list)


@dataclass
class CallIntent:
    """Request to start an audio or video call."""

    sender_id: str
    receiver_id: str
    message_type: MessageType = MessageType.AUDIO_CALL


@dataclass
class MessagePatch:
    """Fields replaced by update_message."""

    message_type: MessageType
    message_status: MessageStatus
    content: MessageContent
    hidden_sender_side: bool = False
