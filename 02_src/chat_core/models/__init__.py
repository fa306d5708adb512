"""Core data models for the chat delivery core."""

from .messages import (
    CallContent,
    CallStatus,
    FileContent,
    FileListContent,
    Message,
    MessageContent,
    MessagePage,
    MessageStatus,
    MessageType,
    TextContent,
    content_from_dict,
    content_to_dict,
)
from .notify import NotifyStatus, UserNotify
from .requests import CallIntent, ChatIntent, FileUpload, ImageGroupIntent, MessagePatch
from .rooms import Group, GroupStatus, Room, RoomType, SendMessagePermission, User
from .status import can_transition, transition
from .tracing import TraceEvent

__all__ = [
    # Messages
    "Message",
    "MessageType",
    "MessageStatus",
    "MessagePage",
    "MessageContent",
    "TextContent",
    "FileContent",
    "FileListContent",
    "CallContent",
    "CallStatus",
    "content_to_dict",
    "content_from_dict",
    # Status machine
    "can_transition",
    "transition",
    # Rooms and directory
    "Room",
    "RoomType",
    "Group",
    "GroupStatus",
    "SendMessagePermission",
    "User",
    # Notifications
    "UserNotify",
    "NotifyStatus",
    # Requests
    "ChatIntent",
    "ImageGroupIntent",
    "CallIntent",
    "FileUpload",
    "MessagePatch",
    # Tracing
    "TraceEvent",
]
