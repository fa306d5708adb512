"""Latest-message preview text shown on room projections."""

from ..errors import ValidationError
from ..models import Message, MessageType

GROUP_CALL_SELF = "You started a group call"
GROUP_CALL_OTHER = "{name} started a group call"
DIRECT_CALL = {
    MessageType.AUDIO_CALL: "Voice call",
    MessageType.VIDEO_CALL: "Video call",
}


def preview_text(message: Message) -> str:
    """Preview for a delivered message: file kinds show their type label."""
    content = message.content
    if content.kind == "text":
        return content.text
    if content.kind in ("file", "files"):
        return message.message_type.value
    if content.kind == "call":
        return DIRECT_CALL.get(message.message_type, message.message_type.value)
    raise ValidationError(f"Unknown content kind: {content.kind}")


def group_preview_text(message: Message, sender_name: str) -> str:
    """Preview for other members of a group conversation."""
    return f"{sender_name}: {preview_text(message)}"


def failed_preview_text(message: Message) -> str:
    """Preview written back to the sender's room when delivery failed."""
    content = message.content
    if content.kind == "text":
        return content.text
    if content.kind == "file":
        return content.filename
    if content.kind == "files":
        return ", ".join(f.filename for f in content.files)
    if content.kind == "call":
        return DIRECT_CALL.get(message.message_type, message.message_type.value)
    raise ValidationError(f"Unknown content kind: {content.kind}")


def call_preview_text(
    message: Message, is_group: bool, viewer_is_sender: bool, sender_name: str
) -> str:
    """Fixed preview for a call start, by conversation kind and viewpoint."""
    if is_group:
        if viewer_is_sender:
            return GROUP_CALL_SELF
        return GROUP_CALL_OTHER.format(name=sender_name)
    return DIRECT_CALL[message.message_type]
