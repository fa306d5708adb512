"""Message status state machine."""

from datetime import datetime, timezone

from ..errors import InvalidTransition
from .messages import Message, MessageStatus

# REVOKED is reachable from every state and handled separately.
_TRANSITIONS: dict[MessageStatus, set[MessageStatus]] = {
    MessageStatus.SENDING: {MessageStatus.SENT, MessageStatus.ERROR},
    MessageStatus.SENT: {MessageStatus.RECEIVED, MessageStatus.SEEN},
    MessageStatus.RECEIVED: {MessageStatus.SEEN},
    MessageStatus.SEEN: set(),
    MessageStatus.ERROR: set(),
    MessageStatus.REVOKED: set(),
}


def can_transition(current: MessageStatus, target: MessageStatus) -> bool:
    """Check whether a message may move from current to target."""
    if current == target:
        return True
    if target == MessageStatus.REVOKED:
        return True
    return target in _TRANSITIONS[current]


def transition(
    message: Message, target: MessageStatus, at: datetime | None = None
) -> Message:
    """
    Move message to target status in place.

    Entering SEEN stamps seen_date (at, or now when omitted).

    Raises:
        InvalidTransition: if the move is not allowed.
    """
    current = message.message_status
    if not can_transition(current, target):
        raise InvalidTransition(
            f"Cannot move message {message.id} from {current.value} to {target.value}"
        )

    if current == target:
        return message

    message.message_status = target
    if target == MessageStatus.SEEN:
        message.seen_date = at or datetime.now(timezone.utc)
    return message
