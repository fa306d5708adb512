"""Error taxonomy for the delivery core."""


class ChatCoreError(Exception):
    """Base class for all errors raised by the delivery core."""


class NotFound(ChatCoreError):
    """A referenced message, room or user does not exist."""


class PermissionDenied(ChatCoreError):
    """Group policy or ownership forbids the operation."""


class ValidationError(ChatCoreError):
    """Input is malformed or violates a model rule."""


class InvalidTransition(ValidationError):
    """Requested message status change is not allowed."""


class TransientDeliveryError(ChatCoreError):
    """Fan-out or persistence failed while sending a message.

    Only used internally by the send path; it is logged and compensated,
    never raised to callers.
    """
