"""Chat delivery core."""

from .app import Application, IApplication
from .calls import CallHandler, ICallHandler
from .delivery import DeliveryEngine, IDeliveryEngine, IMessageQuery, MessageQuery
from .errors import (
    ChatCoreError,
    InvalidTransition,
    NotFound,
    PermissionDenied,
    TransientDeliveryError,
    ValidationError,
)
from .models import (
    CallIntent,
    ChatIntent,
    Group,
    ImageGroupIntent,
    Message,
    MessagePage,
    MessageStatus,
    MessageType,
    Room,
    RoomType,
    User,
    UserNotify,
)
from .notifications import INotificationPublisher, NotificationPublisher
from .permissions import IPermissionEvaluator, PermissionEvaluator
from .storage import IStorage, Storage
from .tracker import ITracker, Tracker
from .uploads import DiskUploader, IUploader

__all__ = [
    # Application
    "Application",
    "IApplication",
    # Errors
    "ChatCoreError",
    "NotFound",
    "PermissionDenied",
    "ValidationError",
    "InvalidTransition",
    "TransientDeliveryError",
    # Models
    "Message",
    "MessageType",
    "MessageStatus",
    "MessagePage",
    "Room",
    "RoomType",
    "Group",
    "User",
    "UserNotify",
    "ChatIntent",
    "ImageGroupIntent",
    "CallIntent",
    # Components
    "IStorage",
    "Storage",
    "INotificationPublisher",
    "NotificationPublisher",
    "ITracker",
    "Tracker",
    "IPermissionEvaluator",
    "PermissionEvaluator",
    "IUploader",
    "DiskUploader",
    "ICallHandler",
    "CallHandler",
    "IDeliveryEngine",
    "DeliveryEngine",
    "IMessageQuery",
    "MessageQuery",
]
