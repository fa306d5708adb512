"""In-process notification publisher keyed by user channel."""

import asyncio
from typing import Awaitable, Callable, Protocol

from ..config import NOTIFY_CHANNEL
from ..logging_config import get_logger
from ..models import UserNotify

logger = get_logger(__name__)


NotifyHandler = Callable[[str, str, UserNotify], Awaitable[None]]


class INotificationPublisher(Protocol):
    """One-way outbound port for real-time pushes."""

    async def publish(
        self, target_user_id: str, event: UserNotify, channel: str = NOTIFY_CHANNEL
    ) -> None:
        """Push event to the user's channel without waiting for delivery."""
        ...


class NotificationPublisher:
    """
    Fan a UserNotify out to the handlers subscribed for its target user.

    A transport (websocket session, test recorder, tracker) registers a
    handler per user id, or for every user with subscribe_all. Each handler
    runs in its own task, so publish returns without waiting for delivery.
    Publishing to a user with no subscriber is a no-op. Handler errors are
    logged and never reach the caller.
    """

    def __init__(self):
        self._subscribers: dict[str, list[NotifyHandler]] = {}
        self._global: list[NotifyHandler] = []
        self._pending: set[asyncio.Task] = set()

    def subscribe(self, user_id: str, handler: NotifyHandler) -> None:
        """Subscribe a handler to one user's channel."""
        self._subscribers.setdefault(user_id, []).append(handler)

    def unsubscribe(self, user_id: str, handler: NotifyHandler) -> None:
        """Remove a handler previously subscribed for user_id."""
        handlers = self._subscribers.get(user_id, [])
        if handler in handlers:
            handlers.remove(handler)
        if not handlers:
            self._subscribers.pop(user_id, None)

    def subscribe_all(self, handler: NotifyHandler) -> None:
        """Subscribe a handler to every published event."""
        self._global.append(handler)

    async def publish(
        self, target_user_id: str, event: UserNotify, channel: str = NOTIFY_CHANNEL
    ) -> None:
        """Schedule delivery of event to the user's channel. Never raises."""
        handlers = self._subscribers.get(target_user_id, []) + self._global
        if not handlers:
            logger.debug(
                "No subscriber for %s, dropping %s",
                target_user_id,
                event.status.value,
            )
            return

        for handler in handlers:
            task = asyncio.create_task(
                self._deliver(handler, target_user_id, channel, event)
            )
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def _deliver(
        self,
        handler: NotifyHandler,
        target_user_id: str,
        channel: str,
        event: UserNotify,
    ) -> None:
        try:
            await handler(target_user_id, channel, event)
        except Exception as e:
            logger.error(
                "Notification handler %r failed: %s",
                handler,
                e,
                extra={"user_id": target_user_id},
            )

    async def drain(self) -> None:
        """Wait until every scheduled delivery has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending))
