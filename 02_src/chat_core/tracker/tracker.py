"""Tracker implementation for creating TraceEvents."""

import uuid
from datetime import datetime, timezone
from typing import Protocol

from ..models import TraceEvent, UserNotify
from ..notifications import NotificationPublisher
from ..storage import IStorage


class ITracker(Protocol):
    """Creating TraceEvents. Two channels: publisher subscription + direct calls."""

    async def track(self, event_type: str, actor: str, data: dict) -> None:
        """Create TraceEvent and save to Storage."""
        ...


class Tracker:
    """Creates TraceEvents via publisher subscription and direct track() calls."""

    def __init__(self, publisher: NotificationPublisher, storage: IStorage):
        self._publisher = publisher
        self._storage = storage

    async def start(self) -> None:
        """Subscribe to every published notification."""
        self._publisher.subscribe_all(self._handle_notification)

    async def _handle_notification(
        self, target_user_id: str, channel: str, event: UserNotify
    ) -> None:
        """Record a pushed notification."""
        await self.track(
            event_type="notification_published",
            actor="publisher",
            data={
                "target_user_id": target_user_id,
                "channel": channel,
                "status": event.status.value,
                "message_id": event.message.id if event.message else None,
            },
        )

    async def track(self, event_type: str, actor: str, data: dict) -> None:
        """Create TraceEvent and save to Storage."""
        trace_event = TraceEvent(
            id=str(uuid.uuid4()),
            event_type=event_type,
            actor=actor,
            data=data,
            timestamp=datetime.now(timezone.utc),
        )
        await self._storage.save_trace_event(trace_event)
