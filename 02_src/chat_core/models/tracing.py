"""Tracing and observability data models."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class TraceEvent:
    """A single delivery trace record."""

    id: str
    event_type: str  # e.g. "message_sent", "message_compensated"
    actor: str  # component that recorded it
    data: dict
    timestamp: datetime
