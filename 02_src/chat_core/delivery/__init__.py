"""Delivery module."""

from .engine import DeliveryEngine, DeliveryOutcome, IDeliveryEngine
from .query import IMessageQuery, MessageQuery

__all__ = [
    "DeliveryEngine",
    "DeliveryOutcome",
    "IDeliveryEngine",
    "IMessageQuery",
    "MessageQuery",
]
