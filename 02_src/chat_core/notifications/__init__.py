"""Notifications module."""

from .publisher import INotificationPublisher, NotificationPublisher, NotifyHandler

__all__ = ["INotificationPublisher", "NotificationPublisher", "NotifyHandler"]
