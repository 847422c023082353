"""
Notification Sink - Delivery Contract for Alerts

The alert policy decides whether to notify; a sink only delivers a title and
a body to one recipient. Permission is requested once per recipient before
the first delivery, and a denied permission silently disables delivery.

Files that USE this module:
- nisabwatch.adapters.notifications.telegram (TelegramNotifier)
- nisabwatch.application.alerts (AlertDispatcher sends through a sink)
"""
from __future__ import annotations

from abc import ABC, abstractmethod


class NotificationSink(ABC):
    """Thin delivery surface for alerts."""

    @abstractmethod
    async def request_permission(self, recipient: str) -> bool:
        """Ask once whether ``recipient`` can receive notifications."""

    @abstractmethod
    async def send(self, recipient: str, title: str, body: str) -> bool:
        """
        Deliver one notification.

        Returns:
            True when delivered, False when silently skipped (no permission)

        Raises:
            NotificationDeliveryError: If the channel fails
        """
