"""
Notification Adapters - Alert Delivery

This package contains the NotificationSink contract and its Telegram implementation.
"""

from nisabwatch.adapters.notifications.base import NotificationSink
from nisabwatch.adapters.notifications.telegram import TelegramNotifier

__all__ = ["NotificationSink", "TelegramNotifier"]
