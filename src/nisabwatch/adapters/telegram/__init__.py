# src/nisabwatch/adapters/telegram/__init__.py
"""
Telegram Adapters - Bot Interface

This package contains Telegram bot adapters:
- Command handlers
- Scheduled jobs
"""

from nisabwatch.adapters.telegram.handlers import build_handlers
from nisabwatch.adapters.telegram.jobs import (
    daily_update_job,
    nisab_log_job,
    price_watch_job,
    startup_notification,
)

__all__ = [
    "build_handlers",
    "daily_update_job",
    "nisab_log_job",
    "price_watch_job",
    "startup_notification",
]
