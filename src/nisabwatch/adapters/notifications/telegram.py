# src/nisabwatch/adapters/notifications/telegram.py
"""
Telegram Notifier - Alert Delivery through the Bot API

Delivers alerts as Telegram messages. A chat that blocked the bot or never
started it cannot receive messages; that is detected with get_chat and
remembered, after which deliveries to that chat are skipped silently. A denial
is re-checked after DENIED_RECHECK_SECONDS, so a user who unblocks the bot
starts receiving alerts again.

Files that USE this module:
- nisabwatch.app (builds the notifier from the Application's bot)
- tests.test_alerts (dispatcher tests use a mocked bot)

Files that this module USES:
- nisabwatch.adapters.notifications.base (NotificationSink)
- nisabwatch.domain.errors (NotificationDeliveryError)
"""
from __future__ import annotations

import logging
import time
from typing import Callable, Dict, Tuple

from telegram import Bot
from telegram.error import BadRequest, Forbidden, RetryAfter, TelegramError

from nisabwatch.adapters.notifications.base import NotificationSink
from nisabwatch.domain.errors import NotificationDeliveryError

log = logging.getLogger(__name__)

DENIED_RECHECK_SECONDS = 3600.0


class TelegramNotifier(NotificationSink):
    """NotificationSink backed by a python-telegram-bot Bot."""

    def __init__(
        self,
        bot: Bot,
        denied_recheck_seconds: float = DENIED_RECHECK_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.bot = bot
        self.denied_recheck_seconds = denied_recheck_seconds
        self._clock = clock
        # recipient -> (granted, monotonic time of the check)
        self._permissions: Dict[str, Tuple[bool, float]] = {}

    async def request_permission(self, recipient: str) -> bool:
        recipient = str(recipient)
        cached = self._permissions.get(recipient)
        if cached is not None:
            granted, checked_at = cached
            if granted or self._clock() - checked_at < self.denied_recheck_seconds:
                return granted
        try:
            await self.bot.get_chat(chat_id=recipient)
            granted = True
        except (Forbidden, BadRequest) as e:
            log.info("Notifications disabled for chat %s: %s", recipient, e)
            granted = False
        except TelegramError as e:
            # Transient failure: do not remember the answer, try again next time
            log.warning("Could not check chat %s: %s", recipient, e)
            return False
        self._permissions[recipient] = (granted, self._clock())
        return granted

    def revoke(self, recipient: str) -> None:
        self._permissions[str(recipient)] = (False, self._clock())

    async def send(self, recipient: str, title: str, body: str) -> bool:
        recipient = str(recipient)
        if not await self.request_permission(recipient):
            log.debug("Skipping notification to %s: no permission", recipient)
            return False
        try:
            await self.bot.send_message(chat_id=recipient, text=f"{title}\n\n{body}")
        except Forbidden as e:
            self.revoke(recipient)
            raise NotificationDeliveryError(f"Chat {recipient} blocked the bot: {e}") from e
        except RetryAfter as e:
            raise NotificationDeliveryError(f"Rate limited by Telegram, retry after {e.retry_after}s") from e
        except TelegramError as e:
            raise NotificationDeliveryError(f"Failed to send to {recipient}: {e}") from e
        return True
