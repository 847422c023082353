# src/nisabwatch/adapters/telegram/jobs.py
"""
Telegram Jobs - Scheduled Tasks and Background Processing

This module holds the callbacks registered on the python-telegram-bot
JobQueue:
- price_watch_job: refresh prices when the cache is stale and send price-change alerts
- daily_update_job: daily price summary for users who enabled alerts
- nisab_log_job: daily Nisab record in the remote store
- startup_notification: one message to the alert chat when the bot starts

Jobs never raise into the JobQueue: failures are logged and the next run
tries again.

Files that USE this module:
- nisabwatch.app (job callbacks are registered on the JobQueue)

Files that this module USES:
- nisabwatch.application.metals_service (MetalsService)
- nisabwatch.adapters.formatting.formatter (format_price_table)
- nisabwatch.config (alert chat id, default currency)
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone

from telegram.error import TelegramError
from telegram.ext import ContextTypes

from nisabwatch.adapters.formatting.formatter import format_price_table
from nisabwatch.application.metals_service import MetalsService
from nisabwatch.config import settings
from nisabwatch.domain.models import Currency

log = logging.getLogger(__name__)


async def price_watch_job(context: ContextTypes.DEFAULT_TYPE, svc: MetalsService) -> None:
    """Refresh when stale and dispatch price-change alerts."""
    try:
        sent = await svc.run_alert_cycle()
        log.debug("Price watch finished, %d alerts", sent)
    except Exception as e:
        log.error("Price watch job failed: %s", e, exc_info=True)


async def daily_update_job(context: ContextTypes.DEFAULT_TYPE, svc: MetalsService) -> None:
    """Send the daily price update to every user that is due one."""
    try:
        sent = await svc.run_daily_updates(datetime.now(timezone.utc))
        log.info("Daily update sent to %d users", sent)
    except Exception as e:
        log.error("Daily update job failed: %s", e, exc_info=True)


async def nisab_log_job(context: ContextTypes.DEFAULT_TYPE, svc: MetalsService) -> None:
    """Record today's Nisab values for every supported currency."""
    try:
        results = await svc.record_daily_nisab(datetime.now(timezone.utc).date())
        failed = [r.error for r in results if not r.success]
        if failed:
            log.warning("Nisab log incomplete: %d/%d currencies failed (%s)",
                        len(failed), len(results), "; ".join(str(f) for f in failed))
    except Exception as e:
        log.error("Nisab log job failed: %s", e, exc_info=True)


async def startup_notification(context: ContextTypes.DEFAULT_TYPE, svc: MetalsService) -> None:
    """Post the current prices to the alert chat, if one is configured."""
    if not settings.alert_chat_id:
        return
    try:
        table = await svc.get_price_table()
        text = "✅ Bot started\n\n" + format_price_table(table, Currency(settings.default_currency))
        await context.bot.send_message(chat_id=settings.alert_chat_id, text=text)
    except TelegramError as e:
        log.warning("Failed to send startup notification: %s", e)
