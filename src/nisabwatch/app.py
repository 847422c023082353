"""
Application Entry Point - Bot Initialization and Startup

This module serves as the composition root for the NisabWatch Telegram bot.
It wires all dependencies and starts the bot application.

Files that USE this module:
- nisabwatch console script (pyproject [project.scripts])
- python -m nisabwatch (module entry point)

Files that this module USES:
- nisabwatch.shared.logging_conf (setup_logging for logging configuration)
- nisabwatch.config (settings for configuration management)
- nisabwatch.application.metals_service (build_metals_service wires the engine)
- nisabwatch.adapters.notifications.telegram (TelegramNotifier as the alert sink)
- nisabwatch.adapters.telegram.handlers (build_handlers for command handlers)
- nisabwatch.adapters.telegram.jobs (scheduled jobs)
"""

from __future__ import annotations

import atexit
import logging
import os
import sys
from datetime import timedelta
from functools import partial
from pathlib import Path

from telegram.error import Conflict, NetworkError, TimedOut
from telegram.ext import Application

from nisabwatch.adapters.notifications.telegram import TelegramNotifier
from nisabwatch.adapters.telegram.handlers import build_handlers
from nisabwatch.adapters.telegram.jobs import (
    daily_update_job,
    nisab_log_job,
    price_watch_job,
    startup_notification,
)
from nisabwatch.application.metals_service import MetalsService, build_metals_service
from nisabwatch.config import Settings, settings
from nisabwatch.shared.logging_conf import setup_logging


# PID file path for preventing multiple instances
# Can be overridden via NISABWATCH_PID_FILE environment variable
def _get_pid_file() -> Path:
    pid_file = os.environ.get("NISABWATCH_PID_FILE")
    if pid_file:
        return Path(pid_file)
    return settings.preferences_file.parent / "bot.pid"


def _check_existing_instance() -> None:
    """
    Check if another bot instance is already running.

    Raises RuntimeError if PID file exists and process is still running.
    """
    pid_file = _get_pid_file()
    if not pid_file.exists():
        return
    try:
        old_pid = int(pid_file.read_text().strip())
    except (ValueError, OSError):
        # Invalid PID file, remove it
        pid_file.unlink(missing_ok=True)
        return

    try:
        os.kill(old_pid, 0)  # Signal 0 doesn't kill, just checks if process exists
    except ProcessLookupError:
        # Stale PID file
        pid_file.unlink(missing_ok=True)
        return
    raise RuntimeError(
        f"Another bot instance is already running (PID: {old_pid}).\n"
        f"Please stop it first with: kill {old_pid}"
    )


def _create_pid_file() -> None:
    pid_file = _get_pid_file()
    pid_file.parent.mkdir(parents=True, exist_ok=True)
    pid_file.write_text(str(os.getpid()))


def _remove_pid_file() -> None:
    try:
        _get_pid_file().unlink(missing_ok=True)
    except OSError:
        pass


async def _drain_background_sync(app: Application, svc: MetalsService) -> None:
    """Let pending preference syncs finish before the event loop stops."""
    await svc.preferences.drain()

def _schedule_jobs(app: Application, svc: MetalsService, settings: Settings) -> None:
    """Register the price watch, daily update, Nisab log and startup jobs."""
    jobs = app.job_queue
    jobs.run_repeating(
        callback=partial(price_watch_job, svc=svc),
        interval=timedelta(minutes=settings.watch_interval_minutes),
        first=0,  # first refresh right at boot
        name="price_watch",
    )
    jobs.run_daily(
        callback=partial(daily_update_job, svc=svc),
        time=settings.daily_update_clock,
        name="daily_update",
    )
    if settings.supabase_enabled:
        jobs.run_daily(
            callback=partial(nisab_log_job, svc=svc),
            time=settings.daily_update_clock,
            name="nisab_log",
        )
    else:
        logging.getLogger(__name__).info("Supabase not configured, daily Nisab log disabled")
    jobs.run_once(callback=partial(startup_notification, svc=svc), when=5, name="startup_notification")


def main() -> None:
    """
    Initialize and start the Telegram bot application.

    1. Configure logging from settings
    2. Take the single-instance PID lock
    3. Build the Telegram application and the metals engine
    4. Register handlers and jobs, then poll until stopped
    """

    setup_logging(
        level=logging.INFO,
        log_file=settings.log_file,
        log_dir=settings.log_dir,
        log_stdout=settings.log_stdout,
        max_bytes=settings.log_max_bytes,
        backup_count=settings.log_backup_count,
    )
    logger = logging.getLogger(__name__)

    if not settings.bot_token:
        raise RuntimeError("BOT_TOKEN missing")

    try:
        _check_existing_instance()
    except RuntimeError as e:
        logger.error(str(e))
        sys.exit(1)
    _create_pid_file()
    atexit.register(_remove_pid_file)
    logger.info("Instance lock acquired (PID %d, cwd %s)", os.getpid(), os.getcwd())

    app = Application.builder().token(settings.bot_token).build()
    svc = build_metals_service(settings, TelegramNotifier(app.bot))
    app.post_shutdown = partial(_drain_background_sync, svc=svc)
    app.add_handlers(build_handlers(svc))
    _schedule_jobs(app, svc, settings)

    logger.info(
        "Polling: watch every %d min, cache TTL %d min, daily update %s UTC",
        settings.watch_interval_minutes,
        settings.price_cache_minutes,
        settings.daily_update_time,
    )
    try:
        app.run_polling(close_loop=False, drop_pending_updates=False)
    except Conflict as e:
        logger.error("Another instance is polling with the same BOT_TOKEN: %s", e)
        raise
    except (TimedOut, NetworkError) as e:
        logger.error("Lost connection to the Telegram API (%s): %s", type(e).__name__, e, exc_info=True)
        raise
    except KeyboardInterrupt:
        logger.info("Stopped by user")
    finally:
        _remove_pid_file()


if __name__ == "__main__":
    main()
