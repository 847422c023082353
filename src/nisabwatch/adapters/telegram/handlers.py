# src/nisabwatch/adapters/telegram/handlers.py
"""
Telegram Handlers - Command Processing and User Interaction

This module contains all Telegram bot command handlers. Every handler checks
the per-user rate limit, parses its arguments, calls the MetalsService and
replies with formatted text. Price commands never fail on provider outages:
the service falls back to estimated prices, which the reply labels as such.

Commands:
- /start: register the user and show help
- /prices [currency]: gold and silver prices
- /convert <metal> <amount> [unit] [currency]: value of a metal amount
- /nisab [currency]: Nisab threshold for gold and silver
- /zakat <wealth> [currency]: Zakat due on a wealth amount
- /holding <metal> <amount> [unit]: declare a holding (Nisab-crossing alerts)
- /currency <code>, /alerts on|off, /threshold <percent>, /settings

Files that USE this module:
- nisabwatch.app (build_handlers function creates handler instances)

Files that this module USES:
- nisabwatch.application.metals_service (MetalsService)
- nisabwatch.adapters.formatting.formatter (all reply texts)
- nisabwatch.domain.conversion (argument parsing)
- nisabwatch.shared.rate_limiter (rate limiting functionality)
- nisabwatch.shared.validators (parse_positive_number)
"""
from __future__ import annotations

import logging
from functools import partial
from typing import List, Optional

from telegram import Update
from telegram.ext import CommandHandler, ContextTypes

from nisabwatch.adapters.formatting.formatter import (
    format_conversion,
    format_nisab,
    format_preferences,
    format_price_table,
    format_zakat,
)
from nisabwatch.application.metals_service import MetalsService
from nisabwatch.domain.conversion import parse_currency, parse_metal, parse_unit
from nisabwatch.domain.errors import UnsupportedCurrencyError
from nisabwatch.domain.models import Currency, Unit
from nisabwatch.domain.nisab import NISAB_WEIGHT_GRAMS
from nisabwatch.shared.rate_limiter import RATE_LIMITS, rate_limiter
from nisabwatch.shared.validators import parse_positive_number

logger = logging.getLogger(__name__)

MAX_AMOUNT = 1e12
MAX_THRESHOLD_PCT = 100.0

HELP_TEXT = (
    "🪙 Precious metals and Nisab bot\n\n"
    "/prices [currency] - gold and silver prices\n"
    "/convert <gold|silver> <amount> [g|oz] [currency] - value of metal\n"
    "/nisab [currency] - Nisab threshold\n"
    "/zakat <wealth> [currency] - Zakat due\n"
    "/holding <gold|silver> <amount> [g|oz] - declare your holding\n"
    "/currency <USD|GBP|AED|SAR|EGP> - preferred currency\n"
    "/alerts on|off - price alerts\n"
    "/threshold <percent> - alert threshold\n"
    "/settings - your settings"
)


def _user_id(update: Update) -> str:
    return str(update.effective_user.id)


def _check_rate_limit(update: Update, limit_type: str) -> bool:
    """
    Check if user is within configured rate limits.

    Args:
        update: Telegram update object
        limit_type: Bucket name in RATE_LIMITS ("read_command" or "write_command")

    Returns:
        True if allowed, False if rate limit exceeded
    """
    config = RATE_LIMITS.get(limit_type)
    if not config:
        return True  # No rate limit configured

    identifier = f"user:{_user_id(update)}"
    if not rate_limiter.is_allowed(limit_type, identifier, config):
        logger.warning(
            "Rate limit exceeded for %s (type=%s, remaining=%s)",
            identifier,
            limit_type,
            rate_limiter.remaining(limit_type, identifier, config),
        )
        return False
    return True


async def _reply_rate_limited(update: Update) -> None:
    await update.message.reply_text("⏰ Rate limit exceeded. Please try again later.")


async def _currency_arg(svc: MetalsService, update: Update, args: List[str], index: int) -> Currency:
    """Currency from the arguments, else the user's preferred currency."""
    if len(args) > index:
        return parse_currency(args[index])
    prefs = await svc.get_preferences(_user_id(update))
    return prefs.currency


def _amount_arg(raw: str, allow_zero: bool = False) -> Optional[float]:
    if allow_zero and raw.strip() in ("0", "0.0"):
        return 0.0
    return parse_positive_number(raw, max_val=MAX_AMOUNT)


# --- /start ---
async def start(update: Update, context: ContextTypes.DEFAULT_TYPE, svc: MetalsService) -> None:
    """Handle /start - register the user with default preferences and show help."""
    if not _check_rate_limit(update, "write_command"):
        await _reply_rate_limited(update)
        return
    user_id = _user_id(update)
    prefs = await svc.get_preferences(user_id)
    await svc.preferences.save(user_id, prefs)
    await update.message.reply_text(HELP_TEXT)


# --- /prices ---
async def prices(update: Update, context: ContextTypes.DEFAULT_TYPE, svc: MetalsService) -> None:
    """Handle /prices [currency] - current gold and silver prices."""
    if not _check_rate_limit(update, "read_command"):
        await _reply_rate_limited(update)
        return
    try:
        currency = await _currency_arg(svc, update, context.args or [], 0)
    except UnsupportedCurrencyError as e:
        await update.message.reply_text(f"⚠️ {e}")
        return
    table = await svc.get_price_table()
    await update.message.reply_text(format_price_table(table, currency))


# --- /convert ---
async def convert(update: Update, context: ContextTypes.DEFAULT_TYPE, svc: MetalsService) -> None:
    """Handle /convert <metal> <amount> [unit] [currency]."""
    if not _check_rate_limit(update, "read_command"):
        await _reply_rate_limited(update)
        return
    args = context.args or []
    if len(args) < 2:
        await update.message.reply_text("Usage: /convert <gold|silver> <amount> [g|oz] [currency]")
        return

    amount = _amount_arg(args[1])
    if amount is None:
        await update.message.reply_text("⚠️ Amount must be a positive number.")
        return
    try:
        metal = parse_metal(args[0])
        unit = parse_unit(args[2]) if len(args) > 2 else Unit.GRAM
        currency = await _currency_arg(svc, update, args, 3)
    except UnsupportedCurrencyError as e:
        await update.message.reply_text(f"⚠️ {e}")
        return

    result = await svc.convert_detailed(metal, amount, unit, currency)
    await update.message.reply_text(format_conversion(result))


# --- /nisab ---
async def nisab_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE, svc: MetalsService) -> None:
    """Handle /nisab [currency] - monetary Nisab for gold and silver."""
    if not _check_rate_limit(update, "read_command"):
        await _reply_rate_limited(update)
        return
    try:
        currency = await _currency_arg(svc, update, context.args or [], 0)
    except UnsupportedCurrencyError as e:
        await update.message.reply_text(f"⚠️ {e}")
        return
    values = await svc.nisab(currency)
    await update.message.reply_text(format_nisab(values, currency, NISAB_WEIGHT_GRAMS))


# --- /zakat ---
async def zakat_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE, svc: MetalsService) -> None:
    """Handle /zakat <wealth> [currency] - Zakat due against the gold Nisab."""
    if not _check_rate_limit(update, "read_command"):
        await _reply_rate_limited(update)
        return
    args = context.args or []
    if not args:
        await update.message.reply_text("Usage: /zakat <wealth> [currency]")
        return
    wealth = _amount_arg(args[0])
    if wealth is None:
        await update.message.reply_text("⚠️ Wealth must be a positive number.")
        return
    try:
        currency = await _currency_arg(svc, update, args, 1)
    except UnsupportedCurrencyError as e:
        await update.message.reply_text(f"⚠️ {e}")
        return
    due, nisab_value = await svc.zakat_due(wealth, currency)
    await update.message.reply_text(format_zakat(wealth, nisab_value, due, currency))


# --- /holding ---
async def holding(update: Update, context: ContextTypes.DEFAULT_TYPE, svc: MetalsService) -> None:
    """Handle /holding <metal> <amount> [unit] - declare a holding for Nisab alerts."""
    if not _check_rate_limit(update, "write_command"):
        await _reply_rate_limited(update)
        return
    args = context.args or []
    if len(args) < 2:
        await update.message.reply_text("Usage: /holding <gold|silver> <amount> [g|oz]")
        return
    amount = _amount_arg(args[1], allow_zero=True)
    if amount is None:
        await update.message.reply_text("⚠️ Amount must be zero or a positive number.")
        return
    try:
        metal = parse_metal(args[0])
        unit = parse_unit(args[2]) if len(args) > 2 else Unit.GRAM
    except UnsupportedCurrencyError as e:
        await update.message.reply_text(f"⚠️ {e}")
        return

    alert = await svc.set_holding(_user_id(update), metal, amount, unit)
    reply = f"✅ {metal.display_name} holding saved."
    if alert is None and await svc.meets_nisab(metal, amount, unit):
        reply += " It is at or above the Nisab weight."
    await update.message.reply_text(reply)


# --- /currency ---
async def currency_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE, svc: MetalsService) -> None:
    """Handle /currency <code> - set the preferred currency."""
    if not _check_rate_limit(update, "write_command"):
        await _reply_rate_limited(update)
        return
    args = context.args or []
    if not args:
        await update.message.reply_text("Usage: /currency <USD|GBP|AED|SAR|EGP>")
        return
    try:
        prefs = await svc.set_preferences(_user_id(update), currency=args[0])
    except UnsupportedCurrencyError as e:
        await update.message.reply_text(f"⚠️ {e}")
        return
    await update.message.reply_text(f"✅ Currency set to {prefs.currency.value}.")


# --- /alerts ---
async def alerts_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE, svc: MetalsService) -> None:
    """Handle /alerts on|off - toggle all notifications."""
    if not _check_rate_limit(update, "write_command"):
        await _reply_rate_limited(update)
        return
    args = context.args or []
    choice = args[0].strip().lower() if args else ""
    if choice not in ("on", "off"):
        await update.message.reply_text("Usage: /alerts on|off")
        return
    prefs = await svc.set_preferences(_user_id(update), notifications_enabled=choice == "on")
    state = "enabled" if prefs.notifications_enabled else "disabled"
    await update.message.reply_text(f"🔔 Alerts {state}.")


# --- /threshold ---
async def threshold_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE, svc: MetalsService) -> None:
    """Handle /threshold <percent> - minimum price change that triggers an alert."""
    if not _check_rate_limit(update, "write_command"):
        await _reply_rate_limited(update)
        return
    args = context.args or []
    value = parse_positive_number(args[0].rstrip("%"), max_val=MAX_THRESHOLD_PCT) if args else None
    if value is None:
        await update.message.reply_text("Usage: /threshold <percent>, e.g. /threshold 2.5")
        return
    prefs = await svc.set_preferences(_user_id(update), alert_threshold_percent=value)
    await update.message.reply_text(f"✅ Alert threshold set to {prefs.alert_threshold_percent:g}%.")


# --- /settings ---
async def settings_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE, svc: MetalsService) -> None:
    """Handle /settings - show the user's preferences."""
    if not _check_rate_limit(update, "read_command"):
        await _reply_rate_limited(update)
        return
    prefs = await svc.get_preferences(_user_id(update))
    await update.message.reply_text(format_preferences(prefs))


def build_handlers(svc: MetalsService) -> List[CommandHandler]:
    """
    Build and return list of Telegram bot handlers bound to the service.

    Returns:
        List of handler instances for registration with bot
    """
    return [
        CommandHandler("start", partial(start, svc=svc)),
        CommandHandler("help", partial(start, svc=svc)),
        CommandHandler("prices", partial(prices, svc=svc)),
        CommandHandler("convert", partial(convert, svc=svc)),
        CommandHandler("nisab", partial(nisab_cmd, svc=svc)),
        CommandHandler("zakat", partial(zakat_cmd, svc=svc)),
        CommandHandler("holding", partial(holding, svc=svc)),
        CommandHandler("currency", partial(currency_cmd, svc=svc)),
        CommandHandler("alerts", partial(alerts_cmd, svc=svc)),
        CommandHandler("threshold", partial(threshold_cmd, svc=svc)),
        CommandHandler("settings", partial(settings_cmd, svc=svc)),
    ]
