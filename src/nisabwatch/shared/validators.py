"""
Input Validation Utilities - Configuration and Command Input Checks

This module provides validation functions for configuration values and user
command input: bot tokens, chat IDs, provider API keys, daily schedule times
and numeric arguments.

Files that USE this module:
- nisabwatch.config.settings (field validators)
- nisabwatch.adapters.telegram.handlers (parse_positive_number for command arguments)

Files that this module USES:
- None (pure utility functions)
"""
import math
import re
from typing import Optional


def validate_chat_id(chat_id: str) -> bool:
    """
    Validate Telegram chat ID format.

    Chat IDs can be:
    - @channelname (public channels)
    - -1001234567890 (private channels/groups)
    - 123456789 (user IDs)
    """
    if not chat_id:
        return False
    if chat_id.startswith("@"):
        return bool(re.match(r"^@[a-zA-Z0-9_]{2,}$", chat_id))
    return bool(re.match(r"^-?\d+$", chat_id))


def validate_bot_token(token: str) -> bool:
    """
    Validate Telegram bot token format (123456789:ABCDEFghijklmnopQRSTUVwxyz...).
    """
    if not token:
        return False
    return bool(re.match(r"^\d{8,10}:[A-Za-z0-9_-]{35}$", token))


def validate_api_key(api_key: str, min_length: int = 10) -> bool:
    """
    Validate provider API key format.

    Args:
        api_key: API key to validate
        min_length: Minimum length requirement
    """
    if not api_key:
        return False
    return len(api_key) >= min_length and not any(ch.isspace() for ch in api_key)


def validate_daily_time(value: str) -> bool:
    """Validate a 24h "HH:MM" schedule time."""
    match = re.match(r"^(\d{1,2}):(\d{2})$", value or "")
    if not match:
        return False
    hour, minute = int(match.group(1)), int(match.group(2))
    return 0 <= hour < 24 and 0 <= minute < 60


def parse_positive_number(value: str, max_val: Optional[float] = None) -> Optional[float]:
    """
    Parse a user-supplied number, accepting thousands separators.

    Returns:
        The parsed value, or None if it is not a finite number > 0 (and <= max_val)
    """
    if not value:
        return None
    try:
        number = float(value.replace(",", "").strip())
    except ValueError:
        return None
    if not math.isfinite(number) or number <= 0:
        return None
    if max_val is not None and number > max_val:
        return None
    return number
