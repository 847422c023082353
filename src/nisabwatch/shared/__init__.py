"""
Shared Utilities - Cross-cutting Concerns

This package contains shared utilities used across all layers:
- Validation
- Rate limiting
- Logging configuration
"""

from nisabwatch.shared.validators import (
    parse_positive_number,
    validate_api_key,
    validate_bot_token,
    validate_chat_id,
    validate_daily_time,
)
from nisabwatch.shared.rate_limiter import RATE_LIMITS, RateLimitConfig, RateLimiter, rate_limiter

__all__ = [
    "parse_positive_number",
    "validate_api_key",
    "validate_bot_token",
    "validate_chat_id",
    "validate_daily_time",
    "RATE_LIMITS",
    "RateLimitConfig",
    "RateLimiter",
    "rate_limiter",
]
