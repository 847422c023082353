# tests/test_shared.py
"""
Shared Utility Tests - Rate Limiter and Input Validators

Files that USE this module:
- pytest (test runner executes these tests)

Files that this module USES:
- nisabwatch.shared.rate_limiter (RateLimiter, RateLimitConfig)
- nisabwatch.shared.validators (validation functions)
"""
import pytest

from nisabwatch.shared.rate_limiter import RateLimitConfig, RateLimiter
from nisabwatch.shared.validators import (
    parse_positive_number,
    validate_api_key,
    validate_bot_token,
    validate_chat_id,
    validate_daily_time,
)


class FakeMonotonic:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestRateLimiter:
    def test_allows_up_to_limit_then_blocks(self):
        clock = FakeMonotonic()
        limiter = RateLimiter(clock=clock)
        config = RateLimitConfig(max_requests=3, time_window=60, block_duration=120)

        assert [limiter.is_allowed("read_command", "user:1", config) for _ in range(4)] == [True, True, True, False]
        # Other users and buckets are independent
        assert limiter.is_allowed("read_command", "user:2", config)
        assert limiter.is_allowed("write_command", "user:1", config)

    def test_block_outlasts_window(self):
        clock = FakeMonotonic()
        limiter = RateLimiter(clock=clock)
        config = RateLimitConfig(max_requests=1, time_window=10, block_duration=120)

        assert limiter.is_allowed("b", "u", config)
        assert not limiter.is_allowed("b", "u", config)
        clock.now += 60
        assert not limiter.is_allowed("b", "u", config)
        clock.now += 61
        assert limiter.is_allowed("b", "u", config)

    def test_window_slides(self):
        clock = FakeMonotonic()
        limiter = RateLimiter(clock=clock)
        config = RateLimitConfig(max_requests=2, time_window=10)

        limiter.is_allowed("b", "u", config)
        clock.now += 5
        limiter.is_allowed("b", "u", config)
        assert limiter.remaining("b", "u", config) == 0
        clock.now += 6
        assert limiter.remaining("b", "u", config) == 1

    def test_reset(self):
        limiter = RateLimiter(clock=FakeMonotonic())
        config = RateLimitConfig(max_requests=1, time_window=10)
        limiter.is_allowed("b", "u", config)
        limiter.is_allowed("b", "u", config)
        limiter.reset()
        assert limiter.is_allowed("b", "u", config)


class TestValidators:
    @pytest.mark.parametrize("chat_id, ok", [
        ("123456789", True), ("-1001234567890", True), ("@metals_channel", True),
        ("", False), ("@a", False), ("12ab", False),
    ])
    def test_chat_id(self, chat_id, ok):
        assert validate_chat_id(chat_id) is ok

    def test_bot_token(self):
        assert validate_bot_token("123456789:" + "A" * 35)
        assert not validate_bot_token("123:short")
        assert not validate_bot_token("")

    def test_api_key(self):
        assert validate_api_key("abcdef123456")
        assert not validate_api_key("short")
        assert not validate_api_key("has a space in it")

    @pytest.mark.parametrize("value, ok", [
        ("08:00", True), ("23:59", True), ("7:30", True), ("24:00", False), ("08:60", False), ("8am", False),
    ])
    def test_daily_time(self, value, ok):
        assert validate_daily_time(value) is ok

    @pytest.mark.parametrize("raw, expected", [
        ("100", 100.0), ("1,250.5", 1250.5), (" 2.5 ", 2.5),
        ("0", None), ("-3", None), ("abc", None), ("nan", None), ("", None),
    ])
    def test_parse_positive_number(self, raw, expected):
        assert parse_positive_number(raw) == expected

    def test_parse_positive_number_max(self):
        assert parse_positive_number("150", max_val=100) is None
