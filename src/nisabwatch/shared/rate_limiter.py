"""
Rate Limiter - Per-User Command Throttling

Sliding-window limiter for bot commands. Commands that only read the cached
price table get a generous window; commands that write preferences (and so
trigger a remote sync) get a tighter one. A user who exceeds a window is
blocked for a cool-off period.

Files that USE this module:
- nisabwatch.adapters.telegram.handlers (rate_limiter and RATE_LIMITS for all commands)

Files that this module USES:
- None (pure utility implementation)
"""
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Tuple


@dataclass(frozen=True)
class RateLimitConfig:
    """Configuration for one rate-limit bucket."""
    max_requests: int
    time_window: float  # seconds
    block_duration: float = 120.0


class RateLimiter:
    """In-memory sliding-window rate limiter keyed by (bucket, user)."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._requests: Dict[Tuple[str, str], Deque[float]] = defaultdict(deque)
        self._blocked_until: Dict[Tuple[str, str], float] = {}

    def _prune(self, key: Tuple[str, str], now: float, config: RateLimitConfig) -> Deque[float]:
        window = self._requests[key]
        cutoff = now - config.time_window
        while window and window[0] <= cutoff:
            window.popleft()
        return window

    def is_allowed(self, bucket: str, identifier: str, config: RateLimitConfig) -> bool:
        """
        Record a request and report whether it is allowed.

        Args:
            bucket: Name of the rate-limit bucket (e.g. "read_command")
            identifier: Unique identifier of the caller (e.g. Telegram user id)
            config: Limits for the bucket
        """
        key = (bucket, identifier)
        now = self._clock()

        blocked_until = self._blocked_until.get(key)
        if blocked_until is not None:
            if now < blocked_until:
                return False
            del self._blocked_until[key]

        window = self._prune(key, now, config)
        if len(window) >= config.max_requests:
            self._blocked_until[key] = now + config.block_duration
            return False

        window.append(now)
        return True

    def remaining(self, bucket: str, identifier: str, config: RateLimitConfig) -> int:
        """Requests still available for the caller within the current window."""
        key = (bucket, identifier)
        window = self._prune(key, self._clock(), config)
        return max(0, config.max_requests - len(window))

    def reset(self) -> None:
        self._requests.clear()
        self._blocked_until.clear()


# Global rate limiter instance
rate_limiter = RateLimiter()

RATE_LIMITS = {
    "read_command": RateLimitConfig(max_requests=12, time_window=60),
    "write_command": RateLimitConfig(max_requests=6, time_window=60),
}
