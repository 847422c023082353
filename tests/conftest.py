# tests/conftest.py
"""
Shared Test Helpers - Price Tables, Fake Adapters and Fake Sinks

Files that USE this module:
- pytest (fixtures are discovered automatically)
- tests.* (helper builders imported directly)

Files that this module USES:
- nisabwatch.adapters.providers.base (PriceSourceAdapter, SpotQuote, normalize_spot)
- nisabwatch.adapters.notifications.base (NotificationSink)
"""
from datetime import datetime, timezone
from typing import List, Optional, Tuple

import pytest

from nisabwatch.adapters.notifications.base import NotificationSink
from nisabwatch.adapters.providers.base import Deadline, PriceSourceAdapter, SpotQuote, normalize_spot
from nisabwatch.domain.errors import NotificationDeliveryError, ProviderResponseError
from nisabwatch.domain.models import GRAMS_PER_TROY_OUNCE, Metal, PriceTable

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_table(gold_per_gram: float = 85.0, silver_per_gram: float = 0.95,
               source: str = "test", fetched_at: datetime = T0) -> PriceTable:
    """Full table built from USD gram prices with the embedded exchange rates."""
    spot = SpotQuote(usd_per_ounce={
        Metal.GOLD: gold_per_gram * GRAMS_PER_TROY_OUNCE,
        Metal.SILVER: silver_per_gram * GRAMS_PER_TROY_OUNCE,
    })
    return normalize_spot(spot, source=source, observed_at=fetched_at)


class FakeAdapter(PriceSourceAdapter):
    """Adapter that returns a fixed table or raises, counting its calls."""

    def __init__(self, name: str, table: Optional[PriceTable] = None,
                 error: Optional[Exception] = None, api_key: str = "test-key-123"):
        super().__init__("https://example.invalid", api_key)
        self.name = name
        self.table = table
        self.error = error
        self.calls = 0

    def fetch(self, deadline: Deadline) -> PriceTable:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.table

    def _fetch_spot(self, session, deadline) -> SpotQuote:
        raise NotImplementedError


class RecordingSink(NotificationSink):
    """Sink that records deliveries and can be told to fail or deny."""

    def __init__(self, fail: bool = False, granted: bool = True):
        self.fail = fail
        self.granted = granted
        self.sent: List[Tuple[str, str, str]] = []

    async def request_permission(self, recipient: str) -> bool:
        return self.granted

    async def send(self, recipient: str, title: str, body: str) -> bool:
        if self.fail:
            raise NotificationDeliveryError("channel unavailable")
        if not self.granted:
            return False
        self.sent.append((recipient, title, body))
        return True


class MutableClock:
    """Callable clock whose time tests can move forward."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def table() -> PriceTable:
    return make_table()


@pytest.fixture
def failing_adapter() -> FakeAdapter:
    return FakeAdapter("broken", error=ProviderResponseError("HTTP 503"))
