# tests/test_handlers.py
"""
Handler Tests - Telegram Commands against an In-Memory Service

Files that USE this module:
- pytest (test runner executes these tests)

Files that this module USES:
- nisabwatch.adapters.telegram.handlers (command handlers)
- nisabwatch.adapters.telegram.jobs (job callbacks)
- unittest.mock (fake Update and context objects)
"""
import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, Mock

import pytest

from nisabwatch.adapters.telegram import handlers, jobs
from nisabwatch.application.alerts import AlertDispatcher, AlertPolicy
from nisabwatch.application.cache import PriceCache
from nisabwatch.application.history import PriceHistoryStore
from nisabwatch.application.metals_service import MetalsService
from nisabwatch.application.preferences import LocalPreferencesStore, PreferencesService
from nisabwatch.application.resolver import FallbackResolver
from nisabwatch.domain.models import Currency, Metal
from nisabwatch.shared.rate_limiter import rate_limiter

from tests.conftest import FakeAdapter, MutableClock, RecordingSink, make_table


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    rate_limiter.reset()
    yield
    rate_limiter.reset()


@pytest.fixture
def svc():
    clock = MutableClock()
    cache = PriceCache(
        FallbackResolver([FakeAdapter("live", table=make_table(gold_per_gram=85.0))]),
        PriceHistoryStore(),
        ttl=timedelta(hours=1),
        clock=clock,
    )
    preferences = PreferencesService(LocalPreferencesStore())
    return MetalsService(
        cache=cache,
        policy=AlertPolicy(),
        dispatcher=AlertDispatcher(RecordingSink(), preferences),
        preferences=preferences,
        clock=clock,
    )


def _update(user_id=42):
    update = Mock()
    update.effective_user.id = user_id
    update.message.reply_text = AsyncMock()
    return update


def _context(*args):
    context = Mock()
    context.args = list(args)
    return context


def _run(handler, svc, *args, update=None):
    update = update or _update()
    asyncio.run(handler(update, _context(*args), svc))
    return update.message.reply_text.await_args.args[0]


class TestReadCommands:
    def test_prices_in_requested_currency(self, svc):
        reply = _run(handlers.prices, svc, "gbp")
        assert reply.startswith("Precious metal prices (GBP)")

    def test_prices_unknown_currency(self, svc):
        reply = _run(handlers.prices, svc, "JPY")
        assert reply.startswith("⚠️ Unsupported currency")

    def test_convert(self, svc):
        reply = _run(handlers.convert, svc, "gold", "100", "g", "USD")
        assert reply.startswith("100.00 g Gold = $8,500.00")

    def test_convert_usage_and_bad_amount(self, svc):
        assert _run(handlers.convert, svc, "gold").startswith("Usage:")
        assert _run(handlers.convert, svc, "gold", "-5").startswith("⚠️ Amount")

    def test_nisab_uses_preferred_currency(self, svc):
        asyncio.run(svc.set_preferences("42", currency="AED"))
        reply = _run(handlers.nisab_cmd, svc)
        assert reply.startswith("Nisab threshold (AED)")

    def test_zakat(self, svc):
        reply = _run(handlers.zakat_cmd, svc, "10,000", "USD")
        assert reply.endswith("Zakat due (2.5%): $250.00")

    def test_rate_limited(self, svc):
        update = _update()
        for _ in range(12):
            _run(handlers.settings_cmd, svc, update=update)
        assert _run(handlers.settings_cmd, svc, update=update).startswith("⏰ Rate limit exceeded")


class TestWriteCommands:
    def test_start_registers_user(self, svc):
        reply = _run(handlers.start, svc)
        assert "/prices" in reply
        assert svc.preferences.user_ids() == ["42"]

    def test_alerts_and_threshold(self, svc):
        assert _run(handlers.alerts_cmd, svc, "on") == "🔔 Alerts enabled."
        assert _run(handlers.threshold_cmd, svc, "2.5%") == "✅ Alert threshold set to 2.5%."
        prefs = svc.preferences.current("42")
        assert prefs.notifications_enabled and prefs.alert_threshold_percent == 2.5

    def test_threshold_rejects_zero(self, svc):
        assert _run(handlers.threshold_cmd, svc, "0").startswith("Usage:")

    def test_currency(self, svc):
        assert _run(handlers.currency_cmd, svc, "egp") == "✅ Currency set to EGP."
        assert svc.preferences.current("42").currency is Currency.EGP

    def test_holding_reports_nisab(self, svc):
        reply = _run(handlers.holding, svc, "silver", "700")
        assert reply == "✅ Silver holding saved. It is at or above the Nisab weight."
        assert svc.preferences.current("42").holdings_grams == {Metal.SILVER: 700.0}

    def test_holding_zero_clears(self, svc):
        assert _run(handlers.holding, svc, "gold", "0") == "✅ Gold holding saved."


class TestJobs:
    def test_price_watch_job_swallows_errors(self):
        svc = Mock()
        svc.run_alert_cycle = AsyncMock(side_effect=RuntimeError("boom"))
        asyncio.run(jobs.price_watch_job(Mock(), svc))
        svc.run_alert_cycle.assert_awaited_once()

    def test_nisab_log_job(self):
        svc = Mock()
        svc.record_daily_nisab = AsyncMock(return_value=[])
        asyncio.run(jobs.nisab_log_job(Mock(), svc))
        svc.record_daily_nisab.assert_awaited_once()
