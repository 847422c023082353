# src/nisabwatch/application/metals_service.py
"""
Metals Service - Caller-Facing API of the Price and Nisab Engine

This module is the single entry point the bot (or any other caller) uses:
price reads, conversions, Nisab and Zakat calculations, preferences, and the
scheduled alert cycles. Every price read goes through the cache, so callers
never talk to providers directly and never see a resolution error.

Files that USE this module:
- nisabwatch.app (build_metals_service creates the service at startup)
- nisabwatch.adapters.telegram.handlers (command handlers)
- nisabwatch.adapters.telegram.jobs (scheduled jobs)
- tests.test_metals_service (unit tests)

Files that this module USES:
- nisabwatch.adapters.providers (the three price source adapters)
- nisabwatch.adapters.persistence (JSON file store, Supabase record store)
- nisabwatch.application.* (resolver, cache, history, alerts, preferences, nisab log)
- nisabwatch.domain (conversion, Nisab and Zakat rules)
- nisabwatch.config (Settings)
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from nisabwatch.adapters.notifications.base import NotificationSink
from nisabwatch.adapters.persistence.file_store import JsonFileStore
from nisabwatch.adapters.persistence.remote_store import RemotePreferencesStore, SupabaseRecordStore
from nisabwatch.adapters.providers import (
    GoldApiAdapter,
    MetalpriceApiAdapter,
    MetalsLiveAdapter,
    PriceSourceAdapter,
)
from nisabwatch.application.alerts import AlertDispatcher, AlertPolicy
from nisabwatch.application.cache import PriceCache
from nisabwatch.application.history import PriceHistoryStore
from nisabwatch.application.nisab_log import NisabLogResult, NisabPriceLog
from nisabwatch.application.preferences import LocalPreferencesStore, PreferencesService
from nisabwatch.application.resolver import FallbackResolver
from nisabwatch.config.settings import Settings
from nisabwatch.domain import conversion, nisab
from nisabwatch.domain.models import (
    Alert,
    ConversionResult,
    Currency,
    Metal,
    PriceTable,
    Unit,
    UserPreferences,
)

log = logging.getLogger(__name__)


class MetalsService:
    """Facade over the cache, alert policy, preferences and daily Nisab log."""

    def __init__(
        self,
        cache: PriceCache,
        policy: AlertPolicy,
        dispatcher: AlertDispatcher,
        preferences: PreferencesService,
        nisab_log: Optional[NisabPriceLog] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.cache = cache
        self.policy = policy
        self.dispatcher = dispatcher
        self.preferences = preferences
        self.nisab_log = nisab_log
        self._clock = clock
        self._seed_nisab_state()

    def _seed_nisab_state(self) -> None:
        # Holdings already above Nisab at startup must not alert again after a restart
        for user_id in self.preferences.user_ids():
            for metal, grams in self.preferences.current(user_id).holdings_grams.items():
                self.policy.seed_holding(user_id, metal, grams)

    # -------- prices --------

    async def get_price_table(self) -> PriceTable:
        entry = await self.cache.get()
        return entry.table

    async def refresh(self) -> PriceTable:
        """Drop the cached table and resolve a new one."""
        self.cache.invalidate()
        return await self.get_price_table()

    async def convert(self, metal: Metal, amount: float, unit: Unit, currency: Currency) -> float:
        table = await self.get_price_table()
        return conversion.convert(
            table,
            conversion.parse_metal(metal),
            amount,
            conversion.parse_unit(unit),
            conversion.parse_currency(currency),
        )

    async def convert_detailed(self, metal: Metal, amount: float, unit: Unit, currency: Currency) -> ConversionResult:
        table = await self.get_price_table()
        return conversion.convert_detailed(
            table,
            conversion.parse_metal(metal),
            amount,
            conversion.parse_unit(unit),
            conversion.parse_currency(currency),
        )

    async def convert_many(self, requests: Iterable[Tuple[Metal, float, Unit, Currency]]) -> List[ConversionResult]:
        table = await self.get_price_table()
        parsed = [
            (conversion.parse_metal(m), amount, conversion.parse_unit(u), conversion.parse_currency(c))
            for m, amount, u, c in requests
        ]
        return conversion.convert_many(table, parsed)

    # -------- Nisab and Zakat --------

    async def nisab(self, currency: Currency) -> Dict[Metal, float]:
        table = await self.get_price_table()
        return nisab.nisab_values(table, conversion.parse_currency(currency))

    async def meets_nisab(self, metal: Metal, amount: float, unit: Unit = Unit.GRAM) -> bool:
        return nisab.meets_nisab(conversion.parse_metal(metal), amount, conversion.parse_unit(unit))

    async def zakat_due(self, wealth: float, currency: Currency, metal: Metal = Metal.GOLD) -> Tuple[float, float]:
        """
        Zakat owed on ``wealth`` against the Nisab of ``metal``.

        Returns:
            (zakat due, Nisab value used)
        """
        values = await self.nisab(currency)
        nisab_value = values[conversion.parse_metal(metal)]
        return nisab.zakat_due(wealth, nisab_value), nisab_value

    # -------- preferences --------

    async def get_preferences(self, user_id: str) -> UserPreferences:
        return await self.preferences.load(user_id)

    async def set_preferences(self, user_id: str, **changes) -> UserPreferences:
        """
        Update preference fields.

        Raises:
            UnsupportedCurrencyError: If ``currency`` is not supported
            ValueError: If ``alert_threshold_percent`` is not positive
        """
        if "currency" in changes:
            changes["currency"] = conversion.parse_currency(changes["currency"])
        threshold = changes.get("alert_threshold_percent")
        if threshold is not None and not threshold > 0:
            raise ValueError(f"Alert threshold must be positive, got {threshold!r}")
        return await self.preferences.update(user_id, **changes)

    async def set_holding(self, user_id: str, metal: Metal, amount: float, unit: Unit = Unit.GRAM) -> Optional[Alert]:
        """
        Store a declared holding and evaluate the Nisab-crossing alert.

        Returns:
            The alert that was dispatched, if the holding just reached Nisab
        """
        metal = conversion.parse_metal(metal)
        grams = conversion.to_grams(amount, conversion.parse_unit(unit))
        prefs = self.preferences.current(user_id).with_holding(metal, grams)
        await self.preferences.save(user_id, prefs)

        table = await self.get_price_table()
        alert = self.policy.nisab_crossing_alert(user_id, metal, grams, table, prefs)
        if alert is not None:
            await self.dispatcher.dispatch(user_id, [alert], self._clock())
        return alert

    # -------- scheduled cycles --------

    async def run_alert_cycle(self) -> int:
        """
        Refresh prices when stale and send price-change alerts.

        Every live refresh since the previous cycle is evaluated, including
        refreshes triggered by user commands; fallback tables never alert.

        Returns:
            Number of alerts dispatched
        """
        await self.cache.refresh_if_stale()

        now = self._clock()
        total = 0
        for entry in self.cache.claim_refreshes():
            for user_id in self.preferences.user_ids():
                prefs = self.preferences.current(user_id)
                alerts = self.policy.price_change_alerts(user_id, entry.table, prefs)
                if alerts:
                    await self.dispatcher.dispatch(user_id, alerts, now)
                    total += len(alerts)
        if total:
            log.info("Alert cycle dispatched %d price-change alerts", total)
        return total

    async def run_daily_updates(self, now: Optional[datetime] = None) -> int:
        """Send the daily price update to every user that is due one."""
        now = now or self._clock()
        table = await self.get_price_table()
        total = 0
        for user_id in self.preferences.user_ids():
            alert = self.policy.daily_update_alert(user_id, table, self.preferences.current(user_id), now)
            if alert is not None:
                await self.dispatcher.dispatch(user_id, [alert], now)
                total += 1
        return total

    async def record_daily_nisab(
        self,
        today: Optional[date] = None,
        currencies: Sequence[Currency] = tuple(Currency),
    ) -> List[NisabLogResult]:
        """Log today's Nisab values for each currency; a no-op without a record store."""
        if self.nisab_log is None:
            return []
        today = today or self._clock().date()
        table = await self.get_price_table()
        return [await self.nisab_log.record_today(table, currency, today) for currency in currencies]


def build_adapters(settings: Settings) -> List[PriceSourceAdapter]:
    """Price source adapters in priority order."""
    return [
        MetalpriceApiAdapter(settings.metalpriceapi_url, settings.metalpriceapi_key),
        MetalsLiveAdapter(settings.metals_live_url, settings.metals_live_key),
        GoldApiAdapter(settings.goldapi_url, settings.goldapi_key),
    ]


def build_metals_service(settings: Settings, sink: NotificationSink) -> MetalsService:
    """
    Wire the engine from configuration.

    Args:
        settings: Application settings
        sink: Where alerts are delivered (the Telegram notifier in the bot)
    """
    adapters = build_adapters(settings)
    configured = [a.name for a in adapters if a.is_configured()]
    if configured:
        log.info("Price providers configured: %s", ", ".join(configured))
    else:
        log.warning("No price provider API keys configured, static fallback prices will be used")

    resolver = FallbackResolver(adapters, attempt_timeout=settings.provider_timeout_seconds)
    history = PriceHistoryStore(JsonFileStore(settings.price_history_file))
    cache = PriceCache(resolver, history, ttl=timedelta(minutes=settings.price_cache_minutes))

    records: Optional[SupabaseRecordStore] = None
    remote: Optional[RemotePreferencesStore] = None
    nisab_log: Optional[NisabPriceLog] = None
    if settings.supabase_enabled:
        records = SupabaseRecordStore(settings.supabase_url, settings.supabase_key, settings.http_timeout_seconds)
        remote = RemotePreferencesStore(records, settings.supabase_preferences_table)
        nisab_log = NisabPriceLog(records, settings.supabase_nisab_table)
        log.info("Supabase sync enabled (%s)", settings.supabase_url)

    defaults = UserPreferences(
        currency=Currency(settings.default_currency),
        alert_threshold_percent=settings.default_alert_threshold_pct,
    )
    preferences = PreferencesService(
        LocalPreferencesStore(JsonFileStore(settings.preferences_file)),
        remote=remote,
        defaults=defaults,
    )
    return MetalsService(
        cache=cache,
        policy=AlertPolicy(),
        dispatcher=AlertDispatcher(sink, preferences),
        preferences=preferences,
        nisab_log=nisab_log,
    )
