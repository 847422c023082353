# src/nisabwatch/application/alerts.py
"""
Alert Policy - Deciding and Delivering Price Notifications

AlertPolicy decides whether a notification should fire:
- price change: the change since the previous live refresh reaches the user's
  threshold, at most once per (user, metal, currency) per refreshed table
- Nisab crossing: a declared holding goes from below to at/above the Nisab
  weight (edge-triggered; dropping back below re-arms it)
- daily update: at most once every 24 hours

AlertDispatcher delivers what the policy decided. It records the
last-notified time before sending, and a delivery failure never rolls that
back: the policy decides, the sink only tries to deliver.

Files that USE this module:
- nisabwatch.application.metals_service (alert cycle and daily updates)
- tests.test_alerts (unit tests)

Files that this module USES:
- nisabwatch.adapters.formatting.formatter (alert texts)
- nisabwatch.adapters.notifications.base (NotificationSink)
- nisabwatch.application.preferences (PreferencesService)
- nisabwatch.domain.nisab (meets_nisab, nisab_threshold)
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

from nisabwatch.adapters.formatting.formatter import (
    daily_update_text,
    nisab_reached_text,
    price_change_text,
)
from nisabwatch.adapters.notifications.base import NotificationSink
from nisabwatch.application.preferences import PreferencesService
from nisabwatch.domain.errors import NotificationDeliveryError
from nisabwatch.domain.models import (
    Alert,
    Currency,
    Metal,
    NotificationCategory,
    PriceTable,
    UserPreferences,
)
from nisabwatch.domain.nisab import meets_nisab, nisab_threshold

log = logging.getLogger(__name__)

DAILY_UPDATE_INTERVAL = timedelta(hours=24)


class AlertPolicy:
    """Stateful alert decisions; state is kept in memory for the process lifetime."""

    def __init__(self):
        # (user, metal, currency) -> fetched_at of the table that last fired
        self._price_alerted: Dict[Tuple[str, Metal, Currency], datetime] = {}
        # (user, metal) -> whether the holding was at/above Nisab at the last evaluation
        self._above_nisab: Dict[Tuple[str, Metal], bool] = {}

    def price_change_alerts(self, user_id: str, table: PriceTable, prefs: UserPreferences) -> List[Alert]:
        """
        Price-change alerts for the user's currency.

        Returns:
            One alert per metal whose change reaches the threshold, none when
            notifications are disabled or the table carries no change data
        """
        if not prefs.notifications_enabled:
            return []

        alerts = []
        for metal in Metal:
            quote = table.quote(metal, prefs.currency)
            change = quote.change
            if change is None or change.percentage < prefs.alert_threshold_percent:
                continue
            key = (str(user_id), metal, prefs.currency)
            if self._price_alerted.get(key) == table.fetched_at:
                continue  # already fired for this refresh
            self._price_alerted[key] = table.fetched_at
            title, body = price_change_text(metal, change)
            alerts.append(Alert(
                category=NotificationCategory.PRICE_CHANGE,
                metal=metal,
                currency=prefs.currency,
                title=title,
                body=body,
            ))
        return alerts

    def seed_holding(self, user_id: str, metal: Metal, grams: float) -> None:
        """Record a known holding's side of the Nisab weight without alerting."""
        self._above_nisab[(str(user_id), Metal(metal))] = meets_nisab(metal, grams)

    def nisab_crossing_alert(
        self,
        user_id: str,
        metal: Metal,
        grams: float,
        table: PriceTable,
        prefs: UserPreferences,
    ) -> Optional[Alert]:
        """
        Edge-triggered Nisab alert for a holding of ``grams`` of ``metal``.

        The below/above state is tracked even while notifications are
        disabled, so enabling them later does not fire for an old crossing.
        """
        key = (str(user_id), Metal(metal))
        above = meets_nisab(metal, grams)
        was_above = self._above_nisab.get(key, False)
        self._above_nisab[key] = above

        if not above or was_above:
            return None
        if not prefs.notifications_enabled:
            return None

        threshold = nisab_threshold(table, metal, prefs.currency)
        holding_value = grams * threshold.price_per_gram
        title, body = nisab_reached_text(metal, holding_value, threshold.monetary_value, prefs.currency)
        return Alert(
            category=NotificationCategory.NISAB_THRESHOLD,
            metal=Metal(metal),
            currency=prefs.currency,
            title=title,
            body=body,
        )

    def daily_update_alert(
        self,
        user_id: str,
        table: PriceTable,
        prefs: UserPreferences,
        now: datetime,
    ) -> Optional[Alert]:
        """Daily price summary, suppressed within 24 hours of the last one."""
        if not prefs.notifications_enabled:
            return None
        last = prefs.last_notified(NotificationCategory.DAILY_UPDATE)
        if last is not None and now - last < DAILY_UPDATE_INTERVAL:
            log.debug("Daily update for user %s suppressed, last sent %s", user_id, last)
            return None
        title, body = daily_update_text(table, prefs.currency)
        return Alert(
            category=NotificationCategory.DAILY_UPDATE,
            metal=Metal.GOLD,
            currency=prefs.currency,
            title=title,
            body=body,
        )


class AlertDispatcher:
    """Records and delivers alerts."""

    def __init__(self, sink: NotificationSink, preferences: PreferencesService):
        self.sink = sink
        self.preferences = preferences

    async def dispatch(self, user_id: str, alerts: Sequence[Alert], now: datetime) -> int:
        """
        Record last-notified times, then deliver.

        Returns:
            Number of alerts actually delivered
        """
        if not alerts:
            return 0

        for category in dict.fromkeys(alert.category for alert in alerts):
            await self.preferences.mark_notified(user_id, category, now)

        delivered = 0
        for alert in alerts:
            try:
                if await self.sink.send(user_id, alert.title, alert.body):
                    delivered += 1
            except NotificationDeliveryError as e:
                log.warning("Failed to deliver %s alert to user %s: %s", alert.tag, user_id, e)
            except Exception as e:
                log.error("Unexpected error delivering %s alert to user %s: %s",
                          alert.tag, user_id, e, exc_info=True)
        log.info("Dispatched %d/%d alerts to user %s", delivered, len(alerts), user_id)
        return delivered
