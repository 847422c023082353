"""
Domain Models - Pure Business Objects

This module contains domain models representing core business concepts:
- Metal, currency and unit codes
- Price quotes and the full gold/silver price table
- Price changes between two observations
- Nisab thresholds and conversion results
- Per-user preferences and alert records

Files that USE this module:
- nisabwatch.application.* (all services use domain models)
- nisabwatch.adapters.* (adapters create and serialize domain models)
- tests.* (tests use domain models for test data)

Files that this module USES:
- nisabwatch.domain.errors (InvalidPriceError for invariant violations)
"""

from __future__ import annotations  # Enable postponed evaluation of annotations

import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, Optional

from nisabwatch.domain.errors import InvalidPriceError

GRAMS_PER_TROY_OUNCE = 31.1034768
FALLBACK_SOURCE = "fallback"
DEFAULT_ALERT_THRESHOLD_PERCENT = 2.0

# Relative tolerance for the ounce/gram invariant
_OUNCE_TOLERANCE = 1e-6


class Metal(str, Enum):
    GOLD = "gold"
    SILVER = "silver"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


class Currency(str, Enum):
    USD = "USD"
    GBP = "GBP"
    AED = "AED"
    SAR = "SAR"
    EGP = "EGP"


class Unit(str, Enum):
    GRAM = "g"
    TROY_OUNCE = "ozt"


class Direction(str, Enum):
    UP = "up"
    DOWN = "down"
    NEUTRAL = "neutral"


class NotificationCategory(str, Enum):
    PRICE_CHANGE = "price_change"
    NISAB_THRESHOLD = "nisab_threshold"
    DAILY_UPDATE = "daily_update"


class ResolutionStatus(str, Enum):
    RESOLVED = "resolved"
    DEGRADED = "degraded"


def is_positive_finite(value: Any) -> bool:
    """Return True for a real, finite, strictly positive number."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value > 0


def parse_timestamp(raw: Any) -> datetime:
    """
    Parse an ISO timestamp into an aware UTC datetime.

    Accepts both "...Z" and "+00:00" suffixes; naive values are taken as UTC.
    """
    if isinstance(raw, datetime):
        ts = raw
    else:
        ts = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


@dataclass(frozen=True)
class PriceChange:
    """
    Change between the previous and the current price of one (metal, currency).

    Attributes:
        percentage: Absolute percentage change (never negative)
        direction: UP, DOWN or NEUTRAL
    """
    percentage: float
    direction: Direction

    @classmethod
    def between(cls, previous: float, current: float) -> PriceChange:
        """
        Compute the change from ``previous`` to ``current``.

        Formula: |current - previous| / previous * 100

        Raises:
            InvalidPriceError: If the previous price is not positive
        """
        if not is_positive_finite(previous):
            raise InvalidPriceError(f"Cannot compute change from previous price {previous!r}")
        percentage = abs(current - previous) / previous * 100.0
        if current > previous:
            direction = Direction.UP
        elif current < previous:
            direction = Direction.DOWN
        else:
            direction = Direction.NEUTRAL
        return cls(percentage=percentage, direction=direction)

    @property
    def signed_percentage(self) -> float:
        return -self.percentage if self.direction is Direction.DOWN else self.percentage

    def to_json(self) -> dict:
        return {"percentage": self.percentage, "direction": self.direction.value}

    @staticmethod
    def from_json(data: dict) -> PriceChange:
        return PriceChange(
            percentage=float(data["percentage"]),
            direction=Direction(data["direction"]),
        )


@dataclass(frozen=True)
class PriceQuote:
    """
    Price of one metal in one currency at a point in time.

    Invariant: price_per_ounce == price_per_gram * GRAMS_PER_TROY_OUNCE
    (relative tolerance 1e-6), both strictly positive and finite.

    Attributes:
        metal: GOLD or SILVER
        currency: One of the supported currencies
        price_per_gram: Price of one gram
        price_per_ounce: Price of one troy ounce
        observed_at: UTC time of the observation
        source: Identifier of the adapter that produced the quote ("fallback" for the static table)
        change: Change against the previous live quote, absent on first observation
    """
    metal: Metal
    currency: Currency
    price_per_gram: float
    price_per_ounce: float
    observed_at: datetime
    source: str
    change: Optional[PriceChange] = None

    def __post_init__(self) -> None:
        for label, value in (("price_per_gram", self.price_per_gram),
                             ("price_per_ounce", self.price_per_ounce)):
            if not is_positive_finite(value):
                raise InvalidPriceError(
                    f"{self.metal.value}/{self.currency.value} {label} must be positive "
                    f"and finite, got {value!r}"
                )
        expected = self.price_per_gram * GRAMS_PER_TROY_OUNCE
        if abs(self.price_per_ounce - expected) > _OUNCE_TOLERANCE * expected:
            raise InvalidPriceError(
                f"{self.metal.value}/{self.currency.value} ounce price {self.price_per_ounce} "
                f"does not match gram price {self.price_per_gram}"
            )

    @classmethod
    def from_gram_price(
        cls,
        metal: Metal,
        currency: Currency,
        price_per_gram: float,
        observed_at: datetime,
        source: str,
        change: Optional[PriceChange] = None,
    ) -> PriceQuote:
        """Build a quote from its gram price, deriving the troy-ounce price."""
        return cls(
            metal=metal,
            currency=currency,
            price_per_gram=price_per_gram,
            price_per_ounce=price_per_gram * GRAMS_PER_TROY_OUNCE,
            observed_at=observed_at,
            source=source,
            change=change,
        )

    @property
    def key(self) -> tuple[Metal, Currency]:
        return self.metal, self.currency

    def with_change(self, change: Optional[PriceChange]) -> PriceQuote:
        return replace(self, change=change)

    def to_json(self) -> dict:
        """
        Convert the quote to a JSON-serializable dictionary.

        Returns:
            Dictionary with ISO-formatted timestamp and nested change (or None)
        """
        return {
            "metal": self.metal.value,
            "currency": self.currency.value,
            "price_per_gram": self.price_per_gram,
            "price_per_ounce": self.price_per_ounce,
            "observed_at": self.observed_at.isoformat(),
            "source": self.source,
            "change": self.change.to_json() if self.change else None,
        }

    @staticmethod
    def from_json(data: dict) -> PriceQuote:
        change = data.get("change")
        return PriceQuote(
            metal=Metal(data["metal"]),
            currency=Currency(data["currency"]),
            price_per_gram=float(data["price_per_gram"]),
            price_per_ounce=float(data["price_per_ounce"]),
            observed_at=parse_timestamp(data["observed_at"]),
            source=str(data["source"]),
            change=PriceChange.from_json(change) if change else None,
        )


@dataclass(frozen=True)
class PriceTable:
    """
    Full price snapshot: every metal in every supported currency.

    Attributes:
        quotes: metal -> currency -> PriceQuote
        source: Adapter identifier, or "fallback" for the static table
        fetched_at: UTC time the table was produced
    """
    quotes: Dict[Metal, Dict[Currency, PriceQuote]]
    source: str
    fetched_at: datetime

    def __post_init__(self) -> None:
        for metal in Metal:
            for currency in Currency:
                if currency not in self.quotes.get(metal, {}):
                    raise InvalidPriceError(
                        f"Price table from {self.source} is missing {metal.value}/{currency.value}"
                    )

    @classmethod
    def from_quotes(cls, quotes: Iterable[PriceQuote], source: str, fetched_at: datetime) -> PriceTable:
        grid: Dict[Metal, Dict[Currency, PriceQuote]] = {}
        for quote in quotes:
            grid.setdefault(quote.metal, {})[quote.currency] = quote
        return cls(quotes=grid, source=source, fetched_at=fetched_at)

    @property
    def is_fallback(self) -> bool:
        return self.source == FALLBACK_SOURCE

    def quote(self, metal: Metal, currency: Currency) -> PriceQuote:
        return self.quotes[Metal(metal)][Currency(currency)]

    def all_quotes(self) -> Iterator[PriceQuote]:
        for metal in Metal:
            for currency in Currency:
                yield self.quotes[metal][currency]

    def with_quotes(self, quotes: Iterable[PriceQuote]) -> PriceTable:
        """Return a copy of this table with the given quotes replaced."""
        return PriceTable.from_quotes(
            list(self.all_quotes()) + list(quotes),
            source=self.source,
            fetched_at=self.fetched_at,
        )


@dataclass(frozen=True)
class NisabThreshold:
    """
    Monetary Nisab threshold for one metal and currency (derived, not persisted).

    Attributes:
        metal: Metal the threshold is based on
        currency: Currency of the monetary value
        threshold_weight_grams: Fixed Nisab weight (87.48 g gold, 612.36 g silver)
        price_per_gram: Current price per gram used for the valuation
    """
    metal: Metal
    currency: Currency
    threshold_weight_grams: float
    price_per_gram: float

    @property
    def monetary_value(self) -> float:
        return self.threshold_weight_grams * self.price_per_gram


@dataclass(frozen=True)
class ConversionResult:
    """Value of a metal amount in a currency."""
    metal: Metal
    grams: float
    currency: Currency
    value: float
    price_per_gram: float
    observed_at: datetime


@dataclass(frozen=True)
class CacheEntry:
    """Whole-table cache slot with its fetch time."""
    table: PriceTable
    fetched_at: datetime

    def is_fresh(self, now: datetime, ttl: timedelta) -> bool:
        return now - self.fetched_at < ttl


@dataclass(frozen=True)
class UserPreferences:
    """
    Per-user settings for the price engine.

    Attributes:
        currency: Preferred display and alert currency
        notifications_enabled: Master switch for all alerts
        alert_threshold_percent: Minimum price change that triggers an alert
        last_notified_at: Last time an alert fired, per notification category
        holdings_grams: Declared metal holdings used for Nisab-crossing alerts
    """
    currency: Currency = Currency.USD
    notifications_enabled: bool = False
    alert_threshold_percent: float = DEFAULT_ALERT_THRESHOLD_PERCENT
    last_notified_at: Dict[NotificationCategory, datetime] = field(default_factory=dict)
    holdings_grams: Dict[Metal, float] = field(default_factory=dict)

    def last_notified(self, category: NotificationCategory) -> Optional[datetime]:
        return self.last_notified_at.get(category)

    def with_notified(self, category: NotificationCategory, when: datetime) -> UserPreferences:
        stamps = dict(self.last_notified_at)
        stamps[category] = when
        return replace(self, last_notified_at=stamps)

    def with_holding(self, metal: Metal, grams: float) -> UserPreferences:
        holdings = dict(self.holdings_grams)
        holdings[metal] = grams
        return replace(self, holdings_grams=holdings)

    def to_json(self) -> dict:
        return {
            "currency": self.currency.value,
            "notifications_enabled": self.notifications_enabled,
            "alert_threshold_percent": self.alert_threshold_percent,
            "last_notified_at": {
                category.value: ts.isoformat() for category, ts in self.last_notified_at.items()
            },
            "holdings_grams": {metal.value: grams for metal, grams in self.holdings_grams.items()},
        }

    @staticmethod
    def from_json(data: dict) -> UserPreferences:
        """
        Create preferences from a JSON dictionary.

        Missing or unrecognised fields fall back to defaults so that older
        or partially written records still load.
        """
        defaults = UserPreferences()
        try:
            currency = Currency(str(data.get("currency", defaults.currency.value)).upper())
        except ValueError:
            currency = defaults.currency

        stamps: Dict[NotificationCategory, datetime] = {}
        for raw_category, raw_ts in (data.get("last_notified_at") or {}).items():
            try:
                stamps[NotificationCategory(raw_category)] = parse_timestamp(raw_ts)
            except (ValueError, TypeError):
                continue

        holdings: Dict[Metal, float] = {}
        for raw_metal, raw_grams in (data.get("holdings_grams") or {}).items():
            try:
                holdings[Metal(raw_metal)] = float(raw_grams)
            except (ValueError, TypeError):
                continue

        threshold = data.get("alert_threshold_percent")
        return UserPreferences(
            currency=currency,
            notifications_enabled=bool(data.get("notifications_enabled", defaults.notifications_enabled)),
            alert_threshold_percent=float(threshold) if threshold is not None
            else defaults.alert_threshold_percent,
            last_notified_at=stamps,
            holdings_grams=holdings,
        )


@dataclass(frozen=True)
class Alert:
    """
    A notification the alert policy decided to send.

    Attributes:
        category: Which trigger produced the alert
        metal: Metal the alert is about
        currency: Currency the alert is expressed in
        title: Short notification title
        body: Notification body text
    """
    category: NotificationCategory
    metal: Metal
    currency: Currency
    title: str
    body: str

    @property
    def tag(self) -> str:
        return f"{self.category.value}-{self.metal.value}-{self.currency.value}"
