"""
Base Price Source Adapter - Shared Contract for Metal Price Providers

This module defines the abstract base class every precious-metals provider
implements, the per-attempt Deadline, and the normalization that turns a
provider's USD-per-troy-ounce spot quote into a full PriceTable (every metal in
every supported currency).

Subclasses only build their request and parse their response envelope into a
SpotQuote; everything else (deadline enforcement, HTTP error mapping, numeric
validation, currency expansion) lives here so the providers cannot drift apart.

Files that USE this module:
- nisabwatch.adapters.providers.metalpriceapi (MetalpriceApiAdapter)
- nisabwatch.adapters.providers.metalslive (MetalsLiveAdapter)
- nisabwatch.adapters.providers.goldapi (GoldApiAdapter)
- nisabwatch.application.resolver (PriceSourceAdapter, Deadline)
- tests.test_providers, tests.test_resolver

Files that this module USES:
- nisabwatch.domain.models (PriceTable, PriceQuote, Metal, Currency)
- nisabwatch.adapters.providers.transport (DeadlineWatchdog)
- nisabwatch.domain.errors (AdapterError hierarchy)
"""
from __future__ import annotations

import logging
import math
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

import requests

from nisabwatch.adapters.providers.transport import DeadlineWatchdog
from nisabwatch.domain.errors import (
    AdapterTimeoutError,
    InvalidPriceError,
    ProviderNotConfiguredError,
    ProviderResponseError,
)
from nisabwatch.domain.models import (
    GRAMS_PER_TROY_OUNCE,
    Currency,
    Metal,
    PriceQuote,
    PriceTable,
    is_positive_finite,
)

log = logging.getLogger(__name__)

# Units of currency per 1 USD, used when a provider returns no exchange rates
FALLBACK_FX_RATES: Dict[Currency, float] = {
    Currency.USD: 1.0,
    Currency.GBP: 0.79,
    Currency.AED: 3.6725,
    Currency.SAR: 3.75,
    Currency.EGP: 49.0,
}


@dataclass(frozen=True)
class Deadline:
    """Absolute expiry on the monotonic clock for one adapter attempt."""
    expires_at: float

    @classmethod
    def after(cls, seconds: float) -> Deadline:
        return cls(expires_at=time.monotonic() + seconds)

    def remaining(self) -> float:
        return max(0.0, self.expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0.0


@dataclass(frozen=True)
class SpotQuote:
    """
    Raw spot prices parsed from one provider response.

    Attributes:
        usd_per_ounce: metal -> USD per troy ounce
        fx_rates: currency -> units per 1 USD, only what the provider returned
    """
    usd_per_ounce: Dict[Metal, float]
    fx_rates: Dict[Currency, float] = field(default_factory=dict)


def normalize_spot(spot: SpotQuote, source: str, observed_at: datetime) -> PriceTable:
    """
    Expand a USD spot quote into a full price table.

    usd_per_gram = usd_per_ounce / 31.1034768, then one quote per supported
    currency using the provider's rate when valid, else FALLBACK_FX_RATES.

    Raises:
        InvalidPriceError: If any metal price is missing, zero, negative or non-finite
    """
    quotes = []
    for metal in Metal:
        usd_per_ounce = spot.usd_per_ounce.get(metal)
        if not is_positive_finite(usd_per_ounce):
            raise InvalidPriceError(f"{source} returned invalid {metal.value} price: {usd_per_ounce!r}")
        usd_per_gram = usd_per_ounce / GRAMS_PER_TROY_OUNCE

        for currency in Currency:
            rate = spot.fx_rates.get(currency)
            if currency is Currency.USD:
                rate = 1.0
            elif not is_positive_finite(rate):
                if rate is not None:
                    log.warning("%s returned unusable %s rate %r, using fallback rate", source, currency.value, rate)
                rate = FALLBACK_FX_RATES[currency]
            quotes.append(PriceQuote.from_gram_price(
                metal=metal,
                currency=currency,
                price_per_gram=usd_per_gram * rate,
                observed_at=observed_at,
                source=source,
            ))
    return PriceTable.from_quotes(quotes, source=source, fetched_at=observed_at)


def to_price(value: Any) -> Optional[float]:
    """Coerce a JSON number or numeric string to float; None when not numeric."""
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


class PriceSourceAdapter(ABC):
    """
    One upstream price provider.

    Contract: fetch() either returns a full, validated PriceTable or raises an
    AdapterError subclass. It never retries and never outlives its deadline.
    """

    name: str = "base"
    requires_api_key: bool = True

    def __init__(self, base_url: str, api_key: str = ""):
        self.base_url = base_url.rstrip("/")
        self.api_key = (api_key or "").strip()

    def is_configured(self) -> bool:
        """A provider without its API key is permanently unavailable."""
        return bool(self.api_key) or not self.requires_api_key

    def fetch(self, deadline: Deadline) -> PriceTable:
        """
        Fetch and normalize current gold and silver prices.

        Args:
            deadline: Absolute deadline for the whole attempt

        Returns:
            PriceTable with every metal in every supported currency

        Raises:
            ProviderNotConfiguredError: If the API key is missing
            AdapterTimeoutError: If the deadline passes before or during the request
            ProviderResponseError: On HTTP, JSON or envelope errors
            InvalidPriceError: On zero, negative or non-finite prices
        """
        if not self.is_configured():
            raise ProviderNotConfiguredError(f"{self.name} API key not configured")
        if deadline.expired:
            raise AdapterTimeoutError(f"{self.name} deadline expired before request")

        log.info("Fetching spot prices from %s", self.name)
        session = requests.Session()
        watchdog = DeadlineWatchdog(deadline)
        watchdog.attach(session)
        with watchdog, session:
            spot = self._fetch_spot(session, deadline)
        return normalize_spot(spot, source=self.name, observed_at=datetime.now(timezone.utc))

    def _get_json(
        self,
        session: requests.Session,
        url: str,
        deadline: Deadline,
        params: Optional[Mapping[str, str]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Any:
        """
        GET a JSON document within the deadline.

        The socket timeout is the deadline's remaining time; a provider that
        trickles bytes is cut off by the session's DeadlineWatchdog, and the
        resulting connection error is reported as a timeout.
        """
        remaining = deadline.remaining()
        if remaining <= 0:
            raise AdapterTimeoutError(f"{self.name} deadline expired")
        try:
            resp = session.get(url, params=params, headers=headers, timeout=remaining)
        except requests.exceptions.Timeout as e:
            raise AdapterTimeoutError(f"{self.name} timed out after {remaining:.2f}s") from e
        except requests.exceptions.RequestException as e:
            if deadline.expired:
                raise AdapterTimeoutError(f"{self.name} aborted at the deadline") from e
            raise ProviderResponseError(f"{self.name} request failed: {e}") from e

        if resp.status_code >= 400:
            raise ProviderResponseError(f"{self.name} returned HTTP {resp.status_code}")
        try:
            return resp.json()
        except ValueError as e:
            raise ProviderResponseError(f"{self.name} returned invalid JSON: {e}") from e

    @abstractmethod
    def _fetch_spot(self, session: requests.Session, deadline: Deadline) -> SpotQuote:
        """Issue the provider request(s) and parse them into a SpotQuote."""
        raise NotImplementedError
