# src/nisabwatch/application/resolver.py
"""
Fallback Resolver - Ordered Provider Chain for Gold/Silver Prices

This module tries the configured price providers in priority order and
returns the first full price table that validates. Each attempt runs in a
worker thread with an absolute deadline; a failing or slow provider is logged
and the next one is tried. When every provider fails, the static fallback
table is returned, so resolution always produces a usable table.

Files that USE this module:
- nisabwatch.application.cache (PriceCache resolves through it)
- nisabwatch.application.metals_service (build_metals_service wiring)
- tests.test_resolver (unit tests)

Files that this module USES:
- nisabwatch.adapters.providers.base (PriceSourceAdapter, Deadline)
- nisabwatch.domain.models (PriceTable, PriceQuote, ResolutionStatus)
- nisabwatch.domain.errors (AdapterError hierarchy)
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

from nisabwatch.adapters.providers.base import Deadline, PriceSourceAdapter
from nisabwatch.domain.errors import AdapterTimeoutError, ProviderNotConfiguredError
from nisabwatch.domain.models import (
    FALLBACK_SOURCE,
    Currency,
    Metal,
    PriceQuote,
    PriceTable,
    ResolutionStatus,
)

log = logging.getLogger(__name__)

DEFAULT_ATTEMPT_TIMEOUT = 2.0

# Static price table (per gram) used when every provider fails
STATIC_FALLBACK_PRICES = {
    Metal.GOLD: {
        Currency.USD: 85.0,
        Currency.GBP: 68.0,
        Currency.AED: 312.0,
        Currency.SAR: 319.0,
        Currency.EGP: 4250.0,
    },
    Metal.SILVER: {
        Currency.USD: 0.95,
        Currency.GBP: 0.76,
        Currency.AED: 3.49,
        Currency.SAR: 3.56,
        Currency.EGP: 47.5,
    },
}


def static_fallback_table(now: Optional[datetime] = None) -> PriceTable:
    """Build the static fallback table, tagged source="fallback" and without change data."""
    observed_at = now or datetime.now(timezone.utc)
    quotes = [
        PriceQuote.from_gram_price(
            metal=metal,
            currency=currency,
            price_per_gram=price,
            observed_at=observed_at,
            source=FALLBACK_SOURCE,
        )
        for metal, prices in STATIC_FALLBACK_PRICES.items()
        for currency, price in prices.items()
    ]
    return PriceTable.from_quotes(quotes, source=FALLBACK_SOURCE, fetched_at=observed_at)


@dataclass(frozen=True)
class AttemptOutcome:
    """Result of one adapter attempt within a resolution."""
    adapter: str
    succeeded: bool
    error: Optional[str] = None
    elapsed: float = 0.0


@dataclass(frozen=True)
class Resolution:
    """
    Outcome of one resolution.

    Attributes:
        status: RESOLVED when a provider answered, DEGRADED when the static table was used
        table: Always a full, usable price table
        attempts: Per-adapter outcomes in the order they were tried
    """
    status: ResolutionStatus
    table: PriceTable
    attempts: List[AttemptOutcome] = field(default_factory=list)

    @property
    def source(self) -> str:
        return self.table.source


class FallbackResolver:
    """
    Ordered provider chain.

    Tries each adapter in order; the first success wins and later adapters
    are never invoked. Attempts are strictly sequential.
    """

    def __init__(
        self,
        adapters: Sequence[PriceSourceAdapter],
        attempt_timeout: float = DEFAULT_ATTEMPT_TIMEOUT,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.adapters = list(adapters)
        self.attempt_timeout = attempt_timeout
        self._clock = clock
        self.last_resolution: Optional[Resolution] = None

    async def resolve(self) -> Resolution:
        """
        Resolve the current price table.

        Never raises: provider errors are recorded in the attempts and the
        static fallback table is returned when nothing succeeds.
        """
        attempts: List[AttemptOutcome] = []
        for adapter in self.adapters:
            if not adapter.is_configured():
                log.debug("Skipping %s: API key not configured", adapter.name)
                attempts.append(AttemptOutcome(
                    adapter=adapter.name,
                    succeeded=False,
                    error=str(ProviderNotConfiguredError(f"{adapter.name} API key not configured")),
                ))
                continue

            started = time.monotonic()
            try:
                table = await self._attempt(adapter)
            except Exception as e:  # any provider failure moves on to the next adapter
                elapsed = time.monotonic() - started
                log.warning("Price provider %s failed after %.2fs: %s", adapter.name, elapsed, e)
                attempts.append(AttemptOutcome(adapter=adapter.name, succeeded=False, error=str(e), elapsed=elapsed))
                continue

            elapsed = time.monotonic() - started
            attempts.append(AttemptOutcome(adapter=adapter.name, succeeded=True, elapsed=elapsed))
            log.info("Resolved metal prices from %s in %.2fs", adapter.name, elapsed)
            resolution = Resolution(status=ResolutionStatus.RESOLVED, table=table, attempts=attempts)
            self.last_resolution = resolution
            return resolution

        log.error(
            "All price providers failed (%s), using static fallback prices",
            ", ".join(f"{a.adapter}: {a.error}" for a in attempts) or "no providers",
        )
        resolution = Resolution(
            status=ResolutionStatus.DEGRADED,
            table=static_fallback_table(self._clock()),
            attempts=attempts,
        )
        self.last_resolution = resolution
        return resolution

    async def _attempt(self, adapter: PriceSourceAdapter) -> PriceTable:
        deadline = Deadline.after(self.attempt_timeout)
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(adapter.fetch, deadline),
                timeout=self.attempt_timeout,
            )
        except asyncio.TimeoutError as e:
            raise AdapterTimeoutError(
                f"{adapter.name} exceeded {self.attempt_timeout:.1f}s deadline"
            ) from e
