# src/nisabwatch/application/cache.py
"""
Price Cache - Single-Slot TTL Cache for the Price Table

Holds the most recently resolved price table and its fetch time. Within the
TTL (one hour by default) every caller gets the cached table; after that the
next caller triggers one resolution. The fallback table is cached too, so a
provider outage does not turn every request into three failing calls.

Files that USE this module:
- nisabwatch.application.metals_service (all price reads go through the cache)
- tests.test_cache (unit tests)

Files that this module USES:
- nisabwatch.application.resolver (FallbackResolver)
- nisabwatch.application.history (PriceHistoryStore)
- nisabwatch.domain.models (CacheEntry)
"""
from __future__ import annotations

import asyncio
import logging
from collections import deque
from datetime import datetime, timedelta, timezone
from typing import Callable, Deque, List, Optional, Tuple

from nisabwatch.application.history import PriceHistoryStore
from nisabwatch.application.resolver import FallbackResolver
from nisabwatch.domain.models import CacheEntry

log = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(hours=1)
# Refreshes waiting for the alert cycle; older ones are dropped
MAX_UNCLAIMED_REFRESHES = 24


class PriceCache:
    """Whole-table cache; refreshes are serialized by an asyncio.Lock."""

    def __init__(
        self,
        resolver: FallbackResolver,
        history: PriceHistoryStore,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.resolver = resolver
        self.history = history
        self.ttl = ttl
        self._clock = clock
        self._entry: Optional[CacheEntry] = None
        self._lock = asyncio.Lock()
        self._unclaimed: Deque[CacheEntry] = deque(maxlen=MAX_UNCLAIMED_REFRESHES)

    @property
    def entry(self) -> Optional[CacheEntry]:
        return self._entry

    async def get(self) -> CacheEntry:
        entry, _ = await self.refresh_if_stale()
        return entry

    async def refresh_if_stale(self) -> Tuple[CacheEntry, bool]:
        """
        Return the cached entry, resolving first when it is missing or expired.

        Concurrent callers wait on the lock and then see the entry stored by
        the first one, so they share a single resolution.

        Returns:
            (entry, refreshed) where refreshed is True when this call resolved
        """
        entry = self._entry
        if entry is not None and entry.is_fresh(self._clock(), self.ttl):
            log.debug("Price cache hit (source=%s, fetched_at=%s)", entry.table.source, entry.fetched_at)
            return entry, False

        async with self._lock:
            entry = self._entry
            if entry is not None and entry.is_fresh(self._clock(), self.ttl):
                return entry, False

            # Stamped when the refresh starts, so a caller polling every TTL sees it expired
            started_at = self._clock()
            resolution = await self.resolver.resolve()
            table = self.history.apply(resolution.table)
            entry = CacheEntry(table=table, fetched_at=started_at)
            self._entry = entry
            if not table.is_fallback:
                self._unclaimed.append(entry)
            log.info("Price cache refreshed from %s (%s)", table.source, resolution.status.value)
            return entry, True

    def claim_refreshes(self) -> List[CacheEntry]:
        """
        Live entries stored since the last call, oldest first.

        Whoever refreshed (a scheduled job or a user command), each live
        refresh is handed out exactly once.
        """
        claimed = list(self._unclaimed)
        self._unclaimed.clear()
        return claimed

    def invalidate(self) -> None:
        self._entry = None
