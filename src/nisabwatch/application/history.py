# src/nisabwatch/application/history.py
"""
Price History - Last Live Quote per Metal and Currency

Keeps the last live quote for every (metal, currency) pair and computes the
change of each newly resolved table against it. The history is the only
place change data comes from, and it is persisted to a JSON file so changes
survive restarts.

Fallback tables never touch the history: they carry no change data and must
not become the baseline for the next live refresh.

Files that USE this module:
- nisabwatch.application.cache (passes each live table through apply)
- nisabwatch.application.metals_service (build_metals_service wiring)
- tests.test_history (unit tests)

Files that this module USES:
- nisabwatch.adapters.persistence.file_store (JsonFileStore)
- nisabwatch.domain.models (PriceTable, PriceQuote, PriceChange)
"""
from __future__ import annotations

import logging
import threading
from typing import Dict, Optional, Tuple

from nisabwatch.adapters.persistence.file_store import JsonFileStore
from nisabwatch.domain.errors import InvalidPriceError, PersistenceError
from nisabwatch.domain.models import Currency, Metal, PriceChange, PriceQuote, PriceTable

log = logging.getLogger(__name__)

HistoryKey = Tuple[Metal, Currency]


class PriceHistoryStore:
    """Last live quote per (metal, currency), mutated only through apply()."""

    def __init__(self, file_store: Optional[JsonFileStore] = None):
        self._file_store = file_store
        self._lock = threading.Lock()
        self._entries: Dict[HistoryKey, PriceQuote] = {}
        self._load_from_persistence()

    def _load_from_persistence(self) -> None:
        if self._file_store is None:
            return
        data = self._file_store.load()
        if not data:
            log.info("No persisted price history found")
            return
        for raw in data.get("quotes", []) if isinstance(data, dict) else []:
            try:
                quote = PriceQuote.from_json(raw)
            except (KeyError, ValueError, TypeError) as e:
                log.warning("Skipping unreadable history entry %r: %s", raw, e)
                continue
            self._entries[quote.key] = quote
        log.info("Loaded %d price history entries", len(self._entries))

    def get(self, metal: Metal, currency: Currency) -> Optional[PriceQuote]:
        with self._lock:
            return self._entries.get((Metal(metal), Currency(currency)))

    def apply(self, table: PriceTable) -> PriceTable:
        """
        Attach change data to a freshly resolved table and record it.

        For each quote: read the previous entry, compute the change (absent on
        first observation), overwrite the entry. Persistence failures are
        logged; the in-memory history and the returned changes are kept.

        Returns:
            The table with change data, or the input unchanged for a fallback table
        """
        if table.is_fallback:
            return table

        with self._lock:
            updated = []
            for quote in table.all_quotes():
                previous = self._entries.get(quote.key)
                change = None
                if previous is not None:
                    try:
                        change = PriceChange.between(previous.price_per_gram, quote.price_per_gram)
                    except InvalidPriceError as e:
                        log.warning("Ignoring unusable history entry for %s/%s: %s",
                                    quote.metal.value, quote.currency.value, e)
                new_quote = quote.with_change(change)
                self._entries[quote.key] = new_quote
                updated.append(new_quote)
            self._persist()

        return table.with_quotes(updated)

    def _persist(self) -> None:
        if self._file_store is None:
            return
        payload = {"quotes": [quote.to_json() for quote in self._entries.values()]}
        try:
            self._file_store.save(payload)
        except PersistenceError as e:
            log.error("Failed to persist price history: %s", e)
