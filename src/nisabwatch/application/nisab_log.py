# src/nisabwatch/application/nisab_log.py
"""
Daily Nisab Price Log - One Record per Date and Currency

Records the gold/silver gram prices and the resulting Nisab values once a day
in the remote record store, so past Nisab thresholds can be looked up later
(Zakat is assessed on a fixed date each lunar year). A date that is already
logged is left untouched, and fallback prices are never logged.

Files that USE this module:
- nisabwatch.application.metals_service (record_daily_nisab)
- tests.test_nisab_log (unit tests)

Files that this module USES:
- nisabwatch.adapters.persistence.remote_store (SupabaseRecordStore)
- nisabwatch.domain.nisab (nisab_values)
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Optional

from nisabwatch.adapters.persistence.remote_store import SupabaseRecordStore
from nisabwatch.domain.errors import PersistenceError
from nisabwatch.domain.models import Currency, Metal, PriceTable
from nisabwatch.domain.nisab import nisab_values

log = logging.getLogger(__name__)

CONFLICT_COLUMNS = ("date", "currency")


@dataclass(frozen=True)
class NisabLogResult:
    """
    Outcome of one record_today call.

    ``row`` is the written record, or None when nothing was written
    (already logged, fallback prices, or failure).
    """
    success: bool
    error: Optional[str] = None
    row: Optional[Dict[str, Any]] = None


def build_row(table: PriceTable, currency: Currency, day: date) -> Dict[str, Any]:
    values = nisab_values(table, currency)
    return {
        "date": day.isoformat(),
        "currency": Currency(currency).value,
        "gold_price_per_gram": table.quote(Metal.GOLD, currency).price_per_gram,
        "silver_price_per_gram": table.quote(Metal.SILVER, currency).price_per_gram,
        "nisab_gold_value": values[Metal.GOLD],
        "nisab_silver_value": values[Metal.SILVER],
    }


class NisabPriceLog:
    """Daily Nisab records in the ``nisab_prices`` table."""

    def __init__(self, records: SupabaseRecordStore, table_name: str = "nisab_prices"):
        self.records = records
        self.table_name = table_name

    async def exists(self, day: date, currency: Currency) -> bool:
        rows = await asyncio.to_thread(
            self.records.select,
            self.table_name,
            {"date": day.isoformat(), "currency": Currency(currency).value},
            None,
            1,
        )
        return bool(rows)

    async def record_today(self, table: PriceTable, currency: Currency, today: date) -> NisabLogResult:
        """
        Log today's prices and Nisab values for ``currency`` unless already logged.

        Never raises; failures are logged and reported in the result.
        """
        currency = Currency(currency)
        if table.is_fallback:
            log.warning("Not logging Nisab for %s %s: live prices unavailable", today, currency.value)
            return NisabLogResult(success=False, error="live prices unavailable")

        try:
            if await self.exists(today, currency):
                log.info("Nisab prices for %s %s already logged", today, currency.value)
                return NisabLogResult(success=True)

            row = build_row(table, currency, today)
            await asyncio.to_thread(self.records.upsert, self.table_name, row, CONFLICT_COLUMNS)
        except PersistenceError as e:
            log.error("Failed to log Nisab prices for %s %s: %s", today, currency.value, e)
            return NisabLogResult(success=False, error=str(e))

        log.info("Logged Nisab prices for %s %s: gold=%.2f silver=%.2f",
                 today, currency.value, row["nisab_gold_value"], row["nisab_silver_value"])
        return NisabLogResult(success=True, row=row)

    async def for_date(self, day: date, currency: Currency) -> Optional[Dict[str, Any]]:
        return await self._first({"date": day.isoformat(), "currency": Currency(currency).value})

    async def latest(self, currency: Currency) -> Optional[Dict[str, Any]]:
        """Most recent logged record for ``currency``, or None."""
        return await self._first({"currency": Currency(currency).value}, order="date.desc")

    async def _first(self, filters: Dict[str, Any], order: Optional[str] = None) -> Optional[Dict[str, Any]]:
        try:
            rows = await asyncio.to_thread(self.records.select, self.table_name, filters, order, 1)
        except PersistenceError as e:
            log.error("Failed to read Nisab prices (%s): %s", filters, e)
            return None
        return rows[0] if rows else None
