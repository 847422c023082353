"""
Currency/Unit Conversion - Pure Valuation Functions

Converts an amount of gold or silver, given in grams or troy ounces, into its
monetary value in one of the supported currencies using a price table.
No state and no I/O: the result depends only on the arguments.

Files that USE this module:
- nisabwatch.domain.nisab (to_grams for weight normalization)
- nisabwatch.application.metals_service (convert, convert_many)
- nisabwatch.adapters.telegram.handlers (parse_metal, parse_currency, parse_unit)

Files that this module USES:
- nisabwatch.domain.models (PriceTable, Metal, Currency, Unit, ConversionResult)
- nisabwatch.domain.errors (UnsupportedCurrencyError)
"""
from __future__ import annotations

import math
from typing import Iterable, List, Tuple, Union

from nisabwatch.domain.errors import UnsupportedCurrencyError
from nisabwatch.domain.models import (
    GRAMS_PER_TROY_OUNCE,
    ConversionResult,
    Currency,
    Metal,
    PriceTable,
    Unit,
)

_UNIT_ALIASES = {
    "g": Unit.GRAM,
    "gr": Unit.GRAM,
    "gram": Unit.GRAM,
    "grams": Unit.GRAM,
    "ozt": Unit.TROY_OUNCE,
    "oz": Unit.TROY_OUNCE,
    "ounce": Unit.TROY_OUNCE,
    "ounces": Unit.TROY_OUNCE,
    "troy_ounce": Unit.TROY_OUNCE,
}

_METAL_ALIASES = {
    "gold": Metal.GOLD,
    "xau": Metal.GOLD,
    "silver": Metal.SILVER,
    "xag": Metal.SILVER,
}


def parse_metal(raw: Union[str, Metal]) -> Metal:
    if isinstance(raw, Metal):
        return raw
    metal = _METAL_ALIASES.get(str(raw).strip().lower())
    if metal is None:
        raise UnsupportedCurrencyError(f"Unsupported metal: {raw!r}")
    return metal


def parse_currency(raw: Union[str, Currency]) -> Currency:
    if isinstance(raw, Currency):
        return raw
    try:
        return Currency(str(raw).strip().upper())
    except ValueError:
        supported = ", ".join(c.value for c in Currency)
        raise UnsupportedCurrencyError(f"Unsupported currency: {raw!r} (use one of {supported})")


def parse_unit(raw: Union[str, Unit]) -> Unit:
    if isinstance(raw, Unit):
        return raw
    unit = _UNIT_ALIASES.get(str(raw).strip().lower())
    if unit is None:
        raise UnsupportedCurrencyError(f"Unsupported unit: {raw!r}")
    return unit


def to_grams(amount: float, unit: Unit = Unit.GRAM) -> float:
    """
    Normalize an amount to grams.

    Raises:
        ValueError: If the amount is negative or not finite
    """
    if not math.isfinite(amount) or amount < 0:
        raise ValueError(f"Amount must be a non-negative number, got {amount!r}")
    if unit is Unit.TROY_OUNCE:
        return amount * GRAMS_PER_TROY_OUNCE
    return float(amount)


def from_grams(grams: float, unit: Unit = Unit.GRAM) -> float:
    if unit is Unit.TROY_OUNCE:
        return grams / GRAMS_PER_TROY_OUNCE
    return grams


def convert(
    table: PriceTable,
    metal: Metal,
    amount: float,
    unit: Unit,
    currency: Currency,
) -> float:
    """
    Monetary value of ``amount`` of ``metal``.

    value = grams * table[metal][currency].price_per_gram, where grams is the
    amount scaled by the ounce/gram constant when given in troy ounces.
    """
    return to_grams(amount, unit) * table.quote(metal, currency).price_per_gram


def convert_detailed(
    table: PriceTable,
    metal: Metal,
    amount: float,
    unit: Unit,
    currency: Currency,
) -> ConversionResult:
    grams = to_grams(amount, unit)
    quote = table.quote(metal, currency)
    return ConversionResult(
        metal=quote.metal,
        grams=grams,
        currency=quote.currency,
        value=grams * quote.price_per_gram,
        price_per_gram=quote.price_per_gram,
        observed_at=quote.observed_at,
    )


def convert_many(
    table: PriceTable,
    requests: Iterable[Tuple[Metal, float, Unit, Currency]],
) -> List[ConversionResult]:
    """Convert several (metal, amount, unit, currency) requests against one table."""
    return [
        convert_detailed(table, metal, amount, unit, currency)
        for metal, amount, unit, currency in requests
    ]
