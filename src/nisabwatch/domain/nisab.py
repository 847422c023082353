"""
Nisab Calculator - Zakat Threshold Rules

Nisab is the minimum wealth, expressed as a fixed weight of gold or silver,
above which Zakat is due. The monetary threshold follows the live price; the
eligibility check compares weights so that currency rounding can never flip it.

Files that USE this module:
- nisabwatch.application.alerts (meets_nisab, nisab_threshold for crossing alerts)
- nisabwatch.application.metals_service (nisab_values, zakat_due)
- nisabwatch.application.nisab_log (nisab_values for the daily record)

Files that this module USES:
- nisabwatch.domain.conversion (to_grams)
- nisabwatch.domain.models (PriceTable, NisabThreshold, Metal, Currency, Unit)
"""
from __future__ import annotations

from typing import Dict

from nisabwatch.domain.conversion import to_grams
from nisabwatch.domain.models import Currency, Metal, NisabThreshold, PriceTable, Unit

NISAB_WEIGHT_GRAMS: Dict[Metal, float] = {
    Metal.GOLD: 87.48,
    Metal.SILVER: 612.36,
}

ZAKAT_RATE = 0.025


def nisab_threshold(table: PriceTable, metal: Metal, currency: Currency) -> NisabThreshold:
    return NisabThreshold(
        metal=metal,
        currency=currency,
        threshold_weight_grams=NISAB_WEIGHT_GRAMS[metal],
        price_per_gram=table.quote(metal, currency).price_per_gram,
    )


def nisab_values(table: PriceTable, currency: Currency) -> Dict[Metal, float]:
    """Monetary Nisab for gold and silver in one currency."""
    return {metal: nisab_threshold(table, metal, currency).monetary_value for metal in Metal}


def meets_nisab(metal: Metal, amount: float, unit: Unit = Unit.GRAM) -> bool:
    """True when the holding, normalized to grams, is at least the Nisab weight."""
    return to_grams(amount, unit) >= NISAB_WEIGHT_GRAMS[metal]


def zakat_due(wealth: float, nisab_value: float) -> float:
    """
    Zakat owed on ``wealth``: 2.5% when it reaches the Nisab value, otherwise 0.

    Args:
        wealth: Total zakatable wealth in some currency
        nisab_value: Monetary Nisab in the same currency
    """
    if wealth <= 0 or wealth < nisab_value:
        return 0.0
    return wealth * ZAKAT_RATE
