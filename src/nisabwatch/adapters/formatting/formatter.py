# src/nisabwatch/adapters/formatting/formatter.py
"""
Message Formatter - Text Formatting and Presentation

This module handles all text formatting for bot messages and notifications:
currency values with their symbols, price changes, the price table, unit
conversions, Nisab thresholds, Zakat results and the alert texts.

Files that USE this module:
- nisabwatch.application.alerts (alert titles and bodies)
- nisabwatch.adapters.telegram.handlers (command replies)
- tests.test_formatter (unit tests)

Files that this module USES:
- nisabwatch.domain.models (PriceTable, PriceChange, ConversionResult, ...)
"""
from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, Optional, Tuple

from nisabwatch.domain.models import (
    ConversionResult,
    Currency,
    Direction,
    Metal,
    PriceChange,
    PriceTable,
    UserPreferences,
)

CURRENCY_SYMBOLS: Dict[Currency, str] = {
    Currency.USD: "$",
    Currency.GBP: "£",
    Currency.AED: "د.إ",
    Currency.SAR: "ر.س",
    Currency.EGP: "ج.م",
}

METAL_EMOJI = {Metal.GOLD: "🥇", Metal.SILVER: "🥈"}


def format_currency_value(value: float, currency: Currency) -> str:
    """
    Format a monetary value with its currency symbol.

    Latin symbols are prefixed ("$85.00"); Arabic-script symbols follow the
    number ("312.00 د.إ") so the text reads correctly in a left-to-right line.

    Args:
        value: Amount in the currency
        currency: Currency of the amount

    Returns:
        Formatted string with two decimals and thousands separators
    """
    currency = Currency(currency)
    symbol = CURRENCY_SYMBOLS[currency]
    if currency in (Currency.USD, Currency.GBP):
        return f"{symbol}{value:,.2f}"
    return f"{value:,.2f} {symbol}"


def format_change(change: Optional[PriceChange]) -> str:
    """
    Format a price change as a signed percentage.

    Returns:
        "+1.20%", "-0.85%", "0.00%", or "" when there is no change data
    """
    if change is None:
        return ""
    if change.direction is Direction.UP:
        return f"+{change.percentage:.2f}%"
    if change.direction is Direction.DOWN:
        return f"-{change.percentage:.2f}%"
    return f"{change.percentage:.2f}%"


def _change_arrow(change: Optional[PriceChange]) -> str:
    if change is None:
        return ""
    return {Direction.UP: " 📈", Direction.DOWN: " 📉"}.get(change.direction, " ⏸")


def format_timestamp(ts: datetime) -> str:
    return ts.strftime("%Y-%m-%d %H:%M UTC")


def format_price_table(table: PriceTable, currency: Currency) -> str:
    """
    Format gold and silver prices in one currency.

    Shows price per gram and per troy ounce with the change since the previous
    live refresh. A fallback table is labelled as estimated prices.
    """
    lines = [f"Precious metal prices ({Currency(currency).value})"]
    for metal in Metal:
        quote = table.quote(metal, currency)
        change = format_change(quote.change)
        change_text = f" ({change}){_change_arrow(quote.change)}" if change else ""
        lines.append(
            f"{METAL_EMOJI[metal]} {metal.display_name}: "
            f"{format_currency_value(quote.price_per_gram, currency)}/g, "
            f"{format_currency_value(quote.price_per_ounce, currency)}/ozt{change_text}"
        )
    if table.is_fallback:
        lines.append("⚠️ Live prices unavailable, showing estimated prices")
    else:
        lines.append(f"Source: {table.source}")
    lines.append(f"⏱️ {format_timestamp(table.fetched_at)}")
    return "\n".join(lines)


def format_conversion(result: ConversionResult) -> str:
    return (
        f"{result.grams:,.2f} g {result.metal.display_name} = "
        f"{format_currency_value(result.value, result.currency)}\n"
        f"({format_currency_value(result.price_per_gram, result.currency)}/g)"
    )


def format_nisab(values: Dict[Metal, float], currency: Currency, weights: Dict[Metal, float]) -> str:
    """
    Format the Nisab threshold for both metals.

    Args:
        values: metal -> monetary Nisab value
        currency: Currency of the values
        weights: metal -> Nisab weight in grams
    """
    lines = [f"Nisab threshold ({Currency(currency).value})"]
    for metal in Metal:
        lines.append(
            f"{METAL_EMOJI[metal]} {metal.display_name} ({weights[metal]:g} g): "
            f"{format_currency_value(values[metal], currency)}"
        )
    return "\n".join(lines)


def format_zakat(wealth: float, nisab_value: float, due: float, currency: Currency) -> str:
    if due <= 0:
        return (
            f"Wealth {format_currency_value(wealth, currency)} is below the Nisab of "
            f"{format_currency_value(nisab_value, currency)}. No Zakat is due."
        )
    return (
        f"Wealth {format_currency_value(wealth, currency)} meets the Nisab of "
        f"{format_currency_value(nisab_value, currency)}.\n"
        f"Zakat due (2.5%): {format_currency_value(due, currency)}"
    )


def format_preferences(prefs: UserPreferences) -> str:
    holdings = ", ".join(
        f"{metal.display_name} {grams:,.2f} g" for metal, grams in sorted(
            prefs.holdings_grams.items(), key=lambda item: item[0].value
        )
    ) or "none"
    return (
        "Your settings\n"
        f"— Currency: {prefs.currency.value}\n"
        f"— Alerts: {'on' if prefs.notifications_enabled else 'off'}\n"
        f"— Alert threshold: {prefs.alert_threshold_percent:g}%\n"
        f"— Holdings: {holdings}"
    )


# -------- alert texts --------

def price_change_text(metal: Metal, change: PriceChange) -> Tuple[str, str]:
    """Title and body of a price-change alert."""
    verb = "increased" if change.direction is Direction.UP else "decreased"
    return (
        f"Precious Metals Alert: {metal.display_name}",
        f"{metal.display_name} price {verb} by {change.percentage:.2f}%",
    )


def nisab_reached_text(metal: Metal, holding_value: float, nisab_value: float,
                       currency: Currency) -> Tuple[str, str]:
    """Title and body of a Nisab-crossing alert."""
    return (
        f"Nisab Threshold Reached: {metal.display_name}",
        f"Your {metal.display_name} holdings ({format_currency_value(holding_value, currency)}) "
        f"have reached the Nisab threshold ({format_currency_value(nisab_value, currency)})",
    )


def daily_update_text(table: PriceTable, currency: Currency,
                      metals: Iterable[Metal] = tuple(Metal)) -> Tuple[str, str]:
    """
    Title and body of the daily price update.

    The title names the first metal, the body carries one line per metal.
    """
    metals = list(metals)
    lines = []
    for metal in metals:
        quote = table.quote(metal, currency)
        change = format_change(quote.change)
        change_text = f" ({change})" if change else ""
        lines.append(
            f"Daily {metal.display_name} price: "
            f"{format_currency_value(quote.price_per_gram, currency)}{change_text}"
        )
    return f"Daily {metals[0].display_name} Price Update", "\n".join(lines)
