"""
Provider Adapters - External Metal Price APIs

This package contains adapters for the upstream gold/silver price APIs.
All providers implement the PriceSourceAdapter contract.
"""

from nisabwatch.adapters.providers.base import (
    FALLBACK_FX_RATES,
    Deadline,
    PriceSourceAdapter,
    SpotQuote,
    normalize_spot,
)
from nisabwatch.adapters.providers.goldapi import GoldApiAdapter
from nisabwatch.adapters.providers.metalpriceapi import MetalpriceApiAdapter
from nisabwatch.adapters.providers.metalslive import MetalsLiveAdapter

__all__ = [
    "FALLBACK_FX_RATES",
    "Deadline",
    "PriceSourceAdapter",
    "SpotQuote",
    "normalize_spot",
    "GoldApiAdapter",
    "MetalpriceApiAdapter",
    "MetalsLiveAdapter",
]
