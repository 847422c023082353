"""
Domain Layer - Pure Business Objects

This package contains domain models and business rules.
No dependencies on infrastructure or external systems.
"""

from nisabwatch.domain.models import (
    Alert,
    CacheEntry,
    ConversionResult,
    Currency,
    Direction,
    GRAMS_PER_TROY_OUNCE,
    Metal,
    NisabThreshold,
    NotificationCategory,
    PriceChange,
    PriceQuote,
    PriceTable,
    ResolutionStatus,
    Unit,
    UserPreferences,
)
from nisabwatch.domain.errors import (
    AdapterError,
    AdapterTimeoutError,
    DomainError,
    InvalidPriceError,
    NotificationDeliveryError,
    PersistenceError,
    ProviderNotConfiguredError,
    ProviderResponseError,
    UnsupportedCurrencyError,
)

__all__ = [
    "Alert",
    "CacheEntry",
    "ConversionResult",
    "Currency",
    "Direction",
    "GRAMS_PER_TROY_OUNCE",
    "Metal",
    "NisabThreshold",
    "NotificationCategory",
    "PriceChange",
    "PriceQuote",
    "PriceTable",
    "ResolutionStatus",
    "Unit",
    "UserPreferences",
    "AdapterError",
    "AdapterTimeoutError",
    "DomainError",
    "InvalidPriceError",
    "NotificationDeliveryError",
    "PersistenceError",
    "ProviderNotConfiguredError",
    "ProviderResponseError",
    "UnsupportedCurrencyError",
]
