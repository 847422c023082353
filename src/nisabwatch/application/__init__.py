# src/nisabwatch/application/__init__.py
"""
Application Layer - Use Cases and Services

This package contains application services that orchestrate domain logic:
price resolution, caching, change history, alerting, preferences and the
daily Nisab log, behind the MetalsService facade.
"""

from nisabwatch.application.alerts import AlertDispatcher, AlertPolicy
from nisabwatch.application.cache import PriceCache
from nisabwatch.application.history import PriceHistoryStore
from nisabwatch.application.metals_service import MetalsService, build_adapters, build_metals_service
from nisabwatch.application.nisab_log import NisabLogResult, NisabPriceLog
from nisabwatch.application.preferences import LocalPreferencesStore, PreferencesService
from nisabwatch.application.resolver import (
    AttemptOutcome,
    FallbackResolver,
    Resolution,
    static_fallback_table,
)

__all__ = [
    "AlertDispatcher",
    "AlertPolicy",
    "PriceCache",
    "PriceHistoryStore",
    "MetalsService",
    "build_adapters",
    "build_metals_service",
    "NisabLogResult",
    "NisabPriceLog",
    "LocalPreferencesStore",
    "PreferencesService",
    "AttemptOutcome",
    "FallbackResolver",
    "Resolution",
    "static_fallback_table",
]
