"""
Domain Errors - Business Logic Exceptions

This module defines domain-specific exceptions for price resolution,
persistence and notification delivery. Provider failures all derive from
AdapterError so the resolver can treat them uniformly.
"""


class DomainError(Exception):
    """Base exception for domain errors."""
    pass


class AdapterError(DomainError):
    """Raised when a price source adapter cannot produce a usable price table."""
    pass


class ProviderNotConfiguredError(AdapterError):
    """Raised when a provider has no API key and must be skipped."""
    pass


class AdapterTimeoutError(AdapterError):
    """Raised when a provider attempt runs past its deadline."""
    pass


class ProviderResponseError(AdapterError):
    """Raised on non-2xx status, malformed JSON or an unsuccessful envelope."""
    pass


class InvalidPriceError(AdapterError):
    """Raised when a price is zero, negative, non-finite or inconsistent."""
    pass


class PersistenceError(DomainError):
    """Raised when a local or remote write fails."""
    pass


class NotificationDeliveryError(DomainError):
    """Raised when the notification sink cannot deliver a message."""
    pass


class UnsupportedCurrencyError(DomainError, ValueError):
    """Raised when a metal, currency or unit code is not recognised."""
    pass
