# src/nisabwatch/__init__.py
"""
NisabWatch - Precious Metals Price and Nisab Engine

Resolves live gold/silver spot prices from several unreliable providers with
ordered fallback, caches and tracks them across refreshes, derives the Zakat
Nisab threshold in multiple currencies, and decides when to alert users over
Telegram.
"""

__version__ = "1.0.0"
