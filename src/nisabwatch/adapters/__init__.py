# src/nisabwatch/adapters/__init__.py
"""
Adapters Layer - External Interfaces

This package contains all adapters for external systems:
- Providers (metal price APIs)
- Persistence (JSON files, Supabase REST)
- Notifications (alert delivery)
- Telegram (bot interface)
- Formatting (output)
"""

__all__ = []
