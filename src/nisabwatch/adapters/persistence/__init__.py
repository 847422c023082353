"""
Persistence Adapters - Local and Remote Storage

This package contains the JSON file store and the Supabase REST record store.
"""

from nisabwatch.adapters.persistence.file_store import JsonFileStore
from nisabwatch.adapters.persistence.remote_store import (
    RemotePreferencesStore,
    SupabaseRecordStore,
    preferences_from_row,
    preferences_to_row,
)

__all__ = [
    "JsonFileStore",
    "RemotePreferencesStore",
    "SupabaseRecordStore",
    "preferences_from_row",
    "preferences_to_row",
]
