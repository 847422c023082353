# src/nisabwatch/adapters/persistence/remote_store.py
"""
Remote Store - Supabase REST Record Store

This module talks to a Supabase project through its PostgREST API
(``{SUPABASE_URL}/rest/v1/{table}``). It is used for two things:
- user preferences, mirrored from the local JSON store (remote wins on load)
- the daily Nisab price log (one row per date and currency)

All calls are synchronous ``requests`` calls with a timeout; async callers run
them in a worker thread. Every failure is raised as PersistenceError so the
application layer can log it without knowing about HTTP.

Files that USE this module:
- nisabwatch.application.preferences (RemotePreferencesStore for background sync)
- nisabwatch.application.nisab_log (SupabaseRecordStore for the daily log)
- nisabwatch.application.metals_service (build_metals_service wiring)

Files that this module USES:
- nisabwatch.domain.models (UserPreferences)
- nisabwatch.domain.errors (PersistenceError)
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

import requests

from nisabwatch.domain.errors import PersistenceError
from nisabwatch.domain.models import UserPreferences

log = logging.getLogger(__name__)


class SupabaseRecordStore:
    """Minimal PostgREST client: filtered select and upsert."""

    def __init__(self, base_url: str, api_key: str, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

    def _headers(self, extra: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    def _url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"

    def select(
        self,
        table: str,
        filters: Optional[Mapping[str, Any]] = None,
        order: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Select rows matching equality filters.

        Args:
            table: Table name
            filters: column -> value, combined with AND (``col=eq.value``)
            order: PostgREST order clause, e.g. ``"date.desc"``
            limit: Maximum number of rows

        Returns:
            List of row dictionaries (possibly empty)

        Raises:
            PersistenceError: On network, HTTP or JSON errors
        """
        params: Dict[str, str] = {"select": "*"}
        for column, value in (filters or {}).items():
            params[column] = f"eq.{value}"
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = str(limit)

        try:
            resp = requests.get(self._url(table), params=params, headers=self._headers(), timeout=self.timeout)
            resp.raise_for_status()
            rows = resp.json()
        except requests.exceptions.RequestException as e:
            raise PersistenceError(f"Select from {table} failed: {e}") from e
        except ValueError as e:
            raise PersistenceError(f"Select from {table} returned invalid JSON: {e}") from e

        if not isinstance(rows, list):
            raise PersistenceError(f"Select from {table} returned {type(rows).__name__}, expected list")
        return rows

    def upsert(self, table: str, row: Mapping[str, Any], on_conflict: Sequence[str]) -> None:
        """
        Insert or merge one row on the given conflict columns.

        Raises:
            PersistenceError: On network or HTTP errors
        """
        headers = self._headers({"Prefer": "resolution=merge-duplicates,return=minimal"})
        try:
            resp = requests.post(
                self._url(table),
                params={"on_conflict": ",".join(on_conflict)},
                data=json.dumps(row),
                headers=headers,
                timeout=self.timeout,
            )
            resp.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise PersistenceError(f"Upsert into {table} failed: {e}") from e
        log.debug("Upserted row into %s on %s", table, ",".join(on_conflict))


def preferences_to_row(user_id: str, prefs: UserPreferences) -> Dict[str, Any]:
    """Map preferences onto the remote ``user_preferences`` columns."""
    data = prefs.to_json()
    return {
        "user_id": str(user_id),
        "precious_metals_currency": data["currency"],
        "precious_metals_notifications_enabled": data["notifications_enabled"],
        "precious_metals_alert_threshold": data["alert_threshold_percent"],
        "precious_metals_last_notified": data["last_notified_at"],
        "precious_metals_holdings": data["holdings_grams"],
    }


def preferences_from_row(row: Mapping[str, Any]) -> UserPreferences:
    """Inverse of preferences_to_row; JSON columns may arrive as strings."""
    def _json_column(value: Any) -> Dict[str, Any]:
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except ValueError:
                return {}
        return value if isinstance(value, dict) else {}

    return UserPreferences.from_json({
        "currency": row.get("precious_metals_currency") or "USD",
        "notifications_enabled": bool(row.get("precious_metals_notifications_enabled") or False),
        "alert_threshold_percent": row.get("precious_metals_alert_threshold"),
        "last_notified_at": _json_column(row.get("precious_metals_last_notified")),
        "holdings_grams": _json_column(row.get("precious_metals_holdings")),
    })


class RemotePreferencesStore:
    """User preferences in the remote ``user_preferences`` table, keyed by user_id."""

    def __init__(self, records: SupabaseRecordStore, table: str = "user_preferences"):
        self.records = records
        self.table = table

    def fetch(self, user_id: str) -> Optional[UserPreferences]:
        """
        Returns:
            Remote preferences, or None when the user has no remote row

        Raises:
            PersistenceError: If the remote store cannot be read
        """
        rows = self.records.select(self.table, filters={"user_id": user_id}, limit=1)
        if not rows:
            return None
        return preferences_from_row(rows[0])

    def push(self, user_id: str, prefs: UserPreferences) -> None:
        """
        Raises:
            PersistenceError: If the remote store cannot be written
        """
        self.records.upsert(self.table, preferences_to_row(user_id, prefs), on_conflict=("user_id",))
