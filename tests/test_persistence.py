# tests/test_persistence.py
"""
Persistence Tests - JSON File Store and Supabase Record Store

Files that USE this module:
- pytest (test runner executes these tests)

Files that this module USES:
- nisabwatch.adapters.persistence.file_store (JsonFileStore)
- nisabwatch.adapters.persistence.remote_store (SupabaseRecordStore, RemotePreferencesStore)
- unittest.mock (patching requests)
"""
import json
from unittest.mock import Mock, patch

import pytest
import requests

from nisabwatch.adapters.persistence.file_store import JsonFileStore
from nisabwatch.adapters.persistence.remote_store import (
    RemotePreferencesStore,
    SupabaseRecordStore,
    preferences_from_row,
    preferences_to_row,
)
from nisabwatch.domain.errors import PersistenceError
from nisabwatch.domain.models import Currency, Metal, NotificationCategory, UserPreferences

from tests.conftest import T0


def _response(status=200, payload=None):
    resp = Mock()
    resp.status_code = status
    resp.json.return_value = payload
    if status >= 400:
        resp.raise_for_status.side_effect = requests.exceptions.HTTPError(f"{status} Error")
    else:
        resp.raise_for_status.return_value = None
    return resp


class TestJsonFileStore:
    def test_missing_file_loads_none(self, tmp_path):
        assert JsonFileStore(tmp_path / "absent.json").load() is None

    def test_save_and_load(self, tmp_path):
        store = JsonFileStore(tmp_path / "nested" / "doc.json")
        store.save({"a": [1, 2], "name": "ذهب"})
        assert store.load() == {"a": [1, 2], "name": "ذهب"}
        assert list((tmp_path / "nested").glob("*.tmp")) == []

    def test_corrupt_file_backed_up(self, tmp_path):
        path = tmp_path / "doc.json"
        path.write_text("{not json", encoding="utf-8")

        assert JsonFileStore(path).load() is None
        assert not path.exists()
        assert (tmp_path / "doc.json.corrupt").read_text(encoding="utf-8") == "{not json"

    def test_unserializable_document_raises(self, tmp_path):
        store = JsonFileStore(tmp_path / "doc.json")
        with pytest.raises(PersistenceError):
            store.save({"when": object()})
        assert list(tmp_path.iterdir()) == []


class TestSupabaseRecordStore:
    def test_select_builds_postgrest_query(self):
        store = SupabaseRecordStore("https://proj.supabase.co/", "anon-key", timeout=3)
        with patch("nisabwatch.adapters.persistence.remote_store.requests.get",
                   return_value=_response(payload=[{"id": 1}])) as get:
            rows = store.select("nisab_prices", {"currency": "USD"}, order="date.desc", limit=1)

        assert rows == [{"id": 1}]
        args, kwargs = get.call_args
        assert args[0] == "https://proj.supabase.co/rest/v1/nisab_prices"
        assert kwargs["params"] == {"select": "*", "currency": "eq.USD", "order": "date.desc", "limit": "1"}
        assert kwargs["headers"]["apikey"] == "anon-key"
        assert kwargs["headers"]["Authorization"] == "Bearer anon-key"
        assert kwargs["timeout"] == 3

    def test_select_http_error(self):
        store = SupabaseRecordStore("https://proj.supabase.co", "k")
        with patch("nisabwatch.adapters.persistence.remote_store.requests.get",
                   return_value=_response(status=500)):
            with pytest.raises(PersistenceError, match="Select from t failed"):
                store.select("t")

    def test_select_rejects_non_list(self):
        store = SupabaseRecordStore("https://proj.supabase.co", "k")
        with patch("nisabwatch.adapters.persistence.remote_store.requests.get",
                   return_value=_response(payload={"message": "oops"})):
            with pytest.raises(PersistenceError, match="expected list"):
                store.select("t")

    def test_upsert_merges_on_conflict_columns(self):
        store = SupabaseRecordStore("https://proj.supabase.co", "k")
        with patch("nisabwatch.adapters.persistence.remote_store.requests.post",
                   return_value=_response(status=201)) as post:
            store.upsert("nisab_prices", {"date": "2026-03-01"}, ("date", "currency"))

        kwargs = post.call_args.kwargs
        assert kwargs["params"] == {"on_conflict": "date,currency"}
        assert kwargs["headers"]["Prefer"] == "resolution=merge-duplicates,return=minimal"
        assert json.loads(kwargs["data"]) == {"date": "2026-03-01"}

    def test_upsert_network_error(self):
        store = SupabaseRecordStore("https://proj.supabase.co", "k")
        with patch("nisabwatch.adapters.persistence.remote_store.requests.post",
                   side_effect=requests.exceptions.ConnectionError("refused")):
            with pytest.raises(PersistenceError):
                store.upsert("t", {}, ("id",))


class TestRemotePreferences:
    def test_row_mapping_round_trip(self):
        prefs = (UserPreferences(currency=Currency.AED, notifications_enabled=True, alert_threshold_percent=5)
                 .with_notified(NotificationCategory.PRICE_CHANGE, T0)
                 .with_holding(Metal.GOLD, 90.0))
        row = preferences_to_row("9", prefs)
        assert row["user_id"] == "9"
        assert row["precious_metals_currency"] == "AED"
        assert preferences_from_row(row) == prefs

    def test_json_columns_as_strings(self):
        prefs = preferences_from_row({
            "precious_metals_currency": "EGP",
            "precious_metals_holdings": '{"silver": 650}',
            "precious_metals_last_notified": "not json",
        })
        assert prefs.currency is Currency.EGP
        assert prefs.holdings_grams == {Metal.SILVER: 650.0}
        assert prefs.last_notified_at == {}
        assert prefs.alert_threshold_percent == 2.0

    def test_fetch_and_push(self):
        records = Mock(spec=SupabaseRecordStore)
        records.select.return_value = []
        remote = RemotePreferencesStore(records)

        assert remote.fetch("9") is None
        records.select.assert_called_once_with("user_preferences", filters={"user_id": "9"}, limit=1)

        remote.push("9", UserPreferences())
        table, row = records.upsert.call_args.args
        assert table == "user_preferences"
        assert row["user_id"] == "9"
        assert records.upsert.call_args.kwargs == {"on_conflict": ("user_id",)}
