# tests/test_providers.py
"""
Provider Tests - Unit Tests for Metal Price Provider Classes

Tests request building, envelope parsing, deadline handling, error mapping and
normalization for MetalpriceApiAdapter, MetalsLiveAdapter and GoldApiAdapter.

Files that USE this module:
- pytest (test runner executes these tests)

Files that this module USES:
- nisabwatch.adapters.providers.* (providers under test)
- unittest.mock (Mock/patch for requests.Session)
"""
import socket
import threading
import time
from datetime import datetime, timezone
from unittest.mock import MagicMock, Mock, patch

import pytest
import requests

from nisabwatch.adapters.providers import (
    FALLBACK_FX_RATES,
    Deadline,
    GoldApiAdapter,
    MetalpriceApiAdapter,
    MetalsLiveAdapter,
    SpotQuote,
    normalize_spot,
)
from nisabwatch.domain.errors import (
    AdapterTimeoutError,
    InvalidPriceError,
    ProviderNotConfiguredError,
    ProviderResponseError,
)
from nisabwatch.domain.models import GRAMS_PER_TROY_OUNCE, Currency, Metal

API_KEY = "abcdef1234567890"


def _response(payload, status=200):
    resp = Mock()
    resp.status_code = status
    resp.json.return_value = payload
    return resp


def _patched_session(*responses):
    """Patch requests.Session so session.get returns the given responses in order."""
    session = MagicMock()
    session.__enter__.return_value = session
    session.__exit__.return_value = False
    session.get.side_effect = list(responses)
    return patch("nisabwatch.adapters.providers.base.requests.Session", return_value=session), session


class TestDeadline:
    def test_remaining_is_positive_then_expires(self):
        deadline = Deadline.after(5)
        assert 0 < deadline.remaining() <= 5
        assert not deadline.expired

        past = Deadline(expires_at=time.monotonic() - 1)
        assert past.remaining() == 0.0
        assert past.expired


class TestNormalizeSpot:
    def test_expands_to_every_metal_and_currency(self):
        observed = datetime(2026, 1, 1, tzinfo=timezone.utc)
        spot = SpotQuote(usd_per_ounce={Metal.GOLD: 2643.80, Metal.SILVER: 31.10})
        table = normalize_spot(spot, source="test", observed_at=observed)

        usd_gold = table.quote(Metal.GOLD, Currency.USD)
        assert usd_gold.price_per_gram == pytest.approx(2643.80 / GRAMS_PER_TROY_OUNCE)
        assert usd_gold.price_per_ounce == pytest.approx(2643.80)
        aed_gold = table.quote(Metal.GOLD, Currency.AED)
        assert aed_gold.price_per_gram == pytest.approx(usd_gold.price_per_gram * FALLBACK_FX_RATES[Currency.AED])
        assert len(list(table.all_quotes())) == len(Metal) * len(Currency)

    def test_ounce_gram_invariant_holds_for_all_quotes(self):
        spot = SpotQuote(usd_per_ounce={Metal.GOLD: 2650.123, Metal.SILVER: 29.87},
                         fx_rates={Currency.GBP: 0.7812})
        table = normalize_spot(spot, source="test", observed_at=datetime.now(timezone.utc))
        for quote in table.all_quotes():
            expected = quote.price_per_gram * GRAMS_PER_TROY_OUNCE
            assert abs(quote.price_per_ounce - expected) <= 1e-6 * expected

    def test_provider_rate_used_when_valid(self):
        spot = SpotQuote(usd_per_ounce={Metal.GOLD: 3110.34768, Metal.SILVER: 31.1034768},
                         fx_rates={Currency.GBP: 0.5, Currency.EGP: -3.0})
        table = normalize_spot(spot, source="test", observed_at=datetime.now(timezone.utc))
        assert table.quote(Metal.GOLD, Currency.GBP).price_per_gram == pytest.approx(50.0)
        # Invalid provider rate falls back to the embedded table
        assert table.quote(Metal.GOLD, Currency.EGP).price_per_gram == pytest.approx(100.0 * 49.0)

    @pytest.mark.parametrize("bad", [0, -5.0, float("nan"), float("inf"), None])
    def test_invalid_metal_price_rejected(self, bad):
        spot = SpotQuote(usd_per_ounce={Metal.GOLD: bad, Metal.SILVER: 30.0})
        with pytest.raises(InvalidPriceError):
            normalize_spot(spot, source="test", observed_at=datetime.now(timezone.utc))


class TestMetalpriceApiAdapter:
    def test_parse_reciprocal_rates(self):
        spot = MetalpriceApiAdapter.parse({
            "success": True,
            "base": "USD",
            "rates": {"XAU": 0.0004, "XAG": 0.032, "GBP": 0.78, "AED": 3.6725},
        })
        assert spot.usd_per_ounce[Metal.GOLD] == pytest.approx(2500.0)
        assert spot.usd_per_ounce[Metal.SILVER] == pytest.approx(31.25)
        assert spot.fx_rates[Currency.GBP] == 0.78

    def test_parse_prefers_direct_usd_price(self):
        spot = MetalpriceApiAdapter.parse({
            "success": True,
            "rates": {"XAU": 0.0004, "USDXAU": 2501.5, "XAG": 0.032},
        })
        assert spot.usd_per_ounce[Metal.GOLD] == 2501.5

    def test_unsuccessful_envelope_is_provider_error(self):
        with pytest.raises(ProviderResponseError, match="invalid_api_key"):
            MetalpriceApiAdapter.parse({"success": False, "error": {"info": "invalid_api_key"}})

    def test_zero_rate_is_invalid_price(self):
        with pytest.raises(InvalidPriceError):
            MetalpriceApiAdapter.parse({"success": True, "rates": {"XAU": 0, "XAG": 0.03}})

    def test_fetch_builds_request_and_normalizes(self):
        payload = {"success": True, "rates": {"XAU": 0.0004, "XAG": 0.032, "GBP": 0.8}}
        patcher, session = _patched_session(_response(payload))
        adapter = MetalpriceApiAdapter("https://api.metalpriceapi.com/v1/latest", API_KEY)
        with patcher:
            table = adapter.fetch(Deadline.after(2))

        _, kwargs = session.get.call_args
        assert kwargs["params"]["api_key"] == API_KEY
        assert kwargs["params"]["base"] == "USD"
        assert set(kwargs["params"]["currencies"].split(",")) == {"XAU", "XAG", "GBP", "AED", "SAR", "EGP"}
        assert 0 < kwargs["timeout"] <= 2
        assert table.source == "metalpriceapi"
        assert table.quote(Metal.GOLD, Currency.GBP).price_per_ounce == pytest.approx(2000.0)
        session.__exit__.assert_called_once()

    def test_missing_key_raises_without_request(self):
        adapter = MetalpriceApiAdapter("https://api.metalpriceapi.com/v1/latest", "")
        assert not adapter.is_configured()
        with patch("nisabwatch.adapters.providers.base.requests.Session") as session_cls:
            with pytest.raises(ProviderNotConfiguredError):
                adapter.fetch(Deadline.after(2))
        session_cls.assert_not_called()

    def test_expired_deadline_raises_without_request(self):
        adapter = MetalpriceApiAdapter("https://api.metalpriceapi.com/v1/latest", API_KEY)
        with patch("nisabwatch.adapters.providers.base.requests.Session") as session_cls:
            with pytest.raises(AdapterTimeoutError):
                adapter.fetch(Deadline(expires_at=time.monotonic() - 0.1))
        session_cls.assert_not_called()

    def test_http_error_status(self):
        patcher, _ = _patched_session(_response({}, status=429))
        adapter = MetalpriceApiAdapter("https://api.metalpriceapi.com/v1/latest", API_KEY)
        with patcher, pytest.raises(ProviderResponseError, match="HTTP 429"):
            adapter.fetch(Deadline.after(2))

    def test_requests_timeout_maps_to_adapter_timeout(self):
        patcher, _ = _patched_session(requests.exceptions.ReadTimeout("slow"))
        adapter = MetalpriceApiAdapter("https://api.metalpriceapi.com/v1/latest", API_KEY)
        with patcher, pytest.raises(AdapterTimeoutError):
            adapter.fetch(Deadline.after(2))

    def test_invalid_json(self):
        resp = _response(None)
        resp.json.side_effect = ValueError("Expecting value")
        patcher, _ = _patched_session(resp)
        adapter = MetalpriceApiAdapter("https://api.metalpriceapi.com/v1/latest", API_KEY)
        with patcher, pytest.raises(ProviderResponseError, match="invalid JSON"):
            adapter.fetch(Deadline.after(2))


class TestMetalsLiveAdapter:
    def test_fetch_calls_both_spot_endpoints_with_header(self):
        patcher, session = _patched_session(_response({"price": 2650.0}), _response({"price": 31.0}))
        adapter = MetalsLiveAdapter("https://api.metals.live/v1/", API_KEY)
        with patcher:
            table = adapter.fetch(Deadline.after(2))

        urls = [call.args[0] for call in session.get.call_args_list]
        assert urls == ["https://api.metals.live/v1/spot/gold", "https://api.metals.live/v1/spot/silver"]
        for call in session.get.call_args_list:
            assert call.kwargs["headers"]["X-API-Key"] == API_KEY
            assert call.kwargs["params"] == {"currency": "USD"}
        assert table.source == "metals.live"
        assert table.quote(Metal.SILVER, Currency.USD).price_per_ounce == pytest.approx(31.0)

    def test_parse_list_shape(self):
        assert MetalsLiveAdapter.parse_price(Metal.GOLD, [{"silver": 30.1}, {"gold": 2600.5}]) == 2600.5

    def test_negative_price_rejected(self):
        with pytest.raises(InvalidPriceError):
            MetalsLiveAdapter.parse_price(Metal.GOLD, {"price": -1})

    def test_unexpected_type_rejected(self):
        with pytest.raises(ProviderResponseError):
            MetalsLiveAdapter.parse_price(Metal.GOLD, "2600")


class TestGoldApiAdapter:
    def test_fetch_uses_access_token_and_symbols(self):
        patcher, session = _patched_session(
            _response({"metal": "XAU", "currency": "USD", "price": 2700.0}),
            _response({"metal": "XAG", "currency": "USD", "price": 32.0}),
        )
        adapter = GoldApiAdapter("https://www.goldapi.io/api", API_KEY)
        with patcher:
            table = adapter.fetch(Deadline.after(2))

        urls = [call.args[0] for call in session.get.call_args_list]
        assert urls == ["https://www.goldapi.io/api/XAU/USD", "https://www.goldapi.io/api/XAG/USD"]
        assert session.get.call_args_list[0].kwargs["headers"]["x-access-token"] == API_KEY
        assert table.source == "goldapi"
        assert table.quote(Metal.GOLD, Currency.USD).price_per_ounce == pytest.approx(2700.0)

    def test_error_body(self):
        with pytest.raises(ProviderResponseError, match="No data"):
            GoldApiAdapter.parse_price(Metal.GOLD, {"error": "No data available"})

    def test_wrong_metal_in_answer(self):
        with pytest.raises(ProviderResponseError):
            GoldApiAdapter.parse_price(Metal.GOLD, {"metal": "XAG", "price": 30.0})

    def test_non_numeric_price(self):
        with pytest.raises(InvalidPriceError):
            GoldApiAdapter.parse_price(Metal.SILVER, {"metal": "XAG", "price": "n/a"})


@pytest.fixture
def drip_server():
    """HTTP server that accepts a request and sends its status line one byte every 0.2s."""
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(("127.0.0.1", 0))
    listener.listen(1)
    stop = threading.Event()

    def serve():
        try:
            conn, _ = listener.accept()
        except OSError:
            return
        with conn:
            conn.recv(4096)
            payload = b"HTTP/1.1 200 OK\r\nX-Slow: " + b"a" * 1000
            for byte in payload:
                if stop.is_set():
                    return
                try:
                    conn.sendall(bytes([byte]))
                except OSError:
                    return
                time.sleep(0.2)

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{listener.getsockname()[1]}"
    stop.set()
    listener.close()
    thread.join(timeout=5)


class TestDeadlineAbort:
    def test_trickling_provider_aborted_at_deadline(self, drip_server):
        adapter = GoldApiAdapter(drip_server, API_KEY)
        started = time.monotonic()
        with pytest.raises(AdapterTimeoutError):
            adapter.fetch(Deadline.after(1.0))
        assert time.monotonic() - started < 3.0

    def test_watchdog_cancelled_after_fast_fetch(self):
        patcher, _ = _patched_session(
            _response({"metal": "XAU", "price": 2700.0}),
            _response({"metal": "XAG", "price": 32.0}),
        )
        adapter = GoldApiAdapter("https://www.goldapi.io/api", API_KEY)
        with patcher, patch("nisabwatch.adapters.providers.base.DeadlineWatchdog.fire") as fire:
            adapter.fetch(Deadline.after(0.3))
            time.sleep(0.5)
        fire.assert_not_called()
