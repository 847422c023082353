"""
GoldAPI.io Provider - Second Fallback Spot Source

One request per metal (/XAU/USD, /XAG/USD) authenticated with the
x-access-token header. The body carries the USD price per troy ounce; other
currencies use the embedded exchange-rate table.

Files that USE this module:
- nisabwatch.application.metals_service (build_adapters puts it last)
- tests.test_providers (unit tests)

Files that this module USES:
- nisabwatch.adapters.providers.base (PriceSourceAdapter, SpotQuote, Deadline)
"""
from typing import Any, Dict

import requests

from nisabwatch.adapters.providers.base import Deadline, PriceSourceAdapter, SpotQuote, to_price
from nisabwatch.domain.errors import InvalidPriceError, ProviderResponseError
from nisabwatch.domain.models import Metal

_METAL_SYMBOLS = {Metal.GOLD: "XAU", Metal.SILVER: "XAG"}


class GoldApiAdapter(PriceSourceAdapter):
    """
    Client for goldapi.io.

    Response body (abridged):
      {"metal": "XAU", "currency": "USD", "price": 2650.5, "price_gram_24k": 85.21, ...}
    """

    name = "goldapi"

    def _fetch_spot(self, session: requests.Session, deadline: Deadline) -> SpotQuote:
        headers = {"x-access-token": self.api_key, "Content-Type": "application/json"}
        usd_per_ounce: Dict[Metal, float] = {}
        for metal, symbol in _METAL_SYMBOLS.items():
            data = self._get_json(session, f"{self.base_url}/{symbol}/USD", deadline, headers=headers)
            usd_per_ounce[metal] = self.parse_price(metal, data)
        return SpotQuote(usd_per_ounce=usd_per_ounce)

    @classmethod
    def parse_price(cls, metal: Metal, data: Any) -> float:
        if not isinstance(data, dict):
            raise ProviderResponseError(f"{cls.name} returned non-dict JSON")
        if data.get("error"):
            raise ProviderResponseError(f"{cls.name} error: {data['error']}")
        symbol = data.get("metal")
        if symbol and symbol != _METAL_SYMBOLS[metal]:
            raise ProviderResponseError(f"{cls.name} answered {symbol} for {metal.value}")

        price = to_price(data.get("price"))
        if price is None or price <= 0:
            raise InvalidPriceError(f"{cls.name} returned invalid {metal.value} price: {price!r}")
        return price
