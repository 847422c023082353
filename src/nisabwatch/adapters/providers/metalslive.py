"""
metals.live Provider - First Fallback Spot Source

One request per metal (/spot/gold, /spot/silver) in USD, authenticated with
the X-API-Key header. Both requests share the attempt's deadline. The provider
returns no exchange rates, so other currencies use the embedded table.

Files that USE this module:
- nisabwatch.application.metals_service (build_adapters puts it second)
- tests.test_providers (unit tests)

Files that this module USES:
- nisabwatch.adapters.providers.base (PriceSourceAdapter, SpotQuote, Deadline)
"""
from typing import Any, Dict, Optional

import requests

from nisabwatch.adapters.providers.base import Deadline, PriceSourceAdapter, SpotQuote, to_price
from nisabwatch.domain.errors import InvalidPriceError, ProviderResponseError
from nisabwatch.domain.models import Metal


class MetalsLiveAdapter(PriceSourceAdapter):
    """
    Client for the metals.live spot endpoints.

    Response body: {"price": 2650.12} (USD per troy ounce). Older deployments
    answer with a list such as [{"gold": 2650.12}], which is accepted too.
    """

    name = "metals.live"

    def _fetch_spot(self, session: requests.Session, deadline: Deadline) -> SpotQuote:
        headers = {"X-API-Key": self.api_key}
        usd_per_ounce: Dict[Metal, float] = {}
        for metal in Metal:
            data = self._get_json(
                session,
                f"{self.base_url}/spot/{metal.value}",
                deadline,
                params={"currency": "USD"},
                headers=headers,
            )
            usd_per_ounce[metal] = self.parse_price(metal, data)
        return SpotQuote(usd_per_ounce=usd_per_ounce)

    @classmethod
    def parse_price(cls, metal: Metal, data: Any) -> float:
        price: Optional[float] = None
        if isinstance(data, dict):
            price = to_price(data.get("price"))
        elif isinstance(data, list):
            for item in data:
                if isinstance(item, dict) and metal.value in item:
                    price = to_price(item[metal.value])
                    break
        else:
            raise ProviderResponseError(f"{cls.name} returned unexpected JSON type {type(data).__name__}")

        if price is None or price <= 0:
            raise InvalidPriceError(f"{cls.name} returned invalid {metal.value} price: {price!r}")
        return price
