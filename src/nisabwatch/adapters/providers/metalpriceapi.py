"""
MetalpriceAPI Provider - Primary Gold/Silver Spot Source

Fetches gold (XAU), silver (XAG) and the supported exchange rates in a single
call with base USD. The API quotes metals as ounces per 1 USD, so the USD
price per troy ounce is the reciprocal. Exchange rates come from the same
payload, so no embedded rates are needed when this provider answers.

Files that USE this module:
- nisabwatch.application.metals_service (build_adapters puts it first)
- tests.test_providers (unit tests)

Files that this module USES:
- nisabwatch.adapters.providers.base (PriceSourceAdapter, SpotQuote, Deadline)
"""
import logging
from typing import Any, Dict, Optional

import requests

from nisabwatch.adapters.providers.base import Deadline, PriceSourceAdapter, SpotQuote, to_price
from nisabwatch.domain.errors import InvalidPriceError, ProviderResponseError
from nisabwatch.domain.models import Currency, Metal

log = logging.getLogger(__name__)

_METAL_SYMBOLS = {Metal.GOLD: "XAU", Metal.SILVER: "XAG"}


class MetalpriceApiAdapter(PriceSourceAdapter):
    """
    Client for the MetalpriceAPI /latest endpoint.

    Expected envelope:
      {"success": true, "base": "USD", "rates": {"XAU": 0.00038, "XAG": 0.0339, "GBP": 0.79, ...}}
    Some plans also return direct prices such as "USDXAU": 2650.1, which are preferred.
    """

    name = "metalpriceapi"

    def _fetch_spot(self, session: requests.Session, deadline: Deadline) -> SpotQuote:
        symbols = list(_METAL_SYMBOLS.values()) + [c.value for c in Currency if c is not Currency.USD]
        data = self._get_json(
            session,
            self.base_url,
            deadline,
            params={"api_key": self.api_key, "base": "USD", "currencies": ",".join(symbols)},
        )
        return self.parse(data)

    @classmethod
    def parse(cls, data: Any) -> SpotQuote:
        if not isinstance(data, dict):
            raise ProviderResponseError(f"{cls.name} returned non-dict JSON")
        if data.get("success") is not True:
            error = data.get("error") or data.get("message") or "unsuccessful response"
            raise ProviderResponseError(f"{cls.name} error: {error}")
        rates = data.get("rates")
        if not isinstance(rates, dict):
            raise ProviderResponseError(f"{cls.name} response missing 'rates'")

        usd_per_ounce: Dict[Metal, float] = {}
        for metal, symbol in _METAL_SYMBOLS.items():
            price = cls._usd_per_ounce(rates, symbol)
            if price is None:
                raise InvalidPriceError(f"{cls.name} returned no usable {symbol} rate")
            usd_per_ounce[metal] = price

        fx_rates: Dict[Currency, float] = {}
        for currency in Currency:
            rate = to_price(rates.get(currency.value))
            if rate is not None:
                fx_rates[currency] = rate

        log.debug("%s spot: gold=%s silver=%s USD/ozt", cls.name,
                  usd_per_ounce[Metal.GOLD], usd_per_ounce[Metal.SILVER])
        return SpotQuote(usd_per_ounce=usd_per_ounce, fx_rates=fx_rates)

    @staticmethod
    def _usd_per_ounce(rates: Dict[str, Any], symbol: str) -> Optional[float]:
        direct = to_price(rates.get(f"USD{symbol}"))
        if direct is not None and direct > 0:
            return direct
        inverse = to_price(rates.get(symbol))
        if inverse is None or inverse <= 0:
            return None
        return 1.0 / inverse
