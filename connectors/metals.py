"""Gold price adapters. All return INR per 10 grams."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Optional

from connectors.exchange_rate import FxRateCache
from connectors.http_json import JsonPriceProvider, dig, get_json
from core.assets import AssetDescriptor
from core.errors import ProviderMalformedResponse, ProviderRateLimited, ProviderUnreachable
from core.gold_cache import price_per_ten_grams_inr
from core.providers import parse_price

# MetalpriceAPI reports exhausted quota as error code 104/105 in a 200 body.
_METALPRICE_QUOTA_CODES = {104, 105}


@dataclass
class MetalPriceProvider(JsonPriceProvider):
    """MetalpriceAPI latest XAU quote, converted from USD/troy-ounce."""

    name: str = "metalpriceapi"
    base_url: str = "https://api.metalpriceapi.com/v1"
    api_key: Optional[str] = field(default=None, repr=False)
    fx: FxRateCache = field(default_factory=FxRateCache)

    def request(self, asset: AssetDescriptor) -> tuple[str, Dict[str, Any]]:
        return "/latest", {"api_key": self.api_key, "base": "USD", "currencies": "XAU"}

    def extract(self, payload: Any, asset: AssetDescriptor) -> Any:
        if dig(payload, "success") is not True:
            code = dig(payload, "error", "statusCode")
            message = dig(payload, "error", "message") or "success flag missing"
            if code in _METALPRICE_QUOTA_CODES:
                raise ProviderRateLimited(self.name, f"quota exceeded: {message}", status_code=code)
            raise ProviderMalformedResponse(self.name, str(message))
        return dig(payload, "rates", "USDXAU")

    async def fetch(self, asset: AssetDescriptor) -> Decimal:
        if not self.api_key:
            raise ProviderUnreachable(self.name, "no API key configured")
        path, params = self.request(asset)
        payload = await get_json(
            self.name, f"{self.base_url.rstrip('/')}{path}", params, self.timeout, self.client_factory
        )
        usd_per_ounce = parse_price(self.extract(payload, asset), self.name)
        rate = await self.fx.get_rate()
        return price_per_ten_grams_inr(usd_per_ounce, rate)


@dataclass
class CoinGeckoGoldProvider(JsonPriceProvider):
    """CoinGecko's ``gold`` id, scaled to 10 grams."""

    name: str = "coingecko_gold"
    base_url: str = "https://api.coingecko.com/api/v3"

    def request(self, asset: AssetDescriptor) -> tuple[str, Dict[str, Any]]:
        return "/simple/price", {"ids": "gold", "vs_currencies": "inr"}

    def extract(self, payload: Any, asset: AssetDescriptor) -> Any:
        per_gram = dig(payload, "gold", "inr")
        if per_gram is None:
            return None
        return parse_price(per_gram, self.name) * 10


@dataclass
class AlphaVantageGoldProvider(JsonPriceProvider):
    """Alpha Vantage XAU->INR exchange rate, scaled to 10 grams."""

    name: str = "alphavantage_gold"
    base_url: str = "https://www.alphavantage.co"
    api_key: str = field(default="demo", repr=False)

    def request(self, asset: AssetDescriptor) -> tuple[str, Dict[str, Any]]:
        return "/query", {
            "function": "CURRENCY_EXCHANGE_RATE",
            "from_currency": "XAU",
            "to_currency": "INR",
            "apikey": self.api_key,
        }

    def extract(self, payload: Any, asset: AssetDescriptor) -> Any:
        if dig(payload, "Note") or dig(payload, "Information"):
            raise ProviderRateLimited(self.name, str(dig(payload, "Note") or dig(payload, "Information")))
        rate = dig(payload, "Realtime Currency Exchange Rate", "5. Exchange Rate")
        if rate is None:
            return None
        return parse_price(rate, self.name) * 10


__all__ = ["MetalPriceProvider", "CoinGeckoGoldProvider", "AlphaVantageGoldProvider"]
