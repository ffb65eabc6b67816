"""Spot price adapters for crypto assets (USD quotes)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

from connectors.http_json import JsonPriceProvider, dig
from core.assets import AssetDescriptor
from core.errors import ProviderMalformedResponse


@dataclass
class BinanceProvider(JsonPriceProvider):
    """Binance spot ticker, quoted against USDT."""

    name: str = "binance"
    base_url: str = "https://api.binance.com/api/v3"

    def request(self, asset: AssetDescriptor) -> tuple[str, Dict[str, Any]]:
        pair = asset.ref("binance") or f"{asset.symbol}USDT"
        return "/ticker/price", {"symbol": pair}

    def extract(self, payload: Any, asset: AssetDescriptor) -> Any:
        return dig(payload, "price")


@dataclass
class CoinPaprikaProvider(JsonPriceProvider):
    name: str = "coinpaprika"
    base_url: str = "https://api.coinpaprika.com/v1"

    def request(self, asset: AssetDescriptor) -> tuple[str, Dict[str, Any]]:
        coin_id = asset.ref("coinpaprika")
        if not coin_id:
            raise ProviderMalformedResponse(self.name, f"no coinpaprika id for {asset.symbol}")
        return f"/tickers/{coin_id}", {}

    def extract(self, payload: Any, asset: AssetDescriptor) -> Any:
        return dig(payload, "quotes", "USD", "price")


@dataclass
class CryptoCompareProvider(JsonPriceProvider):
    name: str = "cryptocompare"
    base_url: str = "https://min-api.cryptocompare.com/data"

    def request(self, asset: AssetDescriptor) -> tuple[str, Dict[str, Any]]:
        return "/price", {"fsym": asset.ref("cryptocompare") or asset.symbol, "tsyms": "USD"}

    def extract(self, payload: Any, asset: AssetDescriptor) -> Any:
        # Errors come back as 200 with {"Response": "Error", "Message": ...}
        if dig(payload, "Response") == "Error":
            raise ProviderMalformedResponse(self.name, str(dig(payload, "Message") or "error response"))
        return dig(payload, "USD")


@dataclass
class CoinGeckoProvider(JsonPriceProvider):
    name: str = "coingecko"
    base_url: str = "https://api.coingecko.com/api/v3"

    def request(self, asset: AssetDescriptor) -> tuple[str, Dict[str, Any]]:
        coin_id = asset.ref("coingecko")
        if not coin_id:
            raise ProviderMalformedResponse(self.name, f"no coingecko id for {asset.symbol}")
        return "/simple/price", {"ids": coin_id, "vs_currencies": "usd"}

    def extract(self, payload: Any, asset: AssetDescriptor) -> Any:
        return dig(payload, asset.ref("coingecko"), "usd")


__all__ = [
    "BinanceProvider",
    "CoinPaprikaProvider",
    "CryptoCompareProvider",
    "CoinGeckoProvider",
]
