"""Price source adapters and the provider registry."""

from __future__ import annotations

from typing import Dict, Optional

from core.providers import PriceProvider

from .crypto import BinanceProvider, CoinGeckoProvider, CoinPaprikaProvider, CryptoCompareProvider
from .exchange_rate import FxRateCache
from .http_json import ClientFactory, JsonPriceProvider, get_json
from .metals import AlphaVantageGoldProvider, CoinGeckoGoldProvider, MetalPriceProvider


def build_provider_registry(
    timeout: float = 10.0,
    fx: Optional[FxRateCache] = None,
    metalprice_key: Optional[str] = None,
    alphavantage_key: Optional[str] = None,
    client_factory: Optional[ClientFactory] = None,
) -> Dict[str, PriceProvider]:
    """Every known provider keyed by the id used in asset provider lists."""

    fx_cache = fx or FxRateCache(timeout=timeout, client_factory=client_factory)
    common = {"timeout": timeout, "client_factory": client_factory}
    providers = [
        BinanceProvider(**common),
        CoinPaprikaProvider(**common),
        CryptoCompareProvider(**common),
        CoinGeckoProvider(**common),
        MetalPriceProvider(api_key=metalprice_key, fx=fx_cache, **common),
        CoinGeckoGoldProvider(**common),
        AlphaVantageGoldProvider(api_key=alphavantage_key or "demo", **common),
    ]
    return {provider.name: provider for provider in providers}


__all__ = [
    "BinanceProvider",
    "CoinPaprikaProvider",
    "CryptoCompareProvider",
    "CoinGeckoProvider",
    "MetalPriceProvider",
    "CoinGeckoGoldProvider",
    "AlphaVantageGoldProvider",
    "FxRateCache",
    "JsonPriceProvider",
    "ClientFactory",
    "get_json",
    "build_provider_registry",
]
