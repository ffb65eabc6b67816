"""Asset catalog and price value objects.

The catalog is static: descriptors are built once at startup (optionally with
overrides from ``config.yaml``) and never mutated afterwards. Snapshots are
rebuilt wholesale every monitoring cycle.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple


class AssetCategory(str, Enum):
    CRYPTO = "crypto"
    COMMODITY = "commodity"


class PriceSource(str, Enum):
    """Where a price came from; lets callers tell live data from fallbacks."""

    LIVE = "live"
    CACHED = "cached"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class AssetDescriptor:
    """Static configuration for one tracked asset."""

    symbol: str
    name: str
    currency: str
    providers: Tuple[str, ...]
    category: AssetCategory = AssetCategory.CRYPTO
    fallback_price: Decimal = Decimal("0")
    ids: Mapping[str, str] = field(default_factory=dict, compare=False)

    def ref(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Provider specific identifier, e.g. ``ref("coingecko")`` -> ``"bitcoin"``."""

        return self.ids.get(key, default)


@dataclass(frozen=True)
class PricePoint:
    """One resolved price. Never modified once created."""

    symbol: str
    name: str
    price: Decimal
    currency: str
    ts: int
    source: PriceSource = PriceSource.LIVE
    provider: Optional[str] = None

    @property
    def is_live(self) -> bool:
        return self.source is PriceSource.LIVE

    def to_dict(self) -> Dict[str, object]:
        return {
            "symbol": self.symbol,
            "name": self.name,
            "price": float(self.price),
            "currency": self.currency,
            "ts": self.ts,
            "source": self.source.value,
            "provider": self.provider,
        }


class PriceSnapshot:
    """Read-only mapping of symbol -> latest :class:`PricePoint` for one cycle."""

    def __init__(self, points: Iterable[PricePoint], taken_at: int) -> None:
        self._points: Mapping[str, PricePoint] = MappingProxyType(
            {point.symbol: point for point in points}
        )
        self.taken_at = taken_at

    def get(self, symbol: str) -> Optional[PricePoint]:
        return self._points.get(symbol)

    def __contains__(self, symbol: object) -> bool:
        return symbol in self._points

    def __iter__(self) -> Iterator[str]:
        return iter(self._points)

    def __len__(self) -> int:
        return len(self._points)

    def points(self) -> List[PricePoint]:
        return list(self._points.values())

    def as_dict(self) -> Dict[str, Dict[str, object]]:
        """Shape used by the dashboard: symbol -> price/currency/name/source."""

        return {
            symbol: {
                "price": float(point.price),
                "currency": point.currency,
                "name": point.name,
                "source": point.source.value,
                "ts": point.ts,
            }
            for symbol, point in self._points.items()
        }

    def __repr__(self) -> str:
        return f"PriceSnapshot(taken_at={self.taken_at}, symbols={sorted(self._points)})"


_CRYPTO_CHAIN = ("binance", "coinpaprika", "cryptocompare", "coingecko")

DEFAULT_ASSETS: Tuple[AssetDescriptor, ...] = (
    AssetDescriptor(
        "BTC", "Bitcoin", "USD", _CRYPTO_CHAIN,
        fallback_price=Decimal("45000"),
        ids={"coingecko": "bitcoin", "coinpaprika": "btc-bitcoin"},
    ),
    AssetDescriptor(
        "ETH", "Ethereum", "USD", _CRYPTO_CHAIN,
        fallback_price=Decimal("2800"),
        ids={"coingecko": "ethereum", "coinpaprika": "eth-ethereum"},
    ),
    AssetDescriptor(
        "XRP", "Ripple", "USD", _CRYPTO_CHAIN,
        fallback_price=Decimal("0.55"),
        ids={"coingecko": "ripple", "coinpaprika": "xrp-xrp"},
    ),
    AssetDescriptor(
        "ADA", "Cardano", "USD", _CRYPTO_CHAIN,
        fallback_price=Decimal("0.45"),
        ids={"coingecko": "cardano", "coinpaprika": "ada-cardano"},
    ),
    AssetDescriptor(
        "DOT", "Polkadot", "USD", _CRYPTO_CHAIN,
        fallback_price=Decimal("6.5"),
        ids={"coingecko": "polkadot", "coinpaprika": "dot-polkadot"},
    ),
    AssetDescriptor(
        "LINK", "Chainlink", "USD", _CRYPTO_CHAIN,
        fallback_price=Decimal("15.5"),
        ids={"coingecko": "chainlink", "coinpaprika": "link-chainlink"},
    ),
    AssetDescriptor(
        "LTC", "Litecoin", "USD", _CRYPTO_CHAIN,
        fallback_price=Decimal("75"),
        ids={"coingecko": "litecoin", "coinpaprika": "ltc-litecoin"},
    ),
    AssetDescriptor(
        "BCH", "Bitcoin Cash", "USD", _CRYPTO_CHAIN,
        fallback_price=Decimal("240"),
        ids={"coingecko": "bitcoin-cash", "coinpaprika": "bch-bitcoin-cash"},
    ),
    # Tokamak Network is not listed on Binance, and CryptoCompare maps TON to Toncoin.
    AssetDescriptor(
        "TON", "Tokamak Network", "USD", ("coinpaprika", "coingecko"),
        fallback_price=Decimal("1.42"),
        ids={"coingecko": "tokamak-network", "coinpaprika": "ton-tokamak-network"},
    ),
    AssetDescriptor(
        "GOLD", "Gold", "INR", ("metalpriceapi", "coingecko_gold", "alphavantage_gold"),
        category=AssetCategory.COMMODITY,
        fallback_price=Decimal("100885"),
    ),
)


def build_catalog(
    overrides: Optional[Mapping[str, Mapping[str, object]]] = None,
    base: Iterable[AssetDescriptor] = DEFAULT_ASSETS,
) -> Tuple[AssetDescriptor, ...]:
    """Apply per-symbol overrides (provider order, fallback price) to ``base``."""

    catalog = {asset.symbol: asset for asset in base}
    for symbol, override in (overrides or {}).items():
        if symbol not in catalog:
            raise ValueError(f"Unknown asset in overrides: {symbol}")
        changes: Dict[str, object] = {}
        if override.get("providers") is not None:
            providers = tuple(str(p) for p in override["providers"])  # type: ignore[union-attr]
            if not providers:
                raise ValueError(f"{symbol}: provider list must not be empty")
            changes["providers"] = providers
        if override.get("fallback_price") is not None:
            fallback = Decimal(str(override["fallback_price"]))
            if fallback <= 0:
                raise ValueError(f"{symbol}: fallback_price must be positive")
            changes["fallback_price"] = fallback
        if changes:
            catalog[symbol] = replace(catalog[symbol], **changes)
    return tuple(catalog.values())


__all__ = [
    "AssetCategory",
    "PriceSource",
    "AssetDescriptor",
    "PricePoint",
    "PriceSnapshot",
    "DEFAULT_ASSETS",
    "build_catalog",
]
