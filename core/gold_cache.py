"""Long-lived cache in front of the gold price chain.

The primary metals API allows only a handful of requests per day, so gold is
refreshed at most once per TTL (24 hours by default) while every monitoring
cycle still gets a price.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Optional

from core.assets import AssetDescriptor, PricePoint, PriceSource
from core.errors import AllProvidersExhausted
from core.resolver import AssetPriceResolver

LOGGER = logging.getLogger(__name__)

GRAMS_PER_TROY_OUNCE = Decimal("31.1034768")
DEFAULT_GOLD_TTL_SECONDS = 24 * 60 * 60


def price_per_ten_grams_inr(usd_per_troy_ounce: object, usd_to_inr: object) -> Decimal:
    """Convert a USD/troy-ounce quote into INR per 10 grams."""

    usd = Decimal(str(usd_per_troy_ounce))
    rate = Decimal(str(usd_to_inr))
    return usd * rate / GRAMS_PER_TROY_OUNCE * 10


@dataclass(slots=True)
class GoldCacheEntry:
    price: Decimal
    refreshed_at: float
    provider: Optional[str] = None


class GoldPriceCache:
    """Serve gold from a single cached entry, refreshing it through ``resolver``.

    The read-or-refresh decision runs under an ``asyncio.Lock`` so concurrent
    callers never trigger more than one upstream refresh.
    """

    def __init__(
        self,
        asset: AssetDescriptor,
        resolver: AssetPriceResolver,
        ttl_seconds: float = DEFAULT_GOLD_TTL_SECONDS,
        now_func: Callable[[], float] = time.time,
    ) -> None:
        self.asset = asset
        self._resolver = resolver
        self._ttl = ttl_seconds
        self._now = now_func
        self._entry: Optional[GoldCacheEntry] = None
        self._lock = asyncio.Lock()

    @property
    def entry(self) -> Optional[GoldCacheEntry]:
        return self._entry

    def prime(self, price: object, refreshed_at: float, provider: Optional[str] = None) -> None:
        """Seed the cache, e.g. from the last stored history row at startup."""

        self._entry = GoldCacheEntry(Decimal(str(price)), refreshed_at, provider)

    def is_fresh(self) -> bool:
        return self._entry is not None and self._now() - self._entry.refreshed_at < self._ttl

    async def resolve(self) -> PricePoint:
        async with self._lock:
            if self.is_fresh():
                assert self._entry is not None
                LOGGER.debug(
                    "Using cached gold price %s %s (refreshed at %s)",
                    self._entry.price,
                    self.asset.currency,
                    self._entry.refreshed_at,
                )
                return self._point(self._entry.price, PriceSource.CACHED, self._entry.provider)
            return await self._refresh()

    async def _refresh(self) -> PricePoint:
        try:
            point = await self._resolver.resolve_live(self.asset)
        except AllProvidersExhausted as exc:
            if self._entry is not None:
                LOGGER.warning(
                    "Gold refresh failed, serving stale cached price %s %s: %s",
                    self._entry.price,
                    self.asset.currency,
                    exc,
                )
                self._resolver.publish_degraded(
                    self.asset.symbol, PriceSource.CACHED, self._entry.price, str(exc)
                )
                return self._point(self._entry.price, PriceSource.CACHED, self._entry.provider)
            LOGGER.warning(
                "Gold refresh failed with empty cache, using fallback %s %s: %s",
                self.asset.fallback_price,
                self.asset.currency,
                exc,
            )
            self._resolver.publish_degraded(
                self.asset.symbol, PriceSource.FALLBACK, self.asset.fallback_price, str(exc)
            )
            return self._resolver.fallback_point(self.asset)
        self._entry = GoldCacheEntry(point.price, self._now(), point.provider)
        LOGGER.info("Gold price refreshed via %s: %s %s", point.provider, point.price, point.currency)
        return point

    def _point(self, price: Decimal, source: PriceSource, provider: Optional[str]) -> PricePoint:
        return PricePoint(
            symbol=self.asset.symbol,
            name=self.asset.name,
            price=price,
            currency=self.asset.currency,
            ts=int(self._now()),
            source=source,
            provider=provider,
        )


__all__ = [
    "GRAMS_PER_TROY_OUNCE",
    "DEFAULT_GOLD_TTL_SECONDS",
    "price_per_ten_grams_inr",
    "GoldCacheEntry",
    "GoldPriceCache",
]
