"""Fan out price resolution across the whole asset catalog."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Iterable, List, Optional, Tuple

from core.assets import AssetDescriptor, PricePoint, PriceSnapshot
from core.gold_cache import GoldPriceCache
from core.resolver import AssetPriceResolver

LOGGER = logging.getLogger(__name__)


class SnapshotBuilder:
    """Resolve every asset concurrently and assemble a :class:`PriceSnapshot`.

    Each asset gets its own deadline; an asset that raises or overruns is left
    out of this cycle's snapshot without affecting the others.
    """

    def __init__(
        self,
        assets: Iterable[AssetDescriptor],
        resolver: AssetPriceResolver,
        gold_cache: Optional[GoldPriceCache] = None,
        asset_deadline: float = 60.0,
        now_func: Callable[[], float] = time.time,
    ) -> None:
        self._assets: Tuple[AssetDescriptor, ...] = tuple(assets)
        self._resolver = resolver
        self._gold_cache = gold_cache
        self._deadline = asset_deadline
        self._now = now_func

    @property
    def assets(self) -> Tuple[AssetDescriptor, ...]:
        return self._assets

    async def _resolve_one(self, asset: AssetDescriptor) -> PricePoint:
        if self._gold_cache is not None and asset.symbol == self._gold_cache.asset.symbol:
            coro = self._gold_cache.resolve()
        else:
            coro = self._resolver.resolve(asset)
        if self._deadline and self._deadline > 0:
            return await asyncio.wait_for(coro, timeout=self._deadline)
        return await coro

    async def build(self) -> PriceSnapshot:
        taken_at = int(self._now())
        results = await asyncio.gather(
            *(self._resolve_one(asset) for asset in self._assets),
            return_exceptions=True,
        )
        points: List[PricePoint] = []
        for asset, result in zip(self._assets, results):
            if isinstance(result, asyncio.TimeoutError):
                LOGGER.error("Resolution of %s exceeded %.1fs; omitted this cycle", asset.symbol, self._deadline)
                continue
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                LOGGER.error(
                    "Resolution of %s failed; omitted this cycle",
                    asset.symbol,
                    exc_info=(type(result), result, result.__traceback__),
                )
                continue
            if result.currency != asset.currency or result.symbol != asset.symbol:
                LOGGER.error(
                    "Discarding %s price: got %s/%s, expected %s/%s",
                    asset.symbol,
                    result.symbol,
                    result.currency,
                    asset.symbol,
                    asset.currency,
                )
                continue
            points.append(result)
        snapshot = PriceSnapshot(points, taken_at=taken_at)
        LOGGER.info("Snapshot built with %d/%d assets", len(snapshot), len(self._assets))
        return snapshot


__all__ = ["SnapshotBuilder"]
