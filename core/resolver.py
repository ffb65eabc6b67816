"""Ordered provider fallback for a single asset."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, List, Mapping, Optional

from core.assets import AssetDescriptor, PricePoint, PriceSource
from core.errors import AllProvidersExhausted, ProviderError, ProviderUnreachable
from core.event_bus import EventBus
from core.events import EventType, PriceDegradedEvent, ProviderStatusEvent
from core.providers import PriceProvider

LOGGER = logging.getLogger(__name__)


class AssetPriceResolver:
    """Try an asset's providers in configured order until one returns a price.

    The first valid price wins and later providers are never consulted. When
    every provider fails the asset's emergency fallback constant is returned,
    tagged :attr:`PriceSource.FALLBACK`, so the alerting pipeline always has a
    price to work with.
    """

    def __init__(
        self,
        providers: Mapping[str, PriceProvider],
        inter_provider_delay: float = 0.3,
        event_bus: Optional[EventBus] = None,
        now_func: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._providers = dict(providers)
        self._delay = inter_provider_delay
        self._event_bus = event_bus
        self._now = now_func
        self._sleep = sleep

    @property
    def provider_names(self) -> List[str]:
        return list(self._providers)

    async def resolve_live(self, asset: AssetDescriptor) -> PricePoint:
        """Walk the provider chain; raise :class:`AllProvidersExhausted` on total failure."""

        errors: List[ProviderError] = []
        for index, name in enumerate(asset.providers):
            provider = self._providers.get(name)
            if provider is None:
                LOGGER.warning("No provider registered as %s (asset %s)", name, asset.symbol)
                errors.append(ProviderUnreachable(name, "provider not registered"))
                continue
            if index and self._delay > 0:
                await self._sleep(self._delay)
            started = time.monotonic()
            try:
                price = await provider.fetch(asset)
            except ProviderError as exc:
                LOGGER.info("%s failed for %s (%s): %s", name, asset.symbol, exc.category, exc.reason)
                self._publish_status(name, asset.symbol, ok=False, category=exc.category, reason=exc.reason)
                errors.append(exc)
                continue
            latency_ms = (time.monotonic() - started) * 1000
            self._publish_status(name, asset.symbol, ok=True, latency_ms=latency_ms)
            LOGGER.info("%s price from %s: %s %s", asset.symbol, name, price, asset.currency)
            return PricePoint(
                symbol=asset.symbol,
                name=asset.name,
                price=price,
                currency=asset.currency,
                ts=int(self._now()),
                source=PriceSource.LIVE,
                provider=name,
            )
        raise AllProvidersExhausted(asset.symbol, errors)

    async def resolve(self, asset: AssetDescriptor) -> PricePoint:
        """Live price if any provider answers, otherwise the emergency fallback."""

        try:
            return await self.resolve_live(asset)
        except AllProvidersExhausted as exc:
            LOGGER.warning(
                "All providers failed for %s, using fallback price %s %s (%s)",
                asset.symbol,
                asset.fallback_price,
                asset.currency,
                exc,
            )
            self.publish_degraded(asset.symbol, PriceSource.FALLBACK, asset.fallback_price, str(exc))
            return self.fallback_point(asset)

    def fallback_point(self, asset: AssetDescriptor) -> PricePoint:
        return PricePoint(
            symbol=asset.symbol,
            name=asset.name,
            price=asset.fallback_price,
            currency=asset.currency,
            ts=int(self._now()),
            source=PriceSource.FALLBACK,
        )

    def publish_degraded(self, symbol: str, source: PriceSource, price: object, reason: str) -> None:
        if not self._event_bus:
            return
        self._event_bus.publish(
            PriceDegradedEvent(
                event_type=EventType.PRICE_DEGRADED,
                ts=self._now(),
                symbol=symbol,
                source=source.value,
                price=float(price),  # type: ignore[arg-type]
                reason=reason,
            )
        )

    def _publish_status(
        self,
        provider: str,
        symbol: str,
        ok: bool,
        category: str = "",
        reason: str = "",
        latency_ms: Optional[float] = None,
    ) -> None:
        if not self._event_bus:
            return
        self._event_bus.publish(
            ProviderStatusEvent(
                event_type=EventType.PROVIDER_STATUS,
                ts=self._now(),
                provider=provider,
                symbol=symbol,
                ok=ok,
                category=category,
                reason=reason,
                latency_ms=latency_ms,
            )
        )


__all__ = ["AssetPriceResolver"]
