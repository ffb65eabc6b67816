"""Uniform contract for external price sources."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Protocol

from core.assets import AssetDescriptor
from core.errors import ProviderMalformedResponse


class PriceProvider(Protocol):
    """One external price source.

    ``fetch`` returns a strictly positive price in the asset's settlement
    currency or raises a :class:`core.errors.ProviderError` subclass. It never
    caches and never retries; fallback is the resolver's job.
    """

    name: str

    async def fetch(self, asset: AssetDescriptor) -> Decimal:
        ...


def parse_price(raw: object, provider: str) -> Decimal:
    """Turn a raw JSON value into a positive ``Decimal`` or raise malformed."""

    if raw is None or isinstance(raw, bool):
        raise ProviderMalformedResponse(provider, f"missing price (got {raw!r})")
    try:
        price = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        raise ProviderMalformedResponse(provider, f"unparseable price {raw!r}") from None
    if not price.is_finite():
        raise ProviderMalformedResponse(provider, f"non-finite price {raw!r}")
    if price <= 0:
        raise ProviderMalformedResponse(provider, f"non-positive price {price}")
    return price


__all__ = ["PriceProvider", "parse_price"]
