"""Error taxonomy shared by providers, resolvers, storage and dispatch."""

from __future__ import annotations

from typing import Optional


class PriceMonitorError(Exception):
    """Root of every error raised inside the monitoring engine."""


class ProviderError(PriceMonitorError):
    """A single provider could not produce a usable price."""

    category = "unknown"

    def __init__(self, provider: str, reason: str, status_code: Optional[int] = None) -> None:
        super().__init__(f"{provider}: {reason}")
        self.provider = provider
        self.reason = reason
        self.status_code = status_code


class ProviderRateLimited(ProviderError):
    category = "rate_limit"


class ProviderUnreachable(ProviderError):
    category = "network"


class ProviderMalformedResponse(ProviderError):
    category = "parsing"


class AllProvidersExhausted(PriceMonitorError):
    """Every provider in an asset's chain failed during one resolution."""

    def __init__(self, symbol: str, errors: list[ProviderError]) -> None:
        summary = "; ".join(str(err) for err in errors) or "no providers configured"
        super().__init__(f"{symbol}: {summary}")
        self.symbol = symbol
        self.errors = errors


class StoreWriteFailure(PriceMonitorError):
    """A durable write (history append or prune) did not complete."""


class DispatchFailure(PriceMonitorError):
    """The notification transport rejected or failed to send a message."""


__all__ = [
    "PriceMonitorError",
    "ProviderError",
    "ProviderRateLimited",
    "ProviderUnreachable",
    "ProviderMalformedResponse",
    "AllProvidersExhausted",
    "StoreWriteFailure",
    "DispatchFailure",
]
