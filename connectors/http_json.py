"""Shared HTTP plumbing for JSON price endpoints."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Dict, Optional

import httpx

from core.assets import AssetDescriptor
from core.errors import ProviderMalformedResponse, ProviderRateLimited, ProviderUnreachable
from core.providers import parse_price

LOGGER = logging.getLogger(__name__)

USER_AGENT = "price-alert-monitor/1.0"
DEFAULT_TIMEOUT = 10.0

ClientFactory = Callable[[float], httpx.AsyncClient]


def default_client_factory(timeout: float) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=timeout, headers={"User-Agent": USER_AGENT})


async def get_json(
    provider: str,
    url: str,
    params: Optional[Dict[str, Any]] = None,
    timeout: float = DEFAULT_TIMEOUT,
    client_factory: Optional[ClientFactory] = None,
) -> Any:
    """GET ``url`` and return the decoded JSON body.

    Failures are classified: 429 -> rate limited, 5xx / transport errors /
    timeouts -> unreachable, anything else unusable -> malformed.
    """

    factory = client_factory or default_client_factory
    try:
        async with factory(timeout) as client:
            response = await client.get(url, params=params)
    except httpx.TimeoutException as exc:
        raise ProviderUnreachable(provider, f"timeout after {timeout}s: {exc!r}") from exc
    except httpx.RequestError as exc:
        raise ProviderUnreachable(provider, f"request error: {exc!r}") from exc

    status = response.status_code
    if status == 429:
        raise ProviderRateLimited(provider, "HTTP 429", status_code=status)
    if status >= 500:
        raise ProviderUnreachable(provider, f"HTTP {status}", status_code=status)
    if status != 200:
        raise ProviderMalformedResponse(provider, f"HTTP {status}", status_code=status)
    try:
        return response.json()
    except ValueError as exc:
        raise ProviderMalformedResponse(provider, f"invalid JSON body: {exc}") from exc


def dig(payload: Any, *path: Any) -> Any:
    """Follow ``path`` through nested dicts/lists, returning ``None`` when absent."""

    current = payload
    for key in path:
        if isinstance(current, dict):
            current = current.get(key)
        elif isinstance(current, list) and isinstance(key, int) and -len(current) <= key < len(current):
            current = current[key]
        else:
            return None
        if current is None:
            return None
    return current


@dataclass
class JsonPriceProvider:
    """Base class for providers exposing one GET endpoint per asset.

    Subclasses implement :meth:`request` (URL + query params for an asset) and
    :meth:`extract` (raw price value out of the decoded body).
    """

    name: str = "json"
    base_url: str = ""
    timeout: float = DEFAULT_TIMEOUT
    client_factory: Optional[ClientFactory] = field(default=None, repr=False)

    def request(self, asset: AssetDescriptor) -> tuple[str, Dict[str, Any]]:
        raise NotImplementedError

    def extract(self, payload: Any, asset: AssetDescriptor) -> Any:
        raise NotImplementedError

    async def fetch(self, asset: AssetDescriptor) -> Decimal:
        path, params = self.request(asset)
        url = f"{self.base_url.rstrip('/')}{path}"
        LOGGER.debug("Trying %s for %s", self.name, asset.symbol)
        payload = await get_json(self.name, url, params, self.timeout, self.client_factory)
        return parse_price(self.extract(payload, asset), self.name)


__all__ = [
    "USER_AGENT",
    "DEFAULT_TIMEOUT",
    "ClientFactory",
    "default_client_factory",
    "get_json",
    "dig",
    "JsonPriceProvider",
]
