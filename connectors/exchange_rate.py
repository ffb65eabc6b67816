"""Process-wide USD -> INR rate, refreshed at most once per interval."""

from __future__ import annotations

import asyncio
import logging
import time
from decimal import Decimal
from typing import Callable, Optional

from connectors.http_json import DEFAULT_TIMEOUT, ClientFactory, dig, get_json
from core.errors import ProviderError
from core.providers import parse_price

LOGGER = logging.getLogger(__name__)

EXCHANGE_RATE_URL = "https://api.exchangerate-api.com/v4/latest/USD"
DEFAULT_USD_INR = Decimal("83.0")


class FxRateCache:
    """Cached USD->INR rate.

    The last good value (initially ``default_rate``) is kept whenever a refresh
    fails; the refresh is retried on the next call after a failure.
    """

    def __init__(
        self,
        refresh_interval: float = 3600.0,
        default_rate: Decimal = DEFAULT_USD_INR,
        url: str = EXCHANGE_RATE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        client_factory: Optional[ClientFactory] = None,
        now_func: Callable[[], float] = time.time,
    ) -> None:
        self._interval = refresh_interval
        self._rate = Decimal(str(default_rate))
        self._url = url
        self._timeout = timeout
        self._client_factory = client_factory
        self._now = now_func
        self._updated_at: Optional[float] = None
        self._lock = asyncio.Lock()

    @property
    def rate(self) -> Decimal:
        return self._rate

    @property
    def updated_at(self) -> Optional[float]:
        return self._updated_at

    def _is_fresh(self) -> bool:
        return self._updated_at is not None and self._now() - self._updated_at < self._interval

    async def get_rate(self) -> Decimal:
        async with self._lock:
            if self._is_fresh():
                return self._rate
            try:
                payload = await get_json(
                    "exchangerate", self._url, None, self._timeout, self._client_factory
                )
                rate = parse_price(dig(payload, "rates", "INR"), "exchangerate")
            except ProviderError as exc:
                LOGGER.warning("USD->INR refresh failed, using cached rate %s: %s", self._rate, exc)
                return self._rate
            self._rate = rate
            self._updated_at = self._now()
            LOGGER.info("Updated USD to INR rate: %s", rate)
            return rate


__all__ = ["EXCHANGE_RATE_URL", "DEFAULT_USD_INR", "FxRateCache"]
