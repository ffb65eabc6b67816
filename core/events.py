"""Typed events published by the acquisition engine.

Resolvers and caches never talk to observers directly; they publish these
dataclasses on the :class:`core.event_bus.EventBus` and whoever cares
(currently :class:`core.health.ProviderHealth`) subscribes.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class EventType(str, Enum):
    PROVIDER_STATUS = "provider_status"
    PRICE_DEGRADED = "price_degraded"
    PRICE_ALERT = "price_alert"


@dataclass(slots=True)
class EventBase:
    event_type: EventType
    ts: float


@dataclass(slots=True)
class ProviderStatusEvent(EventBase):
    """Outcome of one provider attempt for one asset."""

    provider: str = ""
    symbol: str = ""
    ok: bool = True
    category: str = ""  # rate_limit / network / parsing when ok is False
    reason: str = ""
    latency_ms: Optional[float] = None


@dataclass(slots=True)
class PriceDegradedEvent(EventBase):
    """An asset was served from a stale cache or the emergency constant."""

    symbol: str = ""
    source: str = ""  # cached / fallback
    price: float = 0.0
    reason: str = ""


@dataclass(slots=True)
class PriceAlertEvent(EventBase):
    """A rule fired and its notification attempt finished."""

    alert_id: int = 0
    symbol: str = ""
    condition: str = ""
    threshold: float = 0.0
    price: float = 0.0
    status: str = ""  # sent / failed


__all__ = ["EventType", "EventBase", "ProviderStatusEvent", "PriceDegradedEvent", "PriceAlertEvent"]
