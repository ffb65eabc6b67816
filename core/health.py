"""Provider health bookkeeping fed from the event bus."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from core.event_bus import EventBus
from core.events import EventBase, EventType, PriceDegradedEvent, ProviderStatusEvent


@dataclass(slots=True)
class ProviderState:
    """Runtime state of one provider across all assets."""

    name: str
    healthy: bool = True
    consecutive_failures: int = 0
    total_failures: int = 0
    last_checked: float = 0.0
    last_success: Optional[float] = None
    latency_ms: float = 0.0
    failure_reason: str = ""
    failures_by_category: Dict[str, int] = field(default_factory=dict)


class ProviderHealth:
    """Track success/failure counts per provider and degraded assets."""

    def __init__(self, now_func: Callable[[], float] = time.time) -> None:
        self._now = now_func
        self._providers: Dict[str, ProviderState] = {}
        self._degraded: Dict[str, PriceDegradedEvent] = {}

    def attach(self, bus: EventBus) -> "ProviderHealth":
        bus.subscribe(EventType.PROVIDER_STATUS, self._on_provider_status)
        bus.subscribe(EventType.PRICE_DEGRADED, self._on_price_degraded)
        return self

    def _state(self, name: str) -> ProviderState:
        state = self._providers.get(name)
        if state is None:
            state = ProviderState(name=name)
            self._providers[name] = state
        return state

    def mark_success(self, name: str, latency_ms: float = 0.0) -> None:
        state = self._state(name)
        state.healthy = True
        state.consecutive_failures = 0
        state.latency_ms = latency_ms
        state.last_checked = self._now()
        state.last_success = state.last_checked
        state.failure_reason = ""

    def mark_failure(self, name: str, category: str, reason: str) -> None:
        state = self._state(name)
        state.healthy = False
        state.consecutive_failures += 1
        state.total_failures += 1
        state.latency_ms = 0.0
        state.last_checked = self._now()
        state.failure_reason = reason
        state.failures_by_category[category] = state.failures_by_category.get(category, 0) + 1

    def _on_provider_status(self, event: EventBase) -> None:
        if not isinstance(event, ProviderStatusEvent):
            return
        if event.ok:
            self.mark_success(event.provider, event.latency_ms or 0.0)
            self._degraded.pop(event.symbol, None)
        else:
            self.mark_failure(event.provider, event.category, event.reason)

    def _on_price_degraded(self, event: EventBase) -> None:
        if isinstance(event, PriceDegradedEvent):
            self._degraded[event.symbol] = event

    def state(self, name: str) -> Optional[ProviderState]:
        return self._providers.get(name)

    def degraded_symbols(self) -> List[str]:
        return sorted(self._degraded)

    def snapshot(self) -> List[Dict[str, object]]:
        """Serialisable view for logs and the dashboard's status panel."""

        return [
            {
                "name": state.name,
                "healthy": state.healthy,
                "consecutive_failures": state.consecutive_failures,
                "total_failures": state.total_failures,
                "latency_ms": state.latency_ms,
                "last_checked": state.last_checked,
                "last_success": state.last_success,
                "reason": state.failure_reason,
                "failures_by_category": dict(state.failures_by_category),
            }
            for state in sorted(self._providers.values(), key=lambda s: s.name)
        ]


__all__ = ["ProviderState", "ProviderHealth"]
