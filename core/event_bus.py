"""In-process publish/subscribe bus."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Callable, DefaultDict, List, Tuple

from core.events import EventBase, EventType

LOGGER = logging.getLogger(__name__)

Subscriber = Callable[[EventBase], None]


class EventBus:
    """Synchronous fan-out of events to subscribers keyed by :class:`EventType`.

    A failing subscriber is logged and skipped; publishing never raises into
    the price acquisition path.
    """

    def __init__(self) -> None:
        self._subscribers: DefaultDict[EventType, List[Subscriber]] = defaultdict(list)

    def subscribe(self, event_type: EventType, handler: Subscriber) -> None:
        self._subscribers[event_type].append(handler)

    def unsubscribe(self, event_type: EventType, handler: Subscriber) -> None:
        handlers = self._subscribers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, event: EventBase) -> None:
        for handler in list(self._subscribers.get(event.event_type, [])):
            try:
                handler(event)
            except Exception:
                LOGGER.exception("Subscriber %r failed on %s", handler, event.event_type.value)

    def subscribers(self, event_type: EventType) -> Tuple[Subscriber, ...]:
        return tuple(self._subscribers.get(event_type, ()))


__all__ = ["EventBus", "Subscriber"]
