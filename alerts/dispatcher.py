"""Send triggered alerts and record every delivery attempt."""

from __future__ import annotations

import asyncio
import html
import logging
import sqlite3
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, List, Optional

from alerts.notifiers.base import NotificationMessage, Notifier
from core.alert_models import AlertCondition, DeliveryStatus, NotificationRecord, TriggeredAlert
from core.errors import DispatchFailure
from core.event_bus import EventBus
from core.events import EventType, PriceAlertEvent
from storage import sqlite_manager

LOGGER = logging.getLogger(__name__)

_CURRENCY_SIGNS = {"USD": "$", "INR": "₹"}


def _timestamp(ts: float) -> str:
    dt = datetime.fromtimestamp(ts, tz=timezone.utc)
    return dt.strftime("%Y-%m-%d %H:%M:%S UTC")


def format_price(value: Decimal, currency: str) -> str:
    sign = _CURRENCY_SIGNS.get(currency, "")
    places = 2 if abs(value) >= 1 else 6
    text = f"{value:,.{places}f}"
    return f"{sign}{text}" if sign else f"{text} {currency}".strip()


def build_alert_message(triggered: TriggeredAlert) -> NotificationMessage:
    rule = triggered.rule
    point = triggered.point
    currency = rule.currency or point.currency
    name = rule.asset_name or point.name
    direction = "above" if rule.condition is AlertCondition.ABOVE else "below"
    price = format_price(point.price, currency)
    threshold = format_price(rule.threshold, currency)
    when = _timestamp(triggered.triggered_at)

    subject = f"Price Alert: {name} ({rule.symbol}) is {direction} {threshold}"
    lines = [
        f"Your price alert for {name} ({rule.symbol}) has been triggered.",
        "",
        f"Current price: {price}",
        f"Alert condition: price {direction} {threshold}",
        f"Price source: {point.source.value}",
        f"Triggered at: {when}",
        "",
        "This alert is now inactive. Re-enable it to be notified again.",
    ]
    body = "\n".join(lines)
    rows = "".join(
        f"<tr><td><strong>{html.escape(label)}</strong></td><td>{html.escape(value)}</td></tr>"
        for label, value in (
            ("Asset", f"{name} ({rule.symbol})"),
            ("Current price", price),
            ("Condition", f"{direction} {threshold}"),
            ("Source", point.source.value),
            ("Triggered at", when),
        )
    )
    html_body = (
        "<html><body>"
        f"<h2>Price Alert: {html.escape(name)}</h2>"
        f"<table cellpadding=\"6\">{rows}</table>"
        "<p>This alert is now inactive. Re-enable it to be notified again.</p>"
        "</body></html>"
    )
    return NotificationMessage(recipient=rule.destination, subject=subject, body=body, html=html_body)


@dataclass(slots=True)
class DeliveryOutcome:
    alert_id: int
    status: DeliveryStatus
    record_id: Optional[int] = None
    error: str = ""

    @property
    def sent(self) -> bool:
        return self.status is DeliveryStatus.SENT


class NotificationDispatcher:
    """Deliver each triggered alert once and persist one audit record per attempt.

    Alerts arrive already deactivated; a failed send is recorded but never
    reactivates or retries the rule.
    """

    def __init__(
        self,
        notifier: Notifier,
        event_bus: Optional[EventBus] = None,
        now_func: Callable[[], float] = time.time,
    ) -> None:
        self.notifier = notifier
        self._event_bus = event_bus
        self._now = now_func

    async def _deliver(self, message: NotificationMessage) -> None:
        if not self.notifier.enabled():
            raise DispatchFailure(f"notifier {self.notifier.name} is disabled")
        try:
            ok = await self.notifier.send(message)
        except DispatchFailure:
            raise
        except Exception as exc:  # noqa: BLE001
            raise DispatchFailure(f"{self.notifier.name}: {exc}") from exc
        if not ok:
            raise DispatchFailure(f"{self.notifier.name} rejected message to {message.recipient}")

    async def dispatch(self, triggered: TriggeredAlert) -> DeliveryOutcome:
        rule = triggered.rule
        message = build_alert_message(triggered)
        status = DeliveryStatus.SENT
        error = ""
        try:
            await self._deliver(message)
        except DispatchFailure as exc:
            status = DeliveryStatus.FAILED
            error = str(exc)
            LOGGER.error("Failed to notify alert %s (%s): %s", rule.id, rule.symbol, exc)
        else:
            LOGGER.info("Alert %s delivered to %s via %s", rule.id, rule.destination, self.notifier.name)

        record = NotificationRecord(
            alert_id=rule.id,
            symbol=rule.symbol,
            asset_name=rule.asset_name,
            currency=rule.currency or triggered.point.currency,
            threshold=rule.threshold,
            current_price=triggered.price,
            condition=rule.condition,
            status=status,
            sent_at=int(self._now()),
            destination=rule.destination,
            error=error,
        )
        record_id: Optional[int] = None
        try:
            record_id = await asyncio.to_thread(sqlite_manager.insert_notification, record.to_row())
        except sqlite3.Error:
            LOGGER.exception("Could not record notification for alert %s", rule.id)
        if self._event_bus is not None:
            self._event_bus.publish(
                PriceAlertEvent(
                    event_type=EventType.PRICE_ALERT,
                    ts=record.sent_at,
                    alert_id=rule.id,
                    symbol=rule.symbol,
                    condition=rule.condition.value,
                    threshold=float(rule.threshold),
                    price=float(triggered.price),
                    status=status.value,
                )
            )
        return DeliveryOutcome(alert_id=rule.id, status=status, record_id=record_id, error=error)

    async def dispatch_all(self, triggered: List[TriggeredAlert]) -> List[DeliveryOutcome]:
        outcomes: List[DeliveryOutcome] = []
        for item in triggered:
            outcomes.append(await self.dispatch(item))
        return outcomes


__all__ = ["format_price", "build_alert_message", "DeliveryOutcome", "NotificationDispatcher"]
