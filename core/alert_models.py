"""Alert rule and notification record models."""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional

from core.assets import AssetDescriptor, PricePoint

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class AlertCondition(str, Enum):
    ABOVE = "above"
    BELOW = "below"

    def is_met(self, price: Decimal, threshold: Decimal) -> bool:
        if self is AlertCondition.ABOVE:
            return price > threshold
        return price < threshold


class DeliveryStatus(str, Enum):
    SENT = "sent"
    FAILED = "failed"


@dataclass(frozen=True)
class AlertRule:
    """Row of the ``alerts`` table, converted to domain types."""

    id: int
    symbol: str
    threshold: Decimal
    condition: AlertCondition
    active: bool
    destination: str
    created_at: int
    last_triggered_at: Optional[int] = None
    asset_name: str = ""
    currency: str = ""

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "AlertRule":
        return cls(
            id=int(row["id"]),
            symbol=row["symbol"],
            threshold=Decimal(str(row["threshold"])),
            condition=AlertCondition(row["condition"]),
            active=bool(row["is_active"]),
            destination=row.get("destination") or "",
            created_at=int(row.get("created_at") or 0),
            last_triggered_at=row.get("last_triggered_at"),
            asset_name=row.get("asset_name") or row["symbol"],
            currency=row.get("currency") or "",
        )


@dataclass(frozen=True)
class TriggeredAlert:
    """A rule whose condition was met, already deactivated in the store."""

    rule: AlertRule
    point: PricePoint
    triggered_at: int

    @property
    def price(self) -> Decimal:
        return self.point.price


@dataclass(frozen=True)
class NotificationRecord:
    """Audit row for one dispatch attempt."""

    alert_id: Optional[int]
    symbol: str
    asset_name: str
    currency: str
    threshold: Decimal
    current_price: Decimal
    condition: AlertCondition
    status: DeliveryStatus
    sent_at: int
    destination: str = ""
    error: str = ""
    id: Optional[int] = None

    def to_row(self) -> Dict[str, Any]:
        return {
            "alert_id": self.alert_id,
            "symbol": self.symbol,
            "asset_name": self.asset_name,
            "currency": self.currency,
            "threshold": float(self.threshold),
            "current_price": float(self.current_price),
            "condition": self.condition.value,
            "status": self.status.value,
            "destination": self.destination,
            "error": self.error,
            "sent_at": self.sent_at,
        }


def new_alert_payload(
    symbol: str,
    threshold: object,
    condition: str,
    destination: str,
    catalog: Iterable[AssetDescriptor],
    created_at: int,
) -> Dict[str, Any]:
    """Validate user input and return a row ready for ``sqlite_manager.create_alert``.

    Raises ``ValueError`` with a user facing message on invalid input.
    """

    assets = {asset.symbol: asset for asset in catalog}
    symbol = (symbol or "").strip().upper()
    asset = assets.get(symbol)
    if asset is None:
        supported = ", ".join(sorted(assets))
        raise ValueError(f"Unsupported asset: {symbol}. Supported assets: {supported}")
    try:
        condition_value = AlertCondition(str(condition).lower())
    except ValueError:
        raise ValueError("condition must be 'above' or 'below'") from None
    try:
        threshold_value = Decimal(str(threshold))
    except InvalidOperation:
        raise ValueError("threshold must be a number") from None
    if not threshold_value.is_finite() or threshold_value <= 0:
        raise ValueError("threshold must be a positive number")
    destination = (destination or "").strip()
    if not _EMAIL_RE.match(destination):
        raise ValueError(f"Invalid notification email: {destination!r}")
    return {
        "symbol": asset.symbol,
        "asset_name": asset.name,
        "currency": asset.currency,
        "threshold": float(threshold_value),
        "condition": condition_value.value,
        "is_active": 1,
        "destination": destination,
        "created_at": created_at,
        "last_triggered_at": None,
    }


__all__ = [
    "AlertCondition",
    "DeliveryStatus",
    "AlertRule",
    "TriggeredAlert",
    "NotificationRecord",
    "new_alert_payload",
]
