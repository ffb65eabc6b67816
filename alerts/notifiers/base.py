"""Notifier abstraction so the outbound channel stays pluggable."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(slots=True)
class NotificationMessage:
    """Channel independent alert payload."""

    recipient: str
    subject: str
    body: str
    html: str = ""


@dataclass(slots=True)
class NotifierTestResult:
    ok: bool
    detail: str = ""


class Notifier(Protocol):
    """Uniform interface for email (and any future) channels."""

    name: str

    def enabled(self) -> bool:
        """Whether the channel is configured and switched on."""

    async def send(self, message: NotificationMessage) -> bool:
        """Deliver ``message``; return ``True`` on success, ``False`` on transport failure."""

    async def self_test(self) -> NotifierTestResult:
        """Check connectivity/credentials without sending an alert."""
