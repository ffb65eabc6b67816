import asyncio
import smtplib
import sys
from decimal import Decimal
from pathlib import Path
from typing import List

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from alerts import mailer
from alerts.dispatcher import NotificationDispatcher, build_alert_message
from alerts.mailer import ConsoleNotifier, EmailNotifier, build_notifier
from alerts.notifiers.base import NotificationMessage, NotifierTestResult
from core.alert_models import DeliveryStatus, new_alert_payload
from core.assets import DEFAULT_ASSETS, PricePoint, PriceSnapshot
from core.event_bus import EventBus
from core.events import EventType
from rules.config_loader import EmailConfig
from rules.price_alerts import AlertEvaluator
from storage import sqlite_manager
from storage.migrate import initialize_database

NOW = 1_700_000_000


@pytest.fixture()
def temp_db(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    db_path = tmp_path / "dispatch.db"
    monkeypatch.setenv("ALERT_DB_PATH", str(db_path))
    initialize_database(str(db_path))
    return db_path


class _RecordingNotifier:
    name = "recording"

    def __init__(self, result=True) -> None:
        self.result = result
        self.messages: List[NotificationMessage] = []
        self.active_at_send: List[int] = []

    def enabled(self) -> bool:
        return True

    async def send(self, message: NotificationMessage) -> bool:
        self.messages.append(message)
        for row in sqlite_manager.list_alerts():
            self.active_at_send.append(row["is_active"])
        if isinstance(self.result, Exception):
            raise self.result
        return self.result

    async def self_test(self) -> NotifierTestResult:
        return NotifierTestResult(ok=True)


def _trigger(symbol: str = "ETH", threshold=3000, condition: str = "below", price: str = "2950"):
    payload = new_alert_payload(symbol, threshold, condition, "me@example.com", DEFAULT_ASSETS, NOW - 60)
    alert_id = sqlite_manager.create_alert(payload)
    point = PricePoint(symbol, "Ethereum", Decimal(price), "USD", NOW)
    triggered = AlertEvaluator(DEFAULT_ASSETS, now_func=lambda: NOW).evaluate(PriceSnapshot([point], NOW))
    assert len(triggered) == 1
    return alert_id, triggered[0]


def test_successful_dispatch_records_sent(temp_db: Path) -> None:
    alert_id, triggered = _trigger()
    notifier = _RecordingNotifier()
    bus = EventBus()
    events = []
    bus.subscribe(EventType.PRICE_ALERT, events.append)
    dispatcher = NotificationDispatcher(notifier, event_bus=bus, now_func=lambda: NOW + 5)

    outcome = asyncio.run(dispatcher.dispatch(triggered))

    assert outcome.status is DeliveryStatus.SENT
    assert notifier.active_at_send == [0]
    message = notifier.messages[0]
    assert message.recipient == "me@example.com"
    assert "Ethereum (ETH)" in message.subject
    assert "$2,950.00" in message.body
    assert "$3,000.00" in message.body
    rows = sqlite_manager.list_notifications(alert_id=alert_id)
    assert len(rows) == 1
    assert rows[0]["id"] == outcome.record_id
    assert rows[0]["status"] == "sent"
    assert rows[0]["current_price"] == 2950.0
    assert rows[0]["threshold"] == 3000.0
    assert rows[0]["condition"] == "below"
    assert rows[0]["sent_at"] == NOW + 5
    assert [(e.alert_id, e.status) for e in events] == [(alert_id, "sent")]


@pytest.mark.parametrize("result", [False, smtplib.SMTPAuthenticationError(535, b"bad credentials")])
def test_failed_dispatch_records_failed_and_keeps_rule_inactive(temp_db: Path, result) -> None:
    alert_id, triggered = _trigger()
    dispatcher = NotificationDispatcher(_RecordingNotifier(result), now_func=lambda: NOW)

    outcome = asyncio.run(dispatcher.dispatch(triggered))

    assert outcome.status is DeliveryStatus.FAILED
    assert outcome.error
    rows = sqlite_manager.list_notifications(alert_id=alert_id)
    assert [row["status"] for row in rows] == ["failed"]
    assert rows[0]["error"] == outcome.error
    assert sqlite_manager.get_alert(alert_id)["is_active"] == 0


def test_message_uses_rupee_for_gold(temp_db: Path) -> None:
    payload = new_alert_payload("GOLD", 100000, "above", "me@example.com", DEFAULT_ASSETS, NOW)
    sqlite_manager.create_alert(payload)
    point = PricePoint("GOLD", "Gold", Decimal("100885"), "INR", NOW)
    triggered = AlertEvaluator(DEFAULT_ASSETS, now_func=lambda: NOW).evaluate(PriceSnapshot([point], NOW))

    message = build_alert_message(triggered[0])

    assert "₹100,885.00" in message.body
    assert "above" in message.subject
    assert "<table" in message.html


def test_console_notifier_reports_success(caplog: pytest.LogCaptureFixture) -> None:
    message = NotificationMessage(recipient="me@example.com", subject="Price Alert", body="BTC is above 70,000")
    with caplog.at_level("WARNING"):
        assert asyncio.run(ConsoleNotifier().send(message)) is True
    assert "BTC is above 70,000" in caplog.text


def test_build_notifier_depends_on_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GMAIL_USER", raising=False)
    monkeypatch.delenv("GMAIL_APP_PASSWORD", raising=False)
    assert isinstance(build_notifier(EmailConfig()), ConsoleNotifier)

    monkeypatch.setenv("GMAIL_USER", "alerts@example.com")
    monkeypatch.setenv("GMAIL_APP_PASSWORD", "app-password")
    notifier = build_notifier(EmailConfig())
    assert isinstance(notifier, EmailNotifier)
    assert notifier.host == "smtp.gmail.com"
    assert notifier.enabled()


class _FakeSMTP:
    instances: List["_FakeSMTP"] = []

    def __init__(self, host: str, port: int, timeout: float) -> None:
        self.host = host
        self.port = port
        self.calls: List[str] = []
        self.sent = []
        _FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.calls.append("quit")
        return False

    def starttls(self, context=None) -> None:
        self.calls.append("starttls")

    def login(self, username: str, password: str) -> None:
        self.calls.append("login")
        if password == "wrong":
            raise smtplib.SMTPAuthenticationError(535, b"rejected")

    def send_message(self, message) -> None:
        self.calls.append("send")
        self.sent.append(message)

    def close(self) -> None:
        self.calls.append("close")


def test_email_notifier_sends_multipart_message(monkeypatch: pytest.MonkeyPatch) -> None:
    _FakeSMTP.instances.clear()
    monkeypatch.setattr(mailer.smtplib, "SMTP", _FakeSMTP)
    notifier = EmailNotifier(host="smtp.test", port=587, username="alerts@example.com", password="secret")
    message = NotificationMessage(
        recipient="me@example.com", subject="Price Alert", body="plain", html="<p>rich</p>"
    )

    assert asyncio.run(notifier.send(message)) is True

    smtp = _FakeSMTP.instances[0]
    assert smtp.calls == ["starttls", "login", "send", "quit"]
    email = smtp.sent[0]
    assert email["To"] == "me@example.com"
    assert "alerts@example.com" in email["From"]
    assert email.is_multipart()


def test_email_notifier_returns_false_on_smtp_error(monkeypatch: pytest.MonkeyPatch) -> None:
    _FakeSMTP.instances.clear()
    monkeypatch.setattr(mailer.smtplib, "SMTP", _FakeSMTP)
    notifier = EmailNotifier(host="smtp.test", port=587, username="alerts@example.com", password="wrong")
    message = NotificationMessage(recipient="me@example.com", subject="s", body="b")

    assert asyncio.run(notifier.send(message)) is False
    assert _FakeSMTP.instances[0].calls == ["starttls", "login", "close"]

    result = asyncio.run(notifier.self_test())
    assert result.ok is False
    assert _FakeSMTP.instances[1].calls == ["starttls", "login", "close"]
