"""SMTP email notifier plus a console notifier for unconfigured deployments."""

from __future__ import annotations

import asyncio
import logging
import smtplib
import ssl
from dataclasses import dataclass, field
from email.message import EmailMessage
from email.utils import formataddr
from typing import Optional

from alerts.notifiers.base import NotificationMessage, Notifier, NotifierTestResult
from rules.config_loader import EmailConfig

LOGGER = logging.getLogger(__name__)


def build_email(message: NotificationMessage, sender: str, sender_name: str = "") -> EmailMessage:
    email = EmailMessage()
    email["From"] = formataddr((sender_name, sender)) if sender_name else sender
    email["To"] = message.recipient
    email["Subject"] = message.subject
    email.set_content(message.body)
    if message.html:
        email.add_alternative(message.html, subtype="html")
    return email


@dataclass
class EmailNotifier(Notifier):
    """Send alerts over SMTP with STARTTLS; the blocking client runs in a worker thread."""

    host: str
    port: int
    username: str
    password: str = field(repr=False)
    sender_name: str = "Price Alerts"
    use_tls: bool = True
    timeout: float = 15.0
    name: str = "email"

    @classmethod
    def from_config(cls, config: EmailConfig) -> "EmailNotifier":
        return cls(
            host=config.smtp_host,
            port=int(config.smtp_port),
            username=config.username or "",
            password=config.password or "",
            sender_name=config.sender_name,
            use_tls=config.use_tls,
            timeout=config.timeout_seconds,
        )

    def enabled(self) -> bool:
        return bool(self.host and self.username and self.password)

    def _open(self) -> smtplib.SMTP:
        client = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        try:
            if self.use_tls:
                client.starttls(context=ssl.create_default_context())
            client.login(self.username, self.password)
        except BaseException:
            client.close()
            raise
        return client

    def _send_blocking(self, message: NotificationMessage) -> None:
        email = build_email(message, self.username, self.sender_name)
        with self._open() as client:
            client.send_message(email)

    async def send(self, message: NotificationMessage) -> bool:
        if not self.enabled():
            LOGGER.info("Email notifier missing credentials; skip send")
            return False
        try:
            await asyncio.to_thread(self._send_blocking, message)
        except (smtplib.SMTPException, OSError) as exc:
            LOGGER.error("Error sending email notification to %s: %s", message.recipient, exc)
            return False
        LOGGER.info("Email notification sent to %s: %s", message.recipient, message.subject)
        return True

    async def self_test(self) -> NotifierTestResult:
        if not self.enabled():
            return NotifierTestResult(ok=False, detail="SMTP credentials not configured")

        def _probe() -> None:
            with self._open() as client:
                client.noop()

        try:
            await asyncio.to_thread(_probe)
        except (smtplib.SMTPException, OSError) as exc:
            return NotifierTestResult(ok=False, detail=str(exc))
        return NotifierTestResult(ok=True, detail=f"SMTP login to {self.host}:{self.port} succeeded")


@dataclass
class ConsoleNotifier(Notifier):
    """Log alerts instead of mailing them (demo mode when SMTP is not set up)."""

    name: str = "console"
    logger: Optional[logging.Logger] = field(default=None, repr=False)

    def enabled(self) -> bool:
        return True

    async def send(self, message: NotificationMessage) -> bool:
        log = self.logger or LOGGER
        banner = "=" * 60
        log.warning(
            "\n%s\nPRICE ALERT TRIGGERED (email not configured)\nTo: %s\nSubject: %s\n%s\n%s\n"
            "Set GMAIL_USER and GMAIL_APP_PASSWORD to enable real email delivery.\n%s",
            banner,
            message.recipient,
            message.subject,
            banner,
            message.body,
            banner,
        )
        return True

    async def self_test(self) -> NotifierTestResult:
        return NotifierTestResult(ok=True, detail="console output")


def build_notifier(config: EmailConfig) -> Notifier:
    if config.configured:
        LOGGER.info("SMTP configured for %s via %s:%s", config.username, config.smtp_host, config.smtp_port)
        return EmailNotifier.from_config(config)
    LOGGER.warning("Email credentials not configured, alerts will be logged to the console")
    return ConsoleNotifier()


__all__ = ["build_email", "EmailNotifier", "ConsoleNotifier", "build_notifier"]
