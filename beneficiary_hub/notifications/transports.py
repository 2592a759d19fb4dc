"""
Delivery transports for notification events.
"""

from __future__ import annotations

import logging
import smtplib
from abc import ABC, abstractmethod
from email.message import EmailMessage

from .events import NotificationEvent


class NotificationTransport(ABC):
    name = "transport"

    @abstractmethod
    def send(self, event: NotificationEvent) -> None:
        """Deliver ``event``; raise on failure."""


class LoggingTransport(NotificationTransport):
    """Writes events to the application log instead of sending them."""

    name = "log"

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger("beneficiary_hub.notifications")

    def send(self, event: NotificationEvent) -> None:
        self.logger.info(
            f"Notification {event.kind.value} to {event.recipient}: {event.subject}",
            extra={"notification_kind": event.kind.value, "notification_recipient": event.recipient},
        )


class SmtpTransport(NotificationTransport):
    name = "smtp"

    def __init__(
        self,
        server: str,
        port: int = 587,
        *,
        use_tls: bool = True,
        username: str | None = None,
        password: str | None = None,
        sender: str | None = None,
        timeout: float = 10.0,
    ) -> None:
        if not server:
            raise ValueError("SmtpTransport requires MAIL_SERVER.")
        self.server = server
        self.port = port
        self.use_tls = use_tls
        self.username = username
        self.password = password
        self.sender = sender or username
        self.timeout = timeout

    def build_message(self, event: NotificationEvent) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = event.subject
        message["From"] = self.sender
        message["To"] = event.recipient
        message.set_content(event.render_body())
        return message

    def send(self, event: NotificationEvent) -> None:
        if not event.recipient:
            raise ValueError(f"{event.kind.value} notification has no recipient.")
        message = self.build_message(event)
        with smtplib.SMTP(self.server, self.port, timeout=self.timeout) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username and self.password:
                smtp.login(self.username, self.password)
            smtp.send_message(message)


def build_transport(config) -> NotificationTransport:
    """Select the transport named by ``NOTIFICATIONS_TRANSPORT``."""
    transport_name = str(config.get("NOTIFICATIONS_TRANSPORT", "log")).lower()
    if transport_name == "smtp":
        return SmtpTransport(
            config.get("MAIL_SERVER"),
            int(config.get("MAIL_PORT", 587)),
            use_tls=bool(config.get("MAIL_USE_TLS", True)),
            username=config.get("MAIL_USERNAME"),
            password=config.get("MAIL_PASSWORD"),
            sender=config.get("MAIL_DEFAULT_SENDER"),
        )
    if transport_name != "log":
        raise ValueError(f"Unknown NOTIFICATIONS_TRANSPORT '{transport_name}'. Expected 'log' or 'smtp'.")
    return LoggingTransport()


__all__ = ["NotificationTransport", "LoggingTransport", "SmtpTransport", "build_transport"]
