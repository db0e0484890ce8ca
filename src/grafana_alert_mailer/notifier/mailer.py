"""SMTP mail dispatcher."""

from __future__ import annotations

import logging
from email.message import EmailMessage
from typing import TYPE_CHECKING, Protocol

import aiosmtplib

if TYPE_CHECKING:
    from grafana_alert_mailer.config import SmtpSettings
    from grafana_alert_mailer.notifier.models import OutboundMessage

logger = logging.getLogger(__name__)

SMTPS_PORT = 465
DEFAULT_TIMEOUT = 10.0


class MailDeliveryError(Exception):
    """Raised when a message could not be handed to the mail relay."""


class Mailer(Protocol):
    """Protocol for notification delivery."""

    async def deliver(self, message: OutboundMessage) -> None:
        """Deliver one message or raise MailDeliveryError."""
        ...


class SmtpMailer:
    """Delivers notifications through an authenticated SMTP relay.

    Each call to ``deliver`` opens its own session, sends exactly one
    message to the configured recipient and closes the session. Failures
    are raised, never retried.
    """

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        *,
        sender: str,
        recipient: str,
        timeout: float = DEFAULT_TIMEOUT,
        dry_run: bool = False,
    ) -> None:
        """Initialize the mailer.

        Args:
            host: SMTP relay hostname.
            port: SMTP relay port; 465 uses implicit TLS.
            username: SMTP login.
            password: SMTP password.
            sender: From address.
            recipient: To address.
            timeout: Timeout in seconds for each SMTP operation.
            dry_run: Log messages instead of sending them.
        """
        self.host = host
        self.port = port
        self.username = username
        self.sender = sender
        self.recipient = recipient
        self.timeout = timeout
        self.dry_run = dry_run
        self._password = password

    @classmethod
    def from_settings(cls, settings: SmtpSettings, *, dry_run: bool = False) -> SmtpMailer:
        """Create a mailer from SMTP settings."""
        return cls(
            settings.server,
            settings.port,
            settings.sender_email,
            settings.sender_password.get_secret_value(),
            sender=settings.sender_email,
            recipient=settings.recipient_email,
            timeout=settings.timeout_seconds,
            dry_run=dry_run,
        )

    def build_email(self, message: OutboundMessage) -> EmailMessage:
        """Convert an OutboundMessage into a MIME message."""
        email = EmailMessage()
        email["Subject"] = message.subject
        email["From"] = self.sender
        email["To"] = self.recipient
        email.set_content(message.html_body, subtype="html")

        if message.attachment is not None:
            image = message.attachment
            email.add_attachment(
                image.content,
                maintype=image.maintype,
                subtype=image.subtype,
                filename=image.filename,
            )

        return email

    async def deliver(self, message: OutboundMessage) -> None:
        """Send one message to the recipient.

        Args:
            message: Composed notification.

        Raises:
            MailDeliveryError: On connection, authentication, relay or
                timeout failure.
        """
        try:
            email = self.build_email(message)
        except ValueError as e:
            raise MailDeliveryError(f"failed to build email: {e}") from e

        if self.dry_run:
            logger.info("[dry-run] Would send %r to %s", message.subject, self.recipient)
            return

        use_tls = self.port == SMTPS_PORT
        smtp = aiosmtplib.SMTP(
            hostname=self.host,
            port=self.port,
            username=self.username,
            password=self._password,
            use_tls=use_tls,
            start_tls=False if use_tls else None,
            timeout=self.timeout,
        )

        try:
            async with smtp:
                await smtp.send_message(email)
        except (aiosmtplib.SMTPException, OSError, TimeoutError) as e:
            raise MailDeliveryError(f"failed to send email: {e}") from e

        logger.info("Sent %r to %s", message.subject, self.recipient)
