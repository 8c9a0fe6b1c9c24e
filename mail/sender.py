"""
mail/sender.py -- Email sender contract and its SMTP / development adapters.

Contract: send(address, subject, body) returns None on success and raises
MailDeliveryError on any failure. Callers that armed state before sending (the
reset token service) rely on the raise to roll that state back, so adapters
must never swallow a transport error.

SmtpEmailSender bounds every network operation with a socket timeout so a dead
relay surfaces as MailDeliveryError instead of a hung request.
"""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from typing import Protocol

from core.config import Settings

logger = logging.getLogger("trailpass.mail")


class MailDeliveryError(Exception):
    """The message could not be handed to the transport."""


class EmailSender(Protocol):
    def send(self, address: str, subject: str, body: str) -> None: ...


class SmtpEmailSender:
    """Plain-text mail over SMTP with optional STARTTLS and login."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        *,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
        timeout: float = 10.0,
        sender: str = "",
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout
        self.sender = sender or username

    def send(self, address: str, subject: str, body: str) -> None:
        if not self.host:
            raise MailDeliveryError("SMTP is not configured")

        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = address
        msg.set_content(body)

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                server.ehlo()
                if self.use_tls:
                    server.starttls()
                    server.ehlo()
                if self.username:
                    server.login(self.username, self.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            # OSError covers refused connections and socket timeouts
            logger.error("Failed to send mail to %s via %s:%d: %s", address, self.host, self.port, exc)
            raise MailDeliveryError(str(exc)) from exc

        logger.info("Mail sent to %s (%s)", address, subject)


class LogEmailSender:
    """Development sender: writes the whole message to the log.

    The body can contain a live reset token, which is why build_email_sender()
    only selects this adapter in debug mode.
    """

    def send(self, address: str, subject: str, body: str) -> None:
        logger.info("DEV MAIL to=%s subject=%r\n%s", address, subject, body)


def build_email_sender(settings: Settings) -> EmailSender:
    """Pick the sender for this deployment.

    SMTP when a host is configured. Without one, debug mode logs messages and
    production keeps an unconfigured SmtpEmailSender, so every send fails
    loudly and reset state is rolled back.
    """
    if settings.smtp_host or settings.is_production:
        if not settings.smtp_host:
            logger.warning("SMTP_HOST is not set -- password reset emails will fail")
        return SmtpEmailSender(
            settings.smtp_host,
            settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            timeout=settings.smtp_timeout_seconds,
            sender=settings.mail_from,
        )
    logger.warning("SMTP_HOST is not set -- outgoing mail will be written to the log")
    return LogEmailSender()
