"""
notify/mailer.py -- SMTP notification dispatcher.

Sends plain-text mail through smtplib. Constructed from the Settings object at
startup, never from module-level globals, so tests can swap it for a fake.

When SMTP_HOST, SMTP_USER and SMTP_PASSWORD are not all configured the
dispatcher runs in development mode: it logs that a mail was skipped and
returns False. The body is only logged at DEBUG level because it contains the
one-time code.

Transport errors (smtplib.SMTPException, OSError) propagate to the caller.
The auth orchestrator treats dispatch as fire-and-forget and logs them.
"""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage

from core.config import Settings

logger = logging.getLogger("otpauth.notify")

_DEFAULT_FROM = "no-reply@example.com"


class MailDispatcher:
    """Delivers notifications by SMTP."""

    def __init__(self, settings: Settings) -> None:
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.user = settings.smtp_user
        self.password = settings.smtp_password
        self.sender = settings.smtp_from or settings.smtp_user or _DEFAULT_FROM
        self.use_tls = settings.smtp_use_tls
        self.timeout = settings.smtp_timeout
        self.configured = settings.smtp_configured

    def send(self, destination: str, subject: str, body: str) -> bool:
        """Send one plain-text mail. Returns True if handed to the SMTP server."""
        if not destination:
            raise ValueError("Missing destination address")

        if not self.configured:
            logger.info("SMTP not configured; mail to %s not sent (subject=%r)", destination, subject)
            logger.debug("Unsent mail body for %s: %s", destination, body)
            return False

        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = destination
        msg.set_content(body)

        logger.info("Sending mail via smtp host=%s port=%s tls=%s to=%s", self.host, self.port, self.use_tls, destination)
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            server.ehlo()
            if self.use_tls:
                server.starttls()
                server.ehlo()
            server.login(self.user, self.password)
            server.send_message(msg)
        return True

