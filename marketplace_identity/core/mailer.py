"""
Email adapter for the identity backend.

The default Notifier implementation uses SMTP, reading credentials from
Settings. ``send`` reports delivery as a bool; callers decide what a failed
delivery means for their flow.
"""

from __future__ import annotations

from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
import logging
import smtplib
import ssl
from typing import Protocol

from .config import Settings

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def send(self, to: str, subject: str, text: str, html: str | None = None) -> bool:
        ...


class SmtpNotifier:
    def __init__(self, settings: Settings):
        self.settings = settings

    def _configured(self) -> bool:
        s = self.settings
        return bool(s.smtp_host and s.smtp_user and s.smtp_password and s.smtp_from and s.smtp_port)

    def send(self, to: str, subject: str, text: str, html: str | None = None) -> bool:
        """
        Send an e-mail with plain and HTML parts.
        Returns False without sending when SMTP is not configured.
        """
        if not self._configured():
            logger.warning("SMTP not configured; skipping e-mail to %s", to)
            return False
        settings = self.settings
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = settings.smtp_from
        msg["To"] = to
        msg.attach(MIMEText(text, "plain", "utf-8"))
        msg.attach(MIMEText(html or text, "html", "utf-8"))
        port = settings.smtp_port or 465
        try:
            if port == 465:
                context = ssl.create_default_context()
                with smtplib.SMTP_SSL(settings.smtp_host, port, context=context, timeout=30) as server:
                    server.login(settings.smtp_user, settings.smtp_password)
                    server.sendmail(settings.smtp_from, [to], msg.as_string())
            else:
                with smtplib.SMTP(settings.smtp_host, port, timeout=30) as server:
                    server.ehlo()
                    server.starttls(context=ssl.create_default_context())
                    server.login(settings.smtp_user, settings.smtp_password)
                    server.sendmail(settings.smtp_from, [to], msg.as_string())
            return True
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Failed to send e-mail to %s: %s", to, exc)
            return False
