"""
Mail Transport - Abstraction Layer for Outgoing Email
=====================================================

Provides a unified interface for sending one email.
Currently supports SMTP (Gmail app password by default).

USAGE:
    transport = SmtpMailTransport.from_settings(get_settings().mail)
    result = transport.send(OutgoingEmail(
        to="jane@example.com",
        subject="How was your experience?",
        html="<p>...</p>",
        sender_name="Bella Pizza",
    ))
    if result.success:
        print(result.message_id)
"""

import logging
import re
import smtplib
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Dict, Optional

from ..config import MailSettings

logger = logging.getLogger(__name__)

_STYLE_BLOCKS = re.compile(r'<style[^>]*>[\s\S]*?</style>', re.IGNORECASE)
_SCRIPT_BLOCKS = re.compile(r'<script[^>]*>[\s\S]*?</script>', re.IGNORECASE)
_TAGS = re.compile(r'<[^>]*>')
_WHITESPACE = re.compile(r'\s+')


def strip_html(html: str) -> str:
    """Plain-text version of an HTML body."""
    text = _STYLE_BLOCKS.sub('', html)
    text = _SCRIPT_BLOCKS.sub('', text)
    text = _TAGS.sub('', text)
    return _WHITESPACE.sub(' ', text).strip()


@dataclass(frozen=True)
class OutgoingEmail:
    """One email to hand to a transport."""
    to: str
    subject: str
    html: str
    text: Optional[str] = None
    sender_name: Optional[str] = None


@dataclass(frozen=True)
class SendResult:
    """What the transport reports back for one email."""
    success: bool
    message_id: Optional[str] = None
    sent_from: Optional[str] = None
    error: Optional[str] = None


class MailTransport(ABC):
    """
    Abstract base class for mail transports.
    Implement this interface to add new sending backends.
    """

    @abstractmethod
    def send(self, email: OutgoingEmail) -> SendResult:
        """Send one email. Delivery problems are reported in the result."""
        ...

    @abstractmethod
    def status(self) -> Dict[str, object]:
        """Describe the sending account(s) for the dashboard."""
        ...


class SmtpMailTransport(MailTransport):
    """SMTP transport with STARTTLS; one connection per email."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        from_name: str = "",
        timeout: int = 30,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_name = from_name
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: MailSettings) -> "SmtpMailTransport":
        return cls(
            host=settings.host,
            port=settings.port,
            username=settings.username,
            password=settings.password,
            from_name=settings.from_name,
            timeout=settings.timeout_seconds,
        )

    @property
    def disabled(self) -> bool:
        return not all([self.host, self.username, self.password])

    def send(self, email: OutgoingEmail) -> SendResult:
        if self.disabled:
            return SendResult(success=False, error="SMTP not configured")

        message_id = f"{uuid.uuid4()}@{self.host}"
        sender_name = email.sender_name or self.from_name

        msg = MIMEMultipart("alternative")
        msg["Subject"] = email.subject
        msg["From"] = formataddr((sender_name, self.username)) if sender_name else self.username
        msg["To"] = email.to
        msg["Message-ID"] = f"<{message_id}>"

        msg.attach(MIMEText(email.text or strip_html(email.html), "plain", "utf-8"))
        msg.attach(MIMEText(email.html, "html", "utf-8"))

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                server.starttls()
                server.login(self.username, self.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.warning(f"SMTP send to {email.to} failed: {e}")
            return SendResult(success=False, sent_from=self.username, error=str(e))

        logger.info(f"Email sent as \"{sender_name}\" to {email.to}")
        return SendResult(success=True, message_id=message_id, sent_from=self.username)

    def test_connection(self) -> bool:
        """Log in once without sending anything."""
        if self.disabled:
            return False
        try:
            with smtplib.SMTP(self.host, self.port, timeout=10) as server:
                server.starttls()
                server.login(self.username, self.password)
                return True
        except (smtplib.SMTPException, OSError) as e:
            logger.warning(f"SMTP connection test failed: {e}")
            return False

    def status(self) -> Dict[str, object]:
        return {
            "totalAccounts": 1,
            "accounts": [{
                "email": self.username or "Not configured",
                "isAvailable": not self.disabled,
                "status": "disabled" if self.disabled else "active",
            }],
        }
