"""
Outbound email delivery.

The handler works exclusively with OutgoingEmail / DeliveryReceipt; only this
module knows about Resend or SMTP.

Supported providers:
  - resend  (default; needs RESEND_API_KEY)
  - smtp    (needs SMTP_USER / SMTP_PASSWORD, optional SMTP_HOST / SMTP_PORT)

Adding a new provider:
  1. Write a <Provider>EmailSender class with send(email) -> DeliveryReceipt.
  2. Register a factory for it in _SENDER_FACTORIES.
  3. Set EMAIL_PROVIDER=<provider> in the environment.

Every provider failure is raised as DeliveryError. The message of a
DeliveryError may contain provider detail and must only ever be logged.
"""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Callable, Optional, Protocol

import resend
from pydantic import BaseModel

from consultoria.config import Settings

logger = logging.getLogger(__name__)


class OutgoingEmail(BaseModel):
    """A rendered email ready to hand to a provider."""

    from_address: str
    to: list[str]
    subject: str
    html: str
    reply_to: Optional[str] = None


class DeliveryReceipt(BaseModel):
    provider: str
    message_id: Optional[str] = None


class DeliveryError(Exception):
    """The provider refused or failed to deliver the email."""


class EmailSender(Protocol):
    def send(self, email: OutgoingEmail) -> DeliveryReceipt: ...


# ---------------------------------------------------------------------------
# Resend
# ---------------------------------------------------------------------------

class ResendEmailSender:
    """Send through the Resend API using the official SDK."""

    provider = "resend"

    def __init__(self, api_key: Optional[str]):
        self._api_key = api_key

    def send(self, email: OutgoingEmail) -> DeliveryReceipt:
        if not self._api_key:
            raise DeliveryError("RESEND_API_KEY is not configured")

        params = {
            "from": email.from_address,
            "to": email.to,
            "subject": email.subject,
            "html": email.html,
        }
        if email.reply_to:
            params["reply_to"] = email.reply_to

        # The SDK reads its credential from module state.
        resend.api_key = self._api_key
        try:
            response = resend.Emails.send(params)
        except Exception as e:
            raise DeliveryError(f"Resend rejected the email: {e}") from e

        message_id = response.get("id") if isinstance(response, dict) else None
        return DeliveryReceipt(provider=self.provider, message_id=message_id)


# ---------------------------------------------------------------------------
# SMTP
# ---------------------------------------------------------------------------

class SmtpEmailSender:
    """Send through an SMTP relay with STARTTLS and login."""

    provider = "smtp"

    def __init__(
        self,
        host: str,
        port: int,
        user: Optional[str],
        password: Optional[str],
        timeout: float = 30.0,
    ):
        self._host = host
        self._port = port
        self._user = user
        self._password = password
        self._timeout = timeout

    def _build_message(self, email: OutgoingEmail) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["From"] = email.from_address
        msg["To"] = ", ".join(email.to)
        msg["Subject"] = email.subject
        if email.reply_to:
            msg["Reply-To"] = email.reply_to
        msg.attach(MIMEText(email.html, "html", "utf-8"))
        return msg

    def send(self, email: OutgoingEmail) -> DeliveryReceipt:
        if not self._user or not self._password:
            raise DeliveryError("SMTP credentials not configured")

        msg = self._build_message(email)
        try:
            with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
                server.starttls()
                server.login(self._user, self._password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise DeliveryError(f"SMTP delivery via {self._host}:{self._port} failed: {e}") from e

        return DeliveryReceipt(provider=self.provider, message_id=msg.get("Message-ID"))


# ---------------------------------------------------------------------------
# Registry and factory
# ---------------------------------------------------------------------------

_SENDER_FACTORIES: dict[str, Callable[[Settings], EmailSender]] = {
    "resend": lambda s: ResendEmailSender(api_key=s.resend_api_key),
    "smtp": lambda s: SmtpEmailSender(
        host=s.smtp_host,
        port=s.smtp_port,
        user=s.smtp_user,
        password=s.smtp_password,
        timeout=s.smtp_timeout_seconds,
    ),
}


def build_email_sender(settings: Settings, provider: str | None = None) -> EmailSender:
    """
    Build the sender for the configured provider.

    Priority:
      1. provider argument (explicit, used in tests)
      2. settings.email_provider (EMAIL_PROVIDER env var)

    Raises ValueError for unknown provider names.
    """
    resolved = (provider or settings.email_provider).lower().strip()

    factory = _SENDER_FACTORIES.get(resolved)
    if factory is None:
        raise ValueError(
            f"Unknown email provider {resolved!r}. "
            f"Supported providers: {sorted(_SENDER_FACTORIES)}"
        )

    logger.info(f"Using email provider: {resolved}")
    return factory(settings)
