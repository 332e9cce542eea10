"""Delivery backends for order notification emails."""
from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Callable, Dict, Optional

from .config import EmailConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutboundEmail:
    """A rendered message addressed to a single recipient."""

    to: str
    subject: str
    text_body: str
    html_body: str


class EmailProvider:
    """Base class for delivery backends.

    Subclasses implement :meth:`deliver` and may raise on failure; callers
    decide whether a failed delivery matters.
    """

    name = "base"

    def __init__(self, *, from_email: str) -> None:
        self.from_email = from_email

    def deliver(self, email: OutboundEmail) -> None:
        raise NotImplementedError

    def describe(self) -> Dict[str, str]:
        return {"email_provider": self.name, "email_sender": self.from_email}


class DevPrintProvider(EmailProvider):
    """Logs messages instead of sending them."""

    name = "dev"

    def deliver(self, email: OutboundEmail) -> None:
        logger.info(
            "Dev email dispatch",
            extra={
                "email_recipient": email.to,
                "email_subject": email.subject,
                "email_sender": self.from_email,
            },
        )


class SMTPProvider(EmailProvider):
    name = "smtp"

    def __init__(
        self,
        *,
        from_email: str,
        host: str,
        port: int,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = True,
        use_ssl: bool = False,
        timeout: float = 10.0,
    ) -> None:
        super().__init__(from_email=from_email)
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.use_ssl = use_ssl
        self.timeout = timeout

    def build_message(self, email: OutboundEmail) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.from_email
        message["To"] = email.to
        message["Subject"] = email.subject
        message.set_content(email.text_body)
        message.add_alternative(email.html_body, subtype="html")
        return message

    def _connect(self) -> smtplib.SMTP:
        if self.use_ssl:
            return smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
        return smtplib.SMTP(self.host, self.port, timeout=self.timeout)

    def deliver(self, email: OutboundEmail) -> None:
        message = self.build_message(email)
        with self._connect() as client:
            # STARTTLS is meaningless on an implicit TLS connection.
            if self.use_tls and not self.use_ssl:
                client.starttls()
            if self.username and self.password:
                client.login(self.username, self.password)
            client.send_message(message)


def _smtp_from_config(config: EmailConfig) -> EmailProvider:
    return SMTPProvider(
        from_email=config.from_email,
        host=config.smtp_host,
        port=config.smtp_port,
        username=config.smtp_username,
        password=config.smtp_password,
        use_tls=config.smtp_use_tls,
        use_ssl=config.smtp_use_ssl,
        timeout=config.smtp_timeout,
    )


def _dev_from_config(config: EmailConfig) -> EmailProvider:
    return DevPrintProvider(from_email=config.from_email)


PROVIDER_FACTORIES: Dict[str, Callable[[EmailConfig], EmailProvider]] = {
    DevPrintProvider.name: _dev_from_config,
    SMTPProvider.name: _smtp_from_config,
}


def create_email_provider(config: EmailConfig) -> EmailProvider:
    """Build the provider named by ``config.provider_name``, defaulting to dev."""

    name = (config.provider_name or DevPrintProvider.name).strip().lower()
    factory = PROVIDER_FACTORIES.get(name)
    if factory is None:
        logger.warning("Unknown email provider; falling back to dev", extra={"email_provider": name})
        factory = _dev_from_config
    return factory(config)


__all__ = [
    "DevPrintProvider",
    "EmailProvider",
    "OutboundEmail",
    "PROVIDER_FACTORIES",
    "SMTPProvider",
    "create_email_provider",
]
