"""Outbound email configuration, providers and templates."""

from .config import EmailConfig, load_email_config
from .providers import (
    DevPrintProvider,
    EmailProvider,
    OutboundEmail,
    SMTPProvider,
    create_email_provider,
)
from .renderer import Audience, OrderEmailKind, RenderedEmail, render_order_email

__all__ = [
    "Audience",
    "DevPrintProvider",
    "EmailConfig",
    "EmailProvider",
    "OrderEmailKind",
    "OutboundEmail",
    "RenderedEmail",
    "SMTPProvider",
    "create_email_provider",
    "load_email_config",
    "render_order_email",
]
