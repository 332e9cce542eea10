"""Settings for order notification emails."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Callable, Mapping, Optional, TypeVar

_T = TypeVar("_T", int, float)

_TRUTHY = frozenset({"1", "true", "yes", "on"})
_FALSY = frozenset({"0", "false", "no", "off"})

IMPLICIT_TLS_PORT = 465


@dataclass(frozen=True)
class EmailConfig:
    """Provider selection, SMTP transport and notification switches."""

    provider_name: str
    from_email: str
    smtp_host: str
    smtp_port: int
    smtp_username: Optional[str]
    smtp_password: Optional[str]
    smtp_use_tls: bool
    smtp_use_ssl: bool
    smtp_timeout: float
    app_base_url: str
    notifications_enabled: bool


def _flag(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None:
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    return default


def _number(env: Mapping[str, str], key: str, default: _T, cast: Callable[[str], _T]) -> _T:
    raw = (env.get(key) or "").strip()
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError as exc:
        raise ValueError(f"{key} must be a number, got {raw!r}") from exc


def load_email_config(env: Optional[Mapping[str, str]] = None) -> EmailConfig:
    """Read :class:`EmailConfig` from ``env`` (the process environment by default)."""

    source = os.environ if env is None else env

    smtp_port = _number(source, "SMTP_PORT", 587, int)
    return EmailConfig(
        provider_name=(source.get("EMAIL_PROVIDER") or "dev").strip().lower() or "dev",
        from_email=source.get("FROM_EMAIL", "noreply@fitgate.local"),
        smtp_host=source.get("SMTP_HOST", "localhost"),
        smtp_port=smtp_port,
        smtp_username=source.get("SMTP_USER") or None,
        smtp_password=source.get("SMTP_PASS") or None,
        smtp_use_tls=_flag(source, "SMTP_USE_TLS", True),
        smtp_use_ssl=_flag(source, "SMTP_USE_SSL", smtp_port == IMPLICIT_TLS_PORT),
        smtp_timeout=max(1.0, _number(source, "SMTP_TIMEOUT", 10.0, float)),
        app_base_url=source.get("APP_BASE_URL", "http://localhost:5173").rstrip("/"),
        notifications_enabled=_flag(source, "ORDER_EMAILS_ENABLED", True),
    )
