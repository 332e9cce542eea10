"""Shared record lifecycle markers."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum


class RecordState(str, Enum):
    """Tombstone marker filtered out by every repository query."""

    LIVE = "live"
    DELETED = "deleted"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Return ``value`` in UTC, reading naive datetimes as UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
