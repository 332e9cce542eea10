"""Placeholder substitution for the order email templates."""
from __future__ import annotations

import re
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping, NamedTuple

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"
_PLACEHOLDER = re.compile(r"{{\s*(\w+)\s*}}")


class OrderEmailKind(str, Enum):
    """Template families; each has a buyer and a staff variant."""

    PLACED = "order_placed"
    CONFIRMED = "order_confirmed"


class Audience(str, Enum):
    BUYER = "buyer"
    STAFF = "staff"


class RenderedEmail(NamedTuple):
    subject: str
    text_body: str
    html_body: str


@lru_cache(maxsize=None)
def _template_source(name: str) -> str:
    return (TEMPLATE_DIR / name).read_text(encoding="utf-8")


def _fill(name: str, context: Mapping[str, Any]) -> str:
    # Unknown placeholders render empty.
    def _value(match: re.Match[str]) -> str:
        value = context.get(match.group(1))
        return "" if value is None else str(value)

    return _PLACEHOLDER.sub(_value, _template_source(name)).strip()


def render_order_email(
    kind: OrderEmailKind, audience: Audience, context: Mapping[str, Any]
) -> RenderedEmail:
    """Render subject, plain text and HTML for one order event and audience."""

    stem = f"{kind.value}_{audience.value}"
    return RenderedEmail(
        subject=_fill(f"{stem}_subject.txt.j2", context),
        text_body=_fill(f"{stem}_body.txt.j2", context),
        html_body=_fill(f"{stem}_body.html.j2", context),
    )


__all__ = ["Audience", "OrderEmailKind", "RenderedEmail", "render_order_email"]
