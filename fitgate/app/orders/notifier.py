"""Best-effort email notifications for order lifecycle events."""
from __future__ import annotations

import html
import logging
from typing import Any, Dict, Optional, Protocol, Sequence

from ...mail.config import EmailConfig
from ...mail.providers import EmailProvider, OutboundEmail
from ...mail.renderer import Audience, OrderEmailKind, render_order_email
from ..identity import Caller, StaffDirectory
from ..memberships.models import Membership
from .models import Order

logger = logging.getLogger(__name__)


class OrderNotifier(Protocol):
    """Announces order lifecycle events to the buyer and to staff.

    Implementations must never raise: a failed notification cannot undo or
    fail the order operation that triggered it.
    """

    def order_placed(self, order: Order, buyer: Caller) -> None:
        ...

    def order_confirmed(self, order: Order, buyer: Caller, membership: Optional[Membership]) -> None:
        ...


def _format_money(value: Any) -> str:
    return f"{value:.2f}"


def _describe_items(order: Order) -> Sequence[str]:
    if order.is_subscription:
        return [f"Subscription: {order.subscription_plan_name or order.subscription_plan_id}"]
    return [
        f"{line.quantity} x {line.name or line.supplement_id} @ {_format_money(line.unit_price)}"
        for line in order.lines
    ]


class EmailOrderNotifier:
    """Sends one email to the buyer and one to each staff address per event."""

    def __init__(
        self,
        *,
        provider: EmailProvider,
        staff: StaffDirectory,
        config: EmailConfig,
    ) -> None:
        self._provider = provider
        self._staff = staff
        self._config = config

    def order_placed(self, order: Order, buyer: Caller) -> None:
        self._dispatch(OrderEmailKind.PLACED, order, buyer, membership=None)

    def order_confirmed(self, order: Order, buyer: Caller, membership: Optional[Membership]) -> None:
        self._dispatch(OrderEmailKind.CONFIRMED, order, buyer, membership=membership)

    def _dispatch(
        self,
        kind: OrderEmailKind,
        order: Order,
        buyer: Caller,
        *,
        membership: Optional[Membership],
    ) -> None:
        if not self._config.notifications_enabled:
            return

        try:
            context = self._build_context(order, buyer, membership)
        except Exception:
            logger.exception(
                "Failed to build order notification context",
                extra={"order_id": order.order_id, "email_kind": kind.value},
            )
            return

        if buyer.email:
            self._send(kind, Audience.BUYER, [buyer.email], context, order.order_id)
        else:
            logger.info(
                "Buyer has no email address; skipping buyer notification",
                extra={"order_id": order.order_id, "user_id": buyer.user_id},
            )

        try:
            staff_emails = list(self._staff.staff_emails())
        except Exception:
            logger.exception(
                "Failed to resolve staff recipients for order notification",
                extra={"order_id": order.order_id, "email_kind": kind.value},
            )
            return
        self._send(kind, Audience.STAFF, staff_emails, context, order.order_id)

    def _send(
        self,
        kind: OrderEmailKind,
        audience: Audience,
        recipients: Sequence[str],
        context: Dict[str, Any],
        order_id: str,
    ) -> None:
        if not recipients:
            return
        try:
            subject, text_body, html_body = render_order_email(kind, audience, context)
        except Exception:
            logger.exception(
                "Failed to render order notification email",
                extra={"order_id": order_id, "email_kind": kind.value, "email_audience": audience.value},
            )
            return

        for recipient in recipients:
            try:
                self._provider.deliver(
                    OutboundEmail(to=recipient, subject=subject, text_body=text_body, html_body=html_body)
                )
            except Exception:
                logger.exception(
                    "Failed to send order notification email",
                    extra={
                        "order_id": order_id,
                        "email_kind": kind.value,
                        "email_audience": audience.value,
                        "email_recipient": recipient,
                    },
                )
                continue
            logger.info(
                "Order notification email dispatched",
                extra={
                    "order_id": order_id,
                    "email_kind": kind.value,
                    "email_recipient": recipient,
                    **self._provider.describe(),
                },
            )

    def _build_context(
        self,
        order: Order,
        buyer: Caller,
        membership: Optional[Membership],
    ) -> Dict[str, Any]:
        items = _describe_items(order)
        if membership is not None:
            period = (
                f"{membership.start_date:%Y-%m-%d} to {membership.end_date:%Y-%m-%d}"
            )
            membership_text = f"Membership active from {period}.\n"
            membership_html = f"<p>Membership active from {html.escape(period)}.</p>"
        else:
            membership_text = ""
            membership_html = ""

        return {
            "recipient_name": buyer.email or "there",
            "buyer_email": buyer.email or buyer.user_id,
            "order_id": order.order_id,
            "order_reference": order.order_id[:8],
            "items_text": "\n".join(items),
            "items_html": "".join(f"<li>{html.escape(item)}</li>" for item in items),
            "total_price": _format_money(order.total_price),
            "payment_method": order.payment_method.value,
            "delivery_address": order.delivery_address or "-",
            "delivery_address_html": html.escape(order.delivery_address or "-"),
            "note": order.note or "-",
            "note_html": html.escape(order.note or "-"),
            "membership_text_block": membership_text,
            "membership_html_block": membership_html,
            "orders_url": f"{self._config.app_base_url}/orders",
        }
