"""Order ledger: supplement baskets, subscription purchases and confirmation."""
from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Protocol, Sequence
from uuid import uuid4

from ..catalog import CatalogStore
from ..errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from ..identity import AuthorizationPolicy, Caller, Permissions
from ..memberships.service import MembershipService
from ..records import as_utc, utcnow
from ..unit_of_work import UnitOfWorkFactory
from .models import (
    Order,
    OrderConfirmation,
    OrderItemRequest,
    OrderLine,
    OrderStatus,
    PaymentMethod,
)
from .notifier import OrderNotifier

logger = logging.getLogger(__name__)

SALES_STATUSES = (OrderStatus.PENDING, OrderStatus.DELIVERED)


class OrderRepository(Protocol):
    """Persistence operations required by the order service."""

    def add_order(self, order: Order) -> Order:
        ...

    def get_order(self, order_id: str) -> Optional[Order]:
        ...

    def mark_delivered(self, order_id: str, *, now: datetime) -> Optional[Order]:
        ...

    def update_status(self, order_id: str, *, status: OrderStatus, now: datetime) -> Optional[Order]:
        ...

    def soft_delete(self, order_id: str, *, now: datetime) -> bool:
        ...

    def list_for_user(self, user_id: str) -> Sequence[Order]:
        ...

    def list_sales(
        self,
        *,
        statuses: Sequence[OrderStatus],
        date_from: Optional[datetime],
        date_to: Optional[datetime],
    ) -> Sequence[Order]:
        ...

    def reserve_stock(self, supplement_id: str, quantity: int, *, now: datetime) -> bool:
        ...


def _merge_items(items: Sequence[OrderItemRequest]) -> Dict[str, int]:
    merged: Dict[str, int] = OrderedDict()
    for item in items:
        supplement_id = (item.supplement_id or "").strip()
        if not supplement_id:
            raise ValidationError("Every item needs a supplement id")
        if item.quantity <= 0:
            raise ValidationError(
                "Quantity must be greater than zero",
                detail={"supplement_id": supplement_id, "quantity": item.quantity},
            )
        merged[supplement_id] = merged.get(supplement_id, 0) + item.quantity
    return merged


@dataclass
class OrderService:
    """Creates, confirms and administers orders."""

    unit_of_work: UnitOfWorkFactory
    catalog: CatalogStore
    memberships: MembershipService
    policy: AuthorizationPolicy
    notifier: OrderNotifier
    clock: Callable[[], datetime] = field(default=utcnow)

    def create_supplement_order(
        self,
        caller: Caller,
        items: Sequence[OrderItemRequest],
        payment_method: PaymentMethod,
        *,
        note: Optional[str] = None,
        delivery_address: Optional[str] = None,
    ) -> Order:
        if not items:
            raise ValidationError("Order must contain at least one item")

        quantities = _merge_items(items)
        supplements = {
            supplement.supplement_id: supplement
            for supplement in self.catalog.get_supplements(quantities.keys())
            if supplement.is_active
        }
        missing = [supplement_id for supplement_id in quantities if supplement_id not in supplements]
        if missing:
            raise ValidationError(
                "Some supplements not found or inactive",
                detail={"supplement_ids": missing},
            )

        lines: List[OrderLine] = []
        for supplement_id, quantity in quantities.items():
            supplement = supplements[supplement_id]
            if supplement.stock_quantity < quantity:
                raise ConflictError(
                    f"Insufficient stock for {supplement.name}",
                    detail={
                        "supplement_id": supplement_id,
                        "requested": quantity,
                        "available": supplement.stock_quantity,
                    },
                )
            lines.append(
                OrderLine(
                    supplement_id=supplement_id,
                    quantity=quantity,
                    unit_price=supplement.price,
                    name=supplement.name,
                )
            )

        total = sum((line.line_total for line in lines), Decimal("0"))
        now = self.clock()
        order = Order(
            order_id=str(uuid4()),
            user_id=caller.user_id,
            lines=tuple(lines),
            payment_method=payment_method,
            status=OrderStatus.PENDING,
            total_price=total,
            note=note,
            delivery_address=delivery_address,
            ordered_at=now,
            created_at=now,
            updated_at=now,
        )
        with self.unit_of_work() as uow:
            stored = uow.orders.add_order(order)

        logger.info(
            "Supplement order placed",
            extra={"order_id": stored.order_id, "user_id": caller.user_id, "line_count": len(lines)},
        )
        self.notifier.order_placed(stored, caller)
        return stored

    def create_subscription_order(
        self,
        caller: Caller,
        plan_id: str,
        payment_method: PaymentMethod,
        *,
        note: Optional[str] = None,
    ) -> Order:
        plan = self.catalog.get_plan(plan_id)
        if plan is None:
            raise NotFoundError("Subscription plan not found", detail={"plan_id": plan_id})

        now = self.clock()
        order = Order(
            order_id=str(uuid4()),
            user_id=caller.user_id,
            subscription_plan_id=plan.plan_id,
            subscription_plan_name=plan.name,
            payment_method=payment_method,
            status=OrderStatus.PENDING,
            total_price=plan.price,
            note=note,
            ordered_at=now,
            created_at=now,
            updated_at=now,
        )
        with self.unit_of_work() as uow:
            stored = uow.orders.add_order(order)

        logger.info(
            "Subscription order placed",
            extra={"order_id": stored.order_id, "user_id": caller.user_id, "plan_id": plan.plan_id},
        )
        self.notifier.order_placed(stored, caller)
        return stored

    def confirm(self, caller: Caller, order_id: str) -> OrderConfirmation:
        """Mark the caller's order delivered and apply its effects atomically.

        Supplement orders draw down stock; subscription orders issue a new
        membership. A delivered order can never be confirmed again.
        """

        now = self.clock()
        with self.unit_of_work() as uow:
            order = uow.orders.get_order(order_id)
            if order is None:
                raise NotFoundError("Order not found", detail={"order_id": order_id})
            if order.user_id != caller.user_id:
                raise ForbiddenError("You can only confirm your own orders")
            if order.is_delivered:
                raise ConflictError("Order has already been confirmed", detail={"order_id": order_id})
            if order.status == OrderStatus.CANCELLED:
                raise ConflictError("Cancelled orders cannot be confirmed", detail={"order_id": order_id})

            plan = None
            if order.is_subscription:
                plan = self.catalog.get_plan(order.subscription_plan_id)
                if plan is None:
                    raise NotFoundError(
                        "Subscription plan not found",
                        detail={"plan_id": order.subscription_plan_id},
                    )
            elif order.lines:
                wanted = {line.supplement_id for line in order.lines}
                available = {supplement.supplement_id for supplement in self.catalog.get_supplements(wanted)}
                missing = sorted(wanted - available)
                if missing:
                    raise NotFoundError(
                        "Supplement not found during confirmation",
                        detail={"order_id": order_id, "supplement_ids": missing},
                    )

            confirmed = uow.orders.mark_delivered(order_id, now=now)
            if confirmed is None:
                raise ConflictError("Order has already been confirmed", detail={"order_id": order_id})

            for line in confirmed.lines:
                if not uow.orders.reserve_stock(line.supplement_id, line.quantity, now=now):
                    raise ConflictError(
                        "Insufficient stock to confirm order",
                        detail={"order_id": order_id, "supplement_id": line.supplement_id},
                    )

            membership = None
            if plan is not None:
                membership = self.memberships.issue_for_order(uow, confirmed, plan, now)

        logger.info(
            "Order confirmed",
            extra={
                "order_id": order_id,
                "user_id": caller.user_id,
                "membership_id": membership.membership_id if membership else None,
            },
        )
        self.notifier.order_confirmed(confirmed, caller, membership)
        return OrderConfirmation(order=confirmed, membership=membership)

    def list_my_orders(self, caller: Caller) -> Sequence[Order]:
        with self.unit_of_work() as uow:
            orders = uow.orders.list_for_user(caller.user_id)
        if not orders:
            raise NotFoundError("No orders found")
        return orders

    def list_sales(
        self,
        caller: Caller,
        *,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> Sequence[Order]:
        self.policy.require(caller, Permissions.ORDER_VIEW_SALES)
        date_from = as_utc(date_from) if date_from is not None else None
        date_to = as_utc(date_to) if date_to is not None else None
        if date_from is not None and date_to is not None and date_from > date_to:
            raise ValidationError("'from' must not be later than 'to'")

        with self.unit_of_work() as uow:
            orders = uow.orders.list_sales(statuses=SALES_STATUSES, date_from=date_from, date_to=date_to)
        if not orders:
            raise NotFoundError("No sales found for the requested period")
        return orders

    def update_status(self, caller: Caller, order_id: str, status: OrderStatus) -> Order:
        self.policy.require(caller, Permissions.ORDER_UPDATE_STATUS)
        if status == OrderStatus.DELIVERED:
            raise ValidationError("Orders are marked delivered through confirmation")
        if status == OrderStatus.PENDING:
            raise ValidationError("Orders cannot be reverted to pending")

        now = self.clock()
        with self.unit_of_work() as uow:
            order = uow.orders.get_order(order_id)
            if order is None:
                raise NotFoundError("Order not found", detail={"order_id": order_id})
            if order.is_delivered:
                raise ConflictError("Delivered orders cannot change status", detail={"order_id": order_id})
            updated = uow.orders.update_status(order_id, status=status, now=now)
            if updated is None:
                raise ConflictError("Delivered orders cannot change status", detail={"order_id": order_id})

        logger.info(
            "Order status updated",
            extra={"order_id": order_id, "status": status.value, "actor_id": caller.user_id},
        )
        return updated

    def delete(self, caller: Caller, order_id: str) -> None:
        self.policy.require(caller, Permissions.ORDER_DELETE)
        now = self.clock()
        with self.unit_of_work() as uow:
            deleted = uow.orders.soft_delete(order_id, now=now)
        if not deleted:
            raise NotFoundError("Order not found", detail={"order_id": order_id})
        logger.info("Order deleted", extra={"order_id": order_id, "actor_id": caller.user_id})
