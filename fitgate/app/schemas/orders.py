"""API schemas for order endpoints."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..orders.models import (
    Order,
    OrderConfirmation,
    OrderItemRequest,
    OrderLine,
    OrderStatus,
    PaymentMethod,
)
from .memberships import MembershipRecordOut


class OrderItemIn(BaseModel):
    supplement_id: str = Field(alias="supplementId")
    quantity: int

    model_config = ConfigDict(populate_by_name=True)

    def to_request(self) -> OrderItemRequest:
        return OrderItemRequest(supplement_id=self.supplement_id, quantity=self.quantity)


class SupplementOrderCreate(BaseModel):
    items: List[OrderItemIn] = Field(default_factory=list)
    payment_method: PaymentMethod = Field(alias="paymentMethod")
    note: Optional[str] = Field(default=None, max_length=1000)
    delivery_address: Optional[str] = Field(alias="deliveryAddress", default=None, max_length=500)

    model_config = ConfigDict(populate_by_name=True)


class SubscriptionOrderCreate(BaseModel):
    plan_id: str = Field(alias="planId")
    payment_method: PaymentMethod = Field(alias="paymentMethod")
    note: Optional[str] = Field(default=None, max_length=1000)

    model_config = ConfigDict(populate_by_name=True)


class OrderCreatedResponse(BaseModel):
    order_id: str = Field(alias="orderId")

    model_config = ConfigDict(populate_by_name=True)


class OrderLineOut(BaseModel):
    supplement_id: str = Field(alias="supplementId")
    name: Optional[str] = None
    quantity: int
    unit_price: Decimal = Field(alias="unitPrice")
    line_total: Decimal = Field(alias="lineTotal")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_line(cls, line: OrderLine) -> "OrderLineOut":
        return cls(
            supplement_id=line.supplement_id,
            name=line.name,
            quantity=line.quantity,
            unit_price=line.unit_price,
            line_total=line.line_total,
        )


class OrderOut(BaseModel):
    order_id: str = Field(alias="orderId")
    user_id: str = Field(alias="userId")
    status: OrderStatus
    payment_method: PaymentMethod = Field(alias="paymentMethod")
    total_price: Decimal = Field(alias="totalPrice")
    note: Optional[str] = None
    delivery_address: Optional[str] = Field(alias="deliveryAddress", default=None)
    ordered_at: datetime = Field(alias="orderedAt")
    subscription_plan_id: Optional[str] = Field(alias="subscriptionPlanId", default=None)
    subscription_plan_name: Optional[str] = Field(alias="subscriptionPlanName", default=None)
    lines: List[OrderLineOut] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_order(cls, order: Order) -> "OrderOut":
        return cls(
            order_id=order.order_id,
            user_id=order.user_id,
            status=order.status,
            payment_method=order.payment_method,
            total_price=order.total_price,
            note=order.note,
            delivery_address=order.delivery_address,
            ordered_at=order.ordered_at,
            subscription_plan_id=order.subscription_plan_id,
            subscription_plan_name=order.subscription_plan_name,
            lines=[OrderLineOut.from_line(line) for line in order.lines],
        )


class OrderListResponse(BaseModel):
    orders: List[OrderOut]

    model_config = ConfigDict(populate_by_name=True)


class OrderConfirmResponse(BaseModel):
    order: OrderOut
    membership: Optional[MembershipRecordOut] = None

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_confirmation(cls, confirmation: OrderConfirmation) -> "OrderConfirmResponse":
        membership = confirmation.membership
        return cls(
            order=OrderOut.from_order(confirmation.order),
            membership=MembershipRecordOut.from_membership(membership) if membership else None,
        )


class OrderStatusUpdate(BaseModel):
    status: OrderStatus

    model_config = ConfigDict(populate_by_name=True)
