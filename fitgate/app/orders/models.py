"""Domain models for the order ledger."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..memberships.models import Membership
from ..records import RecordState, utcnow


class OrderStatus(str, Enum):
    """Lifecycle status of an order."""

    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    """Stored payment tag; no processor is contacted."""

    CASH = "cash"
    CARD = "card"
    ONLINE = "online"


class OrderLine(BaseModel):
    """A supplement line with the unit price captured at order time."""

    supplement_id: str
    quantity: int = Field(ge=1)
    unit_price: Decimal = Field(ge=0)
    name: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class Order(BaseModel):
    """A purchase intent for either a supplement basket or a subscription plan."""

    order_id: str
    user_id: str
    lines: Sequence[OrderLine] = Field(default_factory=tuple)
    subscription_plan_id: Optional[str] = None
    subscription_plan_name: Optional[str] = None
    payment_method: PaymentMethod
    status: OrderStatus = OrderStatus.PENDING
    total_price: Decimal = Field(default=Decimal("0"), ge=0)
    note: Optional[str] = None
    delivery_address: Optional[str] = None
    ordered_at: datetime = Field(default_factory=utcnow)
    record_state: RecordState = RecordState.LIVE
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _lines_or_plan(self) -> "Order":
        if self.lines and self.subscription_plan_id:
            raise ValueError("An order carries either supplement lines or a subscription plan")
        return self

    @property
    def is_subscription(self) -> bool:
        return self.subscription_plan_id is not None

    @property
    def is_delivered(self) -> bool:
        return self.status == OrderStatus.DELIVERED


class OrderConfirmation(BaseModel):
    """Outcome of confirming an order, with the membership it issued if any."""

    order: Order
    membership: Optional[Membership] = None

    model_config = ConfigDict(frozen=True)


class OrderItemRequest(BaseModel):
    """Requested basket entry before validation against the catalog."""

    supplement_id: str
    quantity: int

    model_config = ConfigDict(frozen=True)
