"""API schemas for membership endpoints."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..catalog.models import BillingCycle
from ..memberships.models import Membership, MembershipView


class MembershipOut(BaseModel):
    membership_id: str = Field(alias="membershipId")
    plan_id: str = Field(alias="planId")
    plan_name: str = Field(alias="planName")
    plan_type: Optional[str] = Field(alias="planType", default=None)
    billing_cycle: Optional[BillingCycle] = Field(alias="billingCycle", default=None)
    price: Decimal
    start_date: datetime = Field(alias="start")
    end_date: datetime = Field(alias="end")
    is_active: bool = Field(alias="active")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_view(cls, view: MembershipView) -> "MembershipOut":
        return cls(
            membership_id=view.membership_id,
            plan_id=view.plan_id,
            plan_name=view.plan_name,
            plan_type=view.plan_type,
            billing_cycle=view.billing_cycle,
            price=view.price,
            start_date=view.start_date,
            end_date=view.end_date,
            is_active=view.is_active,
        )


class MembershipHistoryResponse(BaseModel):
    memberships: List[MembershipOut]

    model_config = ConfigDict(populate_by_name=True)


class MembershipRecordOut(BaseModel):
    """Bare membership row, used where no plan lookup is needed."""

    membership_id: str = Field(alias="membershipId")
    user_id: str = Field(alias="userId")
    plan_id: str = Field(alias="planId")
    order_id: Optional[str] = Field(alias="orderId", default=None)
    start_date: datetime = Field(alias="start")
    end_date: datetime = Field(alias="end")
    is_active: bool = Field(alias="active")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_membership(cls, membership: Membership) -> "MembershipRecordOut":
        return cls(
            membership_id=membership.membership_id,
            user_id=membership.user_id,
            plan_id=membership.subscription_plan_id,
            order_id=membership.order_id,
            start_date=membership.start_date,
            end_date=membership.end_date,
            is_active=membership.is_active,
        )
