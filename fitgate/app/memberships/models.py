"""Domain models for time-boxed gym memberships."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..catalog.models import BillingCycle
from ..records import RecordState, utcnow


class Membership(BaseModel):
    """Access entitlement derived from a confirmed subscription order."""

    membership_id: str
    user_id: str
    subscription_plan_id: str
    order_id: Optional[str] = None
    start_date: datetime
    end_date: datetime
    is_active: bool = True
    record_state: RecordState = RecordState.LIVE
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(frozen=True)

    def is_current(self, now: datetime) -> bool:
        """Return ``True`` while the membership grants access at ``now``."""

        return self.is_active and self.start_date <= now < self.end_date


class MembershipView(BaseModel):
    """Membership joined with its plan for presentation."""

    membership_id: str
    plan_id: str
    plan_name: str
    plan_type: Optional[str] = None
    billing_cycle: Optional[BillingCycle] = None
    price: Decimal = Decimal("0")
    start_date: datetime
    end_date: datetime
    is_active: bool

    model_config = ConfigDict(frozen=True)
