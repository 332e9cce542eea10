"""Read-only catalog records consumed by the ledger and the access gate."""
from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import FrozenSet, Optional

from dateutil.relativedelta import relativedelta
from pydantic import BaseModel, ConfigDict, Field


class BillingCycle(str, Enum):
    """Supported billing periods for subscription plans."""

    MONTHLY = "monthly"
    YEARLY = "yearly"

    def period(self) -> relativedelta:
        """Return the calendar span covered by one billing period."""

        if self is BillingCycle.YEARLY:
            return relativedelta(years=1)
        return relativedelta(months=1)


class SubscriptionPlan(BaseModel):
    plan_id: str
    name: str
    plan_type: Optional[str] = None
    billing_cycle: BillingCycle = BillingCycle.MONTHLY
    price: Decimal = Field(ge=0)

    model_config = ConfigDict(frozen=True)


class Gym(BaseModel):
    gym_id: str
    name: str
    is_active: bool = True
    plan_ids: FrozenSet[str] = Field(default_factory=frozenset)

    model_config = ConfigDict(frozen=True)


class Supplement(BaseModel):
    supplement_id: str
    name: str
    price: Decimal = Field(ge=0)
    stock_quantity: int = 0
    is_active: bool = True

    model_config = ConfigDict(frozen=True)
