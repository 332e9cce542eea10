"""Entitlement manager turning confirmed subscription orders into memberships."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Iterable, List, Optional, Protocol, Sequence
from uuid import uuid4

from ..catalog import CatalogStore, Gym, SubscriptionPlan
from ..errors import ConflictError, DuplicateActiveRecord, ForbiddenError, NotFoundError
from ..identity import AuthorizationPolicy, Caller, Permissions
from ..records import utcnow
from ..unit_of_work import UnitOfWork, UnitOfWorkFactory
from .models import Membership, MembershipView

if TYPE_CHECKING:  # pragma: no cover - typing only
    from ..orders.models import Order

logger = logging.getLogger(__name__)


class MembershipRepository(Protocol):
    """Persistence operations required by the membership service."""

    def add(self, membership: Membership) -> Membership:
        ...

    def get(self, membership_id: str) -> Optional[Membership]:
        ...

    def find_active_unexpired(self, user_id: str, *, now: datetime) -> Optional[Membership]:
        ...

    def latest_for_user(self, user_id: str) -> Optional[Membership]:
        ...

    def list_for_user(self, user_id: str) -> Sequence[Membership]:
        ...

    def close_active(self, user_id: str, *, now: datetime) -> Sequence[Membership]:
        ...

    def soft_delete(self, membership_id: str, *, now: datetime) -> bool:
        ...

    def has_current_for_plans(self, user_id: str, plan_ids: Iterable[str], *, now: datetime) -> bool:
        ...


@dataclass
class MembershipService:
    """Issues, reads and closes memberships."""

    unit_of_work: UnitOfWorkFactory
    catalog: CatalogStore
    policy: AuthorizationPolicy
    clock: Callable[[], datetime] = field(default=utcnow)

    def issue_for_order(
        self,
        uow: UnitOfWork,
        order: Order,
        plan: SubscriptionPlan,
        now: datetime,
    ) -> Membership:
        """Replace the owner's active membership with one derived from ``order``.

        Runs inside the caller's unit of work so the order status change and
        the membership insert commit together. Every active row is closed,
        expired or not, which keeps the one-active index satisfied.
        """

        closed = uow.memberships.close_active(order.user_id, now=now)
        membership = Membership(
            membership_id=str(uuid4()),
            user_id=order.user_id,
            subscription_plan_id=plan.plan_id,
            order_id=order.order_id,
            start_date=now,
            end_date=now + plan.billing_cycle.period(),
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        try:
            stored = uow.memberships.add(membership)
        except DuplicateActiveRecord as exc:
            raise ConflictError(
                "Another membership was activated concurrently",
                detail={"user_id": order.user_id},
            ) from exc

        logger.info(
            "Membership issued",
            extra={
                "membership_id": stored.membership_id,
                "user_id": stored.user_id,
                "order_id": order.order_id,
                "closed_memberships": len(closed),
            },
        )
        return stored

    def get_current(self, caller: Caller) -> MembershipView:
        return self._current_or_latest(caller.user_id)

    def get_for_user(self, caller: Caller, user_id: str) -> MembershipView:
        self.policy.require(caller, Permissions.MEMBERSHIP_VIEW_USER)
        return self._current_or_latest(user_id)

    def history(self, caller: Caller) -> List[MembershipView]:
        with self.unit_of_work() as uow:
            memberships = uow.memberships.list_for_user(caller.user_id)
        if not memberships:
            raise NotFoundError("No memberships found")
        return [self._to_view(membership) for membership in memberships]

    def cancel(self, caller: Caller) -> Membership:
        return self._close_current(caller.user_id, actor_id=caller.user_id)

    def deactivate_user(self, caller: Caller, user_id: str) -> Membership:
        self.policy.require(caller, Permissions.MEMBERSHIP_DEACTIVATE_USER)
        return self._close_current(user_id, actor_id=caller.user_id)

    def delete(self, caller: Caller, membership_id: str) -> None:
        now = self.clock()
        with self.unit_of_work() as uow:
            membership = uow.memberships.get(membership_id)
            if membership is None:
                raise NotFoundError("Membership not found")
            if membership.user_id != caller.user_id and not self.policy.allows(
                caller, Permissions.MEMBERSHIP_DELETE
            ):
                raise ForbiddenError("You cannot delete this membership")
            uow.memberships.soft_delete(membership_id, now=now)
        logger.info(
            "Membership deleted",
            extra={"membership_id": membership_id, "actor_id": caller.user_id},
        )

    def has_active_for_gym(self, uow: UnitOfWork, user_id: str, gym: Gym, now: datetime) -> bool:
        """Return ``True`` when ``user_id`` holds a current membership valid at ``gym``."""

        if not gym.is_active or not gym.plan_ids:
            return False
        return uow.memberships.has_current_for_plans(user_id, gym.plan_ids, now=now)

    def _current_or_latest(self, user_id: str) -> MembershipView:
        with self.unit_of_work() as uow:
            membership = uow.memberships.latest_for_user(user_id)
        if membership is None:
            raise NotFoundError("No membership found", detail={"user_id": user_id})
        return self._to_view(membership)

    def _close_current(self, user_id: str, *, actor_id: str) -> Membership:
        now = self.clock()
        with self.unit_of_work() as uow:
            current = uow.memberships.find_active_unexpired(user_id, now=now)
            if current is None:
                raise NotFoundError("No active membership found", detail={"user_id": user_id})
            closed = uow.memberships.close_active(user_id, now=now)
        logger.info(
            "Membership closed",
            extra={"membership_id": current.membership_id, "user_id": user_id, "actor_id": actor_id},
        )
        for membership in closed:
            if membership.membership_id == current.membership_id:
                return membership
        return current.model_copy(update={"is_active": False, "end_date": now, "updated_at": now})

    def _to_view(self, membership: Membership) -> MembershipView:
        plan = self.catalog.get_plan(membership.subscription_plan_id)
        return MembershipView(
            membership_id=membership.membership_id,
            plan_id=membership.subscription_plan_id,
            plan_name=plan.name if plan else "",
            plan_type=plan.plan_type if plan else None,
            billing_cycle=plan.billing_cycle if plan else None,
            price=plan.price if plan else 0,
            start_date=membership.start_date,
            end_date=membership.end_date,
            is_active=membership.is_active,
        )
