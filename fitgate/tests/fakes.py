"""In-memory collaborators shared by the service and route tests."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence

from fitgate.app.access.models import CheckInSession, CheckInStatus, GymCredential
from fitgate.app.catalog import BillingCycle, Gym, Supplement, SubscriptionPlan
from fitgate.app.errors import DuplicateActiveRecord
from fitgate.app.identity import Caller
from fitgate.app.memberships.models import Membership
from fitgate.app.orders.models import Order, OrderStatus
from fitgate.app.records import RecordState

T0 = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)

GYM_ID = "11111111-1111-1111-1111-111111111111"
OTHER_GYM_ID = "22222222-2222-2222-2222-222222222222"
MONTHLY_PLAN_ID = "aaaaaaaa-0000-0000-0000-000000000001"
YEARLY_PLAN_ID = "aaaaaaaa-0000-0000-0000-000000000002"
OTHER_PLAN_ID = "aaaaaaaa-0000-0000-0000-000000000003"
PROTEIN_ID = "bbbbbbbb-0000-0000-0000-000000000001"
CREATINE_ID = "bbbbbbbb-0000-0000-0000-000000000002"


class FakeClock:
    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def member(user_id: str = "member-1", email: Optional[str] = "member@example.com") -> Caller:
    return Caller(user_id=user_id, email=email)


def admin(user_id: str = "admin-1") -> Caller:
    return Caller(user_id=user_id, email="admin@example.com", roles=frozenset({"admin"}))


class InMemoryStore:
    """Tables shared by every unit of work opened against the store."""

    def __init__(self) -> None:
        self.orders: Dict[str, Order] = {}
        self.memberships: Dict[str, Membership] = {}
        self.credentials: Dict[str, GymCredential] = {}
        self.checkins: Dict[str, CheckInSession] = {}
        self.supplements: Dict[str, Supplement] = {}
        self.plans: Dict[str, SubscriptionPlan] = {}
        self.gyms: Dict[str, Gym] = {}
        self.locked_gyms: List[str] = []

    def snapshot(self) -> Dict[str, Dict]:
        return {
            "orders": dict(self.orders),
            "memberships": dict(self.memberships),
            "credentials": dict(self.credentials),
            "checkins": dict(self.checkins),
            "supplements": dict(self.supplements),
        }

    def restore(self, snapshot: Dict[str, Dict]) -> None:
        for name, table in snapshot.items():
            setattr(self, name, table)


def seeded_store() -> InMemoryStore:
    store = InMemoryStore()
    store.plans = {
        MONTHLY_PLAN_ID: SubscriptionPlan(
            plan_id=MONTHLY_PLAN_ID,
            name="Monthly Basic",
            plan_type="basic",
            billing_cycle=BillingCycle.MONTHLY,
            price=Decimal("20.00"),
        ),
        YEARLY_PLAN_ID: SubscriptionPlan(
            plan_id=YEARLY_PLAN_ID,
            name="Yearly Premium",
            plan_type="premium",
            billing_cycle=BillingCycle.YEARLY,
            price=Decimal("200.00"),
        ),
        OTHER_PLAN_ID: SubscriptionPlan(
            plan_id=OTHER_PLAN_ID,
            name="Downtown Only",
            plan_type="basic",
            billing_cycle=BillingCycle.MONTHLY,
            price=Decimal("15.00"),
        ),
    }
    store.gyms = {
        GYM_ID: Gym(
            gym_id=GYM_ID,
            name="Central",
            is_active=True,
            plan_ids=frozenset({MONTHLY_PLAN_ID, YEARLY_PLAN_ID}),
        ),
        OTHER_GYM_ID: Gym(
            gym_id=OTHER_GYM_ID,
            name="Downtown",
            is_active=True,
            plan_ids=frozenset({OTHER_PLAN_ID}),
        ),
    }
    store.supplements = {
        PROTEIN_ID: Supplement(
            supplement_id=PROTEIN_ID,
            name="Whey Protein",
            price=Decimal("30.00"),
            stock_quantity=10,
            is_active=True,
        ),
        CREATINE_ID: Supplement(
            supplement_id=CREATINE_ID,
            name="Creatine",
            price=Decimal("12.50"),
            stock_quantity=2,
            is_active=True,
        ),
    }
    return store


class FakeCatalog:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    def get_gym(self, gym_id: str) -> Optional[Gym]:
        return self._store.gyms.get(gym_id)

    def get_plan(self, plan_id: str) -> Optional[SubscriptionPlan]:
        return self._store.plans.get(plan_id)

    def get_supplements(self, supplement_ids: Iterable[str]) -> Sequence[Supplement]:
        return [
            supplement
            for supplement_id in supplement_ids
            if (supplement := self._store.supplements.get(supplement_id)) is not None
            and supplement.is_active
        ]


class InMemoryOrderRepository:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    def _live(self, order_id: str) -> Optional[Order]:
        order = self._store.orders.get(order_id)
        if order is None or order.record_state != RecordState.LIVE:
            return None
        return order

    def add_order(self, order: Order) -> Order:
        self._store.orders[order.order_id] = order
        return order

    def get_order(self, order_id: str) -> Optional[Order]:
        return self._live(order_id)

    def mark_delivered(self, order_id: str, *, now: datetime) -> Optional[Order]:
        order = self._live(order_id)
        if order is None or order.status in {OrderStatus.DELIVERED, OrderStatus.CANCELLED}:
            return None
        updated = order.model_copy(update={"status": OrderStatus.DELIVERED, "updated_at": now})
        self._store.orders[order_id] = updated
        return updated

    def update_status(self, order_id: str, *, status: OrderStatus, now: datetime) -> Optional[Order]:
        order = self._live(order_id)
        if order is None or order.status == OrderStatus.DELIVERED:
            return None
        updated = order.model_copy(update={"status": status, "updated_at": now})
        self._store.orders[order_id] = updated
        return updated

    def soft_delete(self, order_id: str, *, now: datetime) -> bool:
        order = self._live(order_id)
        if order is None:
            return False
        self._store.orders[order_id] = order.model_copy(
            update={"record_state": RecordState.DELETED, "updated_at": now}
        )
        return True

    def list_for_user(self, user_id: str) -> Sequence[Order]:
        orders = [
            order
            for order in self._store.orders.values()
            if order.user_id == user_id and order.record_state == RecordState.LIVE
        ]
        return sorted(orders, key=lambda order: order.ordered_at, reverse=True)

    def list_sales(
        self,
        *,
        statuses: Sequence[OrderStatus],
        date_from: Optional[datetime],
        date_to: Optional[datetime],
    ) -> Sequence[Order]:
        orders = [
            order
            for order in self._store.orders.values()
            if order.record_state == RecordState.LIVE
            and order.status in statuses
            and (date_from is None or order.ordered_at >= date_from)
            and (date_to is None or order.ordered_at <= date_to)
        ]
        return sorted(orders, key=lambda order: order.ordered_at, reverse=True)

    def reserve_stock(self, supplement_id: str, quantity: int, *, now: datetime) -> bool:
        supplement = self._store.supplements.get(supplement_id)
        if supplement is None or not supplement.is_active or supplement.stock_quantity < quantity:
            return False
        self._store.supplements[supplement_id] = supplement.model_copy(
            update={"stock_quantity": supplement.stock_quantity - quantity}
        )
        return True


class InMemoryMembershipRepository:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    def _live(self) -> List[Membership]:
        return [m for m in self._store.memberships.values() if m.record_state == RecordState.LIVE]

    def add(self, membership: Membership) -> Membership:
        if membership.is_active and any(
            m.is_active and m.user_id == membership.user_id for m in self._live()
        ):
            raise DuplicateActiveRecord("ux_memberships_one_active")
        self._store.memberships[membership.membership_id] = membership
        return membership

    def get(self, membership_id: str) -> Optional[Membership]:
        membership = self._store.memberships.get(membership_id)
        if membership is None or membership.record_state != RecordState.LIVE:
            return None
        return membership

    def find_active_unexpired(self, user_id: str, *, now: datetime) -> Optional[Membership]:
        for membership in self._live():
            if membership.user_id == user_id and membership.is_current(now):
                return membership
        return None

    def latest_for_user(self, user_id: str) -> Optional[Membership]:
        candidates = [m for m in self._live() if m.user_id == user_id]
        if not candidates:
            return None
        return sorted(candidates, key=lambda m: (m.is_active, m.start_date), reverse=True)[0]

    def list_for_user(self, user_id: str) -> Sequence[Membership]:
        candidates = [m for m in self._live() if m.user_id == user_id]
        return sorted(candidates, key=lambda m: m.start_date, reverse=True)

    def close_active(self, user_id: str, *, now: datetime) -> Sequence[Membership]:
        closed = []
        for membership in self._live():
            if membership.user_id == user_id and membership.is_active:
                updated = membership.model_copy(
                    update={
                        "is_active": False,
                        "end_date": min(membership.end_date, now),
                        "updated_at": now,
                    }
                )
                self._store.memberships[membership.membership_id] = updated
                closed.append(updated)
        return closed

    def soft_delete(self, membership_id: str, *, now: datetime) -> bool:
        membership = self.get(membership_id)
        if membership is None:
            return False
        self._store.memberships[membership_id] = membership.model_copy(
            update={"record_state": RecordState.DELETED, "is_active": False, "updated_at": now}
        )
        return True

    def has_current_for_plans(self, user_id: str, plan_ids: Iterable[str], *, now: datetime) -> bool:
        allowed = set(plan_ids)
        return any(
            m.user_id == user_id and m.is_current(now) and m.subscription_plan_id in allowed
            for m in self._live()
        )


class InMemoryCredentialRepository:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    def _live(self) -> List[GymCredential]:
        return [c for c in self._store.credentials.values() if c.record_state == RecordState.LIVE]

    def lock_gym(self, gym_id: str) -> None:
        self._store.locked_gyms.append(gym_id)

    def add(self, credential: GymCredential) -> GymCredential:
        if any(c.token == credential.token for c in self._store.credentials.values()):
            raise DuplicateActiveRecord("ux_gym_credentials_token")
        if credential.is_active and any(
            c.is_active and c.gym_id == credential.gym_id for c in self._live()
        ):
            raise DuplicateActiveRecord("ux_gym_credentials_one_active")
        self._store.credentials[credential.credential_id] = credential
        return credential

    def deactivate_all(self, gym_id: str, *, now: datetime) -> int:
        count = 0
        for credential in self._live():
            if credential.gym_id == gym_id and credential.is_active:
                self._store.credentials[credential.credential_id] = credential.model_copy(
                    update={"is_active": False, "updated_at": now}
                )
                count += 1
        return count

    def get_active_for_gym(self, gym_id: str) -> Optional[GymCredential]:
        active = [c for c in self._live() if c.gym_id == gym_id and c.is_active]
        if not active:
            return None
        return sorted(active, key=lambda c: c.created_at, reverse=True)[0]

    def find_by_token(self, token: str) -> Optional[GymCredential]:
        for credential in self._live():
            if credential.token == token:
                return credential
        return None

    def mark_used(self, credential_id: str, *, now: datetime) -> bool:
        credential = self._store.credentials.get(credential_id)
        if credential is None or credential.used_at is not None:
            return False
        self._store.credentials[credential_id] = credential.model_copy(
            update={"used_at": now, "is_active": False, "updated_at": now}
        )
        return True


class InMemoryCheckInRepository:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    def _live(self) -> List[CheckInSession]:
        return [s for s in self._store.checkins.values() if s.record_state == RecordState.LIVE]

    def add(self, session: CheckInSession) -> CheckInSession:
        if session.is_open and any(s.is_open and s.user_id == session.user_id for s in self._live()):
            raise DuplicateActiveRecord("ux_gym_checkins_one_active")
        self._store.checkins[session.check_in_id] = session
        return session

    def get(self, check_in_id: str) -> Optional[CheckInSession]:
        session = self._store.checkins.get(check_in_id)
        if session is None or session.record_state != RecordState.LIVE:
            return None
        return session

    def find_active_for_user(self, user_id: str) -> Optional[CheckInSession]:
        for session in self._live():
            if session.user_id == user_id and session.is_open:
                return session
        return None

    def close(self, check_in_id: str, *, now: datetime) -> Optional[CheckInSession]:
        session = self.get(check_in_id)
        if session is None or not session.is_open:
            return None
        updated = session.model_copy(
            update={
                "status": CheckInStatus.CHECKED_OUT,
                "check_out_time": now,
                "updated_at": now,
            }
        )
        self._store.checkins[check_in_id] = updated
        return updated

    def count_active_for_gym(self, gym_id: str) -> int:
        return sum(1 for s in self._live() if s.gym_id == gym_id and s.is_open)

    def list_for_user_since(self, user_id: str, *, since: datetime) -> Sequence[CheckInSession]:
        sessions = [s for s in self._live() if s.user_id == user_id and s.check_in_time >= since]
        return sorted(sessions, key=lambda s: s.check_in_time, reverse=True)


class InMemoryUnitOfWork:
    """Restores the store snapshot when the block raises, mirroring a rollback."""

    def __init__(self, store: InMemoryStore) -> None:
        self._store = store
        self._snapshot: Optional[Dict[str, Dict]] = None
        self.orders = InMemoryOrderRepository(store)
        self.memberships = InMemoryMembershipRepository(store)
        self.credentials = InMemoryCredentialRepository(store)
        self.checkins = InMemoryCheckInRepository(store)
        self.committed = False
        self.rolled_back = False

    def __enter__(self) -> "InMemoryUnitOfWork":
        self._snapshot = self._store.snapshot()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.committed = True
        else:
            self._store.restore(self._snapshot or {})
            self.rolled_back = True
        self._snapshot = None


class UnitOfWorkFactory:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store
        self.opened: List[InMemoryUnitOfWork] = []

    def __call__(self) -> InMemoryUnitOfWork:
        uow = InMemoryUnitOfWork(self.store)
        self.opened.append(uow)
        return uow


class RecordingNotifier:
    def __init__(self) -> None:
        self.placed: List[Order] = []
        self.confirmed: List[tuple] = []

    def order_placed(self, order: Order, buyer: Caller) -> None:
        self.placed.append(order)

    def order_confirmed(self, order: Order, buyer: Caller, membership: Optional[Membership]) -> None:
        self.confirmed.append((order, membership))


class StaticStaffDirectory:
    def __init__(self, emails: Sequence[str]) -> None:
        self._emails = list(emails)

    def staff_emails(self) -> Sequence[str]:
        return list(self._emails)
