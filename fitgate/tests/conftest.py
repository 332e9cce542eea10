import pathlib
import sys
from types import SimpleNamespace

import pytest

ROOT = pathlib.Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from fitgate.app.access import CheckInService, CredentialService  # noqa: E402
from fitgate.app.identity import RolePolicy  # noqa: E402
from fitgate.app.memberships import MembershipService  # noqa: E402
from fitgate.app.orders import OrderService  # noqa: E402
from fitgate.tests.fakes import (  # noqa: E402
    FakeCatalog,
    FakeClock,
    RecordingNotifier,
    UnitOfWorkFactory,
    seeded_store,
)


@pytest.fixture
def platform():
    store = seeded_store()
    uow_factory = UnitOfWorkFactory(store)
    catalog = FakeCatalog(store)
    clock = FakeClock()
    policy = RolePolicy()
    notifier = RecordingNotifier()
    memberships = MembershipService(
        unit_of_work=uow_factory,
        catalog=catalog,
        policy=policy,
        clock=clock,
    )
    orders = OrderService(
        unit_of_work=uow_factory,
        catalog=catalog,
        memberships=memberships,
        policy=policy,
        notifier=notifier,
        clock=clock,
    )
    credentials = CredentialService(
        unit_of_work=uow_factory,
        catalog=catalog,
        policy=policy,
        clock=clock,
    )
    checkins = CheckInService(
        unit_of_work=uow_factory,
        catalog=catalog,
        memberships=memberships,
        clock=clock,
    )
    return SimpleNamespace(
        store=store,
        uow=uow_factory,
        clock=clock,
        notifier=notifier,
        orders=orders,
        memberships=memberships,
        credentials=credentials,
        checkins=checkins,
    )
