from __future__ import annotations

from uuid import UUID

import pydantic
import pytest
from fastapi import HTTPException

from fitgate.app.orders import OrderStatus, PaymentMethod
from fitgate.app.routes import checkins as checkins_routes
from fitgate.app.routes import gyms as gyms_routes
from fitgate.app.routes import memberships as memberships_routes
from fitgate.app.routes import orders as orders_routes
from fitgate.app.schemas.access import (
    CheckInCreatedResponse,
    CheckInRequest,
    CheckOutRequest,
    CredentialRotateRequest,
)
from fitgate.app.schemas.orders import (
    OrderItemIn,
    OrderStatusUpdate,
    SubscriptionOrderCreate,
    SupplementOrderCreate,
)
from fitgate.tests.fakes import GYM_ID, MONTHLY_PLAN_ID, PROTEIN_ID, T0, admin, member


@pytest.fixture
def routes(platform, monkeypatch):
    monkeypatch.setattr(orders_routes, "get_order_service", lambda: platform.orders)
    monkeypatch.setattr(memberships_routes, "get_membership_service", lambda: platform.memberships)
    monkeypatch.setattr(checkins_routes, "get_checkin_service", lambda: platform.checkins)
    monkeypatch.setattr(gyms_routes, "get_checkin_service", lambda: platform.checkins)
    monkeypatch.setattr(gyms_routes, "get_credential_service", lambda: platform.credentials)
    return platform


def _subscribe(caller) -> str:
    created = orders_routes.create_subscription_order(
        SubscriptionOrderCreate(plan_id=MONTHLY_PLAN_ID, payment_method=PaymentMethod.CARD),
        current_caller=caller,
    )
    orders_routes.confirm_order(UUID(created.order_id), current_caller=caller)
    return created.order_id


def test_schemas_accept_camel_case_payloads():
    payload = SupplementOrderCreate.model_validate(
        {"items": [{"supplementId": PROTEIN_ID, "quantity": 2}], "paymentMethod": "cash"}
    )
    assert payload.items[0].supplement_id == PROTEIN_ID
    assert payload.payment_method == PaymentMethod.CASH

    rotate = CredentialRotateRequest.model_validate({"ttlMinutes": 10, "oneTime": True})
    assert (rotate.ttl_minutes, rotate.one_time) == (10, True)


def test_create_and_confirm_subscription_order(routes):
    caller = member()
    created = orders_routes.create_subscription_order(
        SubscriptionOrderCreate(plan_id=MONTHLY_PLAN_ID, payment_method=PaymentMethod.CARD),
        current_caller=caller,
    )

    response = orders_routes.confirm_order(UUID(created.order_id), current_caller=caller)

    assert response.order.status == OrderStatus.DELIVERED
    assert response.membership is not None
    body = response.model_dump(by_alias=True)
    assert body["order"]["orderId"] == created.order_id
    assert body["membership"]["planId"] == MONTHLY_PLAN_ID
    assert body["membership"]["active"] is True


def test_confirm_twice_maps_to_conflict(routes):
    caller = member()
    order_id = _subscribe(caller)

    with pytest.raises(HTTPException) as excinfo:
        orders_routes.confirm_order(UUID(order_id), current_caller=caller)

    assert excinfo.value.status_code == 409
    assert excinfo.value.detail["error"] == "conflict"


def test_create_supplement_order_validation_maps_to_bad_request(routes):
    with pytest.raises(HTTPException) as excinfo:
        orders_routes.create_supplement_order(
            SupplementOrderCreate(items=[], payment_method=PaymentMethod.CASH),
            current_caller=member(),
        )
    assert excinfo.value.status_code == 400

    created = orders_routes.create_supplement_order(
        SupplementOrderCreate(
            items=[OrderItemIn(supplement_id=PROTEIN_ID, quantity=1)],
            payment_method=PaymentMethod.CASH,
        ),
        current_caller=member(),
    )
    assert routes.store.orders[created.order_id].total_price == 30


def test_sales_and_status_routes_require_privilege(routes):
    caller = member()
    order_id = _subscribe(caller)

    with pytest.raises(HTTPException) as excinfo:
        orders_routes.list_sales(date_from=None, date_to=None, current_caller=caller)
    assert excinfo.value.status_code == 403

    sales = orders_routes.list_sales(date_from=T0, date_to=None, current_caller=admin())
    assert [order.order_id for order in sales.orders] == [order_id]

    with pytest.raises(HTTPException) as excinfo:
        orders_routes.update_order_status(
            UUID(order_id),
            OrderStatusUpdate(status=OrderStatus.CANCELLED),
            current_caller=admin(),
        )
    assert excinfo.value.status_code == 409


def test_my_orders_and_delete(routes):
    caller = member()
    order_id = _subscribe(caller)

    listing = orders_routes.list_my_orders(current_caller=caller)
    assert [order.order_id for order in listing.orders] == [order_id]

    assert orders_routes.delete_order(UUID(order_id), current_caller=admin()) == {"ok": True}
    with pytest.raises(HTTPException) as excinfo:
        orders_routes.list_my_orders(current_caller=caller)
    assert excinfo.value.status_code == 404


def test_membership_routes(routes):
    caller = member()
    with pytest.raises(HTTPException) as excinfo:
        memberships_routes.get_my_membership(current_caller=caller)
    assert excinfo.value.status_code == 404

    _subscribe(caller)
    current = memberships_routes.get_my_membership(current_caller=caller)
    assert current.plan_name == "Monthly Basic"
    assert current.model_dump(by_alias=True)["active"] is True

    history = memberships_routes.get_my_membership_history(current_caller=caller)
    assert len(history.memberships) == 1

    with pytest.raises(HTTPException) as excinfo:
        memberships_routes.get_user_membership(caller.user_id, current_caller=member("peer"))
    assert excinfo.value.status_code == 403

    closed = memberships_routes.deactivate_user_membership(caller.user_id, current_caller=admin())
    assert closed.is_active is False

    with pytest.raises(HTTPException) as excinfo:
        memberships_routes.cancel_my_membership(current_caller=caller)
    assert excinfo.value.status_code == 404

    deleted = memberships_routes.delete_membership(UUID(current.membership_id), current_caller=caller)
    assert deleted == {"ok": True}


def test_gate_routes_end_to_end(routes):
    caller = member()
    _subscribe(caller)

    credential = gyms_routes.rotate_credential(UUID(GYM_ID), payload=None, current_caller=admin())
    assert credential.is_active

    created = checkins_routes.check_in(CheckInRequest(credential=credential.token), current_caller=caller)
    assert isinstance(created, CheckInCreatedResponse)
    assert created.gym_id == GYM_ID

    occupancy = gyms_routes.get_occupancy(UUID(GYM_ID))
    assert occupancy.count == 1

    with pytest.raises(HTTPException) as excinfo:
        checkins_routes.check_in(CheckInRequest(credential=credential.token), current_caller=caller)
    assert excinfo.value.status_code == 409

    active = checkins_routes.get_my_active_check_in(current_caller=caller)
    assert active.check_in_id == created.check_in_id

    routes.clock.advance(minutes=30)
    closed = checkins_routes.check_out(CheckOutRequest(check_in_id=created.check_in_id), current_caller=caller)
    assert closed.duration_seconds == 1800
    assert gyms_routes.get_occupancy(UUID(GYM_ID)).count == 0

    history = checkins_routes.get_my_check_in_history(days=7, current_caller=caller)
    assert [item.check_in_id for item in history.check_ins] == [created.check_in_id]


def test_check_in_without_membership_is_forbidden(routes):
    credential = gyms_routes.rotate_credential(UUID(GYM_ID), payload=None, current_caller=admin())

    with pytest.raises(HTTPException) as excinfo:
        checkins_routes.check_in(CheckInRequest(credential=credential.token), current_caller=member())

    assert excinfo.value.status_code == 403


def test_check_out_rejects_malformed_identifier(routes):
    with pytest.raises(HTTPException) as excinfo:
        checkins_routes.check_out(CheckOutRequest(check_in_id="not-a-uuid"), current_caller=member())
    assert excinfo.value.status_code == 400


def test_credential_routes(routes):
    with pytest.raises(HTTPException) as excinfo:
        gyms_routes.rotate_credential(UUID(GYM_ID), payload=None, current_caller=member())
    assert excinfo.value.status_code == 403

    rotated = gyms_routes.rotate_credential(
        UUID(GYM_ID),
        payload=CredentialRotateRequest(ttl_minutes=30, one_time=True),
        current_caller=admin(),
    )
    assert rotated.is_one_time
    assert rotated.expires_at is not None

    fetched = gyms_routes.get_active_credential(UUID(GYM_ID), current_caller=admin())
    assert fetched.token == rotated.token

    result = gyms_routes.deactivate_credentials(UUID(GYM_ID), current_caller=admin())
    assert result.deactivated == 1

    with pytest.raises(HTTPException) as excinfo:
        gyms_routes.get_active_credential(UUID(GYM_ID), current_caller=admin())
    assert excinfo.value.status_code == 404


def test_malformed_plan_id_is_not_found(routes):
    with pytest.raises(HTTPException) as excinfo:
        orders_routes.create_subscription_order(
            SubscriptionOrderCreate.model_validate({"planId": "abc", "paymentMethod": "card"}),
            current_caller=member(),
        )

    assert excinfo.value.status_code == 404
    assert routes.store.orders == {}


def test_history_window_beyond_limit_is_bad_request(routes):
    with pytest.raises(HTTPException) as excinfo:
        checkins_routes.get_my_check_in_history(days=1_000_000, current_caller=member())

    assert excinfo.value.status_code == 400


def test_rotate_request_caps_lifetime():
    with pytest.raises(pydantic.ValidationError):
        CredentialRotateRequest.model_validate({"ttlMinutes": 1_000_000_000_000})
