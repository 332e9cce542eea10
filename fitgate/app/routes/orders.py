"""API routes for the order ledger."""
from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from ..errors import ServiceError
from ..identity import Caller
from ..schemas.orders import (
    OrderConfirmResponse,
    OrderCreatedResponse,
    OrderListResponse,
    OrderOut,
    OrderStatusUpdate,
    SubscriptionOrderCreate,
    SupplementOrderCreate,
)
from ..services.platform import get_order_service
from .dependencies import get_current_caller

router = APIRouter(prefix="/api/orders", tags=["orders"])


@router.post(
    "/supplements",
    response_model=OrderCreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_supplement_order(
    payload: SupplementOrderCreate,
    *,
    current_caller: Caller = Depends(get_current_caller),
) -> OrderCreatedResponse:
    service = get_order_service()
    try:
        order = service.create_supplement_order(
            current_caller,
            [item.to_request() for item in payload.items],
            payload.payment_method,
            note=payload.note,
            delivery_address=payload.delivery_address,
        )
    except ServiceError as exc:
        raise exc.to_http_exception() from exc
    return OrderCreatedResponse(order_id=order.order_id)


@router.post(
    "/subscriptions",
    response_model=OrderCreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_subscription_order(
    payload: SubscriptionOrderCreate,
    *,
    current_caller: Caller = Depends(get_current_caller),
) -> OrderCreatedResponse:
    service = get_order_service()
    try:
        order = service.create_subscription_order(
            current_caller,
            payload.plan_id,
            payload.payment_method,
            note=payload.note,
        )
    except ServiceError as exc:
        raise exc.to_http_exception() from exc
    return OrderCreatedResponse(order_id=order.order_id)


@router.post("/{order_id}/confirm", response_model=OrderConfirmResponse)
def confirm_order(
    order_id: UUID,
    *,
    current_caller: Caller = Depends(get_current_caller),
) -> OrderConfirmResponse:
    service = get_order_service()
    try:
        confirmation = service.confirm(current_caller, str(order_id))
    except ServiceError as exc:
        raise exc.to_http_exception() from exc
    return OrderConfirmResponse.from_confirmation(confirmation)


@router.get("/me", response_model=OrderListResponse)
def list_my_orders(*, current_caller: Caller = Depends(get_current_caller)) -> OrderListResponse:
    service = get_order_service()
    try:
        orders = service.list_my_orders(current_caller)
    except ServiceError as exc:
        raise exc.to_http_exception() from exc
    return OrderListResponse(orders=[OrderOut.from_order(order) for order in orders])


@router.get("/sales", response_model=OrderListResponse)
def list_sales(
    *,
    date_from: Optional[datetime] = Query(default=None, alias="from"),
    date_to: Optional[datetime] = Query(default=None, alias="to"),
    current_caller: Caller = Depends(get_current_caller),
) -> OrderListResponse:
    """Pending and delivered orders in the period, newest first."""

    service = get_order_service()
    try:
        orders = service.list_sales(current_caller, date_from=date_from, date_to=date_to)
    except ServiceError as exc:
        raise exc.to_http_exception() from exc
    return OrderListResponse(orders=[OrderOut.from_order(order) for order in orders])


@router.patch("/{order_id}/status", response_model=OrderOut)
def update_order_status(
    order_id: UUID,
    payload: OrderStatusUpdate,
    *,
    current_caller: Caller = Depends(get_current_caller),
) -> OrderOut:
    service = get_order_service()
    try:
        order = service.update_status(current_caller, str(order_id), payload.status)
    except ServiceError as exc:
        raise exc.to_http_exception() from exc
    return OrderOut.from_order(order)


@router.delete("/{order_id}")
def delete_order(
    order_id: UUID,
    *,
    current_caller: Caller = Depends(get_current_caller),
) -> dict:
    service = get_order_service()
    try:
        service.delete(current_caller, str(order_id))
    except ServiceError as exc:
        raise exc.to_http_exception() from exc
    return {"ok": True}
