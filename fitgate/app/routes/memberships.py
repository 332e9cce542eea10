"""API routes for memberships."""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends

from ..errors import ServiceError
from ..identity import Caller
from ..schemas.memberships import MembershipHistoryResponse, MembershipOut, MembershipRecordOut
from ..services.platform import get_membership_service
from .dependencies import get_current_caller

router = APIRouter(prefix="/api/memberships", tags=["memberships"])


@router.get("/me", response_model=MembershipOut)
def get_my_membership(*, current_caller: Caller = Depends(get_current_caller)) -> MembershipOut:
    """Active membership, or the most recent one when none is active."""

    service = get_membership_service()
    try:
        view = service.get_current(current_caller)
    except ServiceError as exc:
        raise exc.to_http_exception() from exc
    return MembershipOut.from_view(view)


@router.get("/me/history", response_model=MembershipHistoryResponse)
def get_my_membership_history(
    *, current_caller: Caller = Depends(get_current_caller)
) -> MembershipHistoryResponse:
    service = get_membership_service()
    try:
        views = service.history(current_caller)
    except ServiceError as exc:
        raise exc.to_http_exception() from exc
    return MembershipHistoryResponse(memberships=[MembershipOut.from_view(view) for view in views])


@router.post("/me/cancel", response_model=MembershipRecordOut)
def cancel_my_membership(*, current_caller: Caller = Depends(get_current_caller)) -> MembershipRecordOut:
    service = get_membership_service()
    try:
        membership = service.cancel(current_caller)
    except ServiceError as exc:
        raise exc.to_http_exception() from exc
    return MembershipRecordOut.from_membership(membership)


@router.post("/{user_id}/deactivate", response_model=MembershipRecordOut)
def deactivate_user_membership(
    user_id: str,
    *,
    current_caller: Caller = Depends(get_current_caller),
) -> MembershipRecordOut:
    service = get_membership_service()
    try:
        membership = service.deactivate_user(current_caller, user_id)
    except ServiceError as exc:
        raise exc.to_http_exception() from exc
    return MembershipRecordOut.from_membership(membership)


@router.get("/users/{user_id}", response_model=MembershipOut)
def get_user_membership(
    user_id: str,
    *,
    current_caller: Caller = Depends(get_current_caller),
) -> MembershipOut:
    service = get_membership_service()
    try:
        view = service.get_for_user(current_caller, user_id)
    except ServiceError as exc:
        raise exc.to_http_exception() from exc
    return MembershipOut.from_view(view)


@router.delete("/{membership_id}")
def delete_membership(
    membership_id: UUID,
    *,
    current_caller: Caller = Depends(get_current_caller),
) -> dict:
    service = get_membership_service()
    try:
        service.delete(current_caller, str(membership_id))
    except ServiceError as exc:
        raise exc.to_http_exception() from exc
    return {"ok": True}
