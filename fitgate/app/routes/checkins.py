"""API routes for the check-in gate."""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...config import CHECKIN_HISTORY_DEFAULT_DAYS
from ..errors import ServiceError
from ..identity import Caller
from ..schemas.access import (
    CheckInCreatedResponse,
    CheckInHistoryResponse,
    CheckInOut,
    CheckInRequest,
    CheckOutRequest,
)
from ..services.platform import get_checkin_service
from .dependencies import get_current_caller

router = APIRouter(prefix="/api/checkins", tags=["checkins"])


@router.post("", response_model=CheckInCreatedResponse, status_code=status.HTTP_201_CREATED)
def check_in(
    payload: CheckInRequest,
    *,
    current_caller: Caller = Depends(get_current_caller),
) -> CheckInCreatedResponse:
    service = get_checkin_service()
    try:
        session = service.check_in(current_caller, payload.credential, notes=payload.notes)
    except ServiceError as exc:
        raise exc.to_http_exception() from exc
    return CheckInCreatedResponse(
        check_in_id=session.check_in_id,
        gym_id=session.gym_id,
        check_in_time=session.check_in_time,
    )


@router.post("/checkout", response_model=CheckInOut)
def check_out(
    payload: CheckOutRequest,
    *,
    current_caller: Caller = Depends(get_current_caller),
) -> CheckInOut:
    try:
        check_in_id = str(UUID(payload.check_in_id))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid checkInId") from exc

    service = get_checkin_service()
    try:
        session = service.check_out(current_caller, check_in_id)
    except ServiceError as exc:
        raise exc.to_http_exception() from exc
    return CheckInOut.from_session(session)


@router.get("/me/active", response_model=CheckInOut)
def get_my_active_check_in(*, current_caller: Caller = Depends(get_current_caller)) -> CheckInOut:
    service = get_checkin_service()
    try:
        session = service.my_active(current_caller)
    except ServiceError as exc:
        raise exc.to_http_exception() from exc
    return CheckInOut.from_session(session)


@router.get("/me/history", response_model=CheckInHistoryResponse)
def get_my_check_in_history(
    *,
    days: int = Query(default=CHECKIN_HISTORY_DEFAULT_DAYS),
    current_caller: Caller = Depends(get_current_caller),
) -> CheckInHistoryResponse:
    service = get_checkin_service()
    try:
        sessions = service.my_history(current_caller, days=days)
    except ServiceError as exc:
        raise exc.to_http_exception() from exc
    return CheckInHistoryResponse(check_ins=[CheckInOut.from_session(session) for session in sessions])
