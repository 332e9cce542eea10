"""API routes scoped to a single gym: occupancy and the QR credential."""
from __future__ import annotations

from datetime import timedelta
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, status

from ..errors import ServiceError
from ..identity import Caller
from ..schemas.access import (
    CredentialDeactivateResponse,
    CredentialOut,
    CredentialRotateRequest,
    OccupancyResponse,
)
from ..services.platform import get_checkin_service, get_credential_service
from .dependencies import get_current_caller

router = APIRouter(prefix="/api/gyms", tags=["gyms"])


@router.get("/{gym_id}/occupancy", response_model=OccupancyResponse)
def get_occupancy(gym_id: UUID) -> OccupancyResponse:
    """Number of members currently checked in. No authentication required."""

    service = get_checkin_service()
    count = service.occupancy(str(gym_id))
    return OccupancyResponse(gym_id=str(gym_id), count=count)


@router.post(
    "/{gym_id}/qr/rotate",
    response_model=CredentialOut,
    status_code=status.HTTP_201_CREATED,
)
def rotate_credential(
    gym_id: UUID,
    payload: Optional[CredentialRotateRequest] = Body(default=None),
    *,
    current_caller: Caller = Depends(get_current_caller),
) -> CredentialOut:
    options = payload or CredentialRotateRequest()
    ttl = timedelta(minutes=options.ttl_minutes) if options.ttl_minutes else None
    service = get_credential_service()
    try:
        credential = service.generate_or_rotate(
            current_caller,
            str(gym_id),
            ttl=ttl,
            one_time=options.one_time,
        )
    except ServiceError as exc:
        raise exc.to_http_exception() from exc
    return CredentialOut.from_credential(credential)


@router.get("/{gym_id}/qr", response_model=CredentialOut)
def get_active_credential(
    gym_id: UUID,
    *,
    current_caller: Caller = Depends(get_current_caller),
) -> CredentialOut:
    service = get_credential_service()
    try:
        credential = service.get_active(current_caller, str(gym_id))
    except ServiceError as exc:
        raise exc.to_http_exception() from exc
    return CredentialOut.from_credential(credential)


@router.post("/{gym_id}/qr/deactivate", response_model=CredentialDeactivateResponse)
def deactivate_credentials(
    gym_id: UUID,
    *,
    current_caller: Caller = Depends(get_current_caller),
) -> CredentialDeactivateResponse:
    service = get_credential_service()
    try:
        count = service.deactivate(current_caller, str(gym_id))
    except ServiceError as exc:
        raise exc.to_http_exception() from exc
    return CredentialDeactivateResponse(gym_id=str(gym_id), deactivated=count)
