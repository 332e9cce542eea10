"""API schemas for check-in and gym credential endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ...config import CREDENTIAL_MAX_TTL_MINUTES
from ..access.models import CheckInSession, CheckInStatus, GymCredential


class CheckInRequest(BaseModel):
    credential: str
    notes: Optional[str] = Field(default=None, max_length=500)

    model_config = ConfigDict(populate_by_name=True)


class CheckInCreatedResponse(BaseModel):
    check_in_id: str = Field(alias="checkInId")
    gym_id: str = Field(alias="gymId")
    check_in_time: datetime = Field(alias="checkInTime")

    model_config = ConfigDict(populate_by_name=True)


class CheckOutRequest(BaseModel):
    check_in_id: str = Field(alias="checkInId")

    model_config = ConfigDict(populate_by_name=True)


class CheckInOut(BaseModel):
    check_in_id: str = Field(alias="checkInId")
    gym_id: str = Field(alias="gymId")
    check_in_time: datetime = Field(alias="checkInTime")
    check_out_time: Optional[datetime] = Field(alias="checkOutTime", default=None)
    status: CheckInStatus
    notes: Optional[str] = None
    duration_seconds: Optional[int] = Field(alias="durationSeconds", default=None)

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_session(cls, session: CheckInSession) -> "CheckInOut":
        duration = session.duration
        return cls(
            check_in_id=session.check_in_id,
            gym_id=session.gym_id,
            check_in_time=session.check_in_time,
            check_out_time=session.check_out_time,
            status=session.status,
            notes=session.notes,
            duration_seconds=int(duration.total_seconds()) if duration is not None else None,
        )


class CheckInHistoryResponse(BaseModel):
    check_ins: List[CheckInOut] = Field(alias="checkIns")

    model_config = ConfigDict(populate_by_name=True)


class OccupancyResponse(BaseModel):
    gym_id: str = Field(alias="gymId")
    count: int

    model_config = ConfigDict(populate_by_name=True)


class CredentialRotateRequest(BaseModel):
    ttl_minutes: Optional[int] = Field(alias="ttlMinutes", default=None, ge=1, le=CREDENTIAL_MAX_TTL_MINUTES)
    one_time: bool = Field(alias="oneTime", default=False)

    model_config = ConfigDict(populate_by_name=True)


class CredentialOut(BaseModel):
    gym_id: str = Field(alias="gymId")
    token: str
    is_active: bool = Field(alias="isActive")
    expires_at: Optional[datetime] = Field(alias="expiresAt", default=None)
    is_one_time: bool = Field(alias="isOneTime", default=False)
    created_at: datetime = Field(alias="createdAt")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_credential(cls, credential: GymCredential) -> "CredentialOut":
        return cls(
            gym_id=credential.gym_id,
            token=credential.token,
            is_active=credential.is_active,
            expires_at=credential.expires_at,
            is_one_time=credential.is_one_time,
            created_at=credential.created_at,
        )


class CredentialDeactivateResponse(BaseModel):
    gym_id: str = Field(alias="gymId")
    deactivated: int

    model_config = ConfigDict(populate_by_name=True)
