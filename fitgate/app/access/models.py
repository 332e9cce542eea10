"""Domain models for gym credentials and check-in sessions."""
from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..records import RecordState, utcnow


class GymCredential(BaseModel):
    """Opaque bearer secret presented at a gym entrance."""

    credential_id: str
    gym_id: str
    token: str
    is_active: bool = True
    expires_at: Optional[datetime] = None
    is_one_time: bool = False
    used_at: Optional[datetime] = None
    record_state: RecordState = RecordState.LIVE
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(frozen=True)

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    @property
    def is_consumed(self) -> bool:
        return self.is_one_time and self.used_at is not None


class CheckInStatus(str, Enum):
    ACTIVE = "active"
    CHECKED_OUT = "checked_out"


class CheckInSession(BaseModel):
    """Open or closed record of a member's presence at a gym."""

    check_in_id: str
    user_id: str
    gym_id: str
    check_in_time: datetime
    check_out_time: Optional[datetime] = None
    status: CheckInStatus = CheckInStatus.ACTIVE
    notes: Optional[str] = Field(default=None, max_length=500)
    record_state: RecordState = RecordState.LIVE
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(frozen=True)

    @property
    def duration(self) -> Optional[timedelta]:
        if self.check_out_time is None:
            return None
        return self.check_out_time - self.check_in_time

    @property
    def is_open(self) -> bool:
        return self.status == CheckInStatus.ACTIVE
