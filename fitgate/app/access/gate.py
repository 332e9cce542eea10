"""Access gate: the check-in / check-out state machine and live occupancy."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional, Protocol, Sequence
from uuid import uuid4

from ...config import CHECKIN_HISTORY_DEFAULT_DAYS, CHECKIN_HISTORY_MAX_DAYS
from ..catalog import CatalogStore
from ..errors import (
    ConflictError,
    DuplicateActiveRecord,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from ..identity import Caller
from ..memberships.service import MembershipService
from ..records import utcnow
from ..unit_of_work import UnitOfWorkFactory
from .models import CheckInSession, CheckInStatus

logger = logging.getLogger(__name__)

INVALID_CREDENTIAL_MESSAGE = "Invalid or expired credential"


class CheckInRepository(Protocol):
    """Persistence operations required by the access gate."""

    def add(self, session: CheckInSession) -> CheckInSession:
        ...

    def get(self, check_in_id: str) -> Optional[CheckInSession]:
        ...

    def find_active_for_user(self, user_id: str) -> Optional[CheckInSession]:
        ...

    def close(self, check_in_id: str, *, now: datetime) -> Optional[CheckInSession]:
        ...

    def count_active_for_gym(self, gym_id: str) -> int:
        ...

    def list_for_user_since(self, user_id: str, *, since: datetime) -> Sequence[CheckInSession]:
        ...


@dataclass
class CheckInService:
    """Opens and closes check-in sessions.

    A session moves ``active -> checked_out`` exactly once. Sessions are only
    closed by their owner; nothing closes them on a timer.
    """

    unit_of_work: UnitOfWorkFactory
    catalog: CatalogStore
    memberships: MembershipService
    clock: Callable[[], datetime] = field(default=utcnow)

    def check_in(self, caller: Caller, credential: str, *, notes: Optional[str] = None) -> CheckInSession:
        token = (credential or "").strip()
        if not token:
            raise ValidationError("A credential is required")

        now = self.clock()
        with self.unit_of_work() as uow:
            gym_credential = uow.credentials.find_by_token(token)
            if gym_credential is None or not gym_credential.is_active:
                raise ValidationError(INVALID_CREDENTIAL_MESSAGE)
            if gym_credential.is_expired(now) or gym_credential.is_consumed:
                raise ValidationError(INVALID_CREDENTIAL_MESSAGE)

            gym = self.catalog.get_gym(gym_credential.gym_id)
            if gym is None or not gym.is_active:
                raise ValidationError("Gym is not available", detail={"gym_id": gym_credential.gym_id})

            if uow.checkins.find_active_for_user(caller.user_id) is not None:
                raise ConflictError("You are already checked in")

            if not self.memberships.has_active_for_gym(uow, caller.user_id, gym, now):
                raise ForbiddenError(
                    "No valid membership for this gym",
                    detail={"gym_id": gym.gym_id},
                )

            session = CheckInSession(
                check_in_id=str(uuid4()),
                user_id=caller.user_id,
                gym_id=gym.gym_id,
                check_in_time=now,
                status=CheckInStatus.ACTIVE,
                notes=notes,
                created_at=now,
                updated_at=now,
            )
            try:
                stored = uow.checkins.add(session)
            except DuplicateActiveRecord as exc:
                raise ConflictError("You are already checked in") from exc

            if gym_credential.is_one_time and not uow.credentials.mark_used(
                gym_credential.credential_id, now=now
            ):
                raise ValidationError(INVALID_CREDENTIAL_MESSAGE)

        logger.info(
            "Member checked in",
            extra={"check_in_id": stored.check_in_id, "user_id": caller.user_id, "gym_id": gym.gym_id},
        )
        return stored

    def check_out(self, caller: Caller, check_in_id: str) -> CheckInSession:
        now = self.clock()
        with self.unit_of_work() as uow:
            session = uow.checkins.get(check_in_id)
            if session is None:
                raise NotFoundError("Check-in not found", detail={"check_in_id": check_in_id})
            if session.user_id != caller.user_id:
                raise ForbiddenError("You can only check out of your own session")
            if not session.is_open:
                raise ValidationError("Already checked out", detail={"check_in_id": check_in_id})
            closed = uow.checkins.close(check_in_id, now=now)
            if closed is None:
                raise ValidationError("Already checked out", detail={"check_in_id": check_in_id})

        logger.info(
            "Member checked out",
            extra={"check_in_id": check_in_id, "user_id": caller.user_id, "gym_id": closed.gym_id},
        )
        return closed

    def occupancy(self, gym_id: str) -> int:
        with self.unit_of_work() as uow:
            return uow.checkins.count_active_for_gym(gym_id)

    def my_active(self, caller: Caller) -> CheckInSession:
        with self.unit_of_work() as uow:
            session = uow.checkins.find_active_for_user(caller.user_id)
        if session is None:
            raise NotFoundError("No active check-in")
        return session

    def my_history(self, caller: Caller, *, days: int = CHECKIN_HISTORY_DEFAULT_DAYS) -> Sequence[CheckInSession]:
        window = abs(days)
        if window > CHECKIN_HISTORY_MAX_DAYS:
            raise ValidationError(
                f"History window cannot exceed {CHECKIN_HISTORY_MAX_DAYS} days",
                detail={"days": days},
            )
        since = self.clock() - timedelta(days=window)
        with self.unit_of_work() as uow:
            sessions = uow.checkins.list_for_user_since(caller.user_id, since=since)
        if not sessions:
            raise NotFoundError("No check-ins in the requested period")
        return sessions
