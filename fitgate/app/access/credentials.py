"""Issues and rotates the opaque per-gym access credential."""
from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional, Protocol
from uuid import uuid4

from ...config import CREDENTIAL_MAX_TTL_MINUTES, CREDENTIAL_TOKEN_BYTES
from ..catalog import CatalogStore
from ..errors import ConflictError, DuplicateActiveRecord, NotFoundError, ValidationError
from ..identity import AuthorizationPolicy, Caller, Permissions
from ..records import utcnow
from ..unit_of_work import UnitOfWorkFactory
from .models import GymCredential

logger = logging.getLogger(__name__)


class CredentialRepository(Protocol):
    """Persistence operations required by the credential issuer."""

    def lock_gym(self, gym_id: str) -> None:
        ...

    def add(self, credential: GymCredential) -> GymCredential:
        ...

    def deactivate_all(self, gym_id: str, *, now: datetime) -> int:
        ...

    def get_active_for_gym(self, gym_id: str) -> Optional[GymCredential]:
        ...

    def find_by_token(self, token: str) -> Optional[GymCredential]:
        ...

    def mark_used(self, credential_id: str, *, now: datetime) -> bool:
        ...


def generate_token(num_bytes: int = CREDENTIAL_TOKEN_BYTES) -> str:
    return secrets.token_urlsafe(num_bytes)


@dataclass
class CredentialService:
    """Keeps exactly one live credential per gym."""

    unit_of_work: UnitOfWorkFactory
    catalog: CatalogStore
    policy: AuthorizationPolicy
    clock: Callable[[], datetime] = field(default=utcnow)
    token_factory: Callable[[], str] = field(default=generate_token)

    def generate_or_rotate(
        self,
        caller: Caller,
        gym_id: str,
        *,
        ttl: Optional[timedelta] = None,
        one_time: bool = False,
    ) -> GymCredential:
        """Replace every active credential of ``gym_id`` with a fresh token."""

        self.policy.require(caller, Permissions.GYM_QR_MANAGE)
        if ttl is not None and ttl <= timedelta(0):
            raise ValidationError("Credential lifetime must be positive")
        if ttl is not None and ttl > timedelta(minutes=CREDENTIAL_MAX_TTL_MINUTES):
            raise ValidationError(
                f"Credential lifetime cannot exceed {CREDENTIAL_MAX_TTL_MINUTES} minutes",
                detail={"max_ttl_minutes": CREDENTIAL_MAX_TTL_MINUTES},
            )
        if self.catalog.get_gym(gym_id) is None:
            raise NotFoundError("Gym not found", detail={"gym_id": gym_id})

        now = self.clock()
        credential = GymCredential(
            credential_id=str(uuid4()),
            gym_id=gym_id,
            token=self.token_factory(),
            is_active=True,
            expires_at=now + ttl if ttl is not None else None,
            is_one_time=one_time,
            created_at=now,
            updated_at=now,
        )
        with self.unit_of_work() as uow:
            uow.credentials.lock_gym(gym_id)
            replaced = uow.credentials.deactivate_all(gym_id, now=now)
            try:
                stored = uow.credentials.add(credential)
            except DuplicateActiveRecord as exc:
                raise ConflictError(
                    "Credential rotation collided with another request; retry",
                    detail={"gym_id": gym_id},
                ) from exc

        logger.info(
            "Gym credential rotated",
            extra={
                "gym_id": gym_id,
                "credential_id": stored.credential_id,
                "replaced_credentials": replaced,
                "one_time": one_time,
                "actor_id": caller.user_id,
            },
        )
        return stored

    def get_active(self, caller: Caller, gym_id: str) -> GymCredential:
        self.policy.require(caller, Permissions.GYM_QR_MANAGE)
        with self.unit_of_work() as uow:
            credential = uow.credentials.get_active_for_gym(gym_id)
        if credential is None:
            raise NotFoundError("No active credential for this gym", detail={"gym_id": gym_id})
        return credential

    def deactivate(self, caller: Caller, gym_id: str) -> int:
        self.policy.require(caller, Permissions.GYM_QR_MANAGE)
        now = self.clock()
        with self.unit_of_work() as uow:
            uow.credentials.lock_gym(gym_id)
            count = uow.credentials.deactivate_all(gym_id, now=now)
        if count == 0:
            raise NotFoundError("No active credential for this gym", detail={"gym_id": gym_id})
        logger.info(
            "Gym credentials deactivated",
            extra={"gym_id": gym_id, "deactivated": count, "actor_id": caller.user_id},
        )
        return count
