"""Caller identity and authorization policy passed into every use case."""
from __future__ import annotations

import logging
from typing import Dict, FrozenSet, Iterable, Mapping, Optional, Protocol, Sequence

import psycopg2.extras
from psycopg2.extensions import connection as PgConnection
from pydantic import BaseModel, ConfigDict, Field

from ..db import managed_connection
from .errors import ForbiddenError

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"
MODERATOR_ROLE = "moderator"
STAFF_ROLES = {ADMIN_ROLE}


class Permissions:
    """Permission claims recognised by the platform."""

    ORDER_VIEW_SALES = "order.view_sales"
    ORDER_UPDATE_STATUS = "order.update_status"
    ORDER_DELETE = "order.delete"
    MEMBERSHIP_VIEW_USER = "membership.view_user"
    MEMBERSHIP_DEACTIVATE_USER = "membership.deactivate_user"
    MEMBERSHIP_DELETE = "membership.delete"
    GYM_QR_MANAGE = "gym_qr.manage"

    ALL = frozenset(
        {
            ORDER_VIEW_SALES,
            ORDER_UPDATE_STATUS,
            ORDER_DELETE,
            MEMBERSHIP_VIEW_USER,
            MEMBERSHIP_DEACTIVATE_USER,
            MEMBERSHIP_DELETE,
            GYM_QR_MANAGE,
        }
    )


DEFAULT_ROLE_PERMISSIONS: Dict[str, FrozenSet[str]] = {
    ADMIN_ROLE: Permissions.ALL,
    MODERATOR_ROLE: frozenset(
        {
            Permissions.ORDER_VIEW_SALES,
            Permissions.ORDER_UPDATE_STATUS,
            Permissions.MEMBERSHIP_VIEW_USER,
            Permissions.GYM_QR_MANAGE,
        }
    ),
}


class Caller(BaseModel):
    """The authenticated principal on whose behalf an operation runs."""

    user_id: str
    email: Optional[str] = None
    roles: FrozenSet[str] = Field(default_factory=frozenset)
    permissions: FrozenSet[str] = Field(default_factory=frozenset)

    model_config = ConfigDict(frozen=True)

    def has_role(self, role: str) -> bool:
        return role in self.roles


class AuthorizationPolicy(Protocol):
    """Decides whether a caller may perform a privileged operation."""

    def allows(self, caller: Caller, permission: str) -> bool:
        ...

    def require(self, caller: Caller, permission: str) -> None:
        ...


class RolePolicy:
    """Grants permissions from role membership plus explicit permission claims."""

    def __init__(self, role_permissions: Optional[Mapping[str, Iterable[str]]] = None) -> None:
        source = DEFAULT_ROLE_PERMISSIONS if role_permissions is None else role_permissions
        self._role_permissions = {role: frozenset(perms) for role, perms in source.items()}

    def allows(self, caller: Caller, permission: str) -> bool:
        if permission in caller.permissions:
            return True
        return any(permission in self._role_permissions.get(role, frozenset()) for role in caller.roles)

    def require(self, caller: Caller, permission: str) -> None:
        if not self.allows(caller, permission):
            logger.info(
                "Permission denied",
                extra={"user_id": caller.user_id, "permission": permission},
            )
            raise ForbiddenError("Forbidden", detail={"missing_permission": permission})


class StaffDirectory(Protocol):
    """Resolves contact addresses of privileged staff."""

    def staff_emails(self) -> Sequence[str]:
        ...


class PostgresStaffDirectory:
    """Reads admin contact addresses from the users table."""

    def __init__(self, *, conn: Optional[PgConnection] = None, roles: Iterable[str] = STAFF_ROLES) -> None:
        self._conn = conn
        self._roles = sorted(set(roles))

    def staff_emails(self) -> Sequence[str]:
        with managed_connection(self._conn) as (connection, _managed):
            with connection.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                cur.execute(
                    """
                    SELECT DISTINCT TRIM(email) AS email
                    FROM users
                    WHERE role = ANY(%s) AND email IS NOT NULL AND TRIM(email) <> ''
                    ORDER BY 1
                    """,
                    (self._roles,),
                )
                rows = cur.fetchall() or []
        return [row["email"] for row in rows]


__all__ = [
    "ADMIN_ROLE",
    "AuthorizationPolicy",
    "Caller",
    "MODERATOR_ROLE",
    "Permissions",
    "PostgresStaffDirectory",
    "RolePolicy",
    "StaffDirectory",
]
