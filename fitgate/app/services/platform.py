"""Application wiring for the ledger, membership and access services."""
from __future__ import annotations

import logging
from functools import lru_cache
from types import TracebackType
from typing import Callable, Optional, Type

from psycopg2.extensions import connection as PgConnection

from ...db import get_conn
from ...mail import EmailConfig, EmailProvider, create_email_provider, load_email_config
from ..access import CheckInService, CredentialService
from ..access.repository import PostgresCheckInRepository, PostgresCredentialRepository
from ..catalog import CatalogStore, PostgresCatalogStore
from ..identity import AuthorizationPolicy, PostgresStaffDirectory, RolePolicy
from ..memberships import MembershipService
from ..memberships.repository import PostgresMembershipRepository
from ..orders import EmailOrderNotifier, OrderService
from ..orders.repository import PostgresOrderRepository

logger = logging.getLogger(__name__)


class PostgresUnitOfWork:
    """Opens one psycopg2 connection and binds every repository to it."""

    def __init__(self, connect: Callable[[], PgConnection] = get_conn) -> None:
        self._connect = connect
        self._conn: Optional[PgConnection] = None

    def __enter__(self) -> "PostgresUnitOfWork":
        self._conn = self._connect()
        self.orders = PostgresOrderRepository(conn=self._conn)
        self.memberships = PostgresMembershipRepository(conn=self._conn)
        self.credentials = PostgresCredentialRepository(conn=self._conn)
        self.checkins = PostgresCheckInRepository(conn=self._conn)
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        conn, self._conn = self._conn, None
        if conn is None:
            return
        try:
            if exc_type is None:
                conn.commit()
            else:
                conn.rollback()
                logger.debug("Unit of work rolled back", extra={"error_type": exc_type.__name__})
        finally:
            conn.close()


@lru_cache(maxsize=1)
def get_email_config() -> EmailConfig:
    return load_email_config()


@lru_cache(maxsize=1)
def get_email_provider() -> EmailProvider:
    return create_email_provider(get_email_config())


@lru_cache(maxsize=1)
def get_catalog_store() -> CatalogStore:
    return PostgresCatalogStore()


@lru_cache(maxsize=1)
def get_authorization_policy() -> AuthorizationPolicy:
    return RolePolicy()


@lru_cache(maxsize=1)
def get_membership_service() -> MembershipService:
    return MembershipService(
        unit_of_work=PostgresUnitOfWork,
        catalog=get_catalog_store(),
        policy=get_authorization_policy(),
    )


@lru_cache(maxsize=1)
def get_order_service() -> OrderService:
    notifier = EmailOrderNotifier(
        provider=get_email_provider(),
        staff=PostgresStaffDirectory(),
        config=get_email_config(),
    )
    return OrderService(
        unit_of_work=PostgresUnitOfWork,
        catalog=get_catalog_store(),
        memberships=get_membership_service(),
        policy=get_authorization_policy(),
        notifier=notifier,
    )


@lru_cache(maxsize=1)
def get_credential_service() -> CredentialService:
    return CredentialService(
        unit_of_work=PostgresUnitOfWork,
        catalog=get_catalog_store(),
        policy=get_authorization_policy(),
    )


@lru_cache(maxsize=1)
def get_checkin_service() -> CheckInService:
    return CheckInService(
        unit_of_work=PostgresUnitOfWork,
        catalog=get_catalog_store(),
        memberships=get_membership_service(),
    )


__all__ = [
    "PostgresUnitOfWork",
    "get_authorization_policy",
    "get_catalog_store",
    "get_checkin_service",
    "get_credential_service",
    "get_email_config",
    "get_email_provider",
    "get_membership_service",
    "get_order_service",
]
