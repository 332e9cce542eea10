"""Connection helpers and schema bootstrap for PostgreSQL."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional, Tuple

import psycopg2
import psycopg2.errors
from psycopg2.extensions import connection as PgConnection

from .app.errors import DuplicateActiveRecord
from .config import DB_CFG

logger = logging.getLogger(__name__)


def get_conn() -> PgConnection:
    return psycopg2.connect(**DB_CFG)


@contextmanager
def managed_connection(conn: Optional[PgConnection] = None) -> Iterator[Tuple[PgConnection, bool]]:
    """Context manager that manages transaction boundaries for optional connections."""

    if conn is not None:
        yield conn, False
        return

    connection = get_conn()
    try:
        yield connection, True
        connection.commit()
    except Exception:
        connection.rollback()
        raise
    finally:
        connection.close()


# Catalog tables (gyms, subscription_plans, gym_subscription_plans, supplements,
# users) are owned by the catalog/identity services and only read here.
SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS orders (
        order_id UUID PRIMARY KEY,
        user_id TEXT NOT NULL,
        subscription_plan_id UUID NULL,
        payment_method TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'pending',
        total_price NUMERIC(18, 2) NOT NULL DEFAULT 0,
        note VARCHAR(1000) NULL,
        delivery_address VARCHAR(500) NULL,
        ordered_at TIMESTAMPTZ NOT NULL,
        record_state TEXT NOT NULL DEFAULT 'live',
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS order_lines (
        order_id UUID NOT NULL REFERENCES orders(order_id),
        line_no INTEGER NOT NULL,
        supplement_id UUID NOT NULL,
        quantity INTEGER NOT NULL CHECK (quantity > 0),
        unit_price NUMERIC(18, 2) NOT NULL,
        PRIMARY KEY (order_id, line_no)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS memberships (
        membership_id UUID PRIMARY KEY,
        user_id TEXT NOT NULL,
        subscription_plan_id UUID NOT NULL,
        order_id UUID NULL REFERENCES orders(order_id),
        start_date TIMESTAMPTZ NOT NULL,
        end_date TIMESTAMPTZ NOT NULL,
        is_active BOOLEAN NOT NULL,
        record_state TEXT NOT NULL DEFAULT 'live',
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE UNIQUE INDEX IF NOT EXISTS ux_memberships_one_active
    ON memberships(user_id) WHERE is_active AND record_state = 'live'
    """,
    """
    CREATE TABLE IF NOT EXISTS gym_credentials (
        credential_id UUID PRIMARY KEY,
        gym_id UUID NOT NULL,
        token VARCHAR(255) NOT NULL,
        is_active BOOLEAN NOT NULL DEFAULT TRUE,
        expires_at TIMESTAMPTZ NULL,
        is_one_time BOOLEAN NOT NULL DEFAULT FALSE,
        used_at TIMESTAMPTZ NULL,
        record_state TEXT NOT NULL DEFAULT 'live',
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    "CREATE UNIQUE INDEX IF NOT EXISTS ux_gym_credentials_token ON gym_credentials(token)",
    """
    CREATE UNIQUE INDEX IF NOT EXISTS ux_gym_credentials_one_active
    ON gym_credentials(gym_id) WHERE is_active AND record_state = 'live'
    """,
    """
    CREATE TABLE IF NOT EXISTS gym_checkins (
        check_in_id UUID PRIMARY KEY,
        user_id TEXT NOT NULL,
        gym_id UUID NOT NULL,
        check_in_time TIMESTAMPTZ NOT NULL,
        check_out_time TIMESTAMPTZ NULL,
        status TEXT NOT NULL DEFAULT 'active',
        notes VARCHAR(500) NULL,
        record_state TEXT NOT NULL DEFAULT 'live',
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE UNIQUE INDEX IF NOT EXISTS ux_gym_checkins_one_active
    ON gym_checkins(user_id) WHERE status = 'active' AND record_state = 'live'
    """,
    """
    CREATE INDEX IF NOT EXISTS ix_gym_checkins_gym_status
    ON gym_checkins(gym_id, status)
    """,
)


def ensure_schema(conn: Optional[PgConnection] = None) -> None:
    """Create the ledger, membership and access tables when missing."""

    with managed_connection(conn) as (connection, _managed):
        with connection.cursor() as cur:
            for statement in SCHEMA_STATEMENTS:
                cur.execute(statement)
    logger.info("Database schema ensured", extra={"schema_statements": len(SCHEMA_STATEMENTS)})


@contextmanager
def translate_unique_violation() -> Iterator[None]:
    """Re-raise partial unique index violations as :class:`DuplicateActiveRecord`."""

    try:
        yield
    except psycopg2.errors.UniqueViolation as exc:
        constraint = getattr(exc.diag, "constraint_name", None) or "unique"
        raise DuplicateActiveRecord(constraint) from exc
