"""PostgreSQL persistence for memberships."""
from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, Iterator, Optional, Sequence

import psycopg2.extras
from psycopg2.extensions import connection as PgConnection
from psycopg2.extensions import cursor as PgCursor

from ...db import managed_connection, translate_unique_violation
from ..records import RecordState
from .models import Membership

_COLUMNS = """
    membership_id, user_id, subscription_plan_id, order_id, start_date, end_date,
    is_active, record_state, created_at, updated_at
"""


def _row_to_membership(row: dict) -> Membership:
    order_id = row.get("order_id")
    return Membership(
        membership_id=str(row["membership_id"]),
        user_id=row["user_id"],
        subscription_plan_id=str(row["subscription_plan_id"]),
        order_id=str(order_id) if order_id else None,
        start_date=row["start_date"],
        end_date=row["end_date"],
        is_active=bool(row["is_active"]),
        record_state=RecordState(row["record_state"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class PostgresMembershipRepository:
    """Membership storage backed by the ``memberships`` table."""

    def __init__(self, *, conn: Optional[PgConnection] = None) -> None:
        self._conn = conn

    @contextmanager
    def _cursor(self) -> Iterator[PgCursor]:
        with managed_connection(self._conn) as (connection, _managed):
            cursor = connection.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
            try:
                yield cursor
            finally:
                cursor.close()

    def add(self, membership: Membership) -> Membership:
        with translate_unique_violation(), self._cursor() as cursor:
            cursor.execute(
                f"""
                INSERT INTO memberships ({_COLUMNS})
                VALUES (%(membership_id)s, %(user_id)s, %(subscription_plan_id)s, %(order_id)s,
                        %(start_date)s, %(end_date)s, %(is_active)s, %(record_state)s,
                        %(created_at)s, %(updated_at)s)
                RETURNING {_COLUMNS}
                """,
                {
                    **membership.model_dump(exclude={"record_state"}),
                    "record_state": membership.record_state.value,
                },
            )
            row = cursor.fetchone()
        return _row_to_membership(row)

    def get(self, membership_id: str) -> Optional[Membership]:
        with self._cursor() as cursor:
            cursor.execute(
                f"""
                SELECT {_COLUMNS} FROM memberships
                WHERE membership_id = %s AND record_state = %s
                """,
                (membership_id, RecordState.LIVE.value),
            )
            row = cursor.fetchone()
        return _row_to_membership(row) if row else None

    def find_active_unexpired(self, user_id: str, *, now: datetime) -> Optional[Membership]:
        with self._cursor() as cursor:
            cursor.execute(
                f"""
                SELECT {_COLUMNS} FROM memberships
                WHERE user_id = %s AND record_state = %s AND is_active
                  AND start_date <= %s AND end_date > %s
                ORDER BY start_date DESC
                LIMIT 1
                """,
                (user_id, RecordState.LIVE.value, now, now),
            )
            row = cursor.fetchone()
        return _row_to_membership(row) if row else None

    def latest_for_user(self, user_id: str) -> Optional[Membership]:
        with self._cursor() as cursor:
            cursor.execute(
                f"""
                SELECT {_COLUMNS} FROM memberships
                WHERE user_id = %s AND record_state = %s
                ORDER BY is_active DESC, start_date DESC
                LIMIT 1
                """,
                (user_id, RecordState.LIVE.value),
            )
            row = cursor.fetchone()
        return _row_to_membership(row) if row else None

    def list_for_user(self, user_id: str) -> Sequence[Membership]:
        with self._cursor() as cursor:
            cursor.execute(
                f"""
                SELECT {_COLUMNS} FROM memberships
                WHERE user_id = %s AND record_state = %s
                ORDER BY start_date DESC
                """,
                (user_id, RecordState.LIVE.value),
            )
            rows = cursor.fetchall() or []
        return [_row_to_membership(row) for row in rows]

    def close_active(self, user_id: str, *, now: datetime) -> Sequence[Membership]:
        """Deactivate every active membership of ``user_id``, capping its end at ``now``."""

        with self._cursor() as cursor:
            cursor.execute(
                f"""
                UPDATE memberships
                SET is_active = FALSE, end_date = LEAST(end_date, %s), updated_at = %s
                WHERE user_id = %s AND record_state = %s AND is_active
                RETURNING {_COLUMNS}
                """,
                (now, now, user_id, RecordState.LIVE.value),
            )
            rows = cursor.fetchall() or []
        return [_row_to_membership(row) for row in rows]

    def soft_delete(self, membership_id: str, *, now: datetime) -> bool:
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE memberships
                SET record_state = %s, is_active = FALSE, updated_at = %s
                WHERE membership_id = %s AND record_state = %s
                """,
                (RecordState.DELETED.value, now, membership_id, RecordState.LIVE.value),
            )
            return cursor.rowcount > 0

    def has_current_for_plans(self, user_id: str, plan_ids: Iterable[str], *, now: datetime) -> bool:
        ids = sorted(set(plan_ids))
        if not ids:
            return False
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT 1 FROM memberships
                WHERE user_id = %s AND record_state = %s AND is_active
                  AND start_date <= %s AND end_date > %s
                  AND subscription_plan_id::text = ANY(%s)
                LIMIT 1
                """,
                (user_id, RecordState.LIVE.value, now, now, ids),
            )
            return cursor.fetchone() is not None
