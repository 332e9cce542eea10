"""PostgreSQL persistence for gym credentials and check-in sessions."""
from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional, Sequence

import psycopg2.extras
from psycopg2.extensions import connection as PgConnection
from psycopg2.extensions import cursor as PgCursor

from ...db import managed_connection, translate_unique_violation
from ..records import RecordState
from .models import CheckInSession, CheckInStatus, GymCredential

_CREDENTIAL_COLUMNS = """
    credential_id, gym_id, token, is_active, expires_at, is_one_time, used_at,
    record_state, created_at, updated_at
"""

_CHECKIN_COLUMNS = """
    check_in_id, user_id, gym_id, check_in_time, check_out_time, status, notes,
    record_state, created_at, updated_at
"""


def _row_to_credential(row: dict) -> GymCredential:
    return GymCredential(
        credential_id=str(row["credential_id"]),
        gym_id=str(row["gym_id"]),
        token=row["token"],
        is_active=bool(row["is_active"]),
        expires_at=row.get("expires_at"),
        is_one_time=bool(row.get("is_one_time")),
        used_at=row.get("used_at"),
        record_state=RecordState(row["record_state"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_session(row: dict) -> CheckInSession:
    return CheckInSession(
        check_in_id=str(row["check_in_id"]),
        user_id=row["user_id"],
        gym_id=str(row["gym_id"]),
        check_in_time=row["check_in_time"],
        check_out_time=row.get("check_out_time"),
        status=CheckInStatus(row["status"]),
        notes=row.get("notes"),
        record_state=RecordState(row["record_state"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class _CursorMixin:
    _conn: Optional[PgConnection]

    @contextmanager
    def _cursor(self) -> Iterator[PgCursor]:
        with managed_connection(self._conn) as (connection, _managed):
            cursor = connection.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
            try:
                yield cursor
            finally:
                cursor.close()


class PostgresCredentialRepository(_CursorMixin):
    """Credential storage backed by ``gym_credentials``."""

    def __init__(self, *, conn: Optional[PgConnection] = None) -> None:
        self._conn = conn

    def lock_gym(self, gym_id: str) -> None:
        """Serialize credential writes for ``gym_id`` until the transaction ends."""

        with self._cursor() as cursor:
            cursor.execute("SELECT pg_advisory_xact_lock(hashtext(%s))", (gym_id,))

    def add(self, credential: GymCredential) -> GymCredential:
        with translate_unique_violation(), self._cursor() as cursor:
            cursor.execute(
                f"""
                INSERT INTO gym_credentials ({_CREDENTIAL_COLUMNS})
                VALUES (%(credential_id)s, %(gym_id)s, %(token)s, %(is_active)s, %(expires_at)s,
                        %(is_one_time)s, %(used_at)s, %(record_state)s, %(created_at)s,
                        %(updated_at)s)
                RETURNING {_CREDENTIAL_COLUMNS}
                """,
                {
                    **credential.model_dump(exclude={"record_state"}),
                    "record_state": credential.record_state.value,
                },
            )
            row = cursor.fetchone()
        return _row_to_credential(row)

    def deactivate_all(self, gym_id: str, *, now: datetime) -> int:
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE gym_credentials
                SET is_active = FALSE, updated_at = %s
                WHERE gym_id = %s AND record_state = %s AND is_active
                """,
                (now, gym_id, RecordState.LIVE.value),
            )
            return cursor.rowcount

    def get_active_for_gym(self, gym_id: str) -> Optional[GymCredential]:
        with self._cursor() as cursor:
            cursor.execute(
                f"""
                SELECT {_CREDENTIAL_COLUMNS} FROM gym_credentials
                WHERE gym_id = %s AND record_state = %s AND is_active
                ORDER BY created_at DESC
                LIMIT 1
                """,
                (gym_id, RecordState.LIVE.value),
            )
            row = cursor.fetchone()
        return _row_to_credential(row) if row else None

    def find_by_token(self, token: str) -> Optional[GymCredential]:
        with self._cursor() as cursor:
            cursor.execute(
                f"""
                SELECT {_CREDENTIAL_COLUMNS} FROM gym_credentials
                WHERE token = %s AND record_state = %s
                LIMIT 1
                """,
                (token, RecordState.LIVE.value),
            )
            row = cursor.fetchone()
        return _row_to_credential(row) if row else None

    def mark_used(self, credential_id: str, *, now: datetime) -> bool:
        """Consume a one-time credential; ``False`` when it was already used."""

        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE gym_credentials
                SET used_at = %s, is_active = FALSE, updated_at = %s
                WHERE credential_id = %s AND record_state = %s AND used_at IS NULL
                """,
                (now, now, credential_id, RecordState.LIVE.value),
            )
            return cursor.rowcount > 0


class PostgresCheckInRepository(_CursorMixin):
    """Check-in session storage backed by ``gym_checkins``."""

    def __init__(self, *, conn: Optional[PgConnection] = None) -> None:
        self._conn = conn

    def add(self, session: CheckInSession) -> CheckInSession:
        with translate_unique_violation(), self._cursor() as cursor:
            cursor.execute(
                f"""
                INSERT INTO gym_checkins ({_CHECKIN_COLUMNS})
                VALUES (%(check_in_id)s, %(user_id)s, %(gym_id)s, %(check_in_time)s,
                        %(check_out_time)s, %(status)s, %(notes)s, %(record_state)s,
                        %(created_at)s, %(updated_at)s)
                RETURNING {_CHECKIN_COLUMNS}
                """,
                {
                    **session.model_dump(exclude={"status", "record_state"}),
                    "status": session.status.value,
                    "record_state": session.record_state.value,
                },
            )
            row = cursor.fetchone()
        return _row_to_session(row)

    def get(self, check_in_id: str) -> Optional[CheckInSession]:
        with self._cursor() as cursor:
            cursor.execute(
                f"""
                SELECT {_CHECKIN_COLUMNS} FROM gym_checkins
                WHERE check_in_id = %s AND record_state = %s
                """,
                (check_in_id, RecordState.LIVE.value),
            )
            row = cursor.fetchone()
        return _row_to_session(row) if row else None

    def find_active_for_user(self, user_id: str) -> Optional[CheckInSession]:
        with self._cursor() as cursor:
            cursor.execute(
                f"""
                SELECT {_CHECKIN_COLUMNS} FROM gym_checkins
                WHERE user_id = %s AND record_state = %s AND status = %s
                LIMIT 1
                """,
                (user_id, RecordState.LIVE.value, CheckInStatus.ACTIVE.value),
            )
            row = cursor.fetchone()
        return _row_to_session(row) if row else None

    def close(self, check_in_id: str, *, now: datetime) -> Optional[CheckInSession]:
        """Close an active session; ``None`` when it was not active anymore."""

        with self._cursor() as cursor:
            cursor.execute(
                f"""
                UPDATE gym_checkins
                SET status = %s, check_out_time = %s, updated_at = %s
                WHERE check_in_id = %s AND record_state = %s AND status = %s
                RETURNING {_CHECKIN_COLUMNS}
                """,
                (
                    CheckInStatus.CHECKED_OUT.value,
                    now,
                    now,
                    check_in_id,
                    RecordState.LIVE.value,
                    CheckInStatus.ACTIVE.value,
                ),
            )
            row = cursor.fetchone()
        return _row_to_session(row) if row else None

    def count_active_for_gym(self, gym_id: str) -> int:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT COUNT(*) AS active_count FROM gym_checkins
                WHERE gym_id = %s AND record_state = %s AND status = %s
                """,
                (gym_id, RecordState.LIVE.value, CheckInStatus.ACTIVE.value),
            )
            row = cursor.fetchone()
        return int(row["active_count"]) if row else 0

    def list_for_user_since(self, user_id: str, *, since: datetime) -> Sequence[CheckInSession]:
        with self._cursor() as cursor:
            cursor.execute(
                f"""
                SELECT {_CHECKIN_COLUMNS} FROM gym_checkins
                WHERE user_id = %s AND record_state = %s AND check_in_time >= %s
                ORDER BY check_in_time DESC
                """,
                (user_id, RecordState.LIVE.value, since),
            )
            rows = cursor.fetchall() or []
        return [_row_to_session(row) for row in rows]
