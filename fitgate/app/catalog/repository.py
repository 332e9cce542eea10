"""Catalog store protocol and its PostgreSQL implementation."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterable, Iterator, Optional, Protocol, Sequence

import psycopg2.extras
from psycopg2.extensions import connection as PgConnection
from psycopg2.extensions import cursor as PgCursor

from ...db import managed_connection
from .models import BillingCycle, Gym, Supplement, SubscriptionPlan


class CatalogStore(Protocol):
    """Read-only source for gyms, plans and supplements."""

    def get_gym(self, gym_id: str) -> Optional[Gym]:
        ...

    def get_plan(self, plan_id: str) -> Optional[SubscriptionPlan]:
        ...

    def get_supplements(self, supplement_ids: Iterable[str]) -> Sequence[Supplement]:
        ...


def _row_to_plan(row: dict) -> SubscriptionPlan:
    return SubscriptionPlan(
        plan_id=str(row["plan_id"]),
        name=row["name"],
        plan_type=row.get("plan_type"),
        billing_cycle=BillingCycle(row["billing_cycle"]),
        price=row["price"],
    )


def _row_to_supplement(row: dict) -> Supplement:
    return Supplement(
        supplement_id=str(row["supplement_id"]),
        name=row["name"],
        price=row["price"],
        stock_quantity=int(row["stock_quantity"]),
        is_active=bool(row["is_active"]),
    )


class PostgresCatalogStore:
    """Catalog reads against the tables owned by the catalog service."""

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

    def get_gym(self, gym_id: str) -> Optional[Gym]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT g.id AS gym_id, g.name, g.is_active,
                       COALESCE(
                           ARRAY_AGG(gp.subscription_plan_id::text)
                               FILTER (WHERE p.id IS NOT NULL AND NOT p.is_deleted),
                           '{}'
                       ) AS plan_ids
                FROM gyms AS g
                LEFT JOIN gym_subscription_plans AS gp ON gp.gym_id = g.id
                LEFT JOIN subscription_plans AS p ON p.id = gp.subscription_plan_id
                WHERE g.id::text = %s AND NOT g.is_deleted
                GROUP BY g.id, g.name, g.is_active
                """,
                (gym_id,),
            )
            row = cursor.fetchone()
        if not row:
            return None
        return Gym(
            gym_id=str(row["gym_id"]),
            name=row["name"],
            is_active=bool(row["is_active"]),
            plan_ids=frozenset(row["plan_ids"] or ()),
        )

    def get_plan(self, plan_id: str) -> Optional[SubscriptionPlan]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT id AS plan_id, name, type AS plan_type, billing_cycle, price
                FROM subscription_plans
                WHERE id::text = %s AND NOT is_deleted
                LIMIT 1
                """,
                (plan_id,),
            )
            row = cursor.fetchone()
        return _row_to_plan(row) if row else None

    def get_supplements(self, supplement_ids: Iterable[str]) -> Sequence[Supplement]:
        ids = sorted(set(supplement_ids))
        if not ids:
            return []
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT id AS supplement_id, name, price, stock_quantity, is_active
                FROM supplements
                WHERE id::text = ANY(%s) AND NOT is_deleted AND is_active
                """,
                (ids,),
            )
            rows = cursor.fetchall() or []
        return [_row_to_supplement(row) for row in rows]
