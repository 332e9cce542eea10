"""Persistence layer for orders and their supplement lines."""
from __future__ import annotations

from collections import defaultdict
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterable, Iterator, List, Optional, Sequence

import psycopg2.extras
from psycopg2.extensions import connection as PgConnection
from psycopg2.extensions import cursor as PgCursor

from ...db import managed_connection
from ..records import RecordState
from .models import Order, OrderLine, OrderStatus, PaymentMethod

_ORDER_COLUMNS = """
    o.order_id, o.user_id, o.subscription_plan_id, p.name AS subscription_plan_name,
    o.payment_method, o.status, o.total_price, o.note, o.delivery_address,
    o.ordered_at, o.record_state, o.created_at, o.updated_at
"""


def _row_to_line(row: dict) -> OrderLine:
    return OrderLine(
        supplement_id=str(row["supplement_id"]),
        quantity=int(row["quantity"]),
        unit_price=row["unit_price"],
        name=row.get("name"),
    )


def _row_to_order(row: dict, lines: Sequence[OrderLine] = ()) -> Order:
    plan_id = row.get("subscription_plan_id")
    return Order(
        order_id=str(row["order_id"]),
        user_id=row["user_id"],
        lines=tuple(lines),
        subscription_plan_id=str(plan_id) if plan_id else None,
        subscription_plan_name=row.get("subscription_plan_name"),
        payment_method=PaymentMethod(row["payment_method"]),
        status=OrderStatus(row["status"]),
        total_price=row["total_price"],
        note=row.get("note"),
        delivery_address=row.get("delivery_address"),
        ordered_at=row["ordered_at"],
        record_state=RecordState(row["record_state"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class PostgresOrderRepository:
    """Concrete repository persisting orders in PostgreSQL."""

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

    def _load_lines(self, cursor: PgCursor, order_ids: Iterable[str]) -> Dict[str, List[OrderLine]]:
        ids = list(order_ids)
        grouped: Dict[str, List[OrderLine]] = defaultdict(list)
        if not ids:
            return grouped
        cursor.execute(
            """
            SELECT l.order_id, l.supplement_id, l.quantity, l.unit_price, s.name
            FROM order_lines AS l
            LEFT JOIN supplements AS s ON s.id = l.supplement_id
            WHERE l.order_id::text = ANY(%s)
            ORDER BY l.order_id, l.line_no
            """,
            (ids,),
        )
        for row in cursor.fetchall() or []:
            grouped[str(row["order_id"])].append(_row_to_line(row))
        return grouped

    def _fetch_one(self, cursor: PgCursor) -> Optional[Order]:
        row = cursor.fetchone()
        if not row:
            return None
        lines = self._load_lines(cursor, [str(row["order_id"])])
        return _row_to_order(row, lines.get(str(row["order_id"]), ()))

    def _fetch_many(self, cursor: PgCursor) -> List[Order]:
        rows = cursor.fetchall() or []
        lines = self._load_lines(cursor, [str(row["order_id"]) for row in rows])
        return [_row_to_order(row, lines.get(str(row["order_id"]), ())) for row in rows]

    def add_order(self, order: Order) -> Order:
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO orders (
                    order_id, user_id, subscription_plan_id, payment_method, status,
                    total_price, note, delivery_address, ordered_at, record_state,
                    created_at, updated_at
                )
                VALUES (%(order_id)s, %(user_id)s, %(subscription_plan_id)s, %(payment_method)s,
                        %(status)s, %(total_price)s, %(note)s, %(delivery_address)s,
                        %(ordered_at)s, %(record_state)s, %(created_at)s, %(updated_at)s)
                """,
                {
                    "order_id": order.order_id,
                    "user_id": order.user_id,
                    "subscription_plan_id": order.subscription_plan_id,
                    "payment_method": order.payment_method.value,
                    "status": order.status.value,
                    "total_price": order.total_price,
                    "note": order.note,
                    "delivery_address": order.delivery_address,
                    "ordered_at": order.ordered_at,
                    "record_state": order.record_state.value,
                    "created_at": order.created_at,
                    "updated_at": order.updated_at,
                },
            )
            if order.lines:
                psycopg2.extras.execute_values(
                    cursor,
                    """
                    INSERT INTO order_lines (order_id, line_no, supplement_id, quantity, unit_price)
                    VALUES %s
                    """,
                    [
                        (order.order_id, index, line.supplement_id, line.quantity, line.unit_price)
                        for index, line in enumerate(order.lines, start=1)
                    ],
                )
        return order

    def get_order(self, order_id: str) -> Optional[Order]:
        with self._cursor() as cursor:
            cursor.execute(
                f"""
                SELECT {_ORDER_COLUMNS}
                FROM orders AS o
                LEFT JOIN subscription_plans AS p ON p.id = o.subscription_plan_id
                WHERE o.order_id = %s AND o.record_state = %s
                LIMIT 1
                """,
                (order_id, RecordState.LIVE.value),
            )
            return self._fetch_one(cursor)

    def mark_delivered(self, order_id: str, *, now: datetime) -> Optional[Order]:
        """Flip a live order to delivered unless another request already did."""

        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE orders
                SET status = %s, updated_at = %s
                WHERE order_id = %s AND record_state = %s AND status NOT IN (%s, %s)
                RETURNING order_id
                """,
                (
                    OrderStatus.DELIVERED.value,
                    now,
                    order_id,
                    RecordState.LIVE.value,
                    OrderStatus.DELIVERED.value,
                    OrderStatus.CANCELLED.value,
                ),
            )
            if cursor.fetchone() is None:
                return None
        return self.get_order(order_id)

    def update_status(self, order_id: str, *, status: OrderStatus, now: datetime) -> Optional[Order]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE orders
                SET status = %s, updated_at = %s
                WHERE order_id = %s AND record_state = %s AND status <> %s
                RETURNING order_id
                """,
                (status.value, now, order_id, RecordState.LIVE.value, OrderStatus.DELIVERED.value),
            )
            if cursor.fetchone() is None:
                return None
        return self.get_order(order_id)

    def soft_delete(self, order_id: str, *, now: datetime) -> bool:
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE orders
                SET record_state = %s, updated_at = %s
                WHERE order_id = %s AND record_state = %s
                """,
                (RecordState.DELETED.value, now, order_id, RecordState.LIVE.value),
            )
            return cursor.rowcount > 0

    def list_for_user(self, user_id: str) -> Sequence[Order]:
        with self._cursor() as cursor:
            cursor.execute(
                f"""
                SELECT {_ORDER_COLUMNS}
                FROM orders AS o
                LEFT JOIN subscription_plans AS p ON p.id = o.subscription_plan_id
                WHERE o.user_id = %s AND o.record_state = %s
                ORDER BY o.ordered_at DESC
                """,
                (user_id, RecordState.LIVE.value),
            )
            return self._fetch_many(cursor)

    def list_sales(
        self,
        *,
        statuses: Sequence[OrderStatus],
        date_from: Optional[datetime],
        date_to: Optional[datetime],
    ) -> Sequence[Order]:
        clauses = ["o.record_state = %s", "o.status = ANY(%s)"]
        params: List[object] = [RecordState.LIVE.value, [status.value for status in statuses]]
        if date_from is not None:
            clauses.append("o.ordered_at >= %s")
            params.append(date_from)
        if date_to is not None:
            clauses.append("o.ordered_at <= %s")
            params.append(date_to)

        with self._cursor() as cursor:
            cursor.execute(
                f"""
                SELECT {_ORDER_COLUMNS}
                FROM orders AS o
                LEFT JOIN subscription_plans AS p ON p.id = o.subscription_plan_id
                WHERE {" AND ".join(clauses)}
                ORDER BY o.ordered_at DESC
                """,
                params,
            )
            return self._fetch_many(cursor)

    def reserve_stock(self, supplement_id: str, quantity: int, *, now: datetime) -> bool:
        """Decrement stock when enough units remain; ``False`` otherwise."""

        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE supplements
                SET stock_quantity = stock_quantity - %s, updated_at = %s
                WHERE id = %s AND is_active AND NOT is_deleted AND stock_quantity >= %s
                """,
                (quantity, now, supplement_id, quantity),
            )
            return cursor.rowcount > 0
