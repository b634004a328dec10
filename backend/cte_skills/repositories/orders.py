from __future__ import annotations

from typing import Any

from ..db import get_conn

OrderRow = dict[str, Any]

_COLUMNS = """
       id::text AS id,
       user_id::text AS user_id,
       stripe_checkout_session_id,
       stripe_payment_intent_id,
       stripe_customer_id,
       amount,
       currency,
       status,
       refunded,
       refund_amount,
       product_name,
       created_at
"""


async def get_order_by_payment_intent(payment_intent_id: str) -> OrderRow | None:
    async with get_conn() as cur:
        await cur.execute(
            f"""
            SELECT {_COLUMNS}
              FROM app.orders
             WHERE stripe_payment_intent_id = %s
             LIMIT 1
            """,
            (payment_intent_id,),
        )
        row = await cur.fetchone()
    return dict(row) if row else None


async def create_order(
    *,
    user_id: str,
    stripe_customer_id: str | None,
    stripe_payment_intent_id: str,
    stripe_checkout_session_id: str | None,
    amount: int,
    currency: str,
    status: str,
    product_name: str | None,
) -> OrderRow | None:
    """Insert an order; returns None when one already exists for the payment intent."""
    async with get_conn() as cur:
        await cur.execute(
            f"""
            INSERT INTO app.orders (
                user_id,
                stripe_customer_id,
                stripe_payment_intent_id,
                stripe_checkout_session_id,
                amount,
                currency,
                status,
                product_name,
                created_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, now())
            ON CONFLICT (stripe_payment_intent_id) DO NOTHING
            RETURNING {_COLUMNS}
            """,
            (
                user_id,
                stripe_customer_id,
                stripe_payment_intent_id,
                stripe_checkout_session_id,
                amount,
                currency,
                status,
                product_name,
            ),
        )
        row = await cur.fetchone()
    return dict(row) if row else None


async def mark_refunded(
    payment_intent_id: str,
    *,
    refund_amount: int,
) -> OrderRow | None:
    """Add a refund to the order; status flips to ``refunded`` once fully refunded."""
    async with get_conn() as cur:
        await cur.execute(
            f"""
            UPDATE app.orders
               SET refunded = true,
                   refund_amount = refund_amount + %s,
                   status = CASE
                                WHEN refund_amount + %s >= amount THEN 'refunded'
                                ELSE status
                            END
             WHERE stripe_payment_intent_id = %s
            RETURNING {_COLUMNS}
            """,
            (refund_amount, refund_amount, payment_intent_id),
        )
        row = await cur.fetchone()
    return dict(row) if row else None


async def list_orders(*, limit: int = 100, user_id: str | None = None) -> list[OrderRow]:
    if limit <= 0 or limit > 500:
        limit = 100
    clauses: list[str] = []
    params: list[Any] = []
    if user_id:
        clauses.append("user_id = %s")
        params.append(user_id)
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    params.append(limit)
    async with get_conn() as cur:
        await cur.execute(
            f"""
            SELECT {_COLUMNS}
              FROM app.orders
              {where}
             ORDER BY created_at DESC
             LIMIT %s
            """,
            params,
        )
        rows = await cur.fetchall()
    return [dict(row) for row in rows]


async def count_orders() -> int:
    async with get_conn() as cur:
        await cur.execute("SELECT count(*) AS total FROM app.orders")
        row = await cur.fetchone()
    return int(row["total"]) if row else 0


__all__ = [
    "OrderRow",
    "count_orders",
    "create_order",
    "get_order_by_payment_intent",
    "list_orders",
    "mark_refunded",
]
