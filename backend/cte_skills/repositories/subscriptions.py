from __future__ import annotations

from datetime import datetime
from typing import Any

from ..db import get_conn

SubscriptionRow = dict[str, Any]

_COLUMNS = """
       id::text AS id,
       user_id::text AS user_id,
       stripe_subscription_id,
       stripe_customer_id,
       status,
       price_id,
       product_id,
       current_period_start,
       current_period_end,
       cancel_at_period_end,
       created_at,
       updated_at
"""


async def upsert_subscription(
    *,
    user_id: str,
    stripe_subscription_id: str,
    stripe_customer_id: str | None,
    status: str | None,
    price_id: str | None,
    product_id: str | None,
    current_period_start: datetime | None,
    current_period_end: datetime | None,
    cancel_at_period_end: bool,
) -> SubscriptionRow:
    async with get_conn() as cur:
        await cur.execute(
            f"""
            INSERT INTO app.subscriptions (
                user_id,
                stripe_subscription_id,
                stripe_customer_id,
                status,
                price_id,
                product_id,
                current_period_start,
                current_period_end,
                cancel_at_period_end,
                created_at,
                updated_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, now(), now())
            ON CONFLICT (stripe_subscription_id)
            DO UPDATE SET user_id = EXCLUDED.user_id,
                          stripe_customer_id = EXCLUDED.stripe_customer_id,
                          status = EXCLUDED.status,
                          price_id = EXCLUDED.price_id,
                          product_id = EXCLUDED.product_id,
                          current_period_start = EXCLUDED.current_period_start,
                          current_period_end = EXCLUDED.current_period_end,
                          cancel_at_period_end = EXCLUDED.cancel_at_period_end,
                          updated_at = now()
            RETURNING {_COLUMNS}
            """,
            (
                user_id,
                stripe_subscription_id,
                stripe_customer_id,
                status,
                price_id,
                product_id,
                current_period_start,
                current_period_end,
                cancel_at_period_end,
            ),
        )
        row = await cur.fetchone()
    return dict(row)


async def get_active_subscription(user_id: str) -> SubscriptionRow | None:
    """Latest active/trialing mirror row whose period has not ended."""
    async with get_conn() as cur:
        await cur.execute(
            f"""
            SELECT {_COLUMNS}
              FROM app.subscriptions
             WHERE user_id = %s
               AND status IN ('active', 'trialing')
               AND (current_period_end IS NULL OR current_period_end > now())
             ORDER BY current_period_end DESC NULLS LAST
             LIMIT 1
            """,
            (user_id,),
        )
        row = await cur.fetchone()
    return dict(row) if row else None


async def update_cancellation(
    stripe_subscription_id: str,
    *,
    status: str | None,
    cancel_at_period_end: bool,
    current_period_end: datetime | None,
) -> SubscriptionRow | None:
    async with get_conn() as cur:
        await cur.execute(
            f"""
            UPDATE app.subscriptions
               SET status = COALESCE(%s, status),
                   cancel_at_period_end = %s,
                   current_period_end = COALESCE(%s, current_period_end),
                   updated_at = now()
             WHERE stripe_subscription_id = %s
            RETURNING {_COLUMNS}
            """,
            (status, cancel_at_period_end, current_period_end, stripe_subscription_id),
        )
        row = await cur.fetchone()
    return dict(row) if row else None


async def count_active_subscriptions() -> int:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT count(*) AS total
              FROM app.subscriptions
             WHERE status IN ('active', 'trialing')
            """
        )
        row = await cur.fetchone()
    return int(row["total"]) if row else 0


__all__ = [
    "SubscriptionRow",
    "count_active_subscriptions",
    "get_active_subscription",
    "update_cancellation",
    "upsert_subscription",
]
