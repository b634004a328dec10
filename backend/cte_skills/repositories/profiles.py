from __future__ import annotations

from ..db import get_conn


async def set_stripe_customer_id(user_id: str, customer_id: str) -> None:
    async with get_conn() as cur:
        await cur.execute(
            """
            UPDATE app.profiles
               SET stripe_customer_id = %s,
                   updated_at = now()
             WHERE user_id = %s
            """,
            (customer_id, user_id),
        )


__all__ = ["set_stripe_customer_id"]
