from __future__ import annotations

from ..db import get_conn

ADMIN_ROLE = "admin"


async def has_role(user_id: str, role: str) -> bool:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT 1
              FROM app.user_roles
             WHERE user_id = %s
               AND role = %s
             LIMIT 1
            """,
            (user_id, role),
        )
        row = await cur.fetchone()
    return row is not None


async def is_admin(user_id: str) -> bool:
    return await has_role(user_id, ADMIN_ROLE)


async def grant_role(user_id: str, role: str) -> None:
    async with get_conn() as cur:
        await cur.execute(
            """
            INSERT INTO app.user_roles (user_id, role, created_at)
            VALUES (%s, %s, now())
            ON CONFLICT (user_id, role) DO NOTHING
            """,
            (user_id, role),
        )


async def revoke_role(user_id: str, role: str) -> None:
    async with get_conn() as cur:
        await cur.execute(
            "DELETE FROM app.user_roles WHERE user_id = %s AND role = %s",
            (user_id, role),
        )


__all__ = ["ADMIN_ROLE", "grant_role", "has_role", "is_admin", "revoke_role"]
