from __future__ import annotations

from typing import Any

from psycopg.rows import dict_row

from ..db import get_conn, pool

UserRow = dict[str, Any]


async def get_user(user_id: str) -> UserRow | None:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT u.id::text AS id,
                   u.email,
                   p.full_name,
                   p.stripe_customer_id,
                   EXISTS (
                       SELECT 1
                         FROM app.user_roles AS r
                        WHERE r.user_id = u.id
                          AND r.role = 'admin'
                   ) AS is_admin
              FROM auth.users AS u
              LEFT JOIN app.profiles AS p ON p.user_id = u.id
             WHERE u.id = %s
             LIMIT 1
            """,
            (user_id,),
        )
        row = await cur.fetchone()
    if not row:
        return None
    data = dict(row)
    data["is_admin"] = bool(data.get("is_admin"))
    return data


async def get_credentials_by_email(email: str) -> UserRow | None:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT id::text AS id,
                   email,
                   encrypted_password
              FROM auth.users
             WHERE lower(email) = lower(%s)
             LIMIT 1
            """,
            (email,),
        )
        row = await cur.fetchone()
    return dict(row) if row else None


async def create_user(*, email: str, password_hash: str, full_name: str) -> UserRow:
    """Insert the auth user and its profile in one transaction.

    Raises ``psycopg.errors.UniqueViolation`` when the email is taken.
    """
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor(row_factory=dict_row) as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                INSERT INTO auth.users (id, email, encrypted_password, created_at, updated_at)
                VALUES (gen_random_uuid(), lower(%s), %s, now(), now())
                RETURNING id::text AS id, email
                """,
                (email, password_hash),
            )
            user = await cur.fetchone()
            await cur.execute(
                """
                INSERT INTO app.profiles (user_id, email, full_name, created_at, updated_at)
                VALUES (%s, %s, %s, now(), now())
                """,
                (user["id"], user["email"], full_name),
            )
            await conn.commit()
    return {
        "id": user["id"],
        "email": user["email"],
        "full_name": full_name,
        "stripe_customer_id": None,
        "is_admin": False,
    }


__all__ = ["UserRow", "create_user", "get_credentials_by_email", "get_user"]
