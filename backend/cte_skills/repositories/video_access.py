from __future__ import annotations

from datetime import datetime
from typing import Any

from ..db import get_conn

AccessRow = dict[str, Any]


async def upsert_access_grant(
    *,
    user_id: str,
    pathway_id: str,
    expires_at: datetime | None,
    access_type: str = "subscription",
) -> AccessRow:
    """Insert the (user, pathway) grant or move its expiry, in one statement."""
    async with get_conn() as cur:
        await cur.execute(
            """
            INSERT INTO app.video_access (
                user_id,
                pathway_id,
                access_type,
                expires_at,
                created_at,
                updated_at
            )
            VALUES (%s, %s, %s, %s, now(), now())
            ON CONFLICT (user_id, pathway_id)
            DO UPDATE SET expires_at = EXCLUDED.expires_at,
                          updated_at = now()
            RETURNING id::text AS id,
                      user_id::text AS user_id,
                      pathway_id::text AS pathway_id,
                      access_type,
                      expires_at,
                      (xmax = 0) AS inserted
            """,
            (user_id, pathway_id, access_type, expires_at),
        )
        row = await cur.fetchone()
    return dict(row)


async def list_accessible_pathway_ids(user_id: str) -> set[str]:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT pathway_id::text AS pathway_id
              FROM app.video_access
             WHERE user_id = %s
               AND (expires_at IS NULL OR expires_at > now())
            """,
            (user_id,),
        )
        rows = await cur.fetchall()
    return {row["pathway_id"] for row in rows}


__all__ = [
    "AccessRow",
    "list_accessible_pathway_ids",
    "upsert_access_grant",
]
