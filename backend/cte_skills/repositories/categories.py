from __future__ import annotations

import re
from typing import Any, Mapping

from ..db import get_conn

CategoryRow = dict[str, Any]

_SLUG_RE = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    return _SLUG_RE.sub("-", name.lower()).strip("-")


async def list_categories() -> list[CategoryRow]:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT id::text AS id, name, slug, created_at
              FROM app.video_categories
             ORDER BY name
            """
        )
        rows = await cur.fetchall()
    return [dict(row) for row in rows]


async def get_category(category_id: str) -> CategoryRow | None:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT id::text AS id, name, slug, created_at
              FROM app.video_categories
             WHERE id = %s
             LIMIT 1
            """,
            (category_id,),
        )
        row = await cur.fetchone()
    return dict(row) if row else None


async def create_category(payload: Mapping[str, Any]) -> CategoryRow:
    name = payload["name"]
    async with get_conn() as cur:
        await cur.execute(
            """
            INSERT INTO app.video_categories (name, slug, created_at)
            VALUES (%s, %s, now())
            RETURNING id::text AS id, name, slug, created_at
            """,
            (name, payload.get("slug") or slugify(name)),
        )
        row = await cur.fetchone()
    return dict(row)


async def update_category(category_id: str, payload: Mapping[str, Any]) -> CategoryRow | None:
    updates: list[str] = []
    params: list[Any] = []
    for key in ("name", "slug"):
        if payload.get(key) is not None:
            updates.append(f"{key} = %s")
            params.append(payload[key])
    if not updates:
        return await get_category(category_id)

    params.append(category_id)
    async with get_conn() as cur:
        await cur.execute(
            f"""
            UPDATE app.video_categories
               SET {', '.join(updates)}
             WHERE id = %s
            RETURNING id::text AS id, name, slug, created_at
            """,
            params,
        )
        row = await cur.fetchone()
    return dict(row) if row else None


async def delete_category(category_id: str) -> bool:
    async with get_conn() as cur:
        await cur.execute(
            "DELETE FROM app.video_categories WHERE id = %s RETURNING id",
            (category_id,),
        )
        row = await cur.fetchone()
    return row is not None


async def count_categories() -> int:
    async with get_conn() as cur:
        await cur.execute("SELECT count(*) AS total FROM app.video_categories")
        row = await cur.fetchone()
    return int(row["total"]) if row else 0


__all__ = [
    "CategoryRow",
    "count_categories",
    "create_category",
    "delete_category",
    "get_category",
    "list_categories",
    "slugify",
    "update_category",
]
