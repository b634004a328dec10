from __future__ import annotations

from typing import Any, Mapping

from ..db import get_conn

PathwayRow = dict[str, Any]

_UPDATABLE = ("title", "description", "icon", "color", "is_active")

_SELECT = """
    SELECT p.id::text AS id,
           p.title,
           p.description,
           p.icon,
           p.color,
           p.is_active,
           p.created_at,
           (
               SELECT count(*)
                 FROM app.videos AS v
                WHERE v.pathway_id = p.id
                  AND v.is_active
           ) AS video_count
      FROM app.pathways AS p
"""


async def list_pathways(*, active_only: bool = True) -> list[PathwayRow]:
    where = "WHERE p.is_active" if active_only else ""
    order = "ORDER BY p.title" if active_only else "ORDER BY p.created_at DESC"
    async with get_conn() as cur:
        await cur.execute(f"{_SELECT} {where} {order}")
        rows = await cur.fetchall()
    return [dict(row) for row in rows]


async def list_active_pathway_ids() -> list[str]:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT id::text AS id
              FROM app.pathways
             WHERE is_active
             ORDER BY created_at
            """
        )
        rows = await cur.fetchall()
    return [row["id"] for row in rows]


async def get_pathway(pathway_id: str) -> PathwayRow | None:
    async with get_conn() as cur:
        await cur.execute(f"{_SELECT} WHERE p.id = %s LIMIT 1", (pathway_id,))
        row = await cur.fetchone()
    return dict(row) if row else None


async def create_pathway(payload: Mapping[str, Any]) -> PathwayRow:
    async with get_conn() as cur:
        await cur.execute(
            """
            INSERT INTO app.pathways (title, description, icon, color, is_active, created_at, updated_at)
            VALUES (%s, %s, %s, %s, %s, now(), now())
            RETURNING id::text AS id
            """,
            (
                payload["title"],
                payload.get("description"),
                payload.get("icon"),
                payload.get("color"),
                bool(payload.get("is_active", True)),
            ),
        )
        row = await cur.fetchone()
    created = await get_pathway(row["id"])
    return created or {**payload, "id": row["id"], "video_count": 0}


async def update_pathway(pathway_id: str, payload: Mapping[str, Any]) -> PathwayRow | None:
    updates: list[str] = []
    params: list[Any] = []
    for key in _UPDATABLE:
        if key in payload:
            updates.append(f"{key} = %s")
            params.append(payload[key])

    if not updates:
        return await get_pathway(pathway_id)

    params.append(pathway_id)
    async with get_conn() as cur:
        await cur.execute(
            f"""
            UPDATE app.pathways
               SET {', '.join(updates)},
                   updated_at = now()
             WHERE id = %s
            RETURNING id
            """,
            params,
        )
        row = await cur.fetchone()
    if not row:
        return None
    return await get_pathway(pathway_id)


async def delete_pathway(pathway_id: str) -> bool:
    """Delete a pathway. Videos keep existing with ``pathway_id`` set to NULL."""
    async with get_conn() as cur:
        await cur.execute(
            "DELETE FROM app.pathways WHERE id = %s RETURNING id",
            (pathway_id,),
        )
        row = await cur.fetchone()
    return row is not None


async def count_pathways() -> int:
    async with get_conn() as cur:
        await cur.execute("SELECT count(*) AS total FROM app.pathways")
        row = await cur.fetchone()
    return int(row["total"]) if row else 0


__all__ = [
    "PathwayRow",
    "count_pathways",
    "create_pathway",
    "delete_pathway",
    "get_pathway",
    "list_active_pathway_ids",
    "list_pathways",
    "update_pathway",
]
