from __future__ import annotations

from typing import Any, Mapping

from ..db import get_conn

VideoRow = dict[str, Any]

_UPDATABLE = (
    "title",
    "description",
    "thumbnail_url",
    "video_url",
    "duration",
    "pathway_id",
    "category_id",
    "is_free",
    "is_active",
)

_COLUMNS = """
       id::text AS id,
       title,
       description,
       thumbnail_url,
       video_url,
       duration,
       pathway_id::text AS pathway_id,
       category_id::text AS category_id,
       is_free,
       is_active,
       view_count,
       created_at
"""


async def list_videos(
    *,
    pathway_id: str | None = None,
    category_id: str | None = None,
    search: str | None = None,
    active_only: bool = True,
    exclude_id: str | None = None,
    limit: int = 50,
) -> list[VideoRow]:
    clauses: list[str] = []
    params: list[Any] = []
    if active_only:
        clauses.append("is_active")
    if pathway_id:
        clauses.append("pathway_id = %s")
        params.append(pathway_id)
    if category_id:
        clauses.append("category_id = %s")
        params.append(category_id)
    if exclude_id:
        clauses.append("id <> %s")
        params.append(exclude_id)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        clauses.append("(title ILIKE %s OR description ILIKE %s)")
        params.extend([pattern, pattern])
    if limit <= 0 or limit > 200:
        limit = 50
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    params.append(limit)
    async with get_conn() as cur:
        await cur.execute(
            f"""
            SELECT {_COLUMNS}
              FROM app.videos
              {where}
             ORDER BY created_at DESC
             LIMIT %s
            """,
            params,
        )
        rows = await cur.fetchall()
    return [dict(row) for row in rows]


async def get_video(video_id: str) -> VideoRow | None:
    async with get_conn() as cur:
        await cur.execute(
            f"SELECT {_COLUMNS} FROM app.videos WHERE id = %s LIMIT 1",
            (video_id,),
        )
        row = await cur.fetchone()
    return dict(row) if row else None


async def create_video(payload: Mapping[str, Any]) -> VideoRow:
    async with get_conn() as cur:
        await cur.execute(
            f"""
            INSERT INTO app.videos (
                title,
                description,
                thumbnail_url,
                video_url,
                duration,
                pathway_id,
                category_id,
                is_free,
                is_active,
                created_at,
                updated_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, now(), now())
            RETURNING {_COLUMNS}
            """,
            (
                payload["title"],
                payload.get("description"),
                payload.get("thumbnail_url"),
                payload.get("video_url"),
                payload.get("duration"),
                payload.get("pathway_id") or None,
                payload.get("category_id") or None,
                bool(payload.get("is_free", False)),
                bool(payload.get("is_active", True)),
            ),
        )
        row = await cur.fetchone()
    return dict(row)


async def update_video(video_id: str, payload: Mapping[str, Any]) -> VideoRow | None:
    updates: list[str] = []
    params: list[Any] = []
    for key in _UPDATABLE:
        if key in payload:
            value = payload[key]
            if key in {"pathway_id", "category_id"} and value == "":
                value = None
            updates.append(f"{key} = %s")
            params.append(value)

    if not updates:
        return await get_video(video_id)

    params.append(video_id)
    async with get_conn() as cur:
        await cur.execute(
            f"""
            UPDATE app.videos
               SET {', '.join(updates)},
                   updated_at = now()
             WHERE id = %s
            RETURNING {_COLUMNS}
            """,
            params,
        )
        row = await cur.fetchone()
    return dict(row) if row else None


async def delete_video(video_id: str) -> bool:
    async with get_conn() as cur:
        await cur.execute("DELETE FROM app.videos WHERE id = %s RETURNING id", (video_id,))
        row = await cur.fetchone()
    return row is not None


async def increment_view_count(video_id: str) -> None:
    async with get_conn() as cur:
        await cur.execute(
            "UPDATE app.videos SET view_count = view_count + 1 WHERE id = %s",
            (video_id,),
        )


async def count_videos() -> int:
    async with get_conn() as cur:
        await cur.execute("SELECT count(*) AS total FROM app.videos")
        row = await cur.fetchone()
    return int(row["total"]) if row else 0


__all__ = [
    "VideoRow",
    "count_videos",
    "create_video",
    "delete_video",
    "get_video",
    "increment_view_count",
    "list_videos",
    "update_video",
]
