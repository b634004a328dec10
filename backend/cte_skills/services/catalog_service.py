"""Catalog reads with playback gating.

A video is playable when it is free, or when the caller holds a current
access grant for its pathway, or when the caller has a local subscription
that is active or trialing with a period end in the future. Anything else is
returned locked and without its media URL.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from ..repositories import categories as categories_repo
from ..repositories import pathways as pathways_repo
from ..repositories import subscriptions as subscriptions_repo
from ..repositories import video_access as video_access_repo
from ..repositories import videos as videos_repo
from ..schemas.catalog import (
    Category,
    Pathway,
    PathwayDetailResponse,
    VideoDetailResponse,
    VideoListResponse,
    VideoSummary,
)

logger = logging.getLogger(__name__)

RELATED_VIDEOS_LIMIT = 4


@dataclass
class PlaybackAccess:
    subscribed: bool = False
    pathway_ids: set[str] = field(default_factory=set)

    def can_play(self, video: Mapping[str, Any]) -> bool:
        if video.get("is_free"):
            return True
        if self.subscribed:
            return True
        pathway_id = video.get("pathway_id")
        return bool(pathway_id) and pathway_id in self.pathway_ids


async def playback_access(user: Mapping[str, Any] | None) -> PlaybackAccess:
    if not user:
        return PlaybackAccess()
    user_id = str(user["id"])
    subscription = await subscriptions_repo.get_active_subscription(user_id)
    if subscription:
        return PlaybackAccess(subscribed=True)
    return PlaybackAccess(pathway_ids=await video_access_repo.list_accessible_pathway_ids(user_id))


def present_video(video: Mapping[str, Any], access: PlaybackAccess) -> VideoSummary:
    playable = access.can_play(video)
    return VideoSummary(
        id=video["id"],
        title=video["title"],
        description=video.get("description"),
        thumbnail_url=video.get("thumbnail_url"),
        duration=video.get("duration"),
        pathway_id=video.get("pathway_id"),
        category_id=video.get("category_id"),
        is_free=bool(video.get("is_free")),
        view_count=int(video.get("view_count") or 0),
        created_at=video.get("created_at"),
        locked=not playable,
        video_url=video.get("video_url") if playable else None,
    )


async def list_videos(
    user: Mapping[str, Any] | None,
    *,
    pathway_id: str | None = None,
    category_id: str | None = None,
    search: str | None = None,
    limit: int = 50,
) -> VideoListResponse:
    rows = await videos_repo.list_videos(
        pathway_id=pathway_id,
        category_id=category_id,
        search=search,
        limit=limit,
    )
    access = await playback_access(user)
    return VideoListResponse(items=[present_video(row, access) for row in rows])


async def get_video_detail(user: Mapping[str, Any] | None, video_id: str) -> VideoDetailResponse | None:
    video = await videos_repo.get_video(video_id)
    if not video or not video.get("is_active"):
        return None

    access = await playback_access(user)
    summary = present_video(video, access)
    if not summary.locked:
        await videos_repo.increment_view_count(video_id)

    pathway = None
    related: list[VideoSummary] = []
    if video.get("pathway_id"):
        pathway_row = await pathways_repo.get_pathway(video["pathway_id"])
        pathway = Pathway(**pathway_row) if pathway_row else None
        related_rows = await videos_repo.list_videos(
            pathway_id=video["pathway_id"],
            exclude_id=video_id,
            limit=RELATED_VIDEOS_LIMIT,
        )
        related = [present_video(row, access) for row in related_rows]

    category = None
    if video.get("category_id"):
        category_row = await categories_repo.get_category(video["category_id"])
        category = Category(**category_row) if category_row else None

    return VideoDetailResponse(video=summary, pathway=pathway, category=category, related=related)


async def get_pathway_detail(user: Mapping[str, Any] | None, pathway_id: str) -> PathwayDetailResponse | None:
    pathway = await pathways_repo.get_pathway(pathway_id)
    if not pathway or not pathway.get("is_active"):
        return None
    rows = await videos_repo.list_videos(pathway_id=pathway_id, limit=200)
    access = await playback_access(user)
    return PathwayDetailResponse(
        pathway=Pathway(**pathway),
        videos=[present_video(row, access) for row in rows],
    )


__all__ = [
    "PlaybackAccess",
    "get_pathway_detail",
    "get_video_detail",
    "list_videos",
    "playback_access",
    "present_video",
]
