from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, status

from ..auth import OptionalCurrentUser
from ..repositories import categories as categories_repo
from ..repositories import pathways as pathways_repo
from ..schemas.catalog import (
    Category,
    CategoryListResponse,
    Pathway,
    PathwayDetailResponse,
    PathwayListResponse,
    VideoDetailResponse,
    VideoListResponse,
)
from ..services import catalog_service

router = APIRouter(prefix="/api", tags=["catalog"])


@router.get("/pathways", response_model=PathwayListResponse)
async def list_pathways() -> PathwayListResponse:
    rows = await pathways_repo.list_pathways(active_only=True)
    return PathwayListResponse(items=[Pathway(**row) for row in rows])


@router.get("/pathways/{pathway_id}", response_model=PathwayDetailResponse)
async def get_pathway(pathway_id: str, current: OptionalCurrentUser) -> PathwayDetailResponse:
    detail = await catalog_service.get_pathway_detail(current, pathway_id)
    if detail is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Pathway not found")
    return detail


@router.get("/categories", response_model=CategoryListResponse)
async def list_categories() -> CategoryListResponse:
    rows = await categories_repo.list_categories()
    return CategoryListResponse(items=[Category(**row) for row in rows])


@router.get("/videos", response_model=VideoListResponse)
async def list_videos(
    current: OptionalCurrentUser,
    pathway_id: str | None = None,
    category_id: str | None = None,
    q: str | None = Query(default=None, max_length=200),
    limit: int = Query(default=50, ge=1, le=200),
) -> VideoListResponse:
    return await catalog_service.list_videos(
        current,
        pathway_id=pathway_id,
        category_id=category_id,
        search=q,
        limit=limit,
    )


@router.get("/videos/{video_id}", response_model=VideoDetailResponse)
async def get_video(video_id: str, current: OptionalCurrentUser) -> VideoDetailResponse:
    detail = await catalog_service.get_video_detail(current, video_id)
    if detail is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Video not found")
    return detail
