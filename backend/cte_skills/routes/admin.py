from __future__ import annotations

import asyncio

from fastapi import APIRouter, HTTPException, Response, status
from psycopg import errors

from ..config import settings
from ..permissions import AdminUser
from ..repositories import categories as categories_repo
from ..repositories import orders as orders_repo
from ..repositories import pathways as pathways_repo
from ..repositories import subscriptions as subscriptions_repo
from ..repositories import videos as videos_repo
from ..schemas.admin import AdminOverview, OrderListResponse, OrderRecord
from ..schemas.catalog import (
    AdminVideoListResponse,
    Category,
    CategoryCreate,
    CategoryUpdate,
    Pathway,
    PathwayCreate,
    PathwayListResponse,
    PathwayUpdate,
    Video,
    VideoCreate,
    VideoUpdate,
)

router = APIRouter(prefix="/admin", tags=["admin"])


def _bad_reference() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="Unknown pathway or category",
    )


@router.get("/overview", response_model=AdminOverview)
async def admin_overview(current: AdminUser) -> AdminOverview:
    videos, pathways, categories, orders, active = await asyncio.gather(
        videos_repo.count_videos(),
        pathways_repo.count_pathways(),
        categories_repo.count_categories(),
        orders_repo.count_orders(),
        subscriptions_repo.count_active_subscriptions(),
    )
    return AdminOverview(
        videos=videos,
        pathways=pathways,
        categories=categories,
        orders=orders,
        active_subscriptions=active,
    )


@router.get("/orders", response_model=OrderListResponse)
async def admin_orders(current: AdminUser, user_id: str | None = None) -> OrderListResponse:
    rows = await orders_repo.list_orders(limit=settings.admin_orders_limit, user_id=user_id)
    return OrderListResponse(items=[OrderRecord(**row) for row in rows])


@router.get("/pathways", response_model=PathwayListResponse)
async def admin_list_pathways(current: AdminUser) -> PathwayListResponse:
    rows = await pathways_repo.list_pathways(active_only=False)
    return PathwayListResponse(items=[Pathway(**row) for row in rows])


@router.post("/pathways", response_model=Pathway, status_code=status.HTTP_201_CREATED)
async def admin_create_pathway(payload: PathwayCreate, current: AdminUser) -> Pathway:
    row = await pathways_repo.create_pathway(payload.model_dump())
    return Pathway(**row)


@router.patch("/pathways/{pathway_id}", response_model=Pathway)
async def admin_update_pathway(pathway_id: str, payload: PathwayUpdate, current: AdminUser) -> Pathway:
    row = await pathways_repo.update_pathway(pathway_id, payload.model_dump(exclude_unset=True))
    if not row:
        raise HTTPException(status_code=404, detail="Pathway not found")
    return Pathway(**row)


@router.delete("/pathways/{pathway_id}", status_code=status.HTTP_204_NO_CONTENT)
async def admin_delete_pathway(pathway_id: str, current: AdminUser):
    if not await pathways_repo.delete_pathway(pathway_id):
        raise HTTPException(status_code=404, detail="Pathway not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/videos", response_model=AdminVideoListResponse)
async def admin_list_videos(current: AdminUser, pathway_id: str | None = None) -> AdminVideoListResponse:
    rows = await videos_repo.list_videos(pathway_id=pathway_id, active_only=False, limit=200)
    return AdminVideoListResponse(items=[Video(**row) for row in rows])


@router.post("/videos", response_model=Video, status_code=status.HTTP_201_CREATED)
async def admin_create_video(payload: VideoCreate, current: AdminUser) -> Video:
    try:
        row = await videos_repo.create_video(payload.model_dump())
    except errors.ForeignKeyViolation as exc:
        raise _bad_reference() from exc
    return Video(**row)


@router.patch("/videos/{video_id}", response_model=Video)
async def admin_update_video(video_id: str, payload: VideoUpdate, current: AdminUser) -> Video:
    try:
        row = await videos_repo.update_video(video_id, payload.model_dump(exclude_unset=True))
    except errors.ForeignKeyViolation as exc:
        raise _bad_reference() from exc
    if not row:
        raise HTTPException(status_code=404, detail="Video not found")
    return Video(**row)


@router.delete("/videos/{video_id}", status_code=status.HTTP_204_NO_CONTENT)
async def admin_delete_video(video_id: str, current: AdminUser):
    if not await videos_repo.delete_video(video_id):
        raise HTTPException(status_code=404, detail="Video not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/categories", response_model=Category, status_code=status.HTTP_201_CREATED)
async def admin_create_category(payload: CategoryCreate, current: AdminUser) -> Category:
    try:
        row = await categories_repo.create_category(payload.model_dump())
    except errors.UniqueViolation as exc:
        raise HTTPException(status_code=409, detail="Category already exists") from exc
    return Category(**row)


@router.patch("/categories/{category_id}", response_model=Category)
async def admin_update_category(category_id: str, payload: CategoryUpdate, current: AdminUser) -> Category:
    try:
        row = await categories_repo.update_category(category_id, payload.model_dump(exclude_unset=True))
    except errors.UniqueViolation as exc:
        raise HTTPException(status_code=409, detail="Category already exists") from exc
    if not row:
        raise HTTPException(status_code=404, detail="Category not found")
    return Category(**row)


@router.delete("/categories/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def admin_delete_category(category_id: str, current: AdminUser):
    if not await categories_repo.delete_category(category_id):
        raise HTTPException(status_code=404, detail="Category not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
