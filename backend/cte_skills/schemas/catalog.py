from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class PathwayBase(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    icon: Optional[str] = "GraduationCap"
    color: Optional[str] = "from-primary to-primary/80"
    is_active: bool = True


class PathwayCreate(PathwayBase):
    pass


class PathwayUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None
    is_active: Optional[bool] = None


class Pathway(PathwayBase):
    id: str
    video_count: int = 0
    created_at: Optional[datetime] = None


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    slug: Optional[str] = None


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    slug: Optional[str] = None


class Category(BaseModel):
    id: str
    name: str
    slug: Optional[str] = None
    created_at: Optional[datetime] = None


class VideoBase(BaseModel):
    title: str = Field(min_length=1, max_length=300)
    description: Optional[str] = None
    thumbnail_url: Optional[str] = None
    video_url: Optional[str] = None
    duration: Optional[str] = None
    pathway_id: Optional[str] = None
    category_id: Optional[str] = None
    is_free: bool = False
    is_active: bool = True


class VideoCreate(VideoBase):
    pass


class VideoUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=300)
    description: Optional[str] = None
    thumbnail_url: Optional[str] = None
    video_url: Optional[str] = None
    duration: Optional[str] = None
    pathway_id: Optional[str] = None
    category_id: Optional[str] = None
    is_free: Optional[bool] = None
    is_active: Optional[bool] = None


class Video(VideoBase):
    """Admin view of a video row; always carries the media URL."""

    id: str
    view_count: int = 0
    created_at: Optional[datetime] = None


class VideoSummary(BaseModel):
    """Public view: ``video_url`` is withheld unless the caller may play it."""

    id: str
    title: str
    description: Optional[str] = None
    thumbnail_url: Optional[str] = None
    duration: Optional[str] = None
    pathway_id: Optional[str] = None
    category_id: Optional[str] = None
    is_free: bool = False
    view_count: int = 0
    created_at: Optional[datetime] = None
    locked: bool = True
    video_url: Optional[str] = None


class VideoListResponse(BaseModel):
    items: list[VideoSummary]


class VideoDetailResponse(BaseModel):
    video: VideoSummary
    pathway: Optional[Pathway] = None
    category: Optional[Category] = None
    related: list[VideoSummary] = Field(default_factory=list)


class PathwayListResponse(BaseModel):
    items: list[Pathway]


class PathwayDetailResponse(BaseModel):
    pathway: Pathway
    videos: list[VideoSummary]


class CategoryListResponse(BaseModel):
    items: list[Category]


class AdminVideoListResponse(BaseModel):
    items: list[Video]
