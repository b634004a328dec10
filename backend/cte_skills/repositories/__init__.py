from . import (
    categories,
    orders,
    pathways,
    profiles,
    roles,
    subscriptions,
    users,
    video_access,
    videos,
)

__all__ = [
    "categories",
    "orders",
    "pathways",
    "profiles",
    "roles",
    "subscriptions",
    "users",
    "video_access",
    "videos",
]
