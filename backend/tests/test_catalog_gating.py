import pytest

from .utils import sign_in

pytestmark = pytest.mark.anyio("asyncio")

PATHWAY = {
    "id": "path-1",
    "title": "Welding",
    "description": "Fundamentals",
    "icon": "Flame",
    "color": "from-orange-500 to-red-500",
    "is_active": True,
    "video_count": 2,
    "created_at": None,
}

FREE_VIDEO = {
    "id": "vid-free",
    "title": "Shop safety",
    "description": None,
    "thumbnail_url": "https://cdn.test/free.jpg",
    "video_url": "https://cdn.test/free.mp4",
    "duration": "5:00",
    "pathway_id": "path-1",
    "category_id": None,
    "is_free": True,
    "is_active": True,
    "view_count": 10,
    "created_at": None,
}

PAID_VIDEO = {
    **FREE_VIDEO,
    "id": "vid-paid",
    "title": "MIG basics",
    "video_url": "https://cdn.test/paid.mp4",
    "is_free": False,
}

OTHER_PATHWAY_VIDEO = {
    **PAID_VIDEO,
    "id": "vid-other",
    "pathway_id": "path-2",
    "video_url": "https://cdn.test/other.mp4",
}


@pytest.fixture
def catalog(monkeypatch):
    state = {"subscription": None, "pathways": set(), "views": []}

    async def list_videos(**kwargs):
        return [dict(FREE_VIDEO), dict(PAID_VIDEO), dict(OTHER_PATHWAY_VIDEO)]

    async def get_video(video_id):
        for video in (FREE_VIDEO, PAID_VIDEO, OTHER_PATHWAY_VIDEO):
            if video["id"] == video_id:
                return dict(video)
        return None

    async def increment_view_count(video_id):
        state["views"].append(video_id)

    async def get_pathway(pathway_id):
        return dict(PATHWAY) if pathway_id == "path-1" else None

    async def get_active_subscription(user_id):
        return state["subscription"]

    async def list_accessible_pathway_ids(user_id):
        return set(state["pathways"])

    prefix = "cte_skills.repositories"
    monkeypatch.setattr(f"{prefix}.videos.list_videos", list_videos)
    monkeypatch.setattr(f"{prefix}.videos.get_video", get_video)
    monkeypatch.setattr(f"{prefix}.videos.increment_view_count", increment_view_count)
    monkeypatch.setattr(f"{prefix}.pathways.get_pathway", get_pathway)
    monkeypatch.setattr(f"{prefix}.subscriptions.get_active_subscription", get_active_subscription)
    monkeypatch.setattr(
        f"{prefix}.video_access.list_accessible_pathway_ids",
        list_accessible_pathway_ids,
    )
    return state


def _by_id(items):
    return {item["id"]: item for item in items}


async def test_anonymous_sees_only_free_media(async_client, catalog):
    resp = await async_client.get("/api/videos")
    assert resp.status_code == 200, resp.text
    items = _by_id(resp.json()["items"])
    assert items["vid-free"]["locked"] is False
    assert items["vid-free"]["video_url"] == "https://cdn.test/free.mp4"
    for locked_id in ("vid-paid", "vid-other"):
        assert items[locked_id]["locked"] is True
        assert items[locked_id]["video_url"] is None


async def test_pathway_grant_unlocks_only_that_pathway(async_client, catalog, monkeypatch):
    headers, _ = sign_in(monkeypatch)
    catalog["pathways"] = {"path-1"}

    resp = await async_client.get("/api/videos", headers=headers)
    items = _by_id(resp.json()["items"])
    assert items["vid-paid"]["locked"] is False
    assert items["vid-paid"]["video_url"] == "https://cdn.test/paid.mp4"
    assert items["vid-other"]["locked"] is True
    assert items["vid-other"]["video_url"] is None


async def test_active_subscription_unlocks_everything(async_client, catalog, monkeypatch):
    headers, _ = sign_in(monkeypatch)
    catalog["subscription"] = {"id": "row-1", "status": "active"}

    resp = await async_client.get("/api/videos", headers=headers)
    items = resp.json()["items"]
    assert all(item["locked"] is False for item in items)
    assert all(item["video_url"] for item in items)


async def test_locked_detail_withholds_media_and_views(async_client, catalog):
    resp = await async_client.get("/api/videos/vid-paid")
    assert resp.status_code == 200, resp.text
    payload = resp.json()
    assert payload["video"]["locked"] is True
    assert payload["video"]["video_url"] is None
    assert payload["pathway"]["title"] == "Welding"
    assert "paid.mp4" not in resp.text
    assert catalog["views"] == []


async def test_playable_detail_counts_view(async_client, catalog, monkeypatch):
    headers, _ = sign_in(monkeypatch)
    catalog["pathways"] = {"path-1"}

    resp = await async_client.get("/api/videos/vid-paid", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["video"]["video_url"] == "https://cdn.test/paid.mp4"
    assert catalog["views"] == ["vid-paid"]


async def test_missing_video_is_404(async_client, catalog):
    resp = await async_client.get("/api/videos/unknown")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Video not found"


async def test_pathway_detail_gates_videos(async_client, catalog):
    resp = await async_client.get("/api/pathways/path-1")
    assert resp.status_code == 200, resp.text
    payload = resp.json()
    assert payload["pathway"]["video_count"] == 2
    assert {v["id"]: v["locked"] for v in payload["videos"]} == {
        "vid-free": False,
        "vid-paid": True,
        "vid-other": True,
    }


async def test_pathway_list(async_client, monkeypatch):
    async def list_pathways(*, active_only=True):
        assert active_only is True
        return [dict(PATHWAY)]

    monkeypatch.setattr("cte_skills.repositories.pathways.list_pathways", list_pathways)
    resp = await async_client.get("/api/pathways")
    assert resp.status_code == 200
    assert resp.json()["items"][0]["id"] == "path-1"


async def test_video_filters_forwarded(async_client, monkeypatch):
    seen: dict[str, object] = {}

    async def list_videos(**kwargs):
        seen.update(kwargs)
        return []

    monkeypatch.setattr("cte_skills.repositories.videos.list_videos", list_videos)
    resp = await async_client.get(
        "/api/videos",
        params={"pathway_id": "path-1", "category_id": "cat-1", "q": "weld", "limit": 12},
    )
    assert resp.status_code == 200
    assert resp.json() == {"items": []}
    assert seen == {"pathway_id": "path-1", "category_id": "cat-1", "search": "weld", "limit": 12}
