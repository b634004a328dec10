import uuid
from typing import Any

from cte_skills.auth import create_access_token


def auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def sign_in(
    monkeypatch,
    *,
    admin: bool = False,
    email: str | None = "learner@example.com",
    stripe_customer_id: str | None = None,
) -> tuple[dict[str, str], dict[str, Any]]:
    """Fake a stored user and return bearer headers for it."""
    user = {
        "id": str(uuid.uuid4()),
        "email": email,
        "full_name": "Test Learner",
        "stripe_customer_id": stripe_customer_id,
        "is_admin": admin,
    }

    async def fake_get_user(user_id: str):
        return dict(user) if user_id == user["id"] else None

    async def fake_is_admin(user_id: str) -> bool:
        return admin and user_id == user["id"]

    monkeypatch.setattr("cte_skills.repositories.users.get_user", fake_get_user)
    monkeypatch.setattr("cte_skills.repositories.roles.is_admin", fake_is_admin)
    return auth_header(create_access_token(user["id"])), user


def stripe_list(*items: Any) -> dict[str, Any]:
    return {"object": "list", "data": list(items), "has_more": False}


def subscription(
    sub_id: str,
    *,
    status: str = "active",
    period_end: Any = 1767225600,
    period_start: Any = 1764547200,
    price_id: str = "price_monthly",
    product_id: str = "prod_cte",
    nickname: str | None = "CTE Monthly",
    on_item: bool = False,
    latest_invoice: Any = None,
) -> dict[str, Any]:
    item: dict[str, Any] = {
        "id": f"si_{sub_id}",
        "price": {"id": price_id, "product": product_id, "nickname": nickname},
    }
    sub: dict[str, Any] = {
        "id": sub_id,
        "status": status,
        "cancel_at_period_end": False,
        "items": stripe_list(item),
        "latest_invoice": latest_invoice,
    }
    periods = {"current_period_end": period_end, "current_period_start": period_start}
    if on_item:
        item.update(periods)
    else:
        sub.update(periods)
    return sub
