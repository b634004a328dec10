import pytest

from .utils import sign_in, stripe_list, subscription

pytestmark = pytest.mark.anyio("asyncio")


def _forbid_profile_writes(monkeypatch):
    async def fail(*args, **kwargs):
        raise AssertionError("check-subscription must not write")

    monkeypatch.setattr("cte_skills.repositories.profiles.set_stripe_customer_id", fail)
    monkeypatch.setattr("cte_skills.repositories.subscriptions.upsert_subscription", fail)
    monkeypatch.setattr("cte_skills.repositories.video_access.upsert_access_grant", fail)
    monkeypatch.setattr("cte_skills.repositories.orders.create_order", fail)


async def test_requires_authorization_header(async_client):
    resp = await async_client.post("/functions/v1/check-subscription")
    assert resp.status_code == 500
    assert resp.json() == {"error": "No authorization header provided"}


async def test_rejects_invalid_token(async_client):
    resp = await async_client.post(
        "/functions/v1/check-subscription",
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert resp.status_code == 500
    assert resp.json()["error"].startswith("Authentication error")


async def test_missing_stripe_key_is_reported(async_client, monkeypatch):
    from cte_skills.config import settings

    headers, _ = sign_in(monkeypatch)
    monkeypatch.setattr(settings, "stripe_secret_key", None)
    resp = await async_client.post("/functions/v1/check-subscription", headers=headers)
    assert resp.status_code == 500
    assert resp.json() == {"error": "STRIPE_SECRET_KEY is not set"}


async def test_no_customer_returns_unsubscribed(async_client, monkeypatch):
    headers, user = sign_in(monkeypatch)
    _forbid_profile_writes(monkeypatch)
    seen: dict[str, object] = {}

    def fake_customer_list(**params):
        seen.update(params)
        return stripe_list()

    monkeypatch.setattr("stripe.Customer.list", fake_customer_list)

    resp = await async_client.post("/functions/v1/check-subscription", headers=headers)
    assert resp.status_code == 200, resp.text
    assert resp.json() == {"subscribed": False}
    assert seen == {"email": user["email"], "limit": 1}


async def test_active_subscription_details(async_client, monkeypatch):
    headers, _ = sign_in(monkeypatch)
    _forbid_profile_writes(monkeypatch)

    monkeypatch.setattr("stripe.Customer.list", lambda **_: stripe_list({"id": "cus_123"}))
    listed: dict[str, object] = {}

    def fake_subscription_list(**params):
        listed.update(params)
        return stripe_list(
            subscription("sub_old", period_end=1_700_000_000, product_id="prod_old"),
            subscription("sub_new", status="trialing", period_end=1_800_000_000_000),
        )

    monkeypatch.setattr("stripe.Subscription.list", fake_subscription_list)
    monkeypatch.setattr(
        "stripe.Product.retrieve",
        lambda product_id: {"id": product_id, "name": "CTE All Access"},
    )

    resp = await async_client.post("/functions/v1/check-subscription", headers=headers)
    assert resp.status_code == 200, resp.text
    assert listed == {"customer": "cus_123", "limit": 100}
    assert resp.json() == {
        "subscribed": True,
        "subscription_status": "trialing",
        "product_id": "prod_cte",
        "product_name": "CTE All Access",
        "price_id": "price_monthly",
        "subscription_end": "2027-01-15T08:00:00.000Z",
        "subscription_end_unix": 1_800_000_000,
        "stripe_customer_id": "cus_123",
    }


async def test_product_lookup_failure_leaves_name_null(async_client, monkeypatch):
    import stripe

    headers, _ = sign_in(monkeypatch, stripe_customer_id="cus_cached")

    def customer_lookup(**_):
        raise AssertionError("cached customer id should be used")

    def broken_product(product_id):
        raise stripe.error.InvalidRequestError("No such product", "id")

    monkeypatch.setattr("stripe.Customer.list", customer_lookup)
    monkeypatch.setattr(
        "stripe.Subscription.list",
        lambda **_: stripe_list(subscription("sub_1", on_item=True)),
    )
    monkeypatch.setattr("stripe.Product.retrieve", broken_product)

    resp = await async_client.post("/functions/v1/check-subscription", headers=headers)
    assert resp.status_code == 200, resp.text
    payload = resp.json()
    assert payload["subscribed"] is True
    assert payload["product_name"] is None
    assert payload["stripe_customer_id"] == "cus_cached"
    assert payload["subscription_end"] == "2026-01-01T00:00:00.000Z"


async def test_customer_without_active_subscription(async_client, monkeypatch):
    headers, _ = sign_in(monkeypatch)
    monkeypatch.setattr("stripe.Customer.list", lambda **_: stripe_list({"id": "cus_9"}))
    monkeypatch.setattr(
        "stripe.Subscription.list",
        lambda **_: stripe_list(subscription("sub_gone", status="canceled")),
    )

    resp = await async_client.post("/functions/v1/check-subscription", headers=headers)
    assert resp.status_code == 200
    payload = resp.json()
    assert payload["subscribed"] is False
    assert payload["stripe_customer_id"] == "cus_9"
    assert payload["subscription_end"] is None


async def test_stripe_failure_becomes_error_body(async_client, monkeypatch):
    import stripe

    headers, _ = sign_in(monkeypatch)

    def boom(**_):
        raise stripe.error.APIConnectionError("network down")

    monkeypatch.setattr("stripe.Customer.list", boom)
    resp = await async_client.post("/functions/v1/check-subscription", headers=headers)
    assert resp.status_code == 500
    assert resp.json()["error"].startswith("Stripe error")
