from datetime import datetime, timezone

import psycopg
import pytest

from .utils import sign_in, stripe_list, subscription

pytestmark = pytest.mark.anyio("asyncio")


class FakeStore:
    """In-memory stand-in for the repository functions sync touches."""

    def __init__(self, pathway_ids=("path-1", "path-2")):
        self.pathway_ids = list(pathway_ids)
        self.profile_customer: dict[str, str] = {}
        self.subscriptions: dict[str, dict] = {}
        self.grants: dict[tuple[str, str], dict] = {}
        self.orders: dict[str, dict] = {}
        self.grant_calls = 0

    def install(self, monkeypatch):
        async def set_stripe_customer_id(user_id, customer_id):
            self.profile_customer[user_id] = customer_id

        async def upsert_subscription(**row):
            self.subscriptions[row["stripe_subscription_id"]] = row
            return row

        async def list_active_pathway_ids():
            return list(self.pathway_ids)

        async def upsert_access_grant(*, user_id, pathway_id, expires_at, access_type="subscription"):
            self.grant_calls += 1
            key = (user_id, pathway_id)
            inserted = key not in self.grants
            self.grants[key] = {"access_type": access_type, "expires_at": expires_at}
            return {**self.grants[key], "inserted": inserted}

        async def get_order_by_payment_intent(payment_intent_id):
            return self.orders.get(payment_intent_id)

        async def create_order(**row):
            if row["stripe_payment_intent_id"] in self.orders:
                return None
            self.orders[row["stripe_payment_intent_id"]] = row
            return {"id": "order-1", **row}

        prefix = "cte_skills.repositories"
        monkeypatch.setattr(f"{prefix}.profiles.set_stripe_customer_id", set_stripe_customer_id)
        monkeypatch.setattr(f"{prefix}.subscriptions.upsert_subscription", upsert_subscription)
        monkeypatch.setattr(f"{prefix}.pathways.list_active_pathway_ids", list_active_pathway_ids)
        monkeypatch.setattr(f"{prefix}.video_access.upsert_access_grant", upsert_access_grant)
        monkeypatch.setattr(f"{prefix}.orders.get_order_by_payment_intent", get_order_by_payment_intent)
        monkeypatch.setattr(f"{prefix}.orders.create_order", create_order)
        return self


PAID_INVOICE = {
    "id": "in_1",
    "status": "paid",
    "amount_paid": 1999,
    "currency": "usd",
    "payment_intent": {"id": "pi_1", "object": "payment_intent"},
}


async def test_no_customer(async_client, monkeypatch):
    headers, _ = sign_in(monkeypatch)
    store = FakeStore().install(monkeypatch)
    monkeypatch.setattr("stripe.Customer.list", lambda **_: stripe_list())

    resp = await async_client.post("/functions/v1/sync-subscription", headers=headers)
    assert resp.status_code == 200
    assert resp.json() == {"synced": False, "message": "No Stripe customer found"}
    assert store.profile_customer == {}


async def test_no_active_subscription_still_stores_customer(async_client, monkeypatch):
    headers, user = sign_in(monkeypatch)
    store = FakeStore().install(monkeypatch)
    monkeypatch.setattr("stripe.Customer.list", lambda **_: stripe_list({"id": "cus_1"}))
    monkeypatch.setattr(
        "stripe.Subscription.list",
        lambda **_: stripe_list(subscription("sub_x", status="incomplete_expired")),
    )

    resp = await async_client.post("/functions/v1/sync-subscription", headers=headers)
    assert resp.status_code == 200
    assert resp.json() == {"synced": False, "message": "No active subscription"}
    assert store.profile_customer == {user["id"]: "cus_1"}
    assert store.subscriptions == {}
    assert store.grants == {}


async def test_sync_mirrors_subscription_access_and_order(async_client, monkeypatch):
    headers, user = sign_in(monkeypatch)
    store = FakeStore().install(monkeypatch)
    monkeypatch.setattr("stripe.Customer.list", lambda **_: stripe_list({"id": "cus_1"}))
    listed: dict[str, object] = {}

    def fake_subscription_list(**params):
        listed.update(params)
        return stripe_list(
            subscription("sub_1", period_end=1_767_225_600_000, latest_invoice=PAID_INVOICE),
        )

    monkeypatch.setattr("stripe.Subscription.list", fake_subscription_list)

    resp = await async_client.post("/functions/v1/sync-subscription", headers=headers)
    assert resp.status_code == 200, resp.text
    assert resp.json() == {
        "synced": True,
        "subscription_id": "sub_1",
        "message": "Subscription data synced successfully",
    }
    assert listed == {
        "customer": "cus_1",
        "limit": 100,
        "expand": ["data.latest_invoice", "data.latest_invoice.payments"],
    }

    expected_end = datetime(2026, 1, 1, tzinfo=timezone.utc)
    row = store.subscriptions["sub_1"]
    assert row["user_id"] == user["id"]
    assert row["stripe_customer_id"] == "cus_1"
    assert row["status"] == "active"
    assert row["price_id"] == "price_monthly"
    assert row["product_id"] == "prod_cte"
    assert row["current_period_end"] == expected_end
    assert row["cancel_at_period_end"] is False

    assert set(store.grants) == {(user["id"], "path-1"), (user["id"], "path-2")}
    assert all(grant["expires_at"] == expected_end for grant in store.grants.values())
    assert all(grant["access_type"] == "subscription" for grant in store.grants.values())

    order = store.orders["pi_1"]
    assert order["amount"] == 1999
    assert order["currency"] == "usd"
    assert order["status"] == "completed"
    assert order["product_name"] == "CTE Monthly"
    assert order["user_id"] == user["id"]


async def test_repeated_sync_is_idempotent(async_client, monkeypatch):
    headers, _ = sign_in(monkeypatch)
    store = FakeStore().install(monkeypatch)
    monkeypatch.setattr("stripe.Customer.list", lambda **_: stripe_list({"id": "cus_1"}))
    monkeypatch.setattr(
        "stripe.Subscription.list",
        lambda **_: stripe_list(subscription("sub_1", latest_invoice=PAID_INVOICE)),
    )

    for _ in range(3):
        resp = await async_client.post("/functions/v1/sync-subscription", headers=headers)
        assert resp.status_code == 200
        assert resp.json()["synced"] is True

    assert len(store.subscriptions) == 1
    assert len(store.grants) == 2
    assert store.grant_calls == 6
    assert len(store.orders) == 1


async def test_order_defaults_and_pending_status(async_client, monkeypatch):
    headers, _ = sign_in(monkeypatch)
    store = FakeStore(pathway_ids=()).install(monkeypatch)
    invoice = {
        "status": "open",
        "amount_paid": None,
        "currency": None,
        "payment_intent": None,
        "payments": {"data": [{"payment": {"payment_intent": "pi_open"}}]},
    }
    monkeypatch.setattr("stripe.Customer.list", lambda **_: stripe_list({"id": "cus_1"}))
    monkeypatch.setattr(
        "stripe.Subscription.list",
        lambda **_: stripe_list(subscription("sub_1", nickname=None, latest_invoice=invoice)),
    )

    resp = await async_client.post("/functions/v1/sync-subscription", headers=headers)
    assert resp.status_code == 200
    order = store.orders["pi_open"]
    assert order["amount"] == 0
    assert order["currency"] == "usd"
    assert order["status"] == "pending"
    assert order["product_name"] == "Subscription"


async def test_basil_invoice_records_order_from_expanded_payments(async_client, monkeypatch):
    headers, _ = sign_in(monkeypatch)
    store = FakeStore(pathway_ids=()).install(monkeypatch)
    monkeypatch.setattr("stripe.Customer.list", lambda **_: stripe_list({"id": "cus_1"}))

    def fake_subscription_list(**params):
        # basil invoices carry no payment_intent; payments only when expanded
        invoice = {"status": "paid", "amount_paid": 4999, "currency": "usd"}
        if "data.latest_invoice.payments" in params.get("expand", []):
            invoice["payments"] = {
                "object": "list",
                "data": [{"payment": {"type": "payment_intent", "payment_intent": "pi_basil"}}],
            }
        return stripe_list(subscription("sub_1", latest_invoice=invoice))

    monkeypatch.setattr("stripe.Subscription.list", fake_subscription_list)

    resp = await async_client.post("/functions/v1/sync-subscription", headers=headers)
    assert resp.status_code == 200, resp.text
    order = store.orders["pi_basil"]
    assert order["amount"] == 4999
    assert order["status"] == "completed"


async def test_invoice_without_payment_intent_creates_no_order(async_client, monkeypatch):
    headers, _ = sign_in(monkeypatch)
    store = FakeStore().install(monkeypatch)
    monkeypatch.setattr("stripe.Customer.list", lambda **_: stripe_list({"id": "cus_1"}))
    monkeypatch.setattr(
        "stripe.Subscription.list",
        lambda **_: stripe_list(
            subscription("sub_1", latest_invoice={"status": "paid", "amount_paid": 0, "payment_intent": None})
        ),
    )

    resp = await async_client.post("/functions/v1/sync-subscription", headers=headers)
    assert resp.json()["synced"] is True
    assert store.orders == {}


async def test_subscription_upsert_failure_does_not_abort(async_client, monkeypatch):
    headers, _ = sign_in(monkeypatch)
    store = FakeStore().install(monkeypatch)

    async def broken_upsert(**_):
        raise psycopg.OperationalError("connection reset")

    monkeypatch.setattr("cte_skills.repositories.subscriptions.upsert_subscription", broken_upsert)
    monkeypatch.setattr("stripe.Customer.list", lambda **_: stripe_list({"id": "cus_1"}))
    monkeypatch.setattr(
        "stripe.Subscription.list",
        lambda **_: stripe_list(subscription("sub_1", latest_invoice=PAID_INVOICE)),
    )

    resp = await async_client.post("/functions/v1/sync-subscription", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["synced"] is True
    assert len(store.grants) == 2
    assert "pi_1" in store.orders


async def test_access_grant_failure_aborts(async_client, monkeypatch):
    headers, _ = sign_in(monkeypatch)
    store = FakeStore().install(monkeypatch)

    async def broken_grant(**_):
        raise psycopg.OperationalError("grant failed")

    monkeypatch.setattr("cte_skills.repositories.video_access.upsert_access_grant", broken_grant)
    monkeypatch.setattr("stripe.Customer.list", lambda **_: stripe_list({"id": "cus_1"}))
    monkeypatch.setattr(
        "stripe.Subscription.list",
        lambda **_: stripe_list(subscription("sub_1", latest_invoice=PAID_INVOICE)),
    )

    resp = await async_client.post("/functions/v1/sync-subscription", headers=headers)
    assert resp.status_code == 500
    assert resp.json() == {"error": "grant failed"}
    assert store.orders == {}


async def test_deleted_cached_customer_falls_back_to_email(async_client, monkeypatch):
    import stripe

    headers, user = sign_in(monkeypatch, stripe_customer_id="cus_gone")
    store = FakeStore(pathway_ids=()).install(monkeypatch)

    def missing_customer(customer_id, **_):
        raise stripe.error.InvalidRequestError(
            f"No such customer: '{customer_id}'", "id", code="resource_missing"
        )

    listed: dict[str, object] = {}

    def fake_subscription_list(**params):
        listed.update(params)
        return stripe_list(subscription("sub_new"))

    monkeypatch.setattr("stripe.Customer.retrieve", missing_customer)
    monkeypatch.setattr("stripe.Customer.list", lambda **_: stripe_list({"id": "cus_new"}))
    monkeypatch.setattr("stripe.Subscription.list", fake_subscription_list)

    resp = await async_client.post("/functions/v1/sync-subscription", headers=headers)
    assert resp.status_code == 200, resp.text
    assert resp.json()["subscription_id"] == "sub_new"
    assert listed["customer"] == "cus_new"
    assert store.profile_customer[user["id"]] == "cus_new"


async def test_customer_marked_deleted_is_not_reused(async_client, monkeypatch):
    headers, _ = sign_in(monkeypatch, stripe_customer_id="cus_deleted")
    FakeStore().install(monkeypatch)
    monkeypatch.setattr(
        "stripe.Customer.retrieve",
        lambda customer_id, **_: {"id": customer_id, "object": "customer", "deleted": True},
    )
    monkeypatch.setattr("stripe.Customer.list", lambda **_: stripe_list())

    resp = await async_client.post("/functions/v1/sync-subscription", headers=headers)
    assert resp.status_code == 200, resp.text
    assert resp.json()["synced"] is False
