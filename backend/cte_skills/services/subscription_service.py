"""Subscription state: the read-only check and the local sync.

Both resolve the caller's Stripe customer, list its subscriptions and pick
one authoritative subscription:

* only ``active`` and ``trialing`` qualify;
* the greatest period end wins;
* on equal period ends the first one Stripe returned is kept.

The sync then mirrors that subscription into ``app.subscriptions``, grants
or refreshes ``app.video_access`` for every active pathway and records an
order for the latest invoice. The steps are independent statements with no
shared transaction, so a failure part-way leaves earlier writes in place;
running the sync again converges because every write is an upsert.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

import psycopg
import stripe

from .. import metrics
from ..logging_utils import log_step
from ..repositories import orders as orders_repo
from ..repositories import pathways as pathways_repo
from ..repositories import subscriptions as subscriptions_repo
from ..repositories import video_access as video_access_repo
from ..schemas.subscriptions import CheckSubscriptionResponse, SyncSubscriptionResponse
from ..stripe_mode import configure_stripe
from ..utils.stripe_epoch import (
    epoch_to_datetime,
    epoch_to_milliseconds,
    to_iso,
)
from .customer_service import resolve_customer_id
from .stripe_calls import call_stripe, list_data, object_id

logger = logging.getLogger(__name__)

CHECK_FUNCTION = "check-subscription"
SYNC_FUNCTION = "sync-subscription"

ACTIVE_STATUSES = ("active", "trialing")
SUBSCRIPTION_LIST_LIMIT = 100
DEFAULT_ORDER_PRODUCT_NAME = "Subscription"


def _first_item(subscription: Mapping[str, Any]) -> Mapping[str, Any] | None:
    items = subscription.get("items")
    data = list_data(items) if items else []
    first = data[0] if data else None
    return first if isinstance(first, Mapping) else None


def _period_value(subscription: Mapping[str, Any], field: str) -> Any:
    # Newer API versions report billing periods per subscription item.
    value = subscription.get(field)
    if value is None:
        item = _first_item(subscription)
        if item is not None:
            value = item.get(field)
    return value


def period_end(subscription: Mapping[str, Any]) -> Any:
    return _period_value(subscription, "current_period_end")


def period_start(subscription: Mapping[str, Any]) -> Any:
    return _period_value(subscription, "current_period_start")


def select_subscription(subscriptions: Iterable[Mapping[str, Any]]) -> Mapping[str, Any] | None:
    """Pick the active/trialing subscription with the latest period end."""
    selected: Mapping[str, Any] | None = None
    selected_end = 0
    for subscription in subscriptions:
        if subscription.get("status") not in ACTIVE_STATUSES:
            continue
        end = epoch_to_milliseconds(period_end(subscription)) or 0
        if selected is None or end > selected_end:
            selected, selected_end = subscription, end
    return selected


def _price_details(subscription: Mapping[str, Any]) -> tuple[str | None, str | None, str | None]:
    """Return (price_id, product_id, nickname) of the first subscription item."""
    item = _first_item(subscription)
    price = item.get("price") if item else None
    if not isinstance(price, Mapping):
        return None, None, None
    return object_id(price), object_id(price.get("product")), price.get("nickname")


async def _list_subscriptions(customer_id: str, *, expand_invoice: bool) -> list[Mapping[str, Any]]:
    params: dict[str, Any] = {"customer": customer_id, "limit": SUBSCRIPTION_LIST_LIMIT}
    if expand_invoice:
        params["expand"] = ["data.latest_invoice", "data.latest_invoice.payments"]
    result = await call_stripe(stripe.Subscription.list, **params)
    return [sub for sub in list_data(result) if isinstance(sub, Mapping)]


async def _product_name(product_id: str) -> str | None:
    try:
        product = await call_stripe(stripe.Product.retrieve, product_id)
    except Exception as exc:  # logged, name left null
        log_step(
            logger,
            CHECK_FUNCTION,
            "Error fetching product",
            level=logging.WARNING,
            product_id=product_id,
            error=str(exc),
        )
        return None
    name = product.get("name") if isinstance(product, Mapping) else None
    return name if isinstance(name, str) else None


async def check_subscription(user: Mapping[str, Any]) -> CheckSubscriptionResponse:
    configure_stripe()
    log_step(logger, CHECK_FUNCTION, "User authenticated", user_id=user.get("id"))

    customer_id = await resolve_customer_id(user, function=CHECK_FUNCTION, persist=False)
    if not customer_id:
        log_step(logger, CHECK_FUNCTION, "No customer found, returning unsubscribed state")
        return CheckSubscriptionResponse(subscribed=False)

    subscriptions = await _list_subscriptions(customer_id, expand_invoice=False)
    selected = select_subscription(subscriptions)
    log_step(
        logger,
        CHECK_FUNCTION,
        "Fetched subscriptions",
        total=len(subscriptions),
        selected=selected.get("id") if selected else None,
    )

    if selected is None:
        return CheckSubscriptionResponse(
            subscribed=False,
            subscription_status=None,
            product_id=None,
            product_name=None,
            price_id=None,
            subscription_end=None,
            subscription_end_unix=None,
            stripe_customer_id=customer_id,
        )

    end_at = epoch_to_datetime(period_end(selected))
    price_id, product_id, _ = _price_details(selected)
    product_name = await _product_name(product_id) if product_id else None

    return CheckSubscriptionResponse(
        subscribed=True,
        subscription_status=selected.get("status"),
        product_id=product_id,
        product_name=product_name,
        price_id=price_id,
        subscription_end=to_iso(end_at),
        subscription_end_unix=int(end_at.timestamp()) if end_at else None,
        stripe_customer_id=customer_id,
    )


async def sync_subscription(user: Mapping[str, Any]) -> SyncSubscriptionResponse:
    configure_stripe()
    user_id = str(user["id"])
    log_step(logger, SYNC_FUNCTION, "User authenticated", user_id=user_id)

    customer_id = await resolve_customer_id(user, function=SYNC_FUNCTION, persist=True)
    if not customer_id:
        log_step(logger, SYNC_FUNCTION, "No Stripe customer found")
        metrics.subscription_sync_total.labels(outcome="no_customer").inc()
        return SyncSubscriptionResponse(synced=False, message="No Stripe customer found")

    subscriptions = await _list_subscriptions(customer_id, expand_invoice=True)
    selected = select_subscription(subscriptions)
    if selected is None:
        log_step(logger, SYNC_FUNCTION, "No active subscription found", total=len(subscriptions))
        metrics.subscription_sync_total.labels(outcome="no_subscription").inc()
        return SyncSubscriptionResponse(synced=False, message="No active subscription")

    subscription_id = str(selected.get("id"))
    price_id, product_id, nickname = _price_details(selected)
    raw_start, raw_end = period_start(selected), period_end(selected)
    current_period_start = epoch_to_datetime(raw_start)
    current_period_end = epoch_to_datetime(raw_end)
    log_step(
        logger,
        SYNC_FUNCTION,
        "Subscription details",
        subscription_id=subscription_id,
        price_id=price_id,
        product_id=product_id,
        raw_period_start=raw_start,
        raw_period_end=raw_end,
        current_period_end=to_iso(current_period_end),
    )

    try:
        await subscriptions_repo.upsert_subscription(
            user_id=user_id,
            stripe_subscription_id=subscription_id,
            stripe_customer_id=customer_id,
            status=selected.get("status"),
            price_id=price_id,
            product_id=product_id,
            current_period_start=current_period_start,
            current_period_end=current_period_end,
            cancel_at_period_end=bool(selected.get("cancel_at_period_end")),
        )
        log_step(logger, SYNC_FUNCTION, "Subscription upserted successfully")
    except psycopg.Error as exc:
        log_step(
            logger,
            SYNC_FUNCTION,
            "Error upserting subscription",
            level=logging.ERROR,
            error=str(exc),
        )

    await grant_pathway_access(user_id, current_period_end)

    await record_invoice_order(
        user_id=user_id,
        customer_id=customer_id,
        latest_invoice=selected.get("latest_invoice"),
        product_name=nickname or DEFAULT_ORDER_PRODUCT_NAME,
    )

    metrics.subscription_sync_total.labels(outcome="synced").inc()
    return SyncSubscriptionResponse(
        synced=True,
        subscription_id=subscription_id,
        message="Subscription data synced successfully",
    )


async def grant_pathway_access(user_id: str, expires_at) -> int:
    """Grant or refresh subscription access to every active pathway."""
    pathway_ids = await pathways_repo.list_active_pathway_ids()
    for pathway_id in pathway_ids:
        grant = await video_access_repo.upsert_access_grant(
            user_id=user_id,
            pathway_id=pathway_id,
            expires_at=expires_at,
        )
        metrics.access_grants_upserted_total.inc()
        if grant.get("inserted"):
            log_step(logger, SYNC_FUNCTION, "Granted pathway access", pathway_id=pathway_id)
    return len(pathway_ids)


def invoice_payment_intent_id(invoice: Mapping[str, Any]) -> str | None:
    payment_intent = object_id(invoice.get("payment_intent"))
    if payment_intent:
        return payment_intent
    # 2025 API versions moved the intent under invoice.payments.
    payments = invoice.get("payments")
    for entry in list_data(payments) if payments else []:
        payment = entry.get("payment") if isinstance(entry, Mapping) else None
        if isinstance(payment, Mapping):
            payment_intent = object_id(payment.get("payment_intent"))
            if payment_intent:
                return payment_intent
    return None


async def record_invoice_order(
    *,
    user_id: str,
    customer_id: str,
    latest_invoice: Any,
    product_name: str,
) -> dict[str, Any] | None:
    """Create one order per payment intent from an expanded latest invoice."""
    if not isinstance(latest_invoice, Mapping):
        return None

    payment_intent_id = invoice_payment_intent_id(latest_invoice)
    if not payment_intent_id:
        log_step(logger, SYNC_FUNCTION, "Order already exists or no payment intent", payment_intent_id=None)
        return None

    existing = await orders_repo.get_order_by_payment_intent(payment_intent_id)
    if existing:
        log_step(
            logger,
            SYNC_FUNCTION,
            "Order already exists or no payment intent",
            payment_intent_id=payment_intent_id,
        )
        return None

    try:
        order = await orders_repo.create_order(
            user_id=user_id,
            stripe_customer_id=customer_id,
            stripe_payment_intent_id=payment_intent_id,
            stripe_checkout_session_id=None,
            amount=int(latest_invoice.get("amount_paid") or 0),
            currency=latest_invoice.get("currency") or "usd",
            status="completed" if latest_invoice.get("status") == "paid" else "pending",
            product_name=product_name,
        )
    except psycopg.Error as exc:
        log_step(logger, SYNC_FUNCTION, "Error creating order", level=logging.ERROR, error=str(exc))
        return None

    if order:
        metrics.orders_created_total.inc()
        log_step(logger, SYNC_FUNCTION, "Order created successfully", payment_intent_id=payment_intent_id)
    return order


__all__ = [
    "ACTIVE_STATUSES",
    "check_subscription",
    "grant_pathway_access",
    "invoice_payment_intent_id",
    "period_end",
    "record_invoice_order",
    "select_subscription",
    "sync_subscription",
]
