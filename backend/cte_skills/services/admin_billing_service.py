from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping

import stripe

from ..config import settings
from ..logging_utils import log_step
from ..repositories import orders as orders_repo
from ..repositories import subscriptions as subscriptions_repo
from ..schemas.admin import (
    AdminCustomer,
    AdminCustomersResponse,
    CancelledSubscription,
    CancelSubscriptionResponse,
    CustomerCharge,
    CustomerSubscription,
    RefundRecord,
    RefundResponse,
)
from ..stripe_mode import configure_stripe
from ..utils.stripe_epoch import epoch_to_datetime, epoch_to_milliseconds, to_iso
from .stripe_calls import call_stripe, list_data, object_id
from .subscription_service import period_end

logger = logging.getLogger(__name__)

CUSTOMERS_FUNCTION = "admin-customers"
REFUND_FUNCTION = "admin-refund"
CANCEL_FUNCTION = "admin-cancel-subscription"


def _epoch_seconds(value: Any) -> int | None:
    millis = epoch_to_milliseconds(value)
    return millis // 1000 if millis is not None else None


def _subscription_summary(subscription: Mapping[str, Any]) -> CustomerSubscription:
    return CustomerSubscription(
        id=subscription["id"],
        status=subscription.get("status"),
        current_period_end=_epoch_seconds(period_end(subscription)),
        cancel_at_period_end=bool(subscription.get("cancel_at_period_end")),
    )


def _charge_summary(charge: Mapping[str, Any]) -> CustomerCharge:
    return CustomerCharge(
        id=charge["id"],
        amount=int(charge.get("amount") or 0),
        currency=charge.get("currency"),
        status=charge.get("status"),
        refunded=bool(charge.get("refunded")),
        payment_intent=object_id(charge.get("payment_intent")),
        created=charge.get("created"),
    )


async def _customer_detail(customer: Mapping[str, Any]) -> AdminCustomer:
    customer_id = customer["id"]
    subscriptions, charges = await asyncio.gather(
        call_stripe(stripe.Subscription.list, customer=customer_id, limit=1),
        call_stripe(
            stripe.Charge.list,
            customer=customer_id,
            limit=settings.admin_customer_charges_limit,
        ),
    )
    latest = list_data(subscriptions)
    return AdminCustomer(
        id=customer_id,
        email=customer.get("email"),
        name=customer.get("name"),
        created=customer.get("created"),
        subscription=_subscription_summary(latest[0]) if latest else None,
        charges=[_charge_summary(charge) for charge in list_data(charges)],
    )


async def list_customers(*, limit: int | None = None, email: str | None = None) -> AdminCustomersResponse:
    """Stripe customers with their latest subscription and recent charges."""
    configure_stripe()
    params: dict[str, Any] = {"limit": limit or settings.admin_customers_default_limit}
    if email:
        params["email"] = email
    log_step(logger, CUSTOMERS_FUNCTION, "Fetching customers", **params)

    result = await call_stripe(stripe.Customer.list, **params)
    customers = list_data(result)
    log_step(logger, CUSTOMERS_FUNCTION, "Customers fetched", count=len(customers))

    details = await asyncio.gather(*(_customer_detail(customer) for customer in customers))
    return AdminCustomersResponse(customers=list(details))


async def refund_payment(payment_intent_id: str, *, amount: int | None = None) -> RefundResponse:
    configure_stripe()
    params: dict[str, Any] = {"payment_intent": payment_intent_id}
    if amount is not None:
        params["amount"] = amount
    log_step(logger, REFUND_FUNCTION, "Creating refund", **params)

    refund = await call_stripe(stripe.Refund.create, **params)
    refunded_amount = int(refund.get("amount") or 0)
    log_step(
        logger,
        REFUND_FUNCTION,
        "Refund created",
        refund_id=refund.get("id"),
        amount=refunded_amount,
        status=refund.get("status"),
    )

    order = await orders_repo.mark_refunded(payment_intent_id, refund_amount=refunded_amount)
    if order is None:
        log_step(logger, REFUND_FUNCTION, "No local order for payment intent", payment_intent_id=payment_intent_id)
    else:
        log_step(logger, REFUND_FUNCTION, "Order marked refunded", order_id=order["id"], status=order["status"])

    return RefundResponse(
        refund=RefundRecord(
            id=refund["id"],
            amount=refunded_amount,
            currency=refund.get("currency"),
            status=refund.get("status"),
            payment_intent=object_id(refund.get("payment_intent")) or payment_intent_id,
        )
    )


async def cancel_subscription(subscription_id: str, *, immediately: bool = False) -> CancelSubscriptionResponse:
    configure_stripe()
    log_step(
        logger,
        CANCEL_FUNCTION,
        "Cancelling subscription",
        subscription_id=subscription_id,
        immediately=immediately,
    )

    if immediately:
        subscription = await call_stripe(stripe.Subscription.cancel, subscription_id)
    else:
        subscription = await call_stripe(
            stripe.Subscription.modify,
            subscription_id,
            cancel_at_period_end=True,
        )

    status = subscription.get("status")
    cancel_at_period_end = bool(subscription.get("cancel_at_period_end"))
    ends_at = epoch_to_datetime(period_end(subscription))

    row = await subscriptions_repo.update_cancellation(
        subscription_id,
        status=status,
        cancel_at_period_end=cancel_at_period_end,
        current_period_end=ends_at,
    )
    log_step(
        logger,
        CANCEL_FUNCTION,
        "Subscription updated",
        status=status,
        cancel_at_period_end=cancel_at_period_end,
        local_row=bool(row),
    )

    return CancelSubscriptionResponse(
        subscription=CancelledSubscription(
            id=subscription.get("id") or subscription_id,
            status=status,
            cancel_at_period_end=cancel_at_period_end,
            current_period_end=to_iso(ends_at),
        )
    )


__all__ = ["cancel_subscription", "list_customers", "refund_payment"]
