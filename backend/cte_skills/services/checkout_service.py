from __future__ import annotations

import logging
from typing import Any, Mapping

import stripe

from ..config import settings
from ..errors import FunctionError, UpstreamError
from ..logging_utils import log_step
from ..schemas.billing import CheckoutPlan, CheckoutResponse, PortalResponse
from ..stripe_mode import configure_stripe, resolve_plan_price
from .customer_service import resolve_customer_id
from .stripe_calls import call_stripe

logger = logging.getLogger(__name__)

CHECKOUT_FUNCTION = "create-checkout"
PORTAL_FUNCTION = "customer-portal"


class NoCustomerError(FunctionError):
    kind = "no_customer"


def _frontend_url(path: str) -> str:
    base = (settings.frontend_base_url or "http://localhost:5173").rstrip("/")
    return f"{base}/{path.lstrip('/')}"


async def create_checkout(user: Mapping[str, Any], plan: CheckoutPlan) -> CheckoutResponse:
    configure_stripe()
    price_id = resolve_plan_price(plan)
    user_id = str(user["id"])

    customer_id = await resolve_customer_id(user, function=CHECKOUT_FUNCTION, persist=True)
    params: dict[str, Any] = {
        "mode": "subscription",
        "line_items": [{"price": price_id, "quantity": 1}],
        "success_url": settings.checkout_success_url or _frontend_url("account?checkout=success"),
        "cancel_url": settings.checkout_cancel_url or _frontend_url("pricing?checkout=cancel"),
        "metadata": {"user_id": user_id, "plan": plan.value},
        "subscription_data": {"metadata": {"user_id": user_id, "plan": plan.value}},
    }
    if customer_id:
        params["customer"] = customer_id
    else:
        params["customer_email"] = user.get("email")

    session = await call_stripe(stripe.checkout.Session.create, **params)
    checkout_url = session.get("url")
    if not isinstance(checkout_url, str):
        raise UpstreamError("Stripe session missing checkout url")
    log_step(
        logger,
        CHECKOUT_FUNCTION,
        "Checkout session created",
        session_id=session.get("id"),
        plan=plan.value,
    )
    return CheckoutResponse(url=checkout_url, session_id=session.get("id"))


async def create_portal_session(user: Mapping[str, Any]) -> PortalResponse:
    configure_stripe()
    customer_id = await resolve_customer_id(user, function=PORTAL_FUNCTION, persist=True)
    if not customer_id:
        raise NoCustomerError("No Stripe customer found")

    session = await call_stripe(
        stripe.billing_portal.Session.create,
        customer=customer_id,
        return_url=settings.portal_return_url or _frontend_url("account"),
    )
    portal_url = session.get("url")
    if not isinstance(portal_url, str):
        raise UpstreamError("Stripe portal session missing url")
    log_step(logger, PORTAL_FUNCTION, "Portal session created", customer_id=customer_id)
    return PortalResponse(url=portal_url)


__all__ = ["NoCustomerError", "create_checkout", "create_portal_session"]
