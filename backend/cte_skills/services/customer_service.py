from __future__ import annotations

import logging
from typing import Any, Mapping

import psycopg
import stripe

from ..errors import AuthenticationError, UpstreamError
from ..logging_utils import log_step
from ..repositories import profiles as profiles_repo
from .stripe_calls import call_stripe, list_data, object_id

logger = logging.getLogger(__name__)


async def find_customer_id_by_email(email: str) -> str | None:
    result = await call_stripe(stripe.Customer.list, email=email, limit=1)
    customers = list_data(result)
    if not customers:
        return None
    return object_id(customers[0])


async def customer_exists(customer_id: str) -> bool:
    """False when Stripe reports the customer deleted or unknown."""
    try:
        customer = await call_stripe(stripe.Customer.retrieve, customer_id)
    except UpstreamError as exc:
        if getattr(exc.__cause__, "code", None) == "resource_missing":
            return False
        raise
    if isinstance(customer, Mapping):
        return not customer.get("deleted")
    return not getattr(customer, "deleted", False)


async def resolve_customer_id(
    user: Mapping[str, Any],
    *,
    function: str,
    persist: bool,
) -> str | None:
    """Return the user's Stripe customer id, or None when Stripe has no customer.

    The profile's cached ``stripe_customer_id`` wins while Stripe still knows
    it; otherwise the customer is looked up by email. With ``persist`` a
    looked-up id is written back to the profile; that write is best-effort.
    """
    cached = user.get("stripe_customer_id")
    if isinstance(cached, str) and cached:
        if await customer_exists(cached):
            log_step(logger, function, "Using cached Stripe customer", customer_id=cached)
            return cached
        log_step(
            logger,
            function,
            "Cached Stripe customer is gone, looking up by email",
            level=logging.WARNING,
            customer_id=cached,
        )

    email = user.get("email")
    if not email:
        raise AuthenticationError("User not authenticated or email not available")

    customer_id = await find_customer_id_by_email(email)
    if not customer_id:
        return None
    log_step(logger, function, "Found Stripe customer", customer_id=customer_id)

    if persist:
        try:
            await profiles_repo.set_stripe_customer_id(str(user["id"]), customer_id)
        except psycopg.Error as exc:
            log_step(
                logger,
                function,
                "Failed to store customer id on profile",
                level=logging.WARNING,
                error=str(exc),
            )
    return customer_id


__all__ = ["customer_exists", "find_customer_id_by_email", "resolve_customer_id"]
