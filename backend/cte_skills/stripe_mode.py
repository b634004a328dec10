from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import stripe

from .config import settings
from .errors import MissingConfigurationError
from .schemas.billing import CheckoutPlan


class StripeMode(str, Enum):
    test = "test"
    live = "live"


class StripeConfigurationError(MissingConfigurationError):
    """Raised when Stripe settings cannot be resolved safely."""


@dataclass
class StripeContext:
    secret_key: str
    mode: StripeMode
    api_version: str | None


_KEY_PREFIXES = {
    "sk_test_": StripeMode.test,
    "rk_test_": StripeMode.test,
    "sk_live_": StripeMode.live,
    "rk_live_": StripeMode.live,
}


def resolve_stripe_context() -> StripeContext:
    secret_key = (settings.stripe_secret_key or "").strip()
    if not secret_key:
        raise StripeConfigurationError("STRIPE_SECRET_KEY is not set")
    mode = next(
        (value for prefix, value in _KEY_PREFIXES.items() if secret_key.startswith(prefix)),
        None,
    )
    if mode is None:
        raise StripeConfigurationError("STRIPE_SECRET_KEY must start with sk_test_/sk_live_ (or rk_)")
    return StripeContext(secret_key=secret_key, mode=mode, api_version=settings.stripe_api_version)


def configure_stripe() -> StripeContext:
    """Point the Stripe SDK at the configured account and return the resolved context."""
    context = resolve_stripe_context()
    stripe.api_key = context.secret_key
    if context.api_version:
        stripe.api_version = context.api_version
    return context


def resolve_plan_price(plan: CheckoutPlan) -> str:
    if plan is CheckoutPlan.monthly:
        price_id, env_var = settings.stripe_price_monthly, "STRIPE_PRICE_MONTHLY"
    elif plan is CheckoutPlan.annual:
        price_id, env_var = settings.stripe_price_annual, "STRIPE_PRICE_ANNUAL"
    else:  # pragma: no cover - enum is exhaustive
        raise StripeConfigurationError(f"Unsupported plan: {plan}")
    if not price_id:
        raise StripeConfigurationError(f"{env_var} is not set")
    return price_id


__all__ = [
    "StripeConfigurationError",
    "StripeContext",
    "StripeMode",
    "configure_stripe",
    "resolve_plan_price",
    "resolve_stripe_context",
]
