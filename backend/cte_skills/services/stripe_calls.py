from __future__ import annotations

from typing import Any, Callable, Mapping, TypeVar

import stripe
from starlette.concurrency import run_in_threadpool

from ..errors import UpstreamError

T = TypeVar("T")


async def call_stripe(operation: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run a blocking Stripe SDK call off the event loop; SDK errors become ``UpstreamError``."""
    try:
        return await run_in_threadpool(operation, *args, **kwargs)
    except stripe.error.StripeError as exc:  # type: ignore[attr-defined]
        message = getattr(exc, "user_message", None) or str(exc) or exc.__class__.__name__
        raise UpstreamError(f"Stripe error: {message}") from exc


def list_data(result: Any) -> list[Any]:
    data = result.get("data") if isinstance(result, Mapping) else getattr(result, "data", None)
    return list(data) if data else []


def object_id(value: Any) -> str | None:
    """Stripe fields may hold an id or an expanded object."""
    if isinstance(value, str):
        return value or None
    if isinstance(value, Mapping):
        ident = value.get("id")
        return ident if isinstance(ident, str) else None
    return None


__all__ = ["call_stripe", "list_data", "object_id"]
