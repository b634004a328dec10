"""Backend functions called by the web client under ``/functions/v1``.

Each function authenticates its caller from the bearer token, does its work
and answers with a JSON body. Any failure, whatever its cause, is answered
with ``{"error": message}`` and status 500.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Awaitable, Callable

import sentry_sdk
from fastapi import APIRouter, Header, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .. import metrics
from ..auth import authenticate_bearer
from ..logging_context import set_function_context
from ..logging_utils import log_step
from ..permissions import ensure_admin
from ..schemas.admin import (
    AdminCustomersRequest,
    CancelSubscriptionRequest,
    RefundRequest,
)
from ..schemas.billing import CheckoutRequest
from ..services import (
    admin_billing_service,
    checkout_service,
    subscription_service,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/functions/v1", tags=["functions"])

Handler = Callable[[], Awaitable[BaseModel]]


def _error_message(exc: Exception) -> str:
    detail = getattr(exc, "detail", None)
    if isinstance(detail, str) and detail:
        return detail
    return str(exc) or exc.__class__.__name__


def _report(exc: Exception) -> None:
    if sentry_sdk.is_initialized():
        sentry_sdk.capture_exception(exc)


async def _invoke(function: str, handler: Handler) -> JSONResponse:
    set_function_context(function)
    metrics.function_invocations_total.labels(function=function).inc()
    log_step(logger, function, "Function started")
    try:
        result = await handler()
    except Exception as exc:  # every failure becomes the function's error body
        kind = getattr(exc, "kind", "internal")
        message = _error_message(exc)
        metrics.function_failures_total.labels(function=function, kind=kind).inc()
        log_step(
            logger,
            function,
            f"ERROR in {function}",
            level=logging.ERROR,
            message=message,
            kind=kind,
        )
        if kind == "internal":
            _report(exc)
        return JSONResponse({"error": message}, status_code=500)
    return JSONResponse(result.model_dump(mode="json", exclude_unset=True))


async def _json_body(request: Request) -> dict[str, Any]:
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError("Invalid JSON body") from exc
    if not isinstance(data, dict):
        raise ValueError("Request body must be a JSON object")
    return data


async def _admin(authorization: str | None) -> dict[str, Any]:
    user = await authenticate_bearer(authorization)
    log_step(logger, "admin", "User authenticated", user_id=user["id"])
    await ensure_admin(user)
    return user


@router.post("/check-subscription")
async def check_subscription(authorization: str | None = Header(default=None)) -> JSONResponse:
    async def handler():
        user = await authenticate_bearer(authorization)
        return await subscription_service.check_subscription(user)

    return await _invoke(subscription_service.CHECK_FUNCTION, handler)


@router.post("/sync-subscription")
async def sync_subscription(authorization: str | None = Header(default=None)) -> JSONResponse:
    async def handler():
        user = await authenticate_bearer(authorization)
        return await subscription_service.sync_subscription(user)

    return await _invoke(subscription_service.SYNC_FUNCTION, handler)


@router.post("/create-checkout")
async def create_checkout(
    request: Request,
    authorization: str | None = Header(default=None),
) -> JSONResponse:
    async def handler():
        user = await authenticate_bearer(authorization)
        payload = CheckoutRequest.model_validate(await _json_body(request))
        return await checkout_service.create_checkout(user, payload.plan)

    return await _invoke(checkout_service.CHECKOUT_FUNCTION, handler)


@router.post("/customer-portal")
async def customer_portal(authorization: str | None = Header(default=None)) -> JSONResponse:
    async def handler():
        user = await authenticate_bearer(authorization)
        return await checkout_service.create_portal_session(user)

    return await _invoke(checkout_service.PORTAL_FUNCTION, handler)


@router.api_route("/admin-customers", methods=["GET", "POST"])
async def admin_customers(
    request: Request,
    authorization: str | None = Header(default=None),
) -> JSONResponse:
    async def handler():
        await _admin(authorization)
        params: dict[str, Any] = dict(request.query_params)
        if request.method == "POST":
            params.update(await _json_body(request))
        payload = AdminCustomersRequest.model_validate(params)
        return await admin_billing_service.list_customers(limit=payload.limit, email=payload.email)

    return await _invoke(admin_billing_service.CUSTOMERS_FUNCTION, handler)


@router.post("/admin-refund")
async def admin_refund(
    request: Request,
    authorization: str | None = Header(default=None),
) -> JSONResponse:
    async def handler():
        await _admin(authorization)
        payload = RefundRequest.model_validate(await _json_body(request))
        return await admin_billing_service.refund_payment(
            payload.payment_intent_id,
            amount=payload.amount,
        )

    return await _invoke(admin_billing_service.REFUND_FUNCTION, handler)


@router.post("/admin-cancel-subscription")
async def admin_cancel_subscription(
    request: Request,
    authorization: str | None = Header(default=None),
) -> JSONResponse:
    async def handler():
        await _admin(authorization)
        payload = CancelSubscriptionRequest.model_validate(await _json_body(request))
        return await admin_billing_service.cancel_subscription(
            payload.subscription_id,
            immediately=payload.immediately,
        )

    return await _invoke(admin_billing_service.CANCEL_FUNCTION, handler)
