from __future__ import annotations

import logging
from contextvars import ContextVar, Token
from dataclasses import dataclass

import sentry_sdk


@dataclass
class RequestLogContext:
    request_id: str | None = None
    user_id: str | None = None
    function: str | None = None


_request_context: ContextVar[RequestLogContext | None] = ContextVar("request_context", default=None)


def _current() -> RequestLogContext:
    context = _request_context.get()
    if context is None:
        # No middleware in scripts and direct service calls.
        context = RequestLogContext()
        _request_context.set(context)
    return context


class RequestContextFilter(logging.Filter):
    """Stamp request_id, user_id and the running backend function on each record."""

    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover - formatting only
        context = _request_context.get() or RequestLogContext()
        record.request_id = context.request_id
        record.user_id = context.user_id
        if not hasattr(record, "function"):
            record.function = context.function
        return True


def push_request_context(request_id: str) -> Token:
    return _request_context.set(RequestLogContext(request_id=request_id))


def pop_request_context(token: Token) -> None:
    _request_context.reset(token)


def set_user_context(user_id: str | None) -> None:
    _current().user_id = user_id
    sentry_sdk.set_user({"id": user_id} if user_id else None)


def set_function_context(function: str) -> None:
    _current().function = function
    sentry_sdk.set_tag("function", function)


__all__ = [
    "RequestContextFilter",
    "RequestLogContext",
    "pop_request_context",
    "push_request_context",
    "set_function_context",
    "set_user_context",
]
