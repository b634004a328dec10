from __future__ import annotations

import json
import logging
from logging.config import dictConfig
from typing import Any, Dict

_RESERVED_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
    }
)


class JSONFormatter(logging.Formatter):
    """
    Render log records as one JSON object per line.

    Backend function steps from ``log_step`` carry ``function`` and ``details``
    at the top level; any other ``extra=`` value (and the request context
    injected by ``RequestContextFilter``) ends up under ``context``.
    """

    def format(self, record: logging.LogRecord) -> str:  # pragma: no cover - formatting only
        data: Dict[str, Any] = {
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "timestamp": self.formatTime(record, self.datefmt),
        }
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)

        extras = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS and value is not None
        }
        for key in ("function", "details"):
            if key in extras:
                data[key] = extras.pop(key)
        if extras:
            data["context"] = extras
        return json.dumps(data, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO") -> None:
    """
    Configure root logging to emit JSON lines. Safe to call multiple times.
    """

    config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "request_context": {
                "()": "cte_skills.logging_context.RequestContextFilter",
            }
        },
        "formatters": {
            "json": {
                "()": "cte_skills.logging_utils.JSONFormatter",
                "datefmt": "%Y-%m-%dT%H:%M:%S%z",
            }
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "json",
                "filters": ["request_context"],
                "level": level,
            }
        },
        "root": {
            "handlers": ["default"],
            "level": level,
        },
    }
    dictConfig(config)


def log_step(
    logger: logging.Logger,
    function: str,
    step: str,
    level: int = logging.INFO,
    **details: Any,
) -> None:
    """Emit one structured step line for a backend function, e.g. ``[SYNC-SUBSCRIPTION] Found customer``."""
    tag = function.upper()
    logger.log(level, "[%s] %s", tag, step, extra={"function": function, "details": details or None})


__all__ = ["JSONFormatter", "log_step", "setup_logging"]
