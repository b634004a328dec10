"""Stripe timestamp normalization.

Stripe documents its timestamps as Unix seconds, but payloads relayed
through other systems have shown up in milliseconds, microseconds and
nanoseconds. The unit is inferred from magnitude with fixed thresholds:

    n < 1e11   seconds
    n < 1e14   milliseconds
    n < 1e17   microseconds
    otherwise  nanoseconds
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from typing import Any

SECONDS_UPPER_BOUND = 1e11
MILLISECONDS_UPPER_BOUND = 1e14
MICROSECONDS_UPPER_BOUND = 1e17

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def epoch_to_milliseconds(value: Any) -> int | None:
    number = _as_number(value)
    if number is None:
        return None
    if number < SECONDS_UPPER_BOUND:
        scaled = number * 1000
        return int(scaled) if math.isfinite(scaled) else None
    if number < MILLISECONDS_UPPER_BOUND:
        return int(number)
    if number < MICROSECONDS_UPPER_BOUND:
        return math.floor(number / 1000)
    return math.floor(number / 1e6)


def epoch_to_datetime(value: Any) -> datetime | None:
    millis = epoch_to_milliseconds(value)
    if millis is None:
        return None
    try:
        return _EPOCH + timedelta(milliseconds=millis)
    except (OverflowError, OSError, ValueError):
        return None


def to_iso(value: datetime | None) -> str | None:
    """Format as ``YYYY-MM-DDTHH:MM:SS.mmmZ``, the shape browsers emit."""
    if value is None:
        return None
    utc = value.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def epoch_to_iso(value: Any) -> str | None:
    return to_iso(epoch_to_datetime(value))


__all__ = [
    "MICROSECONDS_UPPER_BOUND",
    "MILLISECONDS_UPPER_BOUND",
    "SECONDS_UPPER_BOUND",
    "epoch_to_datetime",
    "epoch_to_iso",
    "epoch_to_milliseconds",
    "to_iso",
]
