"""
Domain time utilities (pure).

Coupon expiry and processor timestamps are compared in UTC only; these
helpers keep that rule in one place.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone


def require_utc_timestamp(name: str, value: datetime) -> None:
    """
    Enforce that a timestamp is timezone-aware with UTC offset 0.

    Raises:
        ValueError: naive or non-UTC timestamp
    """

    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"{name} must be timezone-aware (UTC)")
    if value.utcoffset() != timedelta(0):
        raise ValueError(f"{name} must be a UTC timestamp (offset 0)")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
