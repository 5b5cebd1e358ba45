"""
clock.py - Time source and ISO-8601 helpers.

All expiry checks go through an injectable Clock (a zero-argument callable
returning an aware UTC datetime) so tests can move time forward.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: str) -> datetime:
    """
    Parse an ISO-8601 timestamp. Naive values are taken to be UTC.

    Raises:
        ValueError: if value is not a string or not a valid point in time.
    """
    if not isinstance(value, str):
        raise ValueError(f"Timestamp must be a string, got {type(value).__name__}")
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
