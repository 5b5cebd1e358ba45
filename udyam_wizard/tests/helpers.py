"""
Test helpers shared across suites.

FakeClock replaces the wall clock so TTL behaviour is tested by moving time,
never by sleeping.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

START = datetime(2026, 10, 17, 9, 30, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)
