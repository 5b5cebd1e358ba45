"""
cache.py - Lookup Cache: time-bounded, in-memory cache in front of an unreliable lookup.

Design:
  - Process-local dict, not persisted across restarts
  - get() serves fresh entries only; stale entries stay in place for the fallback path
  - resolve() returns a stale value with a warning when the live lookup fails
  - Expired entries are evicted only by an explicit clear_expired() call
  - Concurrent misses for the same key share one in-flight lookup (single-flight)
"""
from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import Any, Awaitable, Callable, Optional

from udyam_wizard.clock import Clock, utc_now
from udyam_wizard.config import settings
from udyam_wizard.errors import LookupFailure
from udyam_wizard.location.schemas import CacheEntry

logger = logging.getLogger(__name__)

Fetcher = Callable[[str], Awaitable[Any]]


class LookupCache:
    """TTL cache with stale-on-error fallback."""

    def __init__(
        self,
        *,
        ttl_seconds: Optional[int] = None,
        single_flight: bool = True,
        clock: Clock = utc_now,
    ) -> None:
        self.ttl = timedelta(seconds=ttl_seconds if ttl_seconds is not None else settings.cache_ttl_seconds)
        self.single_flight = single_flight
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._in_flight: dict[str, asyncio.Task] = {}

    def _is_fresh(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.timestamp < self.ttl

    # ---------------------------------------------------------------------------
    # Basic accessors
    # ---------------------------------------------------------------------------

    def get(self, key: str) -> Optional[Any]:
        """Fresh-only lookup. Stale entries read as absent but are not deleted."""
        entry = self._entries.get(key)
        if entry is None or not self._is_fresh(entry):
            return None
        logger.debug("Cache hit key=%s", key)
        return entry.data

    def peek(self, key: str) -> Optional[Any]:
        """Any entry for key, fresh or stale."""
        entry = self._entries.get(key)
        return entry.data if entry is not None else None

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = CacheEntry(data=value, timestamp=self._clock())
        logger.debug("Cached value key=%s", key)

    def size(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def clear_expired(self) -> int:
        """Evict entries past the TTL. Returns how many were removed."""
        expired = [key for key, entry in self._entries.items() if not self._is_fresh(entry)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.info("Cleared expired cache entries count=%d", len(expired))
        return len(expired)

    def stats(self) -> dict[str, Any]:
        valid = sum(1 for entry in self._entries.values() if self._is_fresh(entry))
        return {
            "total_entries": len(self._entries),
            "valid_entries": valid,
            "expired_entries": len(self._entries) - valid,
            "ttl_hours": self.ttl.total_seconds() / 3600,
        }

    # ---------------------------------------------------------------------------
    # Composite resolve
    # ---------------------------------------------------------------------------

    async def resolve(self, key: str, fetch: Fetcher) -> Any:
        """
        Return a value for key, calling fetch(key) only on a fresh-cache miss.

        Raises:
            LookupFailure: fetch failed and no entry (fresh or stale) exists for key.
                The original exception is chained as __cause__.
        """
        cached = self.get(key)
        if cached is not None:
            return cached

        if not self.single_flight:
            return await self._fetch_and_store(key, fetch)

        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._fetch_and_store(key, fetch))
            self._in_flight[key] = task
            task.add_done_callback(lambda done: self._finish_in_flight(key, done))
        # shield: one cancelled waiter must not cancel the lookup the others share
        return await asyncio.shield(task)

    def _finish_in_flight(self, key: str, task: asyncio.Task) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        if not task.cancelled():
            # Mark the exception retrieved; every waiter re-raises it on its own
            task.exception()

    async def _fetch_and_store(self, key: str, fetch: Fetcher) -> Any:
        try:
            value = await fetch(key)
        except Exception as exc:
            stale = self.peek(key)
            if stale is not None:
                logger.warning("Lookup failed, serving stale cache value key=%s error=%s", key, exc)
                return stale
            logger.warning("Lookup failed with no cached value key=%s error=%s", key, exc)
            raise LookupFailure(key, f"Lookup failed for key {key!r}: {exc}") from exc
        self.set(key, value)
        return value

    def dispose(self) -> None:
        for task in self._in_flight.values():
            task.cancel()
        self._in_flight.clear()
        self.clear()
