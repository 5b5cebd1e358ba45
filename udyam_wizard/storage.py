"""
storage.py - Durable key-value store adapters.

Namespace conventions (prefix from settings.storage_prefix, default "udyam_"):
  {prefix}session_id       -> raw session id string
  {prefix}form_data        -> JSON object
  {prefix}current_step     -> stringified integer
  {prefix}completed_steps  -> JSON array of booleans
  {prefix}last_updated     -> ISO-8601 timestamp
  {prefix}form_recovery    -> JSON recovery snapshot (separate namespace)

Design:
  - Synchronous, string-only get/set/remove (the browser local-storage contract)
  - Every backend failure surfaces as StorageUnavailable; callers decide whether to absorb it
  - No TTL on stored keys: expiry is checked lazily by the owners of the data
  - Logs only key names, never values
"""
from __future__ import annotations

import logging
from typing import Iterator, Optional, Protocol

import redis
from redis.exceptions import RedisError

from udyam_wizard.errors import StorageUnavailable

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Key name constants
# ---------------------------------------------------------------------------
SESSION_ID_KEY = "session_id"
FORM_DATA_KEY = "form_data"
CURRENT_STEP_KEY = "current_step"
COMPLETED_STEPS_KEY = "completed_steps"
LAST_UPDATED_KEY = "last_updated"
RECOVERY_KEY = "form_recovery"

SESSION_KEYS = (
    SESSION_ID_KEY,
    FORM_DATA_KEY,
    CURRENT_STEP_KEY,
    COMPLETED_STEPS_KEY,
    LAST_UPDATED_KEY,
)


def make_key(prefix: str, name: str) -> str:
    """Build a namespaced storage key: {prefix}{name}"""
    return f"{prefix}{name}"


# ---------------------------------------------------------------------------
# Adapter contract
# ---------------------------------------------------------------------------

class KeyValueStore(Protocol):
    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


# ---------------------------------------------------------------------------
# In-process store
# ---------------------------------------------------------------------------

class MemoryKeyValueStore:
    """
    Dict-backed store with the failure modes of browser local storage.

    quota_bytes: total size of keys + values (UTF-16 code units, like the browser);
                 a write that would exceed it raises StorageUnavailable.
    disabled:    every operation raises StorageUnavailable (private mode, blocked storage).
    """

    def __init__(self, quota_bytes: Optional[int] = None, disabled: bool = False) -> None:
        self._data: dict[str, str] = {}
        self.quota_bytes = quota_bytes
        self.disabled = disabled

    def _check_enabled(self) -> None:
        if self.disabled:
            raise StorageUnavailable("Storage is disabled")

    @staticmethod
    def _entry_size(key: str, value: str) -> int:
        return (len(key) + len(value)) * 2

    def used_bytes(self) -> int:
        return sum(self._entry_size(k, v) for k, v in self._data.items())

    def get_item(self, key: str) -> Optional[str]:
        self._check_enabled()
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._check_enabled()
        if not isinstance(value, str):
            raise TypeError(f"Storage values must be str, got {type(value).__name__}")
        if self.quota_bytes is not None:
            current = self._data.get(key)
            projected = self.used_bytes() + self._entry_size(key, value)
            if current is not None:
                projected -= self._entry_size(key, current)
            if projected > self.quota_bytes:
                raise StorageUnavailable(
                    f"Quota exceeded writing key={key} ({projected} > {self.quota_bytes} bytes)"
                )
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._check_enabled()
        self._data.pop(key, None)

    def keys(self) -> Iterator[str]:
        return iter(list(self._data))

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data


# ---------------------------------------------------------------------------
# Redis-backed store
# ---------------------------------------------------------------------------

class RedisKeyValueStore:
    """
    Adapter over a synchronous redis-py client created with decode_responses=True.
    RedisError (connection refused, OOM, READONLY replica) becomes StorageUnavailable.
    """

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    def get_item(self, key: str) -> Optional[str]:
        try:
            return self._client.get(key)
        except RedisError as exc:
            raise StorageUnavailable(f"Redis GET failed key={key}: {exc}") from exc

    def set_item(self, key: str, value: str) -> None:
        try:
            self._client.set(key, value)
        except RedisError as exc:
            raise StorageUnavailable(f"Redis SET failed key={key}: {exc}") from exc

    def remove_item(self, key: str) -> None:
        try:
            self._client.delete(key)
        except RedisError as exc:
            raise StorageUnavailable(f"Redis DEL failed key={key}: {exc}") from exc

    def close(self) -> None:
        self._client.close()


def create_redis_store(redis_url: str) -> RedisKeyValueStore:
    """
    Create a Redis-backed store.
    Verifies connectivity with PING before returning.
    """
    client = redis.Redis.from_url(
        redis_url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=4,
    )
    client.ping()
    logger.info("Redis storage connection established at %s", redis_url)
    return RedisKeyValueStore(client)
