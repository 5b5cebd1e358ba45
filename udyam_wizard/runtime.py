"""
runtime.py - Composition root: builds and disposes every service.

Usage:
    configure_logging(settings.debug)      # application entrypoint only
    async with wizard_runtime() as rt:
        if rt.recovery.has_snapshot():
            ...
        rt.wizard.restore()

Startup:
  1. Durable storage (Redis when UDYAM_REDIS_URL is set, otherwise in-memory)
  2. Session Store, Recovery Service, Lookup Cache
  3. httpx API client and the endpoint wrappers
Shutdown:
  1. Stop auto-save, drop cache and in-flight lookups
  2. Close the HTTP client and the Redis connection
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

import httpx

from udyam_wizard.clock import Clock, utc_now
from udyam_wizard.config import Settings, settings as default_settings
from udyam_wizard.events import EventBus
from udyam_wizard.location.cache import LookupCache
from udyam_wizard.location.service import LocationService
from udyam_wizard.recovery.service import RecoveryService
from udyam_wizard.session.store import SessionStore
from udyam_wizard.storage import KeyValueStore, MemoryKeyValueStore, RedisKeyValueStore, create_redis_store
from udyam_wizard.transport.client import ApiClient
from udyam_wizard.transport.registration import LocationApi, RegistrationApi
from udyam_wizard.wizard import RegistrationWizard

logger = logging.getLogger(__name__)


def configure_logging(debug: bool = False) -> None:
    """Root logging setup for an application entrypoint. build_runtime() never calls it."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )


@dataclass
class WizardRuntime:
    settings: Settings
    storage: KeyValueStore
    events: EventBus
    session_store: SessionStore
    recovery: RecoveryService
    lookup_cache: LookupCache
    api_client: ApiClient
    registration_api: RegistrationApi
    location: LocationService
    wizard: RegistrationWizard

    async def aclose(self) -> None:
        self.recovery.dispose()
        self.lookup_cache.dispose()
        self.events.clear()
        await self.api_client.aclose()
        if isinstance(self.storage, RedisKeyValueStore):
            self.storage.close()
        logger.info("Wizard runtime closed")


def build_runtime(
    config: Optional[Settings] = None,
    *,
    storage: Optional[KeyValueStore] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    clock: Clock = utc_now,
) -> WizardRuntime:
    """Create every service from config. storage/transport/clock are injectable for tests."""
    config = config or default_settings

    if storage is None:
        if config.redis_url:
            storage = create_redis_store(config.redis_url)
        else:
            storage = MemoryKeyValueStore(quota_bytes=config.storage_quota_bytes)

    events = EventBus()
    session_store = SessionStore(
        storage,
        ttl_seconds=config.session_ttl_seconds,
        total_steps=config.total_steps,
        prefix=config.storage_prefix,
        clock=clock,
    )
    recovery = RecoveryService(
        storage,
        events=events,
        ttl_seconds=config.recovery_ttl_seconds,
        auto_save_interval=config.auto_save_interval_seconds,
        prefix=config.storage_prefix,
        origin_url=config.origin_url,
        clock=clock,
    )
    lookup_cache = LookupCache(ttl_seconds=config.cache_ttl_seconds, clock=clock)
    api_client = ApiClient(
        config.api_base_url,
        timeout=config.api_timeout_seconds,
        max_retries=config.api_max_retries,
        retry_delay=config.api_retry_delay_seconds,
        transport=transport,
    )
    registration_api = RegistrationApi(api_client)
    location = LocationService(LocationApi(api_client), lookup_cache)
    wizard = RegistrationWizard(session_store, registration_api, total_steps=config.total_steps)

    logger.info("udyam-wizard v%s runtime ready (storage=%s)", config.app_version, type(storage).__name__)
    return WizardRuntime(
        settings=config,
        storage=storage,
        events=events,
        session_store=session_store,
        recovery=recovery,
        lookup_cache=lookup_cache,
        api_client=api_client,
        registration_api=registration_api,
        location=location,
        wizard=wizard,
    )


@asynccontextmanager
async def wizard_runtime(
    config: Optional[Settings] = None,
    *,
    storage: Optional[KeyValueStore] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    clock: Clock = utc_now,
) -> AsyncIterator[WizardRuntime]:
    runtime = build_runtime(config, storage=storage, transport=transport, clock=clock)
    try:
        yield runtime
    finally:
        await runtime.aclose()
