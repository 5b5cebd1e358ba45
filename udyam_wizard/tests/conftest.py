"""
Shared fixtures for udyam_wizard tests.

MemoryKeyValueStore stands in for browser local storage; time comes from
FakeClock (see helpers.py).
"""
from __future__ import annotations

from typing import Iterator

import pytest

from udyam_wizard.events import EventBus
from udyam_wizard.recovery.service import RecoveryService
from udyam_wizard.session.store import SessionStore
from udyam_wizard.storage import MemoryKeyValueStore

from udyam_wizard.tests.helpers import FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def session_store(storage: MemoryKeyValueStore, clock: FakeClock) -> SessionStore:
    return SessionStore(storage, ttl_seconds=86400, total_steps=2, prefix="udyam_", clock=clock)


@pytest.fixture
def events() -> EventBus:
    return EventBus()


@pytest.fixture
def recovery(storage: MemoryKeyValueStore, events: EventBus, clock: FakeClock) -> Iterator[RecoveryService]:
    service = RecoveryService(
        storage,
        events=events,
        ttl_seconds=86400,
        auto_save_interval=5.0,
        prefix="udyam_",
        origin_url="http://test/registration",
        clock=clock,
    )
    yield service
    service.dispose()
