"""
PIN code lookup tests: validation, cache-then-API order, static fallback, preload.
"""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from udyam_wizard.errors import ApiError, InvalidPincode, LookupFailure
from udyam_wizard.location.cache import LookupCache
from udyam_wizard.location.schemas import LocationData
from udyam_wizard.location.service import (
    FALLBACK_LOCATIONS,
    LocationService,
    get_fallback_location,
    validate_pincode,
)

from udyam_wizard.tests.helpers import FakeClock

PUNE_EAST = LocationData(pincode="411014", city="Pune", state="Maharashtra", district="Pune")


def _service(clock: FakeClock, lookup: AsyncMock) -> LocationService:
    api = MagicMock()
    api.lookup = lookup
    return LocationService(api, LookupCache(ttl_seconds=86400, clock=clock))


@pytest.mark.parametrize("pincode, valid", [
    ("411014", True),
    ("41101", False),
    ("4110145", False),
    ("41101a", False),
    (" 411014", False),
    ("", False),
])
def test_validate_pincode(pincode: str, valid: bool) -> None:
    assert validate_pincode(pincode) is valid


def test_fallback_table_covers_metros() -> None:
    assert len(FALLBACK_LOCATIONS) == 8
    delhi = get_fallback_location("110001")
    assert delhi.city == "New Delhi"
    assert delhi.country == "India"
    assert get_fallback_location("999999") is None


@pytest.mark.asyncio
async def test_invalid_pincode_never_hits_api(clock: FakeClock) -> None:
    lookup = AsyncMock()
    service = _service(clock, lookup)

    with pytest.raises(InvalidPincode):
        await service.get_location_by_pincode("12ab56")
    lookup.assert_not_awaited()


@pytest.mark.asyncio
async def test_live_lookup_is_cached(clock: FakeClock) -> None:
    lookup = AsyncMock(return_value=PUNE_EAST)
    service = _service(clock, lookup)

    assert await service.get_location_by_pincode("411014") == PUNE_EAST
    assert await service.get_location_by_pincode("411014") == PUNE_EAST
    lookup.assert_awaited_once_with("411014")
    assert service.cache_info() == {"size": 1, "ttl_hours": 24.0}


@pytest.mark.asyncio
async def test_stale_cache_beats_fallback_table(clock: FakeClock) -> None:
    cached = LocationData(pincode="110001", city="Delhi (cached)", state="Delhi")
    lookup = AsyncMock(side_effect=[cached, ApiError("down", status=503)])
    service = _service(clock, lookup)

    await service.get_location_by_pincode("110001")
    clock.advance(hours=25)

    assert (await service.get_location_by_pincode("110001")).city == "Delhi (cached)"


@pytest.mark.asyncio
async def test_fallback_used_when_api_fails_and_not_cached(clock: FakeClock) -> None:
    lookup = AsyncMock(side_effect=ApiError("down", status=503))
    service = _service(clock, lookup)

    location = await service.get_location_by_pincode("400001")

    assert location.city == "Mumbai"
    assert service.cache.size() == 0
    await service.get_location_by_pincode("400001")
    assert lookup.await_count == 2


@pytest.mark.asyncio
async def test_unknown_pincode_with_api_down_raises(clock: FakeClock) -> None:
    service = _service(clock, AsyncMock(side_effect=ApiError("down", status=503)))

    with pytest.raises(LookupFailure):
        await service.get_location_by_pincode("999999")


@pytest.mark.asyncio
async def test_preload_counts_successes(clock: FakeClock) -> None:
    async def lookup(pincode: str) -> LocationData:
        if pincode == "999999":
            raise ApiError("not found", status=404, code="PINCODE_NOT_FOUND")
        return LocationData(pincode=pincode, city="Somewhere", state="Somestate")

    service = _service(clock, AsyncMock(side_effect=lookup))

    resolved = await service.preload_locations(["411014", "999999", "560034", "bad"])

    assert resolved == 2
    assert service.cache.size() == 2
