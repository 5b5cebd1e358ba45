"""
service.py - PIN code autofill: validation, cached lookup, static fallback.

Resolution order for get_location_by_pincode():
  1. fresh cache entry
  2. live API lookup (cached on success)
  3. stale cache entry (inside LookupCache.resolve)
  4. FALLBACK_LOCATIONS for well-known metro PIN codes
  5. LookupFailure -> caller shows "could not auto-fill, please enter manually"

Fallback table values are returned but never written into the cache, so the
next call still tries the live API.
"""
from __future__ import annotations

import asyncio
import logging
import re
from typing import TYPE_CHECKING, Iterable

from udyam_wizard.errors import InvalidPincode, LookupFailure
from udyam_wizard.location.cache import LookupCache
from udyam_wizard.location.schemas import LocationData

if TYPE_CHECKING:
    from udyam_wizard.transport.registration import LocationApi

logger = logging.getLogger(__name__)

PINCODE_PATTERN = re.compile(r"^\d{6}$")

# Head post offices of the largest metros
FALLBACK_LOCATIONS: dict[str, dict[str, str]] = {
    "110001": {"city": "New Delhi", "state": "Delhi", "district": "Central Delhi"},
    "400001": {"city": "Mumbai", "state": "Maharashtra", "district": "Mumbai City"},
    "560001": {"city": "Bangalore", "state": "Karnataka", "district": "Bangalore Urban"},
    "600001": {"city": "Chennai", "state": "Tamil Nadu", "district": "Chennai"},
    "700001": {"city": "Kolkata", "state": "West Bengal", "district": "Kolkata"},
    "500001": {"city": "Hyderabad", "state": "Telangana", "district": "Hyderabad"},
    "411001": {"city": "Pune", "state": "Maharashtra", "district": "Pune"},
    "380001": {"city": "Ahmedabad", "state": "Gujarat", "district": "Ahmedabad"},
}


def validate_pincode(pincode: str) -> bool:
    return isinstance(pincode, str) and PINCODE_PATTERN.match(pincode) is not None


def get_fallback_location(pincode: str) -> LocationData | None:
    fallback = FALLBACK_LOCATIONS.get(pincode)
    if fallback is None:
        return None
    return LocationData(pincode=pincode, **fallback)


class LocationService:
    def __init__(self, api: "LocationApi", cache: LookupCache) -> None:
        self._api = api
        self.cache = cache

    async def get_location_by_pincode(self, pincode: str) -> LocationData:
        """
        Resolve a PIN code to its locality.

        Raises:
            InvalidPincode: pincode is not exactly six digits (no lookup attempted).
            LookupFailure: live lookup failed, nothing cached and no fallback entry.
        """
        if not validate_pincode(pincode):
            raise InvalidPincode("Invalid PIN code format. Must be 6 digits.")

        try:
            return await self.cache.resolve(pincode, self._api.lookup)
        except LookupFailure:
            fallback = get_fallback_location(pincode)
            if fallback is None:
                logger.error("All location lookup methods failed pincode=%s", pincode)
                raise
            logger.info("Location served from static fallback pincode=%s", pincode)
            return fallback

    async def preload_locations(self, pincodes: Iterable[str]) -> int:
        """
        Warm the cache concurrently. Failures are logged, never raised.
        Returns how many PIN codes resolved.
        """
        pincodes = list(pincodes)
        results = await asyncio.gather(
            *(self.get_location_by_pincode(p) for p in pincodes),
            return_exceptions=True,
        )
        resolved = 0
        for pincode, result in zip(pincodes, results):
            if isinstance(result, Exception):
                logger.warning("Failed to preload location pincode=%s error=%s", pincode, result)
            else:
                resolved += 1
        return resolved

    def cache_info(self) -> dict[str, float]:
        return {
            "size": self.cache.size(),
            "ttl_hours": self.cache.ttl.total_seconds() / 3600,
        }
