"""
location/ - PIN code to locality lookup with a TTL cache and static fallback.
"""
from udyam_wizard.location.cache import LookupCache
from udyam_wizard.location.schemas import CacheEntry, LocationData
from udyam_wizard.location.service import FALLBACK_LOCATIONS, LocationService

__all__ = ["FALLBACK_LOCATIONS", "CacheEntry", "LocationData", "LocationService", "LookupCache"]
