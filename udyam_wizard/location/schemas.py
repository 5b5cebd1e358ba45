"""
schemas.py - PIN code lookup data contracts.
"""
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class LocationData(BaseModel):
    """Locality resolved from a 6-digit Indian PIN code."""

    pincode: str = Field(..., pattern=r"^\d{6}$")
    city: str
    state: str
    district: str = ""
    country: str = "India"


class CacheEntry(BaseModel):
    """Cached lookup value with its insertion time."""

    data: Any
    timestamp: datetime
