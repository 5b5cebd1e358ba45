"""
sanitizer.py - Fixed field lists applied before a recovery snapshot is written.

DROPPED_FIELDS are one-time secrets and never survive a restart.
MASKED_FIELDS are quasi-identifiers: kept so the user recognises what they
typed, but reduced to a fixed mask plus a short suffix.

These lists are explicit. A new sensitive form field must be added here by hand.
"""
from __future__ import annotations

from typing import Any, Callable, Mapping

DROPPED_FIELDS: tuple[str, ...] = ("otp", "password", "confirmPassword")

AADHAAR_MASK_PREFIX = "XXXX-XXXX-"
AADHAAR_LENGTH = 12


def mask_aadhaar(aadhaar: Any) -> Any:
    """
    Keep only the last 4 characters of a complete Aadhaar number.
    Values shorter than 12 characters (still being typed) are returned unchanged.
    """
    if not isinstance(aadhaar, str) or len(aadhaar) < AADHAAR_LENGTH:
        return aadhaar
    return AADHAAR_MASK_PREFIX + aadhaar[-4:]


MASKED_FIELDS: dict[str, Callable[[Any], Any]] = {
    "aadhaarNumber": mask_aadhaar,
}


def sanitize_form_data(form_data: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of form_data with secrets removed and quasi-identifiers masked."""
    sanitized = {k: v for k, v in form_data.items() if k not in DROPPED_FIELDS}
    for field, mask in MASKED_FIELDS.items():
        if sanitized.get(field):
            sanitized[field] = mask(sanitized[field])
    return sanitized
