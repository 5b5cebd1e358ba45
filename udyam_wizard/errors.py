"""
errors.py - Exception taxonomy for the wizard state layer.

Infrastructure failures (StorageUnavailable, CorruptData) are absorbed at the
Session/Recovery operation boundaries. Business failures (LookupFailure,
SubmissionFailure, ApiError) always reach the caller.
"""
from __future__ import annotations

from typing import Any, Optional


class WizardError(Exception):
    """Base class for every error raised by udyam_wizard."""


class StorageUnavailable(WizardError):
    """The durable store refused a read or write (quota exceeded, disabled, unreachable)."""


class CorruptData(WizardError, ValueError):
    """Stored data could not be parsed or failed structural validation."""


class InvalidPincode(ValueError):
    """PIN code is not exactly six digits."""


class LookupFailure(WizardError):
    """External lookup failed and no cached value exists to fall back on."""

    def __init__(self, key: str, message: str = "") -> None:
        self.key = key
        super().__init__(message or f"Lookup failed for key {key!r}")


class SubmissionFailure(WizardError):
    """The server processed a step submission but rejected it."""

    def __init__(self, step: int, message: str, response: Optional[Any] = None) -> None:
        self.step = step
        self.response = response
        super().__init__(message)


class ApiError(WizardError):
    """
    Non-2xx response from the registration API.

    status:  HTTP status code (0 when the request never reached the server)
    code:    semantic code from the {error: {code, message, details}} envelope
    details: envelope details, or the raw body when no envelope was returned
    """

    def __init__(
        self,
        message: str,
        status: int = 0,
        code: str = "HTTP_ERROR",
        details: Any = None,
    ) -> None:
        self.status = status
        self.code = code
        self.details = details
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return self.status >= 500 or self.status in (408, 429)
