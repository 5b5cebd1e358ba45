"""
udyam_wizard - session, recovery and lookup-cache layer for the Udyam
registration wizard.
"""
from udyam_wizard.errors import (
    ApiError,
    InvalidPincode,
    LookupFailure,
    StorageUnavailable,
    SubmissionFailure,
    WizardError,
)
from udyam_wizard.location import LocationService, LookupCache
from udyam_wizard.recovery import RecoveryService
from udyam_wizard.session import SessionRecord, SessionStore
from udyam_wizard.storage import MemoryKeyValueStore, RedisKeyValueStore
from udyam_wizard.wizard import RegistrationWizard

__all__ = [
    "ApiError",
    "InvalidPincode",
    "LocationService",
    "LookupCache",
    "LookupFailure",
    "MemoryKeyValueStore",
    "RecoveryService",
    "RedisKeyValueStore",
    "RegistrationWizard",
    "SessionRecord",
    "SessionStore",
    "StorageUnavailable",
    "SubmissionFailure",
    "WizardError",
]
