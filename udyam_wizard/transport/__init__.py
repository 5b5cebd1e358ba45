"""
transport/ - httpx client for the registration and PIN-code endpoints.
"""
from udyam_wizard.transport.client import ApiClient
from udyam_wizard.transport.registration import LocationApi, RegistrationApi
from udyam_wizard.transport.schemas import RegistrationStatus, StepSubmission

__all__ = ["ApiClient", "LocationApi", "RegistrationApi", "RegistrationStatus", "StepSubmission"]
