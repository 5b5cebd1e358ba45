"""
registration.py - Registration and PIN-code endpoints of the Udyam API.

These are the collaborator calls the wizard layer consumes:
  RegistrationApi.submit_step(step_number, payload) -> StepSubmission | raises ApiError
  RegistrationApi.get_status(session_id)            -> RegistrationStatus | raises ApiError
  LocationApi.lookup(pincode)                       -> LocationData | raises ApiError
"""
from __future__ import annotations

import logging
from typing import Any, Mapping

from pydantic import ValidationError

from udyam_wizard.errors import ApiError
from udyam_wizard.location.schemas import LocationData
from udyam_wizard.transport.client import ApiClient
from udyam_wizard.transport.schemas import RegistrationStatus, StepSubmission

logger = logging.getLogger(__name__)


def _parse(model: type, data: Any, what: str) -> Any:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise ApiError(f"Malformed {what} response", status=200, code="BAD_RESPONSE", details=exc.errors()) from exc


class RegistrationApi:
    def __init__(self, client: ApiClient) -> None:
        self._client = client

    async def submit_step(self, step_number: int, payload: Mapping[str, Any]) -> StepSubmission:
        data = await self._client.post(f"/registration/step{step_number}", dict(payload))
        result = _parse(StepSubmission, data, "step submission")
        # Log only the correlator and outcome; payload carries Aadhaar/PAN
        logger.info(
            "Step submitted step=%d success=%s session_id=%s",
            step_number,
            result.success,
            result.session_id,
        )
        return result

    async def get_status(self, session_id: str) -> RegistrationStatus:
        data = await self._client.get(f"/registration/{session_id}/status")
        return _parse(RegistrationStatus, data, "registration status")


class LocationApi:
    def __init__(self, client: ApiClient) -> None:
        self._client = client

    async def lookup(self, pincode: str) -> LocationData:
        """Resolve a PIN code through the API. The body is {success, data: {...}, metadata}."""
        body = await self._client.get(f"/pincode/{pincode}/location")
        data = body.get("data") if isinstance(body, dict) else None
        if data is None:
            raise ApiError("Location response has no data", status=200, code="BAD_RESPONSE", details=body)
        return _parse(LocationData, data, "location")
