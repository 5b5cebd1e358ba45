"""
schemas.py - Registration API response contracts (only the fields this package reads).
"""
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class StepSubmission(BaseModel):
    """Response to POST /registration/step{n}."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    success: bool
    session_id: Optional[str] = None
    next_step: Optional[int] = None
    status: Optional[str] = None
    message: str = ""


class RegistrationStatus(BaseModel):
    """Response to GET /registration/{session_id}/status."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    session_id: str
    status: str
    current_step: Optional[int] = None
    steps: dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
