"""
schemas.py - Session Store data contracts.

SessionRecord is the authoritative wizard state. It is persisted as five
separate storage keys (see storage.py), never as one blob.
"""
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class SessionRecord(BaseModel):
    """
    Authoritative in-progress wizard state.

    completed_steps[i] is True iff step i+1 was confirmed by the server.
    Its length is fixed when the session is created and equals the step count.
    """
    model_config = ConfigDict(extra="forbid")

    session_id: str = Field(..., min_length=1, description="Server-correlatable id; immutable once set.")
    current_step: int = Field(default=1, ge=1, description="Step currently presented (1-based).")
    form_data: dict[str, Any] = Field(default_factory=dict)
    completed_steps: List[bool] = Field(default_factory=list)
    last_updated: Optional[datetime] = Field(
        default=None,
        description="Stamped by SessionStore.save(); None until first saved.",
    )


class SessionInfo(BaseModel):
    """Debug summary of the stored session. Lists field names only, never values."""

    exists: bool
    session_id: Optional[str] = None
    current_step: Optional[int] = None
    completed_steps: List[bool] = Field(default_factory=list)
    last_updated: Optional[datetime] = None
    form_data_keys: List[str] = Field(default_factory=list)
    is_expired: bool = False
