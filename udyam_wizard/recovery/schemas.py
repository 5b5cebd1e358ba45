"""
schemas.py - Recovery Service data contracts.

RecoverySnapshot is stored as one JSON object under {prefix}form_recovery with
camelCase keys ({formData, step, sessionId, timestamp, metadata}) so drafts
written by the browser client and by this package are interchangeable.
"""
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class RecoverySnapshot(BaseModel):
    """Point-in-time, sanitized copy of form state. Independent of SessionRecord."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    form_data: dict[str, Any] = Field(default_factory=dict)
    step: int = Field(..., ge=0)
    session_id: Optional[str] = None
    timestamp: datetime
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("timestamp")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        """Naive timestamps written by older clients are UTC."""
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class RecoveryPrompt(BaseModel):
    """Summary shown in the "recover previous session?" dialog."""

    step: int
    age_minutes: int
    field_count: int
    timestamp: datetime
    has_data: bool
