"""
store.py - Session Store: single source of truth for wizard progress.

Provides the persistence API the wizard and the UI write through on every
field change and step transition.

Design principles:
  - Five distinct keys, not one blob, so one corrupted key does not hide the rest
  - No caching layer: load() always reads the store, so a save is visible immediately
  - Expiry is checked lazily in load(); nothing sweeps in the background
  - StorageUnavailable is caught at every public operation and logged;
    losing persistence must never block the user from progressing in memory
  - Logs only session_id and field names, never form values (Aadhaar, PAN, OTP)
"""
from __future__ import annotations

import json
import logging
import uuid
from datetime import timedelta
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from udyam_wizard.clock import Clock, parse_timestamp, utc_now
from udyam_wizard.config import settings
from udyam_wizard.errors import CorruptData, StorageUnavailable
from udyam_wizard.session.schemas import SessionInfo, SessionRecord
from udyam_wizard.storage import (
    COMPLETED_STEPS_KEY,
    CURRENT_STEP_KEY,
    FORM_DATA_KEY,
    LAST_UPDATED_KEY,
    SESSION_ID_KEY,
    SESSION_KEYS,
    KeyValueStore,
    make_key,
)

logger = logging.getLogger(__name__)


class SessionStore:
    """Persists SessionRecord across restarts with a lazily-enforced TTL."""

    def __init__(
        self,
        storage: KeyValueStore,
        *,
        ttl_seconds: Optional[int] = None,
        total_steps: Optional[int] = None,
        prefix: Optional[str] = None,
        clock: Clock = utc_now,
    ) -> None:
        self._storage = storage
        self.ttl = timedelta(seconds=ttl_seconds if ttl_seconds is not None else settings.session_ttl_seconds)
        self.total_steps = total_steps if total_steps is not None else settings.total_steps
        self._prefix = prefix if prefix is not None else settings.storage_prefix
        self._clock = clock

    def _key(self, name: str) -> str:
        return make_key(self._prefix, name)

    # ---------------------------------------------------------------------------
    # Identity
    # ---------------------------------------------------------------------------

    def generate_session_id(self) -> str:
        """
        Opaque id: udyam_<epoch-ms>_<9 hex chars>.
        Uniqueness only matters within one store; the server is the real arbiter.
        """
        millis = int(self._clock().timestamp() * 1000)
        return f"udyam_{millis}_{uuid.uuid4().hex[:9]}"

    # ---------------------------------------------------------------------------
    # Core persistence
    # ---------------------------------------------------------------------------

    def save(self, record: SessionRecord) -> None:
        """Write all five keys, stamping last_updated = now. No-op if storage fails."""
        stamped = record.model_copy(update={"last_updated": self._clock()})
        try:
            self._storage.set_item(self._key(SESSION_ID_KEY), stamped.session_id)
            self._storage.set_item(self._key(FORM_DATA_KEY), json.dumps(stamped.form_data))
            self._storage.set_item(self._key(CURRENT_STEP_KEY), str(stamped.current_step))
            self._storage.set_item(self._key(COMPLETED_STEPS_KEY), json.dumps(stamped.completed_steps))
            self._storage.set_item(self._key(LAST_UPDATED_KEY), stamped.last_updated.isoformat())
        except StorageUnavailable as exc:
            logger.error("Failed to save session session_id=%s: %s", stamped.session_id, exc)
            return
        logger.debug("Saved session session_id=%s step=%d", stamped.session_id, stamped.current_step)

    def _read_record(self) -> Optional[SessionRecord]:
        """
        Read and parse the five keys without any expiry handling.

        Returns None when any key is missing or empty.
        Raises CorruptData when a key is present but unparseable.
        """
        raw = {name: self._storage.get_item(self._key(name)) for name in SESSION_KEYS}
        if not all(raw.values()):
            return None
        try:
            return SessionRecord(
                session_id=raw[SESSION_ID_KEY],
                form_data=json.loads(raw[FORM_DATA_KEY]),
                current_step=int(raw[CURRENT_STEP_KEY]),
                completed_steps=json.loads(raw[COMPLETED_STEPS_KEY]),
                last_updated=parse_timestamp(raw[LAST_UPDATED_KEY]),
            )
        except (ValueError, TypeError, ValidationError) as exc:
            raise CorruptData(f"Stored session is unreadable: {exc}") from exc

    def _is_expired(self, record: SessionRecord) -> bool:
        return self._clock() - record.last_updated >= self.ttl

    def load(self) -> Optional[SessionRecord]:
        """
        Return the stored session, or None.

        Corrupt or expired data is cleared before returning None so the
        store self-heals on the next write.
        """
        try:
            record = self._read_record()
        except CorruptData as exc:
            logger.warning("Discarding corrupt session data: %s", exc)
            self.clear()
            return None
        except StorageUnavailable as exc:
            logger.error("Failed to load session: %s", exc)
            return None

        if record is None:
            return None
        if self._is_expired(record):
            logger.info("Session expired session_id=%s", record.session_id)
            self.clear()
            return None
        return record

    def clear(self) -> None:
        """Delete all five session keys unconditionally."""
        try:
            for name in SESSION_KEYS:
                self._storage.remove_item(self._key(name))
        except StorageUnavailable as exc:
            logger.error("Failed to clear session: %s", exc)

    # ---------------------------------------------------------------------------
    # Read-modify-write helpers (no-op without a session)
    # ---------------------------------------------------------------------------

    def update_form_data(self, partial: Mapping[str, Any]) -> None:
        """Shallow-merge partial over the stored form data; keys in partial win."""
        existing = self.load()
        if existing is None:
            return
        merged = {**existing.form_data, **partial}
        self.save(existing.model_copy(update={"form_data": merged}))

    def update_current_step(self, step: int) -> None:
        """Set current_step (1-based). A step outside 1..total_steps is logged and ignored."""
        existing = self.load()
        if existing is None:
            return
        if not 1 <= step <= self.total_steps:
            logger.warning(
                "Ignoring current step=%d session_id=%s (steps=%d)",
                step,
                existing.session_id,
                self.total_steps,
            )
            return
        self.save(existing.model_copy(update={"current_step": step}))

    def mark_step_completed(self, index: int) -> None:
        """Set completed_steps[index] = True (zero-based index)."""
        existing = self.load()
        if existing is None:
            return
        if not 0 <= index < len(existing.completed_steps):
            logger.warning(
                "Ignoring completion of step index=%d session_id=%s (steps=%d)",
                index,
                existing.session_id,
                len(existing.completed_steps),
            )
            return
        completed = list(existing.completed_steps)
        completed[index] = True
        self.save(existing.model_copy(update={"completed_steps": completed}))

    # ---------------------------------------------------------------------------
    # Convenience
    # ---------------------------------------------------------------------------

    def initialize_session(self, initial_form_data: Optional[Mapping[str, Any]] = None) -> str:
        """
        Start a fresh session at step 1 with every step incomplete.
        Returns the new session id even if it could not be persisted.
        """
        session_id = self.generate_session_id()
        self.save(
            SessionRecord(
                session_id=session_id,
                current_step=1,
                form_data=dict(initial_form_data or {}),
                completed_steps=[False] * self.total_steps,
            )
        )
        logger.info("Initialized session session_id=%s", session_id)
        return session_id

    def has_valid_session(self) -> bool:
        return self.load() is not None

    def get_session_id(self) -> Optional[str]:
        record = self.load()
        return record.session_id if record else None

    def get_session_info(self) -> SessionInfo:
        """
        Describe the stored session for debugging.
        Unlike load(), never deletes anything, so an expired session is reported as such.
        """
        try:
            record = self._read_record()
        except (CorruptData, StorageUnavailable) as exc:
            logger.warning("Session info unavailable: %s", exc)
            return SessionInfo(exists=False)
        if record is None:
            return SessionInfo(exists=False)
        return SessionInfo(
            exists=True,
            session_id=record.session_id,
            current_step=record.current_step,
            completed_steps=record.completed_steps,
            last_updated=record.last_updated,
            form_data_keys=list(record.form_data),
            is_expired=self._is_expired(record),
        )
