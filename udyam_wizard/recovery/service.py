"""
service.py - Recovery Service: best-effort drafts of in-flight form state.

Components:
  RecoveryService   - snapshot save/load/clear, prompt data, merge, validation
  AutoSaveHandle    - cancellable asyncio task that snapshots on a fixed interval

Snapshots live under their own key ({prefix}form_recovery), never the session
keys, so "restore" can still be offered after the authoritative session has
diverged or expired.

Known boundary: two processes (or browser tabs) auto-saving against the same
store overwrite each other's snapshot. Last writer wins; nothing merges them.
"""
from __future__ import annotations

import asyncio
import json
import logging
import platform
from datetime import timedelta
from typing import Any, Callable, Mapping, Optional, Union

from pydantic import ValidationError

from udyam_wizard.clock import Clock, parse_timestamp, utc_now
from udyam_wizard.config import settings
from udyam_wizard.errors import StorageUnavailable
from udyam_wizard.events import FORM_DATA_CLEARED, FORM_DATA_SAVED, EventBus
from udyam_wizard.recovery.sanitizer import sanitize_form_data
from udyam_wizard.recovery.schemas import RecoveryPrompt, RecoverySnapshot
from udyam_wizard.storage import RECOVERY_KEY, KeyValueStore, make_key

logger = logging.getLogger(__name__)

FormDataSupplier = Callable[[], Optional[Mapping[str, Any]]]
StepSupplier = Callable[[], int]
SessionIdSupplier = Callable[[], Optional[str]]


def _client_environment() -> str:
    return (
        f"udyam-wizard/{settings.app_version} "
        f"({platform.python_implementation()} {platform.python_version()}; {platform.system()})"
    )


# ---------------------------------------------------------------------------
# Auto-save timer
# ---------------------------------------------------------------------------

class AutoSaveHandle:
    """
    Scheduled auto-save task.

    Must be created inside a running event loop. stop() may be called from
    inside a tick or from anywhere else; once it returns, no further tick runs.
    Usable as a context manager so the timer is released with its owner.
    """

    def __init__(self, tick: Callable[[], Any], interval: float) -> None:
        if interval <= 0:
            raise ValueError(f"Auto-save interval must be positive, got {interval}")
        self.interval = interval
        self._tick = tick
        self._stopped = False
        self._task = asyncio.get_running_loop().create_task(self._run(), name="recovery-auto-save")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            if self._stopped:
                return
            self._tick()

    @property
    def running(self) -> bool:
        return not self._stopped and not self._task.done()

    def stop(self) -> None:
        """Cancel the timer. Idempotent."""
        if self._stopped:
            return
        self._stopped = True
        self._task.cancel()

    def __enter__(self) -> "AutoSaveHandle":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.stop()


# ---------------------------------------------------------------------------
# Recovery service
# ---------------------------------------------------------------------------

class RecoveryService:
    """Periodic, sanitized snapshots of form state with a recover-or-discard decision point."""

    def __init__(
        self,
        storage: KeyValueStore,
        *,
        events: Optional[EventBus] = None,
        ttl_seconds: Optional[int] = None,
        auto_save_interval: Optional[float] = None,
        prefix: Optional[str] = None,
        origin_url: Optional[str] = None,
        clock: Clock = utc_now,
    ) -> None:
        self._storage = storage
        self.events = events if events is not None else EventBus()
        self.ttl = timedelta(seconds=ttl_seconds if ttl_seconds is not None else settings.recovery_ttl_seconds)
        self.auto_save_interval = (
            auto_save_interval if auto_save_interval is not None else settings.auto_save_interval_seconds
        )
        self._key = make_key(prefix if prefix is not None else settings.storage_prefix, RECOVERY_KEY)
        self._origin_url = origin_url if origin_url is not None else settings.origin_url
        self._clock = clock
        self._auto_save: Optional[AutoSaveHandle] = None

    # ---------------------------------------------------------------------------
    # Snapshot persistence
    # ---------------------------------------------------------------------------

    def save_snapshot(
        self,
        form_data: Mapping[str, Any],
        step: int,
        session_id: Optional[str] = None,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        """
        Sanitize form_data and write it as the current snapshot.

        Emits FORM_DATA_SAVED after a successful write.
        Returns False (and logs) when the store refuses the write.
        """
        snapshot = RecoverySnapshot(
            form_data=sanitize_form_data(form_data),
            step=step,
            session_id=session_id,
            timestamp=self._clock(),
            metadata={
                **(metadata or {}),
                "userAgent": _client_environment(),
                "url": self._origin_url,
            },
        )
        try:
            self._storage.set_item(self._key, snapshot.model_dump_json(by_alias=True))
        except StorageUnavailable as exc:
            logger.error("Failed to save recovery snapshot session_id=%s: %s", session_id, exc)
            return False

        logger.debug(
            "Saved recovery snapshot session_id=%s step=%d fields=%d",
            session_id,
            step,
            len(snapshot.form_data),
        )
        self.events.emit(FORM_DATA_SAVED, {"snapshot": snapshot})
        return True

    def load_snapshot(self) -> Optional[RecoverySnapshot]:
        """
        Return the stored snapshot, or None.
        Unparseable, structurally invalid or expired snapshots are deleted on the way out.
        """
        try:
            raw = self._storage.get_item(self._key)
        except StorageUnavailable as exc:
            logger.error("Failed to load recovery snapshot: %s", exc)
            return None
        if raw is None:
            return None

        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Discarding unparseable recovery snapshot")
            self.clear_snapshot()
            return None

        if not self.validate(data):
            logger.warning("Discarding structurally invalid recovery snapshot")
            self.clear_snapshot()
            return None

        try:
            snapshot = RecoverySnapshot.model_validate(data)
        except ValidationError as exc:
            logger.warning("Discarding recovery snapshot that failed schema validation: %s", exc)
            self.clear_snapshot()
            return None

        if self._clock() - snapshot.timestamp >= self.ttl:
            logger.info("Recovery snapshot expired session_id=%s", snapshot.session_id)
            self.clear_snapshot()
            return None
        return snapshot

    def has_snapshot(self) -> bool:
        return self.load_snapshot() is not None

    def clear_snapshot(self) -> None:
        """Delete the snapshot and emit FORM_DATA_CLEARED."""
        try:
            self._storage.remove_item(self._key)
        except StorageUnavailable as exc:
            logger.error("Failed to clear recovery snapshot: %s", exc)
            return
        self.events.emit(FORM_DATA_CLEARED)

    # ---------------------------------------------------------------------------
    # Prompt support
    # ---------------------------------------------------------------------------

    def _age_minutes(self, snapshot: RecoverySnapshot) -> int:
        return int((self._clock() - snapshot.timestamp).total_seconds() // 60)

    def get_age_minutes(self) -> Optional[int]:
        snapshot = self.load_snapshot()
        if snapshot is None:
            return None
        return self._age_minutes(snapshot)

    def get_prompt_data(self) -> Optional[RecoveryPrompt]:
        snapshot = self.load_snapshot()
        if snapshot is None:
            return None
        field_count = len(snapshot.form_data)
        return RecoveryPrompt(
            step=snapshot.step,
            age_minutes=self._age_minutes(snapshot),
            field_count=field_count,
            timestamp=snapshot.timestamp,
            has_data=field_count > 0,
        )

    def export_snapshot(self) -> Optional[str]:
        """JSON summary for support requests: field names and metadata, never values."""
        snapshot = self.load_snapshot()
        if snapshot is None:
            return None
        return json.dumps(
            {
                "step": snapshot.step,
                "timestamp": snapshot.timestamp.isoformat(),
                "fieldCount": len(snapshot.form_data),
                "fields": list(snapshot.form_data),
                "metadata": snapshot.metadata,
            },
            indent=2,
        )

    # ---------------------------------------------------------------------------
    # Conflict resolution & validation
    # ---------------------------------------------------------------------------

    @staticmethod
    def merge_form_data(
        current: Mapping[str, Any],
        recovered: Union[RecoverySnapshot, Mapping[str, Any]],
    ) -> dict[str, Any]:
        """
        Fill gaps in current from recovered. On a key collision the live value
        in current always wins; recovery never overwrites re-entered input.
        """
        if isinstance(recovered, RecoverySnapshot):
            recovered_fields = recovered.form_data
        else:
            recovered_fields = recovered.get("formData") or {}
        return {**recovered_fields, **current}

    @staticmethod
    def validate(data: Any) -> bool:
        """
        Structural check: a mapping holding a formData mapping, a non-negative
        integer step and a parseable timestamp.
        """
        if not isinstance(data, Mapping):
            return False
        if not all(field in data for field in ("formData", "step", "timestamp")):
            return False
        if not isinstance(data["formData"], Mapping):
            return False
        step = data["step"]
        if isinstance(step, bool) or not isinstance(step, int) or step < 0:
            return False
        try:
            parse_timestamp(data["timestamp"])
        except ValueError:
            return False
        return True

    # ---------------------------------------------------------------------------
    # Auto-save
    # ---------------------------------------------------------------------------

    def run_auto_save_tick(
        self,
        get_form_data: FormDataSupplier,
        get_step: StepSupplier,
        get_session_id: SessionIdSupplier,
    ) -> bool:
        """
        One auto-save tick: snapshot the supplied state if it has any fields.
        Errors are logged here so a failing tick never stops the timer.
        """
        try:
            form_data = get_form_data()
            if not form_data:
                return False
            return self.save_snapshot(form_data, get_step(), get_session_id(), {"autoSaved": True})
        except Exception:
            logger.exception("Auto-save tick failed")
            return False

    def start_auto_save(
        self,
        get_form_data: FormDataSupplier,
        get_step: StepSupplier,
        get_session_id: SessionIdSupplier,
        interval: Optional[float] = None,
    ) -> AutoSaveHandle:
        """Start the auto-save timer, stopping any timer this service already runs."""
        self.stop_auto_save()
        handle = AutoSaveHandle(
            lambda: self.run_auto_save_tick(get_form_data, get_step, get_session_id),
            interval if interval is not None else self.auto_save_interval,
        )
        self._auto_save = handle
        logger.info("Auto-save started interval=%.1fs", handle.interval)
        return handle

    def stop_auto_save(self) -> None:
        if self._auto_save is None:
            return
        self._auto_save.stop()
        self._auto_save = None
        logger.info("Auto-save stopped")

    @property
    def auto_save_running(self) -> bool:
        return self._auto_save is not None and self._auto_save.running

    def dispose(self) -> None:
        self.stop_auto_save()
