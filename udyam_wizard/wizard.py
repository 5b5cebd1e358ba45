"""
wizard.py - Step state machine for the Udyam registration wizard.

States: Step(1..N) and a terminal "complete" state.

  Step(i) --submit ok--> Step(i+1)      i < N; step i marked complete in the session
  Step(i) --submit ok--> complete       i == N; session cleared
  Step(i) --previous--> Step(i-1)       i > 1; always allowed, form data kept
  Step(i) --next------> Step(i+1)       only if step i is already server-confirmed

Progression is gated only by server-confirmed completion flags. Field
validators decide UI affordances (invalid_fields) and are never consulted
by can_advance(). A failed submission leaves the state untouched and is
never retried here.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional, Union

from udyam_wizard.errors import SubmissionFailure
from udyam_wizard.recovery.schemas import RecoverySnapshot
from udyam_wizard.recovery.service import RecoveryService
from udyam_wizard.session.schemas import SessionRecord
from udyam_wizard.session.store import SessionStore

if TYPE_CHECKING:
    from udyam_wizard.transport.registration import RegistrationApi
    from udyam_wizard.transport.schemas import RegistrationStatus, StepSubmission

logger = logging.getLogger(__name__)

FieldValidator = Callable[[Any], bool]


class RegistrationWizard:
    """In-memory wizard state, written through to the Session Store."""

    def __init__(
        self,
        session_store: SessionStore,
        registration_api: "RegistrationApi",
        *,
        total_steps: Optional[int] = None,
        validators: Optional[Mapping[str, FieldValidator]] = None,
    ) -> None:
        self._store = session_store
        self._api = registration_api
        self.total_steps = total_steps if total_steps is not None else session_store.total_steps
        self.validators = dict(validators or {})
        self.current_step = 1
        self.form_data: dict[str, Any] = {}
        self.completed_steps: list[bool] = [False] * self.total_steps
        self.session_id: Optional[str] = None
        self.is_complete = False

    # ---------------------------------------------------------------------------
    # Start-up
    # ---------------------------------------------------------------------------

    def restore(self) -> bool:
        """
        Adopt the stored session, if any. current_step is clamped to 1..N.
        A record whose step count does not match this wizard is discarded.
        """
        record = self._store.load()
        if record is None:
            return False
        if len(record.completed_steps) != self.total_steps:
            logger.warning(
                "Discarding session session_id=%s with %d steps (wizard has %d)",
                record.session_id,
                len(record.completed_steps),
                self.total_steps,
            )
            self._store.clear()
            return False

        self.session_id = record.session_id
        self.form_data = dict(record.form_data)
        self.completed_steps = list(record.completed_steps)
        self.current_step = min(max(record.current_step, 1), self.total_steps)
        logger.info("Restored session session_id=%s step=%d", self.session_id, self.current_step)
        return True

    def apply_recovery(self, recovered: Union[RecoverySnapshot, Mapping[str, Any]]) -> dict[str, Any]:
        """Fill gaps in the live form data from a recovery snapshot; live values win."""
        recovered_fields = RecoveryService.merge_form_data(self.form_data, recovered)
        added = {k: v for k, v in recovered_fields.items() if k not in self.form_data}
        self.form_data = recovered_fields
        if added:
            self._store.update_form_data(added)
        logger.info("Applied recovery data fields_added=%d", len(added))
        return self.form_data

    # ---------------------------------------------------------------------------
    # Input
    # ---------------------------------------------------------------------------

    def update_fields(self, partial: Mapping[str, Any]) -> None:
        self.form_data.update(partial)
        self._store.update_form_data(partial)

    def invalid_fields(self) -> list[str]:
        """Names of fields whose validator rejects the current value (UI hints only)."""
        return [
            name
            for name, is_valid in self.validators.items()
            if not is_valid(self.form_data.get(name, ""))
        ]

    # ---------------------------------------------------------------------------
    # Gating & navigation
    # ---------------------------------------------------------------------------

    def can_advance(self, step: Optional[int] = None) -> bool:
        """True iff the given step (default: current) has been confirmed by the server."""
        step = self.current_step if step is None else step
        if not 1 <= step <= self.total_steps:
            return False
        return self.completed_steps[step - 1]

    def can_go_previous(self) -> bool:
        return not self.is_complete and self.current_step > 1

    def previous(self) -> bool:
        if not self.can_go_previous():
            return False
        self.current_step -= 1
        self._store.update_current_step(self.current_step)
        return True

    def next(self) -> bool:
        """Move forward over an already-confirmed step without resubmitting it."""
        if self.is_complete or self.current_step >= self.total_steps or not self.can_advance():
            return False
        self.current_step += 1
        self._store.update_current_step(self.current_step)
        return True

    # ---------------------------------------------------------------------------
    # Submission
    # ---------------------------------------------------------------------------

    async def submit(self, payload: Optional[Mapping[str, Any]] = None) -> "StepSubmission":
        """
        Submit the current step (payload defaults to the accumulated form data).

        Raises:
            ApiError: transport/HTTP failure, propagated verbatim.
            SubmissionFailure: the server answered success=false.
        In both cases the wizard stays on the same step.
        """
        if self.is_complete:
            raise RuntimeError("Registration is already complete")

        step = self.current_step
        body = dict(payload if payload is not None else self.form_data)
        if self.session_id and "sessionId" not in body:
            body["sessionId"] = self.session_id

        result = await self._api.submit_step(step, body)
        if not result.success:
            raise SubmissionFailure(step, result.message or f"Step {step} was rejected", result)

        self._adopt_session_id(result.session_id, first_confirmation=not any(self.completed_steps))
        self._ensure_session()

        self.completed_steps[step - 1] = True
        self._store.mark_step_completed(step - 1)

        if step < self.total_steps:
            self.current_step = step + 1
            self._store.update_current_step(self.current_step)
            logger.info("Step completed step=%d session_id=%s", step, self.session_id)
        else:
            self.is_complete = True
            self._store.clear()
            logger.info("Registration complete session_id=%s", self.session_id)
        return result

    def _adopt_session_id(self, server_session_id: Optional[str], first_confirmation: bool) -> None:
        """
        Until a step has been confirmed, a server-issued id replaces any local one.
        After that the first confirmed id is kept.
        """
        if server_session_id and (self.session_id is None or first_confirmation):
            if self.session_id and self.session_id != server_session_id:
                logger.info(
                    "Adopting server session_id=%s in place of local session_id=%s",
                    server_session_id,
                    self.session_id,
                )
            self.session_id = server_session_id
        elif self.session_id is None:
            self.session_id = self._store.get_session_id() or self._store.generate_session_id()
        elif server_session_id and server_session_id != self.session_id:
            logger.warning(
                "Server returned session_id=%s, keeping session_id=%s",
                server_session_id,
                self.session_id,
            )

    def _ensure_session(self) -> None:
        """Create the stored session on the first confirmed submission, or re-key it to the wizard's id."""
        record = self._store.load()
        if record is None:
            self._store.save(
                SessionRecord(
                    session_id=self.session_id,
                    current_step=self.current_step,
                    form_data=self.form_data,
                    completed_steps=self.completed_steps,
                )
            )
        elif record.session_id != self.session_id:
            self._store.save(record.model_copy(update={"session_id": self.session_id}))

    async def fetch_status(self) -> Optional["RegistrationStatus"]:
        if self.session_id is None:
            return None
        return await self._api.get_status(self.session_id)
