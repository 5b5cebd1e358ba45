"""
Step state machine tests.

The registration API is replaced by an AsyncMock; every transition is checked
against both the in-memory wizard state and what the Session Store persisted.
"""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from udyam_wizard.errors import ApiError, SubmissionFailure
from udyam_wizard.session.schemas import SessionRecord
from udyam_wizard.session.store import SessionStore
from udyam_wizard.storage import MemoryKeyValueStore
from udyam_wizard.transport.schemas import RegistrationStatus, StepSubmission
from udyam_wizard.wizard import RegistrationWizard

from udyam_wizard.tests.helpers import FakeClock


def _ok(session_id: str | None = "srv-1") -> StepSubmission:
    return StepSubmission(success=True, session_id=session_id)


@pytest.fixture
def api() -> MagicMock:
    api = MagicMock()
    api.submit_step = AsyncMock(return_value=_ok())
    api.get_status = AsyncMock()
    return api


@pytest.fixture
def wizard(session_store: SessionStore, api: MagicMock) -> RegistrationWizard:
    return RegistrationWizard(session_store, api, total_steps=2)


# ---------------------------------------------------------------------------
# Gating
# ---------------------------------------------------------------------------

def test_fresh_wizard_cannot_advance(wizard: RegistrationWizard) -> None:
    assert wizard.current_step == 1
    assert wizard.can_advance() is False
    assert wizard.can_go_previous() is False
    assert wizard.next() is False
    assert wizard.previous() is False


def test_validators_never_gate_progression(session_store: SessionStore, api: MagicMock) -> None:
    consulted: list[str] = []

    def always_valid(value: object) -> bool:
        consulted.append("aadhaar")
        return True

    wizard = RegistrationWizard(session_store, api, total_steps=2, validators={"aadhaarNumber": always_valid})
    wizard.update_fields({"aadhaarNumber": "123456789012"})

    assert wizard.can_advance() is False
    assert consulted == []
    assert wizard.invalid_fields() == []


def test_invalid_fields_reports_rejected_values(session_store: SessionStore, api: MagicMock) -> None:
    wizard = RegistrationWizard(
        session_store,
        api,
        total_steps=2,
        validators={
            "aadhaarNumber": lambda v: len(v) == 12,
            "panNumber": lambda v: len(v) == 10,
        },
    )
    wizard.update_fields({"aadhaarNumber": "123456789012", "panNumber": "ABC"})
    assert wizard.invalid_fields() == ["panNumber"]


def test_can_advance_out_of_range(wizard: RegistrationWizard) -> None:
    assert wizard.can_advance(0) is False
    assert wizard.can_advance(3) is False


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_successful_submit_creates_session_and_advances(
    wizard: RegistrationWizard, session_store: SessionStore, api: MagicMock
) -> None:
    wizard.update_fields({"aadhaarNumber": "123456789012", "otp": "123456"})

    result = await wizard.submit()

    assert result.success is True
    api.submit_step.assert_awaited_once_with(1, {"aadhaarNumber": "123456789012", "otp": "123456"})
    assert wizard.current_step == 2
    assert wizard.completed_steps == [True, False]
    assert wizard.can_advance(1) is True
    assert wizard.session_id == "srv-1"

    record = session_store.load()
    assert record.session_id == "srv-1"
    assert record.current_step == 2
    assert record.completed_steps == [True, False]
    assert record.form_data["aadhaarNumber"] == "123456789012"


@pytest.mark.asyncio
async def test_session_id_generated_when_server_sends_none(
    wizard: RegistrationWizard, session_store: SessionStore, api: MagicMock
) -> None:
    api.submit_step.return_value = _ok(session_id=None)
    await wizard.submit({"aadhaarNumber": "123456789012"})

    assert wizard.session_id.startswith("udyam_")
    assert session_store.get_session_id() == wizard.session_id


@pytest.mark.asyncio
async def test_later_submissions_carry_session_id(wizard: RegistrationWizard, api: MagicMock) -> None:
    await wizard.submit({"aadhaarNumber": "123456789012"})
    api.submit_step.return_value = _ok(session_id="srv-other")
    await wizard.submit({"panNumber": "ABCDE1234F"})

    assert api.submit_step.await_args.args == (2, {"panNumber": "ABCDE1234F", "sessionId": "srv-1"})
    assert wizard.session_id == "srv-1"


@pytest.mark.asyncio
async def test_transport_failure_leaves_state_unchanged(
    wizard: RegistrationWizard, session_store: SessionStore, api: MagicMock
) -> None:
    api.submit_step.side_effect = ApiError("Service unavailable", status=503)

    with pytest.raises(ApiError):
        await wizard.submit({"aadhaarNumber": "123456789012"})

    assert wizard.current_step == 1
    assert wizard.completed_steps == [False, False]
    assert session_store.load() is None
    api.submit_step.assert_awaited_once()


@pytest.mark.asyncio
async def test_rejected_submission_raises_and_stays(
    wizard: RegistrationWizard, api: MagicMock
) -> None:
    api.submit_step.return_value = StepSubmission(success=False, message="Invalid OTP")

    with pytest.raises(SubmissionFailure) as exc_info:
        await wizard.submit({"otp": "000000"})

    assert str(exc_info.value) == "Invalid OTP"
    assert exc_info.value.step == 1
    assert wizard.current_step == 1
    assert wizard.can_advance() is False


@pytest.mark.asyncio
async def test_previous_keeps_data_and_next_skips_resubmission(
    wizard: RegistrationWizard, session_store: SessionStore, api: MagicMock
) -> None:
    wizard.update_fields({"aadhaarNumber": "123456789012"})
    await wizard.submit()

    assert wizard.previous() is True
    assert wizard.current_step == 1
    assert wizard.form_data == {"aadhaarNumber": "123456789012"}
    assert session_store.load().current_step == 1

    assert wizard.next() is True
    assert wizard.current_step == 2
    assert wizard.next() is False
    api.submit_step.assert_awaited_once()


@pytest.mark.asyncio
async def test_final_step_completes_and_clears_session(
    wizard: RegistrationWizard, session_store: SessionStore, storage: MemoryKeyValueStore
) -> None:
    await wizard.submit({"aadhaarNumber": "123456789012"})
    await wizard.submit({"panNumber": "ABCDE1234F"})

    assert wizard.is_complete is True
    assert wizard.completed_steps == [True, True]
    assert session_store.load() is None
    assert len(storage) == 0
    assert wizard.can_go_previous() is False
    with pytest.raises(RuntimeError):
        await wizard.submit()


@pytest.mark.asyncio
async def test_fetch_status(wizard: RegistrationWizard, api: MagicMock) -> None:
    assert await wizard.fetch_status() is None

    api.get_status.return_value = RegistrationStatus(session_id="srv-1", status="in_progress")
    await wizard.submit({"aadhaarNumber": "123456789012"})

    status = await wizard.fetch_status()
    assert status.status == "in_progress"
    api.get_status.assert_awaited_once_with("srv-1")


# ---------------------------------------------------------------------------
# Server-issued session id on a locally created session
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_restored_local_session_takes_server_id_on_first_confirmation(
    wizard: RegistrationWizard, session_store: SessionStore, api: MagicMock
) -> None:
    local_id = session_store.initialize_session({"aadhaarNumber": "123456789012"})
    wizard.restore()

    await wizard.submit()

    assert api.submit_step.await_args.args[1]["sessionId"] == local_id
    assert wizard.session_id == "srv-1"
    record = session_store.load()
    assert record.session_id == "srv-1"
    assert record.completed_steps == [True, False]
    assert record.current_step == 2

    api.get_status.return_value = RegistrationStatus(session_id="srv-1", status="in_progress")
    await wizard.fetch_status()
    api.get_status.assert_awaited_once_with("srv-1")


@pytest.mark.asyncio
async def test_unrestored_local_session_is_rekeyed_to_server_id(
    wizard: RegistrationWizard, session_store: SessionStore
) -> None:
    session_store.initialize_session({"aadhaarNumber": "123456789012"})

    await wizard.submit({"aadhaarNumber": "123456789012"})

    assert wizard.session_id == "srv-1"
    assert session_store.get_session_id() == "srv-1"
    assert session_store.load().completed_steps == [True, False]


@pytest.mark.asyncio
async def test_local_session_id_kept_when_server_sends_none(
    wizard: RegistrationWizard, session_store: SessionStore, api: MagicMock
) -> None:
    local_id = session_store.initialize_session({})
    api.submit_step.return_value = _ok(session_id=None)

    await wizard.submit({"aadhaarNumber": "123456789012"})

    assert wizard.session_id == local_id
    assert session_store.get_session_id() == local_id


# ---------------------------------------------------------------------------
# Restore & recovery
# ---------------------------------------------------------------------------

def test_restore_adopts_stored_session(wizard: RegistrationWizard, session_store: SessionStore) -> None:
    session_store.save(SessionRecord(
        session_id="srv-1",
        current_step=2,
        form_data={"aadhaarNumber": "123456789012"},
        completed_steps=[True, False],
    ))

    assert wizard.restore() is True
    assert wizard.session_id == "srv-1"
    assert wizard.current_step == 2
    assert wizard.can_advance(1) is True


def test_restore_clamps_out_of_range_step(wizard: RegistrationWizard, session_store: SessionStore) -> None:
    session_store.save(SessionRecord(session_id="srv-1", current_step=7, completed_steps=[True, True]))
    wizard.restore()
    assert wizard.current_step == 2


def test_restore_discards_mismatched_step_count(
    wizard: RegistrationWizard, session_store: SessionStore, storage: MemoryKeyValueStore
) -> None:
    session_store.save(SessionRecord(session_id="srv-1", current_step=1, completed_steps=[True, False, False]))

    assert wizard.restore() is False
    assert wizard.session_id is None
    assert len(storage) == 0


def test_restore_without_session(wizard: RegistrationWizard) -> None:
    assert wizard.restore() is False
    assert wizard.current_step == 1


def test_restore_after_expiry(wizard: RegistrationWizard, session_store: SessionStore, clock: FakeClock) -> None:
    session_store.initialize_session({"name": "X"})
    clock.advance(hours=25)
    assert wizard.restore() is False


def test_apply_recovery_live_values_win(wizard: RegistrationWizard, session_store: SessionStore) -> None:
    session_store.initialize_session({"name": "Live"})
    wizard.restore()

    merged = wizard.apply_recovery({"formData": {"name": "Draft", "email": "a@b.in"}})

    assert merged == {"name": "Live", "email": "a@b.in"}
    assert session_store.load().form_data == {"name": "Live", "email": "a@b.in"}
