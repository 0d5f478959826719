"""
Tests for command polling and execution acknowledgement
"""
from uuid import uuid4

import pytest

from medkiosk.core.errors import NotFound, ValidationError
from medkiosk.models.kiosk_session import (KioskSession, MotorCommand,
                                           SessionStatus)
from medkiosk.services.command_dispatch_service import CommandDispatchService
from medkiosk.services.ingestion_service import IngestionService
from medkiosk.services.review_service import ReviewService


@pytest.fixture
def approve(db, start_session):
    """Run a session on a kiosk through to approval"""
    def _approve(reading, label, kiosk_id="K1"):
        started = start_session(kiosk_id=kiosk_id)
        IngestionService(db).ingest_reading(kiosk_id, reading)
        ReviewService(db).review_session(started.session_id, "doctor-1", label)
        return started.session_id
    return _approve


def _session(db, session_id):
    return db.query(KioskSession).populate_existing().filter(KioskSession.id == session_id).one()


def test_idle_kiosk_gets_no_command(db):
    pending = CommandDispatchService(db).fetch_command("K1")
    assert pending.command == MotorCommand.NONE
    assert pending.session_id is None


def test_poll_is_read_only(db, approve, disease_a_reading):
    session_id = approve(disease_a_reading, "A")
    service = CommandDispatchService(db)

    first = service.fetch_command("K1")
    second = service.fetch_command("K1")

    assert first == second
    assert first.command == MotorCommand.ACTIVATE_MOTOR_1
    assert first.session_id == session_id
    assert _session(db, session_id).status == SessionStatus.APPROVED.value


def test_confirm_execution_dispenses(db, approve, disease_b_reading):
    session_id = approve(disease_b_reading, "B")
    service = CommandDispatchService(db)
    pending = service.fetch_command("K1")
    assert pending.command == MotorCommand.ACTIVATE_MOTOR_2

    confirmed = service.confirm_execution("K1", "motor_2_activated", session_id=pending.session_id)

    assert confirmed == session_id
    session = _session(db, session_id)
    assert session.status == SessionStatus.MEDICATION_DISPENSED.value
    assert session.command_executed is True
    assert session.execution_report == "motor_2_activated"
    assert session.executed_at is not None
    assert service.fetch_command("K1").command == MotorCommand.NONE


def test_duplicate_acknowledgement_is_noop(db, approve, disease_a_reading):
    session_id = approve(disease_a_reading, "A")
    service = CommandDispatchService(db)

    service.confirm_execution("K1", "motor_1_activated", session_id=session_id)
    again = service.confirm_execution("K1", "motor_1_activated_retry", session_id=session_id)

    assert again == session_id
    assert _session(db, session_id).execution_report == "motor_1_activated"


def test_acknowledgement_for_abandoned_session_does_not_touch_newer_approval(
    db, approve, disease_a_reading, disease_b_reading
):
    service = CommandDispatchService(db)
    older = approve(disease_a_reading, "A")
    polled = service.fetch_command("K1")
    assert polled.session_id == older

    # A new session is started and approved between poll and acknowledgement
    newer = approve(disease_b_reading, "B")
    assert _session(db, older).status == SessionStatus.COMPLETED.value

    with pytest.raises(NotFound):
        service.confirm_execution("K1", "motor_1_activated", session_id=polled.session_id)

    assert _session(db, newer).status == SessionStatus.APPROVED.value
    assert _session(db, newer).command_executed is False

    pending = service.fetch_command("K1")
    assert pending.command == MotorCommand.ACTIVATE_MOTOR_2
    assert pending.session_id == newer


def test_confirm_without_session_id_uses_latest_pending(db, approve, disease_a_reading):
    session_id = approve(disease_a_reading, "A")

    confirmed = CommandDispatchService(db).confirm_execution("K1", "motor_1_activated")

    assert confirmed == session_id
    assert _session(db, session_id).status == SessionStatus.MEDICATION_DISPENSED.value


def test_confirm_without_pending_command(db):
    with pytest.raises(NotFound):
        CommandDispatchService(db).confirm_execution("K1", "motor_1_activated")


def test_confirm_for_other_kiosk(db, approve, disease_a_reading):
    session_id = approve(disease_a_reading, "A", kiosk_id="K1")

    with pytest.raises(NotFound):
        CommandDispatchService(db).confirm_execution("K2", "motor_1_activated", session_id=session_id)

    assert _session(db, session_id).command_executed is False


def test_confirm_unknown_session(db):
    with pytest.raises(NotFound):
        CommandDispatchService(db).confirm_execution("K1", "motor_1_activated", session_id=uuid4())


def test_confirm_session_without_command(db, approve, disease_a_reading):
    session_id = approve(disease_a_reading, "undetermined")

    with pytest.raises(NotFound):
        CommandDispatchService(db).confirm_execution("K1", "done", session_id=session_id)

    assert _session(db, session_id).status == SessionStatus.APPROVED.value


def test_declined_session_is_never_dispatched(db, start_session, disease_a_reading):
    started = start_session()
    IngestionService(db).ingest_reading("K1", disease_a_reading)
    ReviewService(db).review_session(started.session_id, "doctor-1", "A", approve=False)

    assert CommandDispatchService(db).fetch_command("K1").command == MotorCommand.NONE


def test_command_executed_only_when_dispensed(db, approve, disease_a_reading, disease_b_reading):
    service = CommandDispatchService(db)
    first = approve(disease_a_reading, "A", kiosk_id="K1")
    approve(disease_b_reading, "B", kiosk_id="K2")
    service.confirm_execution("K1", "motor_1_activated", session_id=first)

    for session in db.query(KioskSession).populate_existing().all():
        assert session.command_executed == (session.status == SessionStatus.MEDICATION_DISPENSED.value)


@pytest.mark.parametrize("kiosk_id,status", [("", "done"), ("K1", ""), ("  ", "  ")])
def test_confirm_validation(db, kiosk_id, status):
    with pytest.raises(ValidationError):
        CommandDispatchService(db).confirm_execution(kiosk_id, status)


def test_fetch_requires_kiosk_id(db):
    with pytest.raises(ValidationError):
        CommandDispatchService(db).fetch_command("")
