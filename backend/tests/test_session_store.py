"""
Tests for SessionStore conditional updates, the retry loop, and races between
independent database sessions
"""
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from medkiosk.core.config import get_settings
from medkiosk.core.database import get_session_local
from medkiosk.core.errors import NotFound, StoreConflict
from medkiosk.models.kiosk_session import (TERMINAL_STATUSES, KioskSession,
                                           SessionReading, SessionStatus)
from medkiosk.models.subject import KioskAssignment, Subject
from medkiosk.services.command_dispatch_service import CommandDispatchService
from medkiosk.services.ingestion_service import IngestionService
from medkiosk.services.review_service import ReviewService
from medkiosk.services.session_lifecycle_service import \
    SessionLifecycleService
from medkiosk.services.session_store import SessionStore


def test_compare_and_set_applies_when_status_matches(db, start_session):
    started = start_session()
    store = SessionStore(db)

    store.compare_and_set_status(
        started.session_id,
        SessionStatus.COLLECTING_DATA.value,
        {"status": SessionStatus.PENDING_APPROVAL.value, "predicted_label": "A"}
    )
    db.commit()

    session = store.get_session(started.session_id)
    assert session.status == SessionStatus.PENDING_APPROVAL.value
    assert session.predicted_label == "A"


def test_compare_and_set_conflicts_on_stale_status(db, start_session):
    started = start_session()
    store = SessionStore(db)

    with pytest.raises(StoreConflict):
        store.compare_and_set_status(
            started.session_id,
            SessionStatus.PENDING_APPROVAL.value,
            {"status": SessionStatus.APPROVED.value}
        )
    db.rollback()

    assert store.get_session(started.session_id).status == SessionStatus.COLLECTING_DATA.value


def test_atomic_retries_then_succeeds(db):
    store = SessionStore(db, max_attempts=3)
    calls = []

    def work():
        calls.append(1)
        if len(calls) < 3:
            raise StoreConflict("lost race")
        return "done"

    assert store.atomic("test_op", work) == "done"
    assert len(calls) == 3


def test_atomic_gives_up_after_max_attempts(db):
    store = SessionStore(db, max_attempts=2)
    calls = []

    def work():
        calls.append(1)
        raise StoreConflict("lost race")

    with pytest.raises(StoreConflict) as exc_info:
        store.atomic("test_op", work)

    assert len(calls) == 2
    assert exc_info.value.metadata["attempts"] == 2


def test_atomic_does_not_retry_other_errors(db, start_session):
    started = start_session()
    store = SessionStore(db)
    calls = []

    def work():
        calls.append(1)
        store.compare_and_set_status(
            started.session_id,
            SessionStatus.COLLECTING_DATA.value,
            {"status": SessionStatus.COMPLETED.value}
        )
        raise NotFound("gone")

    with pytest.raises(NotFound):
        store.atomic("test_op", work)

    assert len(calls) == 1
    # The partial write was rolled back
    assert store.get_session(started.session_id).status == SessionStatus.COLLECTING_DATA.value


def test_get_open_sessions_newest_first(db, start_session):
    started = start_session()
    store = SessionStore(db)
    first = store.get_session(started.session_id)

    extra = KioskSession(
        subject_id=first.subject_id,
        reviewer_id=first.reviewer_id,
        kiosk_id=first.kiosk_id,
        status=SessionStatus.COLLECTING_DATA.value,
    )
    db.add(extra)
    db.commit()

    open_sessions = store.get_open_sessions(first.subject_id)
    assert [s.id for s in open_sessions] == [extra.id, started.session_id]


def test_active_subject_resolved_through_assignment(db, start_session):
    started = start_session(kiosk_id="K7")
    store = SessionStore(db)

    subject = store.get_active_subject("K7")
    assert subject is not None
    assert subject.id == started.subject_id
    assert store.get_active_subject("unknown-kiosk") is None

    store.deactivate_subject(started.subject_id)
    db.commit()
    assert store.get_active_subject("K7") is None


def _run_concurrently(workers, action):
    """Run `action(session)` in parallel threads, each on its own database session"""
    barrier = threading.Barrier(workers)

    def run():
        session = get_session_local()()
        try:
            barrier.wait(timeout=10)
            return action(session)
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(run) for _ in range(workers)]
        return [future.result(timeout=30) for future in futures]


@pytest.fixture
def race_settings():
    return get_settings().model_copy(update={"store_conflict_retries": 5})


def test_concurrent_uploads_keep_every_reading(db, start_session, disease_a_reading, race_settings):
    started = start_session(kiosk_id="K1")

    labels = _run_concurrently(
        6,
        lambda session: IngestionService(session, settings=race_settings).ingest_reading("K1", disease_a_reading),
    )

    assert labels == ["A"] * 6
    session = db.query(KioskSession).populate_existing().filter(KioskSession.id == started.session_id).one()
    assert session.status == SessionStatus.PENDING_APPROVAL.value
    assert session.predicted_label == "A"
    assert db.query(SessionReading).filter(SessionReading.session_id == started.session_id).count() == 6


def test_concurrent_acknowledgements_dispense_once(db, start_session, disease_a_reading, race_settings):
    started = start_session(kiosk_id="K1")
    IngestionService(db).ingest_reading("K1", disease_a_reading)
    ReviewService(db).review_session(started.session_id, "doctor-1", "A")

    confirmed = _run_concurrently(
        2,
        lambda session: CommandDispatchService(session, settings=race_settings).confirm_execution(
            "K1", "motor_1_activated", session_id=started.session_id
        ),
    )

    assert confirmed == [started.session_id, started.session_id]
    session = db.query(KioskSession).populate_existing().filter(KioskSession.id == started.session_id).one()
    assert session.status == SessionStatus.MEDICATION_DISPENSED.value
    assert session.command_executed is True


@pytest.mark.parametrize("kiosk_in_use", [False, True])
def test_concurrent_starts_leave_one_active_subject(db, start_session, race_settings, kiosk_in_use):
    if kiosk_in_use:
        start_session(kiosk_id="K1", name="Earlier")

    started = _run_concurrently(
        2,
        lambda session: SessionLifecycleService(session, settings=race_settings).start_session(
            kiosk_id="K1",
            subject_info={"name": "Jane Roe", "age": 42},
            reviewer_id="doctor-1",
        ),
    )

    db.expire_all()
    active = db.query(Subject).filter(Subject.kiosk_id == "K1", Subject.is_active.is_(True)).all()
    assert len(active) == 1
    assert active[0].id in {s.subject_id for s in started}

    terminal = {status.value for status in TERMINAL_STATUSES}
    unfinished = [
        s for s in db.query(KioskSession).filter(KioskSession.kiosk_id == "K1").all()
        if s.status not in terminal
    ]
    assert len(unfinished) == 1
    assert unfinished[0].subject_id == active[0].id

    assignment = db.query(KioskAssignment).filter(KioskAssignment.kiosk_id == "K1").one()
    assert assignment.subject_id == active[0].id
