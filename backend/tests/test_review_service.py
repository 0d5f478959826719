"""
Tests for the review gate and the live view
"""
from uuid import uuid4

import pytest

from medkiosk.core.errors import NotFound, NotReviewable, ValidationError
from medkiosk.models.kiosk_session import (KioskSession, MotorCommand,
                                           SessionStatus)
from medkiosk.models.subject import Subject
from medkiosk.services.ingestion_service import IngestionService
from medkiosk.services.review_service import ReviewService


@pytest.fixture
def pending_session(db, start_session, disease_a_reading):
    started = start_session()
    IngestionService(db).ingest_reading("K1", disease_a_reading)
    return started


def test_approve_maps_label_to_command(db, pending_session):
    outcome = ReviewService(db).review_session(pending_session.session_id, "doctor-1", "A")

    assert outcome.status == SessionStatus.APPROVED
    assert outcome.command == MotorCommand.ACTIVATE_MOTOR_1

    session = db.query(KioskSession).populate_existing().filter(KioskSession.id == pending_session.session_id).one()
    assert session.approved_label == "A"
    assert session.command == "command-1"
    assert session.command_executed is False
    assert session.reviewed_at is not None
    assert session.subject.is_active is False


def test_reviewer_can_override_prediction(db, pending_session):
    outcome = ReviewService(db).review_session(pending_session.session_id, "doctor-1", "B")
    assert outcome.command == MotorCommand.ACTIVATE_MOTOR_2


def test_approving_undetermined_gives_no_command(db, pending_session):
    outcome = ReviewService(db).review_session(pending_session.session_id, "doctor-1", "undetermined")
    assert outcome.status == SessionStatus.APPROVED
    assert outcome.command == MotorCommand.NONE


def test_decline(db, pending_session):
    outcome = ReviewService(db).review_session(pending_session.session_id, "doctor-1", "A", approve=False)

    assert outcome.status == SessionStatus.DECLINED
    assert outcome.command == MotorCommand.NONE
    subject = db.query(Subject).populate_existing().filter(Subject.id == pending_session.subject_id).one()
    assert subject.is_active is False


def test_cannot_review_twice(db, pending_session):
    service = ReviewService(db)
    service.review_session(pending_session.session_id, "doctor-1", "A")

    with pytest.raises(NotReviewable):
        service.review_session(pending_session.session_id, "doctor-1", "B")


def test_cannot_review_while_collecting(db, start_session):
    started = start_session()

    with pytest.raises(NotReviewable):
        ReviewService(db).review_session(started.session_id, "doctor-1", "A")


def test_cannot_review_other_reviewers_session(db, pending_session):
    with pytest.raises(NotReviewable):
        ReviewService(db).review_session(pending_session.session_id, "doctor-2", "A")


def test_cannot_review_unknown_session(db):
    with pytest.raises(NotReviewable):
        ReviewService(db).review_session(uuid4(), "doctor-1", "A")


@pytest.mark.parametrize("label", ["C", "none-yet", ""])
def test_invalid_decision_label(db, pending_session, label):
    with pytest.raises(ValidationError):
        ReviewService(db).review_session(pending_session.session_id, "doctor-1", label)


def test_live_view_shows_latest_reading(db, pending_session):
    view = ReviewService(db).get_live_view(pending_session.session_id, "doctor-1")

    assert view["session_id"] == pending_session.session_id
    assert view["kiosk_id"] == "K1"
    assert view["subject"]["name"] == "Jane Roe"
    assert view["latest_reading"]["bpm"] == 100
    assert view["predicted_label"] == "A"
    assert view["status"] == SessionStatus.PENDING_APPROVAL.value


def test_live_view_without_readings_defaults_to_zero(db, start_session):
    started = start_session()

    view = ReviewService(db).get_live_view(started.session_id, "doctor-1")

    assert view["latest_reading"] == {"timestamp": None, "bpm": 0, "spo2": 0, "temperature": 0}
    assert view["predicted_label"] == "none-yet"


def test_live_view_hidden_after_review_or_for_other_reviewer(db, pending_session):
    service = ReviewService(db)

    with pytest.raises(NotFound):
        service.get_live_view(pending_session.session_id, "doctor-2")

    service.review_session(pending_session.session_id, "doctor-1", "A")
    with pytest.raises(NotFound):
        service.get_live_view(pending_session.session_id, "doctor-1")
