"""
Review gate: reviewer decisions and the live view of open sessions
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import UUID

from medkiosk.core.config import Settings, get_settings
from medkiosk.core.errors import NotFound, NotReviewable, ValidationError
from medkiosk.core.logging_config import LoggingConfig
from medkiosk.core.metrics import reviews_total
from medkiosk.models.kiosk_session import (OPEN_STATUSES, DiagnosisLabel,
                                           MotorCommand, SessionStatus,
                                           command_for_label)
from medkiosk.services.session_store import SessionStore
from sqlalchemy.orm import Session

logger = LoggingConfig.get_logger(__name__)

_OPEN_STATUS_VALUES = {status.value for status in OPEN_STATUSES}

_EMPTY_READING = {"timestamp": None, "bpm": 0, "spo2": 0, "temperature": 0}


@dataclass(frozen=True)
class ReviewOutcome:
    session_id: UUID
    status: SessionStatus
    command: MotorCommand


class ReviewService:
    """Service for reviewer decisions on kiosk sessions"""

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()
        self.store = SessionStore(db, max_attempts=self.settings.store_conflict_retries)

    def get_live_view(self, session_id: UUID, reviewer_id: str) -> Dict[str, Any]:
        """Latest reading and prediction for an open session owned by the reviewer"""
        session = self.store.get_session(session_id)
        if (
            session is None
            or session.reviewer_id != reviewer_id
            or session.status not in _OPEN_STATUS_VALUES
        ):
            raise NotFound(f"Active session {session_id} not found or already completed")

        latest = session.latest_reading
        return {
            "session_id": session.id,
            "kiosk_id": session.kiosk_id,
            "subject": session.subject.to_summary(),
            "latest_reading": latest.to_dict() if latest else dict(_EMPTY_READING),
            "predicted_label": session.predicted_label,
            "status": session.status,
        }

    def review_session(
        self,
        session_id: UUID,
        reviewer_id: str,
        decision_label: str,
        approve: bool = True
    ) -> ReviewOutcome:
        """
        Record the reviewer's decision on a pending prediction.

        Approval maps the label to a motor command; declining leaves the
        session without a command. Either way the subject is deactivated so
        the kiosk stops accepting readings before the command is delivered.

        Args:
            session_id: Session under review
            reviewer_id: Reviewer making the decision; must own the session
            decision_label: Label the reviewer confirms (A, B or undetermined)
            approve: False to decline the prediction

        Returns:
            ReviewOutcome with the resulting status and command
        """
        try:
            label = DiagnosisLabel(decision_label)
        except ValueError as e:
            raise ValidationError(f"Unknown diagnosis label: {decision_label!r}") from e
        if label == DiagnosisLabel.NONE_YET:
            raise ValidationError("A decision label is required")

        if approve:
            status = SessionStatus.APPROVED
            command = command_for_label(label)
        else:
            status = SessionStatus.DECLINED
            command = MotorCommand.NONE

        def work() -> str:
            session = self.store.get_session(session_id)
            if session is None or session.reviewer_id != reviewer_id:
                raise NotReviewable(f"Session {session_id} not found or not assigned to this reviewer")
            if session.status != SessionStatus.PENDING_APPROVAL.value:
                raise NotReviewable(
                    f"Session {session_id} is {session.status}, not awaiting review",
                    metadata={"status": session.status},
                )

            self.store.compare_and_set_status(
                session.id,
                SessionStatus.PENDING_APPROVAL.value,
                {
                    "approved_label": label.value,
                    "status": status.value,
                    "command": command.value,
                    "reviewed_at": datetime.now(timezone.utc),
                }
            )
            self.store.deactivate_subject(session.subject_id)
            return session.kiosk_id

        kiosk_id = self.store.atomic("review_session", work)

        reviews_total.labels(decision=status.value, command=command.value).inc()
        logger.info(
            f"Session {session_id} {status.value} as {label.value}",
            extra={
                "session_id": str(session_id),
                "kiosk_id": kiosk_id,
                "reviewer_id": reviewer_id,
                "command": command.value,
            }
        )
        return ReviewOutcome(session_id=session_id, status=status, command=command)
