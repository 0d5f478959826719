"""
Session lifecycle service: starts kiosk sessions and keeps one active subject per kiosk
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional
from uuid import UUID

from medkiosk.core.config import Settings, get_settings
from medkiosk.core.errors import ValidationError
from medkiosk.core.logging_config import LoggingConfig
from medkiosk.core.metrics import sessions_started_total
from medkiosk.models.kiosk_session import (DiagnosisLabel, KioskSession,
                                           SessionStatus)
from medkiosk.models.subject import Subject
from medkiosk.services.session_store import SessionStore
from sqlalchemy.orm import Session

logger = LoggingConfig.get_logger(__name__)


@dataclass(frozen=True)
class StartedSession:
    subject_id: UUID
    session_id: UUID
    kiosk_id: str
    abandoned_sessions: int = 0


class SessionLifecycleService:
    """Service for opening kiosk sessions"""

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()
        self.store = SessionStore(db, max_attempts=self.settings.store_conflict_retries)

    def start_session(
        self,
        kiosk_id: str,
        subject_info: Dict[str, Any],
        reviewer_id: str
    ) -> StartedSession:
        """
        Start a new subject session on a kiosk.

        Any subject still active on the kiosk is deactivated and every
        non-terminal session on it (approved or declined ones included) is
        completed in the same transaction that creates the new subject,
        session and kiosk assignment. An approved command that was never
        confirmed is abandoned with its session.

        Args:
            kiosk_id: Kiosk that will stream readings
            subject_info: Patient details (name, age, optional phone_number)
            reviewer_id: Reviewer who owns the session

        Returns:
            StartedSession with the new identifiers
        """
        kiosk_id = (kiosk_id or "").strip()
        reviewer_id = (reviewer_id or "").strip()
        subject_info = subject_info or {}
        name = str(subject_info.get("name") or "").strip()
        age = subject_info.get("age")
        phone_number = subject_info.get("phone_number")

        if not kiosk_id or not reviewer_id or not name or age is None:
            raise ValidationError("Subject name, age, kiosk ID and reviewer ID are required")
        if isinstance(age, bool) or not isinstance(age, int) or age < 0:
            raise ValidationError("Subject age must be a non-negative integer")

        def work() -> StartedSession:
            previous = self.store.get_assignment(kiosk_id)

            self.store.deactivate_subjects(kiosk_id)
            abandoned = self.store.complete_unfinished_sessions(kiosk_id)

            subject = Subject(
                name=name,
                age=age,
                phone_number=phone_number,
                reviewer_id=reviewer_id,
                kiosk_id=kiosk_id,
                is_active=True,
            )
            self.db.add(subject)
            self.db.flush()

            session = KioskSession(
                subject_id=subject.id,
                reviewer_id=reviewer_id,
                kiosk_id=kiosk_id,
                status=SessionStatus.COLLECTING_DATA.value,
                predicted_label=DiagnosisLabel.NONE_YET.value,
            )
            self.db.add(session)
            self.db.flush()

            self.store.point_assignment(kiosk_id, previous, subject.id, session.id)

            return StartedSession(
                subject_id=subject.id,
                session_id=session.id,
                kiosk_id=kiosk_id,
                abandoned_sessions=abandoned,
            )

        started = self.store.atomic("start_session", work)

        sessions_started_total.labels(
            abandoned_previous=str(started.abandoned_sessions > 0).lower()
        ).inc()
        if started.abandoned_sessions:
            logger.warning(
                f"Kiosk {kiosk_id} had {started.abandoned_sessions} unfinished session(s); marked completed",
                extra={"kiosk_id": kiosk_id, "abandoned": started.abandoned_sessions}
            )
        logger.info(
            f"Started session {started.session_id} on kiosk {kiosk_id}",
            extra={
                "kiosk_id": kiosk_id,
                "session_id": str(started.session_id),
                "subject_id": str(started.subject_id),
                "reviewer_id": reviewer_id,
            }
        )
        return started
