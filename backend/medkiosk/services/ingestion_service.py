"""
Ingestion pipeline: records kiosk readings and advances the session on a prediction
"""
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from medkiosk.core.config import Settings, get_settings
from medkiosk.core.errors import NoActiveSession, ValidationError
from medkiosk.core.logging_config import LoggingConfig
from medkiosk.core.metrics import readings_ingested_total
from medkiosk.models.kiosk_session import (DiagnosisLabel, KioskSession,
                                           SessionReading, SessionStatus)
from medkiosk.services.classifier import (Classifier, Reading,
                                          classify_reading)
from medkiosk.services.session_store import SessionStore
from sqlalchemy.orm import Session

logger = LoggingConfig.get_logger(__name__)

_DETERMINED_LABELS = frozenset({DiagnosisLabel.DISEASE_A, DiagnosisLabel.DISEASE_B})


def next_status(current: str, label: DiagnosisLabel) -> str:
    """
    Status after a reading classified as `label`.

    A determined label (A or B) on a collecting session moves it straight to
    pending_approval; prediction_made is never stored.
    """
    if current == SessionStatus.COLLECTING_DATA.value and label in _DETERMINED_LABELS:
        return SessionStatus.PENDING_APPROVAL.value
    return current


class IngestionService:
    """Service for kiosk sensor uploads"""

    def __init__(
        self,
        db: Session,
        classifier: Classifier = classify_reading,
        settings: Optional[Settings] = None
    ):
        self.db = db
        self.classifier = classifier
        self.settings = settings or get_settings()
        self.store = SessionStore(db, max_attempts=self.settings.store_conflict_retries)

    def _resolve_session(self, kiosk_id: str) -> KioskSession:
        subject = self.store.get_active_subject(kiosk_id)
        if subject is None:
            raise NoActiveSession(f"No active subject session found for kiosk {kiosk_id}")

        open_sessions = self.store.get_open_sessions(subject.id)
        if len(open_sessions) > 1:
            logger.warning(
                f"Subject {subject.id} has {len(open_sessions)} open sessions; using the newest",
                extra={
                    "kiosk_id": kiosk_id,
                    "session_ids": [str(s.id) for s in open_sessions],
                }
            )
        if open_sessions:
            return open_sessions[0]

        logger.warning(
            f"No open session for active subject {subject.id} on kiosk {kiosk_id}; creating one",
            extra={"kiosk_id": kiosk_id, "subject_id": str(subject.id)}
        )
        session = KioskSession(
            subject_id=subject.id,
            reviewer_id=subject.reviewer_id,
            kiosk_id=kiosk_id,
            status=SessionStatus.COLLECTING_DATA.value,
        )
        self.db.add(session)
        self.db.flush()
        return session

    def ingest_reading(self, kiosk_id: str, reading: Reading) -> DiagnosisLabel:
        """
        Append a reading to the kiosk's open session and classify it.

        Args:
            kiosk_id: Uploading kiosk
            reading: Sensor sample

        Returns:
            The label predicted for this reading
        """
        kiosk_id = (kiosk_id or "").strip()
        if not kiosk_id:
            raise ValidationError("kioskId is required")

        label = DiagnosisLabel(self.classifier(reading))

        def work() -> UUID:
            session = self._resolve_session(kiosk_id)
            expected = session.status
            self.store.compare_and_set_status(
                session.id,
                expected,
                {
                    "predicted_label": label.value,
                    "status": next_status(expected, label),
                }
            )
            self.db.add(SessionReading(
                session_id=session.id,
                recorded_at=reading.timestamp or datetime.now(timezone.utc),
                bpm=reading.numeric("bpm"),
                spo2=reading.numeric("spo2"),
                temperature=reading.numeric("temperature"),
            ))
            self.db.flush()
            return session.id

        session_id = self.store.atomic("ingest_reading", work)

        readings_ingested_total.labels(label=label.value).inc()
        logger.debug(
            f"Reading stored for kiosk {kiosk_id}",
            extra={
                "kiosk_id": kiosk_id,
                "session_id": str(session_id),
                "predicted_label": label.value,
            }
        )
        return label
