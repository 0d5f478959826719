"""
Reviewer history: past sessions with search, and administrative deletion
"""
from typing import List, Optional
from uuid import UUID

from medkiosk.core.errors import NotFound, Unauthorized
from medkiosk.core.logging_config import LoggingConfig
from medkiosk.models.kiosk_session import KioskSession
from medkiosk.models.subject import Subject
from sqlalchemy import desc, or_
from sqlalchemy.orm import Session, contains_eager

logger = LoggingConfig.get_logger(__name__)


class HistoryService:
    """Service for a reviewer's session history"""

    def __init__(self, db: Session):
        self.db = db

    def list_history(
        self,
        reviewer_id: str,
        search: Optional[str] = None,
        limit: int = 200
    ) -> List[KioskSession]:
        """
        Get the reviewer's sessions, newest first

        Args:
            reviewer_id: Owner of the sessions
            search: Case-insensitive substring matched against subject name,
                kiosk id, predicted label, approved label and status
            limit: Maximum number of sessions

        Returns:
            List of KioskSession with `subject` loaded
        """
        query = self.db.query(KioskSession).join(
            Subject, KioskSession.subject_id == Subject.id
        ).options(
            contains_eager(KioskSession.subject)
        ).filter(
            KioskSession.reviewer_id == reviewer_id
        )

        term = (search or "").strip()
        if term:
            query = query.filter(or_(
                Subject.name.icontains(term, autoescape=True),
                KioskSession.kiosk_id.icontains(term, autoescape=True),
                KioskSession.predicted_label.icontains(term, autoescape=True),
                KioskSession.approved_label.icontains(term, autoescape=True),
                KioskSession.status.icontains(term, autoescape=True),
            ))

        return query.order_by(desc(KioskSession.created_at)).limit(limit).all()

    def delete_history(self, session_id: UUID, reviewer_id: str) -> None:
        """Delete one of the reviewer's sessions together with its readings"""
        session = self.db.query(KioskSession).filter(
            KioskSession.id == session_id
        ).first()

        if not session:
            raise NotFound(f"Session record {session_id} not found")
        if session.reviewer_id != reviewer_id:
            raise Unauthorized(f"Session record {session_id} belongs to another reviewer")

        try:
            self.db.delete(session)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"Deleted session record {session_id}",
            extra={"session_id": str(session_id), "reviewer_id": reviewer_id}
        )
