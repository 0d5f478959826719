"""
Session store: record access and conditional updates for the session core
"""
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, TypeVar
from uuid import UUID

from medkiosk.core.errors import StoreConflict
from medkiosk.core.logging_config import LoggingConfig
from medkiosk.core.metrics import store_conflicts_total
from medkiosk.models.kiosk_session import (OPEN_STATUSES, TERMINAL_STATUSES,
                                           KioskSession, MotorCommand,
                                           SessionStatus)
from medkiosk.models.subject import KioskAssignment, Subject
from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

logger = LoggingConfig.get_logger(__name__)

T = TypeVar("T")

_OPEN_STATUS_VALUES = [status.value for status in OPEN_STATUSES]
_TERMINAL_STATUS_VALUES = [status.value for status in TERMINAL_STATUSES]


class SessionStore:
    """
    Thin repository over the session tables.

    Every state transition goes through `compare_and_set_status`, which only
    writes when the stored status still equals the status the caller read.
    `atomic` wraps a unit of work in a transaction and replays it when a
    conditional write loses its race.
    """

    def __init__(self, db: Session, max_attempts: int = 3):
        self.db = db
        self.max_attempts = max(1, max_attempts)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def atomic(self, operation: str, work: Callable[[], T]) -> T:
        """Run `work` and commit; roll back and retry on a lost conditional update"""
        for attempt in range(1, self.max_attempts + 1):
            try:
                result = work()
                self.db.commit()
                return result
            except (StoreConflict, IntegrityError) as e:
                self.db.rollback()
                exhausted = attempt >= self.max_attempts
                store_conflicts_total.labels(
                    operation=operation,
                    exhausted=str(exhausted).lower()
                ).inc()
                logger.info(
                    f"Conditional update lost race in {operation}",
                    extra={
                        "operation": operation,
                        "attempt": attempt,
                        "error": str(e),
                    }
                )
                if exhausted:
                    raise StoreConflict(
                        f"{operation} conflicted with a concurrent update; retry later",
                        metadata={"attempts": attempt},
                    ) from e
            except Exception:
                self.db.rollback()
                raise
        # range() above always runs at least once
        raise StoreConflict(f"{operation} did not run")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_session(self, session_id: UUID) -> Optional[KioskSession]:
        """Get session by ID, bypassing any stale identity-map copy"""
        return self.db.query(KioskSession).populate_existing().filter(
            KioskSession.id == session_id
        ).first()

    def get_assignment(self, kiosk_id: str) -> Optional[KioskAssignment]:
        return self.db.query(KioskAssignment).populate_existing().filter(
            KioskAssignment.kiosk_id == kiosk_id
        ).first()

    def get_active_subject(self, kiosk_id: str) -> Optional[Subject]:
        """Resolve the active subject for a kiosk through the assignment index"""
        assignment = self.get_assignment(kiosk_id)
        if not assignment:
            return None
        subject = self.db.query(Subject).populate_existing().filter(
            Subject.id == assignment.subject_id
        ).first()
        if subject is None or not subject.is_active:
            return None
        return subject

    def get_open_sessions(self, subject_id: UUID) -> List[KioskSession]:
        """Open sessions for a subject, newest first"""
        return self.db.query(KioskSession).populate_existing().filter(
            KioskSession.subject_id == subject_id,
            KioskSession.status.in_(_OPEN_STATUS_VALUES)
        ).order_by(desc(KioskSession.created_at)).all()

    def get_latest_pending_command(self, kiosk_id: str) -> Optional[KioskSession]:
        """Most recent approved session on a kiosk whose command is still outstanding"""
        return self.db.query(KioskSession).populate_existing().filter(
            KioskSession.kiosk_id == kiosk_id,
            KioskSession.status == SessionStatus.APPROVED.value,
            KioskSession.command_executed.is_(False),
            KioskSession.command != MotorCommand.NONE.value
        ).order_by(desc(KioskSession.created_at)).first()

    # ------------------------------------------------------------------
    # Writes (caller commits through `atomic`)
    # ------------------------------------------------------------------

    def compare_and_set_status(
        self,
        session_id: UUID,
        expected_status: str,
        values: Dict[str, Any]
    ) -> None:
        """Apply `values` only if the session still has `expected_status`"""
        values = dict(values)
        values.setdefault("updated_at", datetime.now(timezone.utc))
        updated = self.db.query(KioskSession).filter(
            KioskSession.id == session_id,
            KioskSession.status == expected_status
        ).update(values, synchronize_session=False)
        if updated != 1:
            raise StoreConflict(
                f"Session {session_id} is no longer {expected_status}",
                metadata={"session_id": str(session_id)},
            )

    def deactivate_subjects(self, kiosk_id: str) -> int:
        """Mark every active subject on a kiosk inactive"""
        return self.db.query(Subject).filter(
            Subject.kiosk_id == kiosk_id,
            Subject.is_active.is_(True)
        ).update({"is_active": False}, synchronize_session=False)

    def deactivate_subject(self, subject_id: UUID) -> int:
        return self.db.query(Subject).filter(
            Subject.id == subject_id
        ).update({"is_active": False}, synchronize_session=False)

    def complete_unfinished_sessions(self, kiosk_id: str) -> int:
        """Complete every non-terminal session on a kiosk (cleanup-on-start)"""
        return self.db.query(KioskSession).filter(
            KioskSession.kiosk_id == kiosk_id,
            KioskSession.status.notin_(_TERMINAL_STATUS_VALUES)
        ).update(
            {
                "status": SessionStatus.COMPLETED.value,
                "updated_at": datetime.now(timezone.utc),
            },
            synchronize_session=False
        )

    def point_assignment(
        self,
        kiosk_id: str,
        previous: Optional[KioskAssignment],
        subject_id: UUID,
        session_id: UUID
    ) -> None:
        """Move the kiosk index to a new subject, guarded by the subject it pointed at"""
        if previous is None:
            self.db.add(KioskAssignment(
                kiosk_id=kiosk_id,
                subject_id=subject_id,
                session_id=session_id,
            ))
            # A concurrent first start on this kiosk surfaces as IntegrityError here
            self.db.flush()
            return

        updated = self.db.query(KioskAssignment).filter(
            KioskAssignment.kiosk_id == kiosk_id,
            KioskAssignment.subject_id == previous.subject_id
        ).update(
            {
                "subject_id": subject_id,
                "session_id": session_id,
                "updated_at": datetime.now(timezone.utc),
            },
            synchronize_session=False
        )
        if updated != 1:
            raise StoreConflict(f"Kiosk {kiosk_id} was reassigned concurrently")
