"""
Command dispatch protocol: kiosks poll for approved commands and acknowledge execution
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Tuple
from uuid import UUID

from medkiosk.core.config import Settings, get_settings
from medkiosk.core.errors import NotFound, ValidationError
from medkiosk.core.logging_config import LoggingConfig
from medkiosk.core.metrics import (commands_dispatched_total,
                                   executions_confirmed_total)
from medkiosk.models.kiosk_session import (KioskSession, MotorCommand,
                                           SessionStatus)
from medkiosk.services.session_store import SessionStore
from sqlalchemy.orm import Session

logger = LoggingConfig.get_logger(__name__)


@dataclass(frozen=True)
class PendingCommand:
    """Poll result; `session_id` is the token the kiosk echoes back on acknowledgement"""
    command: MotorCommand
    session_id: Optional[UUID] = None


class CommandDispatchService:
    """Service serving motor commands to polling kiosks"""

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()
        self.store = SessionStore(db, max_attempts=self.settings.store_conflict_retries)

    def fetch_command(self, kiosk_id: str) -> PendingCommand:
        """
        Return the outstanding command for a kiosk, or no-command.

        Read-only: repeated polls return the same command until the kiosk
        acknowledges it. Unknown or idle kiosks simply get no-command.
        """
        kiosk_id = (kiosk_id or "").strip()
        if not kiosk_id:
            raise ValidationError("kioskId is required")

        session = self.store.get_latest_pending_command(kiosk_id)
        if session is None:
            logger.debug(f"Kiosk {kiosk_id} requested command. No pending command.")
            return PendingCommand(command=MotorCommand.NONE)

        command = MotorCommand(session.command)
        commands_dispatched_total.labels(command=command.value).inc()
        logger.info(
            f"Kiosk {kiosk_id} requested command. Serving {command.value}",
            extra={"kiosk_id": kiosk_id, "session_id": str(session.id)}
        )
        return PendingCommand(command=command, session_id=session.id)

    def confirm_execution(
        self,
        kiosk_id: str,
        execution_status: str,
        session_id: Optional[UUID] = None
    ) -> UUID:
        """
        Record that a kiosk executed the command of a session.

        The acknowledgement should carry the session id returned by
        `fetch_command`. Without it the newest pending command on the kiosk is
        confirmed, which can pick up an approval made after the kiosk polled.
        Repeating an acknowledgement for a dispensed session is a no-op.

        Args:
            kiosk_id: Acknowledging kiosk
            execution_status: Kiosk's report, e.g. "motor_1_activated"
            session_id: Session token from the poll

        Returns:
            ID of the confirmed session
        """
        kiosk_id = (kiosk_id or "").strip()
        execution_status = (execution_status or "").strip()
        if not kiosk_id or not execution_status:
            raise ValidationError("kioskId and status are required")

        def work() -> Tuple[UUID, str]:
            if session_id is not None:
                session = self.store.get_session(session_id)
                if session is None or session.kiosk_id != kiosk_id:
                    raise NotFound(f"Session {session_id} not found for kiosk {kiosk_id}")
                outcome = "confirmed"
            else:
                session = self.store.get_latest_pending_command(kiosk_id)
                if session is None:
                    raise NotFound(f"No pending approved session found for kiosk {kiosk_id}")
                logger.warning(
                    f"Kiosk {kiosk_id} confirmed execution without a session id; "
                    f"matched latest pending session {session.id}",
                    extra={"kiosk_id": kiosk_id, "session_id": str(session.id)}
                )
                outcome = "fallback"

            if self._already_dispensed(session):
                return session.id, "duplicate"

            if not self._is_outstanding(session):
                raise NotFound(
                    f"Session {session.id} has no outstanding command",
                    metadata={"status": session.status},
                )

            self.store.compare_and_set_status(
                session.id,
                SessionStatus.APPROVED.value,
                {
                    "status": SessionStatus.MEDICATION_DISPENSED.value,
                    "command_executed": True,
                    "execution_report": execution_status[:255],
                    "executed_at": datetime.now(timezone.utc),
                }
            )
            return session.id, outcome

        confirmed_id, outcome = self.store.atomic("confirm_execution", work)

        executions_confirmed_total.labels(outcome=outcome).inc()
        logger.info(
            f"Kiosk {kiosk_id} confirmed execution of command for session {confirmed_id}. Status: {execution_status}",
            extra={"kiosk_id": kiosk_id, "session_id": str(confirmed_id), "outcome": outcome}
        )
        return confirmed_id

    @staticmethod
    def _already_dispensed(session: KioskSession) -> bool:
        return (
            session.status == SessionStatus.MEDICATION_DISPENSED.value
            and bool(session.command_executed)
        )

    @staticmethod
    def _is_outstanding(session: KioskSession) -> bool:
        return (
            session.status == SessionStatus.APPROVED.value
            and not session.command_executed
            and session.command != MotorCommand.NONE.value
        )
