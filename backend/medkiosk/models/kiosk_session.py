"""
Kiosk session (diagnosis episode) and sensor reading models
"""
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from medkiosk.core.database import Base
from sqlalchemy import (Boolean, Column, DateTime, Float, ForeignKey, Index,
                        Integer, String, Uuid)
from sqlalchemy.orm import relationship


class SessionStatus(str, Enum):
    """Session status enumeration"""
    COLLECTING_DATA = "collecting_data"
    PREDICTION_MADE = "prediction_made"  # transient, never committed by ingestion
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    DECLINED = "declined"
    MEDICATION_DISPENSED = "medication_dispensed"
    COMPLETED = "completed"


# Statuses that accept readings and appear in the live view
OPEN_STATUSES = (
    SessionStatus.COLLECTING_DATA,
    SessionStatus.PREDICTION_MADE,
    SessionStatus.PENDING_APPROVAL,
)

# No transition leaves these; cleanup-on-start completes every other status
TERMINAL_STATUSES = (
    SessionStatus.MEDICATION_DISPENSED,
    SessionStatus.COMPLETED,
)


class DiagnosisLabel(str, Enum):
    """Classification outcome"""
    DISEASE_A = "A"
    DISEASE_B = "B"
    UNDETERMINED = "undetermined"
    NONE_YET = "none-yet"


class MotorCommand(str, Enum):
    """Actuation instruction for the kiosk dispenser"""
    NONE = "no-command"
    ACTIVATE_MOTOR_1 = "command-1"
    ACTIVATE_MOTOR_2 = "command-2"


COMMAND_FOR_LABEL = {
    DiagnosisLabel.DISEASE_A: MotorCommand.ACTIVATE_MOTOR_1,
    DiagnosisLabel.DISEASE_B: MotorCommand.ACTIVATE_MOTOR_2,
    DiagnosisLabel.UNDETERMINED: MotorCommand.NONE,
    DiagnosisLabel.NONE_YET: MotorCommand.NONE,
}


def command_for_label(label: DiagnosisLabel) -> MotorCommand:
    """Map an approved label to the command the kiosk must execute"""
    return COMMAND_FOR_LABEL[DiagnosisLabel(label)]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class KioskSession(Base):
    """One diagnostic episode for a subject on a kiosk"""
    __tablename__ = "kiosk_sessions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    subject_id = Column(Uuid(as_uuid=True), ForeignKey("subjects.id"), nullable=False, index=True)
    reviewer_id = Column(String(255), nullable=False, index=True)
    kiosk_id = Column(String(100), nullable=False)

    predicted_label = Column(String(20), nullable=False, default=DiagnosisLabel.NONE_YET.value)
    approved_label = Column(String(20), nullable=False, default=DiagnosisLabel.NONE_YET.value)
    status = Column(String(30), nullable=False, default=SessionStatus.COLLECTING_DATA.value)

    command = Column(String(20), nullable=False, default=MotorCommand.NONE.value)
    command_executed = Column(Boolean, nullable=False, default=False)
    execution_report = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    executed_at = Column(DateTime(timezone=True), nullable=True)

    subject = relationship("Subject", back_populates="sessions")
    readings = relationship(
        "SessionReading",
        back_populates="session",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="SessionReading.id",
    )

    __table_args__ = (
        Index("ix_kiosk_sessions_kiosk_status_created", "kiosk_id", "status", "created_at"),
    )

    @property
    def latest_reading(self):
        return self.readings[-1] if self.readings else None

    def __repr__(self):
        return f"<KioskSession(id={self.id}, kiosk={self.kiosk_id}, status={self.status})>"


class SessionReading(Base):
    """Single sensor sample uploaded by a kiosk; rows are append-only"""
    __tablename__ = "session_readings"

    # Integer key preserves insertion order across concurrent uploads
    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("kiosk_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    recorded_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    bpm = Column(Float, nullable=True)
    spo2 = Column(Float, nullable=True)
    temperature = Column(Float, nullable=True)

    session = relationship("KioskSession", back_populates="readings")

    def to_dict(self):
        return {
            "timestamp": self.recorded_at,
            "bpm": self.bpm or 0,
            "spo2": self.spo2 or 0,
            "temperature": self.temperature or 0,
        }

    def __repr__(self):
        return f"<SessionReading(session={self.session_id}, bpm={self.bpm}, spo2={self.spo2}, temp={self.temperature})>"
