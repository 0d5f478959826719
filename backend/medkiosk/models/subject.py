"""
Subject (patient/kiosk assignment) and the active-subject-per-kiosk index
"""
from datetime import datetime, timezone
from uuid import uuid4

from medkiosk.core.database import Base
from sqlalchemy import (Boolean, Column, DateTime, ForeignKey, Index, Integer,
                        String, Uuid)
from sqlalchemy.orm import relationship


class Subject(Base):
    """Patient being monitored through a kiosk"""
    __tablename__ = "subjects"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String(255), nullable=False)
    age = Column(Integer, nullable=False)
    phone_number = Column(String(32), nullable=True)
    reviewer_id = Column(String(255), nullable=False)
    kiosk_id = Column(String(100), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    sessions = relationship("KioskSession", back_populates="subject")

    __table_args__ = (
        Index("ix_subjects_kiosk_active", "kiosk_id", "is_active"),
    )

    def to_summary(self):
        return {
            "id": self.id,
            "name": self.name,
            "age": self.age,
            "phone_number": self.phone_number,
        }

    def __repr__(self):
        return f"<Subject(id={self.id}, kiosk={self.kiosk_id}, active={self.is_active})>"


class KioskAssignment(Base):
    """Single-valued index from kiosk id to its current subject and session"""
    __tablename__ = "kiosk_assignments"

    kiosk_id = Column(String(100), primary_key=True)
    subject_id = Column(Uuid(as_uuid=True), ForeignKey("subjects.id"), nullable=False)
    session_id = Column(Uuid(as_uuid=True), ForeignKey("kiosk_sessions.id", ondelete="SET NULL"), nullable=True)
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    subject = relationship("Subject")

    def __repr__(self):
        return f"<KioskAssignment(kiosk={self.kiosk_id}, subject={self.subject_id})>"
