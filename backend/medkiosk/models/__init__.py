"""
SQLAlchemy models
"""
from medkiosk.core.database import Base
# Import all models here so Alembic can detect them
from medkiosk.models.kiosk_session import (COMMAND_FOR_LABEL,  # noqa: F401
                                           OPEN_STATUSES, TERMINAL_STATUSES,
                                           DiagnosisLabel, KioskSession,
                                           MotorCommand, SessionReading,
                                           SessionStatus, command_for_label)
from medkiosk.models.subject import KioskAssignment, Subject  # noqa: F401
