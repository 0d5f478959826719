"""
API routes for kiosks: sensor uploads, command polling and execution acknowledgement
"""
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from medkiosk.core.config import get_settings
from medkiosk.core.database import get_db
from medkiosk.models.kiosk_session import DiagnosisLabel, MotorCommand
from medkiosk.services.classifier import Reading
from medkiosk.services.command_dispatch_service import CommandDispatchService
from medkiosk.services.ingestion_service import IngestionService

router = APIRouter(prefix="/api/kiosk", tags=["kiosk"])


class ReadingUpload(BaseModel):
    """Sensor sample uploaded by a kiosk; missing vitals classify as undetermined"""
    kiosk_id: str = Field(..., min_length=1, max_length=100)
    bpm: Optional[float] = None
    spo2: Optional[float] = None
    temperature: Optional[float] = None
    timestamp: Optional[datetime] = None


class ReadingAccepted(BaseModel):
    predicted_label: DiagnosisLabel
    message: str = "Sensor data received and session updated"


class CommandResponse(BaseModel):
    command: MotorCommand
    session_id: Optional[UUID] = None
    poll_interval_seconds: int


class ExecutionReport(BaseModel):
    """Kiosk acknowledgement; `session_id` echoes the id returned by the poll"""
    kiosk_id: str = Field(..., min_length=1, max_length=100)
    status: str = Field(..., min_length=1, max_length=255, description="Execution status, e.g. motor_1_activated")
    session_id: Optional[UUID] = None


class ExecutionConfirmed(BaseModel):
    session_id: UUID
    message: str = "Motor command execution confirmed."


@router.post("/readings", response_model=ReadingAccepted)
async def upload_reading(
    upload: ReadingUpload,
    db: Session = Depends(get_db)
):
    """Receive a sensor sample, store it on the kiosk's open session and classify it"""
    service = IngestionService(db)
    reading_kwargs = {}
    if upload.timestamp is not None:
        reading_kwargs["timestamp"] = upload.timestamp
    label = service.ingest_reading(
        upload.kiosk_id,
        Reading(
            bpm=upload.bpm,
            spo2=upload.spo2,
            temperature=upload.temperature,
            **reading_kwargs,
        ),
    )
    return ReadingAccepted(predicted_label=label)


@router.get("/command", response_model=CommandResponse)
async def get_command(
    kiosk_id: str = Query(..., min_length=1, max_length=100),
    db: Session = Depends(get_db)
):
    """Poll for the pending motor command of a kiosk"""
    service = CommandDispatchService(db)
    pending = service.fetch_command(kiosk_id)
    return CommandResponse(
        command=pending.command,
        session_id=pending.session_id,
        poll_interval_seconds=get_settings().kiosk_poll_interval_seconds,
    )


@router.post("/command/executed", response_model=ExecutionConfirmed)
async def command_executed(
    report: ExecutionReport,
    db: Session = Depends(get_db)
):
    """Confirm that the kiosk executed a motor command"""
    service = CommandDispatchService(db)
    session_id = service.confirm_execution(
        kiosk_id=report.kiosk_id,
        execution_status=report.status,
        session_id=report.session_id,
    )
    return ExecutionConfirmed(session_id=session_id)
