"""
API routes for reviewers: start kiosk sessions, watch live data, review predictions, history
"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from medkiosk.core.auth import get_current_reviewer
from medkiosk.core.database import get_db
from medkiosk.models.kiosk_session import (DiagnosisLabel, MotorCommand,
                                           SessionStatus)
from medkiosk.services.history_service import HistoryService
from medkiosk.services.review_service import ReviewService
from medkiosk.services.session_lifecycle_service import \
    SessionLifecycleService

router = APIRouter(prefix="/api/reviewer", tags=["reviewer"])


class StartSessionRequest(BaseModel):
    """Request model for starting a kiosk session"""
    kiosk_id: str = Field(..., min_length=1, max_length=100, description="Kiosk that will stream readings")
    name: str = Field(..., min_length=1, max_length=255, description="Subject name")
    age: int = Field(..., ge=0, description="Subject age")
    phone_number: Optional[str] = Field(
        default=None,
        max_length=32,
        pattern=r"^\+?(\d{1,3})?[-.\s]?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}$",
        description="Subject phone number"
    )


class StartSessionResponse(BaseModel):
    subject_id: UUID
    session_id: UUID
    kiosk_id: str
    message: str = "Subject session started successfully"


class ReadingResponse(BaseModel):
    timestamp: Optional[datetime] = None
    bpm: float = 0
    spo2: float = 0
    temperature: float = 0


class SubjectResponse(BaseModel):
    id: UUID
    name: str
    age: int
    phone_number: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class LiveViewResponse(BaseModel):
    session_id: UUID
    kiosk_id: str
    subject: SubjectResponse
    latest_reading: ReadingResponse
    predicted_label: DiagnosisLabel
    status: SessionStatus


class ReviewRequest(BaseModel):
    """Request model for a reviewer decision"""
    approved_label: DiagnosisLabel = Field(..., description="Label the reviewer confirms")
    approve: bool = Field(default=True, description="False to decline the prediction")


class ReviewResponse(BaseModel):
    session_id: UUID
    status: SessionStatus
    command: MotorCommand


class SessionSummary(BaseModel):
    """Session history entry"""
    id: UUID
    kiosk_id: str
    subject: SubjectResponse
    predicted_label: DiagnosisLabel
    approved_label: DiagnosisLabel
    status: SessionStatus
    command: MotorCommand
    command_executed: bool
    execution_report: Optional[str] = None
    created_at: datetime
    reviewed_at: Optional[datetime] = None
    executed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


@router.post("/sessions", response_model=StartSessionResponse, status_code=status.HTTP_201_CREATED)
async def start_session(
    request: StartSessionRequest,
    reviewer_id: str = Depends(get_current_reviewer),
    db: Session = Depends(get_db)
):
    """Start a subject session on a kiosk, closing whatever the kiosk was doing before"""
    service = SessionLifecycleService(db)
    started = service.start_session(
        kiosk_id=request.kiosk_id,
        subject_info={
            "name": request.name,
            "age": request.age,
            "phone_number": request.phone_number,
        },
        reviewer_id=reviewer_id,
    )
    return StartSessionResponse(
        subject_id=started.subject_id,
        session_id=started.session_id,
        kiosk_id=started.kiosk_id,
    )


@router.get("/sessions/{session_id}/live", response_model=LiveViewResponse)
async def get_live_view(
    session_id: UUID,
    reviewer_id: str = Depends(get_current_reviewer),
    db: Session = Depends(get_db)
):
    """Get the latest reading and prediction of an open session"""
    service = ReviewService(db)
    return service.get_live_view(session_id, reviewer_id)


@router.post("/sessions/{session_id}/review", response_model=ReviewResponse)
async def review_session(
    session_id: UUID,
    request: ReviewRequest,
    reviewer_id: str = Depends(get_current_reviewer),
    db: Session = Depends(get_db)
):
    """Approve or decline the prediction of a pending session"""
    service = ReviewService(db)
    outcome = service.review_session(
        session_id=session_id,
        reviewer_id=reviewer_id,
        decision_label=request.approved_label,
        approve=request.approve,
    )
    return ReviewResponse(
        session_id=outcome.session_id,
        status=outcome.status,
        command=outcome.command,
    )


@router.get("/history", response_model=List[SessionSummary])
async def list_history(
    search: Optional[str] = None,
    limit: int = Query(200, ge=1, le=500),
    reviewer_id: str = Depends(get_current_reviewer),
    db: Session = Depends(get_db)
):
    """Get the reviewer's sessions, newest first, optionally filtered by a search term"""
    service = HistoryService(db)
    return service.list_history(reviewer_id, search=search, limit=limit)


@router.delete("/history/{session_id}")
async def delete_history(
    session_id: UUID,
    reviewer_id: str = Depends(get_current_reviewer),
    db: Session = Depends(get_db)
):
    """Delete a session record owned by the reviewer"""
    service = HistoryService(db)
    service.delete_history(session_id, reviewer_id)
    return {"status": "deleted", "session_id": str(session_id), "message": "Session record deleted successfully."}
