"""
Health check endpoints
"""
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import func, text
from sqlalchemy.orm import Session

from medkiosk.core.config import get_settings
from medkiosk.core.database import get_db
from medkiosk.core.logging_config import LoggingConfig
from medkiosk.models.kiosk_session import (OPEN_STATUSES, KioskSession,
                                           MotorCommand, SessionStatus)

logger = LoggingConfig.get_logger(__name__)
router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """
    Basic health check endpoint

    Returns:
        dict: Health status
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": get_settings().app_name
    }


@router.get("/health/detailed")
async def detailed_health_check(db: Session = Depends(get_db)):
    """
    Detailed health check with component status

    Returns:
        dict: Detailed health status of the database and the session backlog
    """
    settings = get_settings()
    health_status = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": settings.app_name,
        "version": "0.1.0",
        "environment": settings.app_env,
        "components": {}
    }

    overall_healthy = True

    try:
        db.execute(text("SELECT 1"))
        health_status["components"]["database"] = {
            "status": "healthy",
            "message": "Database connection successful"
        }
    except Exception as e:
        logger.error(f"Database health check failed: {e}", exc_info=True)
        overall_healthy = False
        health_status["components"]["database"] = {
            "status": "unhealthy",
            "message": f"Database connection failed: {str(e)}",
            "error": type(e).__name__
        }

    if overall_healthy:
        try:
            open_sessions = db.query(func.count(KioskSession.id)).filter(
                KioskSession.status.in_([s.value for s in OPEN_STATUSES])
            ).scalar()
            pending_review = db.query(func.count(KioskSession.id)).filter(
                KioskSession.status == SessionStatus.PENDING_APPROVAL.value
            ).scalar()
            undelivered = db.query(func.count(KioskSession.id)).filter(
                KioskSession.status == SessionStatus.APPROVED.value,
                KioskSession.command_executed.is_(False),
                KioskSession.command != MotorCommand.NONE.value
            ).scalar()
            health_status["components"]["sessions"] = {
                "status": "healthy",
                "open": open_sessions,
                "pending_review": pending_review,
                "undelivered_commands": undelivered,
            }
        except Exception as e:
            logger.warning(f"Session backlog check failed: {e}", exc_info=True)
            health_status["components"]["sessions"] = {
                "status": "error",
                "message": f"Failed to count sessions: {str(e)}",
                "error": type(e).__name__
            }

    if not overall_healthy:
        health_status["status"] = "unhealthy"

    return health_status
