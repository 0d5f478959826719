"""
Service error taxonomy for the session core.

Every error carries the HTTP status the API layer answers with, so routes can
let them propagate to the exception handler registered in ``main.py``.
"""
from typing import Any, Dict, Optional


class KioskServiceError(Exception):
    """Base class for errors surfaced to reviewers and kiosks"""

    status_code = 500

    def __init__(self, message: str, metadata: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.metadata = metadata or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "detail": self.message,
            "type": type(self).__name__,
        }


class ValidationError(KioskServiceError):
    """Missing or malformed input; never retried"""
    status_code = 400


class NotFound(KioskServiceError):
    """Record is absent or not visible to the caller"""
    status_code = 404


class Unauthorized(KioskServiceError):
    """Record belongs to a different reviewer"""
    status_code = 403


class NoActiveSession(KioskServiceError):
    """Kiosk has no active subject; the kiosk should stop uploading"""
    status_code = 404


class NotReviewable(KioskServiceError):
    """Session is not awaiting a decision from this reviewer"""
    status_code = 409


class StoreConflict(KioskServiceError):
    """A conditional update lost its race"""
    status_code = 409
