"""
Reviewer identity for reviewer-facing endpoints.

Login and credential storage live in front of this service; the gateway
forwards the authenticated reviewer id in the ``X-Reviewer-Id`` header.
"""
from typing import Optional

from fastapi import Header, HTTPException, status


async def get_current_reviewer(
    x_reviewer_id: Optional[str] = Header(default=None, alias="X-Reviewer-Id")
) -> str:
    """
    Require a reviewer id: return it or raise 401
    """
    reviewer_id = (x_reviewer_id or "").strip()
    if not reviewer_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Reviewer authentication required",
        )
    return reviewer_id
