"""
API Dependencies
Common dependencies for FastAPI endpoints
"""

from typing import Optional
from fastapi import Depends, HTTPException, status, Header, Query
from sqlalchemy.orm import Session

from database import get_db
from config import engine_config
import models
from services.access_service import access_service


async def get_current_user(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    db: Session = Depends(get_db)
) -> models.User:
    """
    Resolve the requester from the identity header set by the auth gateway
    """
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )

    try:
        user_id = int(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user identity",
        )

    user = db.query(models.User).filter(models.User.id == user_id).first()
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user identity",
        )
    return user


class PatientScope:
    """
    Resolves whose data a request targets: the optional patientId query
    parameter, else the requester. Access is checked in the request's
    session with the relationship row share-locked, so the read that
    follows sees the same grant.
    """

    def __init__(self, capability: Optional[str] = None):
        self.capability = capability

    async def __call__(
        self,
        patient_id: Optional[int] = Query(None, alias="patientId"),
        current_user: models.User = Depends(get_current_user),
        db: Session = Depends(get_db)
    ) -> int:
        target = patient_id or current_user.id
        return await access_service.ensure_access(
            current_user,
            target,
            capability=self.capability,
            lock=True,
            db=db
        )


# Scope instances
medication_scope = PatientScope(capability="viewMedications")
adherence_scope = PatientScope(capability="viewAdherence")


def pagination_params(
    page: int = 1,
    limit: int = engine_config.DEFAULT_PAGE_SIZE
) -> dict:
    """
    Common pagination parameters
    """
    if page < 1:
        page = 1
    if limit < 1:
        limit = engine_config.DEFAULT_PAGE_SIZE
    if limit > engine_config.MAX_PAGE_SIZE:
        limit = engine_config.MAX_PAGE_SIZE

    return {
        "page": page,
        "limit": limit,
    }
