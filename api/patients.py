"""
Patients API Router
Endpoints for caregivers to find the patients they look after
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from api.deps import get_db, get_current_user
from api.schemas.common import ERROR_RESPONSES, ListEnvelope
from api.schemas.caregiver import PatientEntry
import models
from services.caregiver_service import caregiver_service


router = APIRouter(prefix="/patients", tags=["patients"], responses=ERROR_RESPONSES)


@router.get("", response_model=ListEnvelope[PatientEntry])
async def list_my_patients(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Patients who accepted the requester as caregiver. Use a patient's id
    as the patientId query parameter on medication and adherence endpoints.
    """
    patients = await caregiver_service.list_patients(current_user.id, db=db)
    return {"success": True, "count": len(patients), "data": patients}
