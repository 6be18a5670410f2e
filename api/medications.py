"""
Medications API Router
Endpoints for medication management, stock and dose schedule
"""

from typing import Optional
from datetime import date
from fastapi import APIRouter, Depends, status, Query, File, UploadFile
from sqlalchemy.orm import Session

from api.deps import get_db, get_current_user, medication_scope, pagination_params
from api.schemas.common import ERROR_RESPONSES, Envelope, ListEnvelope, PageEnvelope, Pagination
from api.schemas.medication import (
    MedicationCreate,
    MedicationUpdate,
    MedicationResponse,
    RefillRequest,
    MedicationStats,
    UpcomingDoseResponse,
    CalendarEvent,
    ImportedMedication,
)
import models
from services.medication_service import medication_service
from services.schedule_service import schedule_service
from services.exceptions import ValidationFailed
from tools.prescription_import import prescription_parser


router = APIRouter(prefix="/medications", tags=["medications"], responses=ERROR_RESPONSES)


# ==================== COLLECTION ====================

@router.get("", response_model=PageEnvelope[MedicationResponse])
async def list_medications(
    status_filter: str = Query("active", alias="status", pattern="^(active|inactive|all)$"),
    search: Optional[str] = Query(None, max_length=255),
    paging: dict = Depends(pagination_params),
    user_id: int = Depends(medication_scope),
    db: Session = Depends(get_db)
):
    """
    List a patient's medications, newest first

    - **patientId**: Patient to read (defaults to the requester)
    - **status**: active, inactive or all
    - **search**: Case-insensitive name filter
    """
    medications, total = await medication_service.list_medications(
        user_id,
        page=paging["page"],
        limit=paging["limit"],
        status=status_filter,
        search=search,
        db=db
    )
    return {
        "success": True,
        "data": medications,
        "pagination": Pagination.build(paging["page"], paging["limit"], total),
    }


@router.post("", response_model=Envelope[MedicationResponse], status_code=status.HTTP_201_CREATED)
async def create_medication(
    medication_data: MedicationCreate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Add a medication for the requester

    - **name**: Medication name
    - **dosage** / **dosageUnit**: Dose amount and unit
    - **frequency**: Label, or an object with label and timesPerDay
    - **totalQuantity**: Units dispensed; remainingQuantity defaults to it
    """
    medication = await medication_service.add_medication(
        user_id=current_user.id,
        name=medication_data.name,
        dosage=medication_data.dosage,
        dosage_unit=medication_data.dosage_unit,
        frequency=medication_data.resolved_label() or "1x daily",
        times_per_day=medication_data.resolved_times_per_day() or 1,
        total_quantity=medication_data.total_quantity,
        remaining_quantity=medication_data.remaining_quantity,
        instructions=medication_data.instructions,
        start_date=medication_data.start_date,
        end_date=medication_data.end_date,
        db=db
    )
    return {"success": True, "message": "Medication added successfully", "data": medication}


# ==================== DERIVED VIEWS ====================

@router.get("/refill-needed", response_model=ListEnvelope[MedicationResponse])
async def get_refill_needed(
    user_id: int = Depends(medication_scope),
    db: Session = Depends(get_db)
):
    """Active medications with a week or less of supply left"""
    medications = await medication_service.get_medications_needing_refill(user_id, db=db)
    return {"success": True, "count": len(medications), "data": medications}


@router.get("/upcoming", response_model=ListEnvelope[UpcomingDoseResponse])
async def get_upcoming_doses(
    hours: float = Query(24, gt=0, le=168, description="Look-ahead window in hours"),
    user_id: int = Depends(medication_scope),
    db: Session = Depends(get_db)
):
    """
    Approximate next dose per medication within the window.

    A coarse estimate (now + one dosing interval); use /schedule for the
    actual calendar times.
    """
    doses = await medication_service.get_upcoming_doses(user_id, hours=hours, db=db)
    return {
        "success": True,
        "count": len(doses),
        "data": [UpcomingDoseResponse.model_validate(d) for d in doses],
    }


@router.get("/stats", response_model=Envelope[MedicationStats])
async def get_medication_stats(
    user_id: int = Depends(medication_scope),
    db: Session = Depends(get_db)
):
    """Active medication count and low-stock count"""
    stats = await medication_service.get_medication_stats(user_id, db=db)
    return {"success": True, "data": stats}


@router.get("/schedule", response_model=ListEnvelope[CalendarEvent])
async def get_schedule(
    days: int = Query(7, ge=0, le=90),
    start_date: Optional[date] = Query(None, alias="startDate"),
    user_id: int = Depends(medication_scope),
    db: Session = Depends(get_db)
):
    """Calendar events from startDate (default today) through startDate + days"""
    events = await schedule_service.get_calendar(user_id, start_date=start_date, days=days, db=db)
    return {"success": True, "count": len(events), "data": events}


@router.post("/import/pdf", response_model=ListEnvelope[ImportedMedication])
async def import_prescription_pdf(
    file: UploadFile = File(...),
    current_user: models.User = Depends(get_current_user)
):
    """
    Extract medications from a prescription PDF.

    Nothing is saved; the client reviews the returned payloads and posts
    them to create medications.
    """
    filename = file.filename or "prescription.pdf"
    if file.content_type != "application/pdf" and not filename.lower().endswith(".pdf"):
        raise ValidationFailed("Only PDF files are allowed", {"file": "Only PDF files are allowed"})

    content = await file.read()
    if not content:
        raise ValidationFailed("No file uploaded", {"file": "No file uploaded"})

    medications = await prescription_parser.import_pdf(filename, content)
    return {"success": True, "count": len(medications), "data": medications}


# ==================== SINGLE MEDICATION ====================

@router.get("/{medication_id}", response_model=Envelope[MedicationResponse])
async def get_medication(
    medication_id: int,
    user_id: int = Depends(medication_scope),
    db: Session = Depends(get_db)
):
    """Get a single medication"""
    medication = await medication_service.get_medication(medication_id, user_id, db=db)
    return {"success": True, "data": medication}


@router.put("/{medication_id}", response_model=Envelope[MedicationResponse])
async def update_medication(
    medication_id: int,
    update_data: MedicationUpdate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Update one of the requester's medications"""
    medication = await medication_service.update_medication(
        medication_id,
        current_user.id,
        update_data.to_updates(),
        db=db
    )
    return {"success": True, "message": "Medication updated successfully", "data": medication}


@router.delete("/{medication_id}", response_model=Envelope[MedicationResponse])
async def delete_medication(
    medication_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Soft delete; adherence history keeps referring to the row"""
    medication = await medication_service.deactivate_medication(medication_id, current_user.id, db=db)
    return {"success": True, "message": "Medication deleted successfully", "data": medication}


@router.post("/{medication_id}/refill", response_model=Envelope[MedicationResponse])
async def refill_medication(
    medication_id: int,
    refill: RefillRequest,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Add units to the remaining stock"""
    medication = await medication_service.refill_medication(
        medication_id,
        current_user.id,
        refill.quantity,
        db=db
    )
    return {"success": True, "message": "Medication refilled successfully", "data": medication}
