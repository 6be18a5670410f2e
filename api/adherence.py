"""
Adherence API Router
Endpoints for the adherence ledger, statistics and reports
"""

from typing import Optional
from datetime import datetime, date
from fastapi import APIRouter, Depends, status, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from api.deps import get_db, get_current_user, adherence_scope, pagination_params
from api.schemas.common import ERROR_RESPONSES, Envelope, ListEnvelope, PageEnvelope, Pagination, to_naive_utc
from api.schemas.adherence import (
    AdherenceCreate,
    AdherenceBulkCreate,
    AdherenceUpdate,
    AdherenceRecordResponse,
    AdherenceStats,
    TrendPoint,
    MedicationAdherence,
)
import models
from services.access_service import access_service
from services.adherence_service import adherence_service
from services.report_service import report_service
from services.exceptions import NotFound


router = APIRouter(prefix="/adherence", tags=["adherence"], responses=ERROR_RESPONSES)


# ==================== LEDGER ====================

@router.get("", response_model=PageEnvelope[AdherenceRecordResponse])
async def list_adherence_records(
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    medication_id: Optional[int] = Query(None, alias="medicationId"),
    paging: dict = Depends(pagination_params),
    user_id: int = Depends(adherence_scope),
    db: Session = Depends(get_db)
):
    """Adherence history, newest first"""
    records, total = await adherence_service.list_records(
        user_id,
        page=paging["page"],
        limit=paging["limit"],
        start=to_naive_utc(start_date),
        end=to_naive_utc(end_date),
        medication_id=medication_id,
        db=db
    )
    return {
        "success": True,
        "data": records,
        "pagination": Pagination.build(paging["page"], paging["limit"], total),
    }


@router.post("", response_model=Envelope[AdherenceRecordResponse], status_code=status.HTTP_201_CREATED)
async def record_adherence(
    record_data: AdherenceCreate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Record an intake event for the requester

    - **medicationId**: One of the requester's medications
    - **status**: taken (default), missed or skipped
    - **takenAt** / **scheduledTime**: Default to now
    """
    record = await adherence_service.record_intake(
        current_user.id,
        record_data.medication_id,
        status=record_data.status.value,
        scheduled_time=record_data.scheduled_time,
        taken_at=record_data.taken_at,
        notes=record_data.notes,
        db=db
    )
    data = await adherence_service.describe_records([record], db=db)
    return {"success": True, "message": "Adherence recorded successfully", "data": data[0]}


@router.post("/bulk", response_model=ListEnvelope[AdherenceRecordResponse], status_code=status.HTTP_201_CREATED)
async def record_adherence_bulk(
    bulk_data: AdherenceBulkCreate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Record a batch of intake events; all are saved or none are"""
    records = await adherence_service.bulk_record(
        current_user.id,
        [item.to_record() for item in bulk_data.records],
        db=db
    )
    data = await adherence_service.describe_records(records, db=db)
    return {"success": True, "count": len(data), "data": data}


# ==================== STATISTICS ====================

@router.get("/stats", response_model=Envelope[AdherenceStats])
async def get_adherence_stats(
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    period: str = Query("month", max_length=20),
    user_id: int = Depends(adherence_scope),
    db: Session = Depends(get_db)
):
    """Adherence rate and counts; the last 30 days unless a range is given"""
    stats = await adherence_service.get_stats(
        user_id,
        start=to_naive_utc(start_date),
        end=to_naive_utc(end_date),
        period=period,
        db=db
    )
    return {"success": True, "data": stats}


@router.get("/trends", response_model=ListEnvelope[TrendPoint])
async def get_adherence_trends(
    days: int = Query(30, ge=1, le=365),
    user_id: int = Depends(adherence_scope),
    db: Session = Depends(get_db)
):
    """Daily adherence for the last `days` days; days without records are omitted"""
    trends = await adherence_service.get_trends(user_id, days=days, db=db)
    return {"success": True, "count": len(trends), "data": trends}


@router.get("/medication/{medication_id}", response_model=Envelope[MedicationAdherence])
async def get_medication_adherence(
    medication_id: int,
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    user_id: int = Depends(adherence_scope),
    db: Session = Depends(get_db)
):
    """Records and stats for one medication"""
    data = await adherence_service.get_medication_adherence(
        user_id,
        medication_id,
        start=to_naive_utc(start_date),
        end=to_naive_utc(end_date),
        db=db
    )
    return {"success": True, "data": data}


@router.get("/report/pdf")
async def download_adherence_report(
    start_date: date = Query(..., alias="startDate"),
    end_date: date = Query(..., alias="endDate"),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Adherence report for the requester as a PDF attachment"""
    pdf = await report_service.render_pdf(current_user.id, start_date, end_date, db=db)
    filename = report_service.filename(start_date, end_date)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )


# ==================== SINGLE RECORD ====================

@router.get("/{record_id}", response_model=Envelope[AdherenceRecordResponse])
async def get_adherence_record(
    record_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Single record; reported as missing when the requester may not see it"""
    record = await adherence_service.get_record(record_id, db=db)
    allowed = await access_service.authorize(
        current_user,
        record["user_id"],
        capability="viewAdherence",
        db=db
    )
    if not allowed:
        raise NotFound("Adherence record not found")
    return {"success": True, "data": record}


@router.put("/{record_id}", response_model=Envelope[AdherenceRecordResponse])
async def update_adherence_record(
    record_id: int,
    update_data: AdherenceUpdate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Correct one of the requester's records; the previous values are kept for audit"""
    record = await adherence_service.update_record(
        record_id,
        update_data.to_updates(),
        current_user.id,
        db=db
    )
    data = await adherence_service.describe_records([record], db=db)
    return {"success": True, "message": "Adherence record updated", "data": data[0]}
