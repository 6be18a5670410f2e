"""
Adherence Schemas
Pydantic models for adherence tracking API requests and responses
"""

from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum
from pydantic import Field, field_validator

from api.schemas.common import CamelModel, to_naive_utc


class AdherenceStatusEnum(str, Enum):
    """Adherence status values"""
    TAKEN = "taken"
    MISSED = "missed"
    SKIPPED = "skipped"


# ==================== REQUEST SCHEMAS ====================

class AdherenceCreate(CamelModel):
    """Schema for recording an intake event"""
    medication_id: int
    status: AdherenceStatusEnum = AdherenceStatusEnum.TAKEN
    scheduled_time: Optional[datetime] = None
    taken_at: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator("scheduled_time", "taken_at")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(value)

    def to_record(self) -> Dict[str, Any]:
        return {
            "medication_id": self.medication_id,
            "status": self.status.value,
            "scheduled_time": self.scheduled_time,
            "taken_at": self.taken_at,
            "notes": self.notes,
        }


class AdherenceBulkCreate(CamelModel):
    """Schema for a batch of intake events"""
    records: List[AdherenceCreate] = Field(..., min_length=1)


class AdherenceUpdate(CamelModel):
    """Schema for correcting a record; only set fields change"""
    status: Optional[AdherenceStatusEnum] = None
    scheduled_time: Optional[datetime] = None
    taken_at: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator("status", "scheduled_time", "taken_at", mode="before")
    @classmethod
    def _not_null(cls, value: Any) -> Any:
        # may be omitted, but a stored record always has a value
        if value is None:
            raise ValueError("Field cannot be null")
        return value

    @field_validator("scheduled_time", "taken_at")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(value)

    def to_updates(self) -> Dict[str, Any]:
        updates = self.model_dump(exclude_unset=True)
        if updates.get("status") is not None:
            updates["status"] = self.status.value
        return updates


# ==================== RESPONSE SCHEMAS ====================

class MedicationBrief(CamelModel):
    """Medication summary embedded in adherence records"""
    id: int
    name: str
    dosage: str
    dosage_unit: str


class AdherenceRecordResponse(CamelModel):
    """Schema for adherence record response"""
    id: int
    user_id: int
    medication_id: int
    status: AdherenceStatusEnum
    scheduled_time: Optional[datetime] = None
    taken_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    medication: Optional[MedicationBrief] = None


class AdherenceStats(CamelModel):
    """Adherence rate and counts for a period"""
    rate: int
    total: int
    taken: int
    missed: int
    skipped: int
    period: str


class TrendPoint(CamelModel):
    """One day of adherence"""
    date: str
    taken: int
    missed: int
    total: int
    rate: int


class MedicationAdherenceStats(CamelModel):
    total: int
    taken: int
    rate: int


class MedicationAdherence(CamelModel):
    """Records and stats for one medication"""
    medication_id: int
    records: List[AdherenceRecordResponse]
    stats: MedicationAdherenceStats
