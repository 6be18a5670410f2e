"""
Medication Schemas
Pydantic models for medication-related API requests and responses
"""

from typing import Optional, Dict, Any
from datetime import datetime, date
from pydantic import Field, field_validator

from api.schemas.common import CamelModel


# ==================== REQUEST SCHEMAS ====================

class FrequencyInput(CamelModel):
    """
    Frequency as sent by the portal. A plain string is accepted as the label.
    """
    label: Optional[str] = Field(None, max_length=100)
    times_per_day: Optional[int] = Field(None, ge=1, le=24)


class _FrequencyMixin(CamelModel):
    frequency: Optional[FrequencyInput] = None
    times_per_day: Optional[int] = Field(None, ge=1, le=24)

    @field_validator("frequency", mode="before")
    @classmethod
    def _label_only(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"label": value}
        return value

    def resolved_times_per_day(self) -> Optional[int]:
        if self.frequency and self.frequency.times_per_day:
            return self.frequency.times_per_day
        return self.times_per_day

    def resolved_label(self) -> Optional[str]:
        if self.frequency and self.frequency.label:
            return self.frequency.label
        times = self.resolved_times_per_day()
        return f"{times}x daily" if times else None


class MedicationCreate(_FrequencyMixin):
    """Schema for creating a new medication"""
    name: str = Field(..., min_length=1, max_length=255)
    dosage: str = Field(..., min_length=1, max_length=100)
    dosage_unit: str = Field(default="mg", max_length=20)
    total_quantity: int = Field(default=0, ge=0)
    remaining_quantity: Optional[int] = Field(None, ge=0)
    instructions: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class MedicationUpdate(_FrequencyMixin):
    """Schema for updating medication"""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    dosage: Optional[str] = Field(None, min_length=1, max_length=100)
    dosage_unit: Optional[str] = Field(None, max_length=20)
    total_quantity: Optional[int] = Field(None, ge=0)
    remaining_quantity: Optional[int] = Field(None, ge=0)
    instructions: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_active: Optional[bool] = None

    @field_validator(
        "name", "dosage", "dosage_unit", "total_quantity", "remaining_quantity", "is_active",
        mode="before"
    )
    @classmethod
    def _not_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("Field cannot be null")
        return value

    def to_updates(self) -> Dict[str, Any]:
        """Explicitly set fields, with frequency folded into label and count"""
        updates = self.model_dump(exclude_unset=True, exclude={"frequency", "times_per_day"})
        times = self.resolved_times_per_day()
        if times:
            updates["times_per_day"] = times
        if "frequency" in self.model_fields_set:
            label = self.resolved_label()
            if label:
                updates["frequency"] = label
        return updates


class RefillRequest(CamelModel):
    """Schema for adding stock"""
    quantity: int = Field(..., gt=0)


# ==================== RESPONSE SCHEMAS ====================

class MedicationResponse(CamelModel):
    """Schema for medication response"""
    id: int
    user_id: int
    name: str
    dosage: str
    dosage_unit: str
    frequency: str
    times_per_day: int
    total_quantity: int
    remaining_quantity: int
    instructions: Optional[str] = None
    is_active: bool
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class MedicationStats(CamelModel):
    """Active medication count and low-stock count"""
    total: int
    low_stock: int


class UpcomingDoseResponse(CamelModel):
    """Approximate next dose of one medication"""
    medication_id: int
    medication_name: str
    dosage: str
    scheduled_time: datetime
    is_refill_due: bool


class CalendarEvent(CamelModel):
    """Schedule entry shaped for the portal calendar"""
    id: str
    title: str
    start: datetime
    end: datetime
    extended_props: Dict[str, Any]


class ImportedMedication(CamelModel):
    """Create payload derived from a parsed prescription"""
    name: str
    dosage: str
    dosage_unit: str
    frequency: str
    times_per_day: int
    total_quantity: int
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    instructions: Optional[str] = None
