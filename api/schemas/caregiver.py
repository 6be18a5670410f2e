"""
Caregiver Schemas
Pydantic models for caregiver relationship requests and responses
"""

from typing import Optional, List, Dict
from datetime import datetime
from pydantic import Field, field_validator

from api.schemas.common import CamelModel


# ==================== REQUEST SCHEMAS ====================

class CaregiverInvite(CamelModel):
    """Schema for inviting a registered caregiver"""
    # Plain string so special-use/test domains are accepted
    email: str = Field(..., min_length=3, max_length=255)
    relationship: Optional[str] = Field(None, max_length=50)
    permissions: Optional[Dict[str, bool]] = None

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        value = value.strip()
        if "@" not in value:
            raise ValueError("Please provide a valid email")
        return value


# ==================== RESPONSE SCHEMAS ====================

class UserSummary(CamelModel):
    id: int
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None


class RelationshipResponse(CamelModel):
    """Schema for a caregiver-patient relationship"""
    id: int
    caregiver_id: int
    patient_id: int
    relationship_type: str
    permissions: Dict[str, bool] = Field(default_factory=dict)
    is_verified: bool
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CaregiverEntry(UserSummary):
    """A caregiver as seen by the patient"""
    relationship_id: int
    relationship_type: str
    permissions: Dict[str, bool] = Field(default_factory=dict)
    status: str


class PendingInvitation(CamelModel):
    """An invitation waiting on the caregiver"""
    id: int
    patient_id: int
    relationship_type: str
    permissions: Dict[str, bool] = Field(default_factory=dict)
    patient_name: str
    patient_email: str
    created_at: Optional[datetime] = None


class PatientEntry(CamelModel):
    """A patient as seen by the caregiver"""
    id: int
    patient_id: int
    relationship_type: str
    status: str
    patient: UserSummary
