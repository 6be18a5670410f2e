"""
API Schemas
Request and response models for the CareSync API
"""

from api.schemas.common import (
    CamelModel,
    Envelope,
    ListEnvelope,
    PageEnvelope,
    Pagination,
    ErrorResponse,
    ERROR_RESPONSES,
)
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
from api.schemas.adherence import (
    AdherenceStatusEnum,
    AdherenceCreate,
    AdherenceBulkCreate,
    AdherenceUpdate,
    AdherenceRecordResponse,
    AdherenceStats,
    TrendPoint,
    MedicationAdherence,
)
from api.schemas.caregiver import (
    CaregiverInvite,
    RelationshipResponse,
    CaregiverEntry,
    PendingInvitation,
    PatientEntry,
)


__all__ = [
    "CamelModel",
    "Envelope",
    "ListEnvelope",
    "PageEnvelope",
    "Pagination",
    "ErrorResponse",
    "ERROR_RESPONSES",
    "MedicationCreate",
    "MedicationUpdate",
    "MedicationResponse",
    "RefillRequest",
    "MedicationStats",
    "UpcomingDoseResponse",
    "CalendarEvent",
    "ImportedMedication",
    "AdherenceStatusEnum",
    "AdherenceCreate",
    "AdherenceBulkCreate",
    "AdherenceUpdate",
    "AdherenceRecordResponse",
    "AdherenceStats",
    "TrendPoint",
    "MedicationAdherence",
    "CaregiverInvite",
    "RelationshipResponse",
    "CaregiverEntry",
    "PendingInvitation",
    "PatientEntry",
]
