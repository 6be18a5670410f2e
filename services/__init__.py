"""
Services Module
Business logic layer for the CareSync application
"""

from services.access_service import AccessService, access_service
from services.medication_service import MedicationService, medication_service
from services.adherence_service import AdherenceService, adherence_service
from services.schedule_service import ScheduleService, schedule_service
from services.caregiver_service import CaregiverService, caregiver_service
from services.report_service import ReportService, report_service


__all__ = [
    # Service classes
    "AccessService",
    "MedicationService",
    "AdherenceService",
    "ScheduleService",
    "CaregiverService",
    "ReportService",
    # Singleton instances
    "access_service",
    "medication_service",
    "adherence_service",
    "schedule_service",
    "caregiver_service",
    "report_service",
]
