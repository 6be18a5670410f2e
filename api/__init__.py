"""
API Module
FastAPI routers for the CareSync application
"""

from api.medications import router as medications_router
from api.adherence import router as adherence_router
from api.caregivers import router as caregivers_router
from api.patients import router as patients_router

from api.deps import (
    get_db,
    get_current_user,
    PatientScope,
    medication_scope,
    adherence_scope,
    pagination_params,
)
from config import settings


__all__ = [
    # Routers
    "medications_router",
    "adherence_router",
    "caregivers_router",
    "patients_router",
    # Dependencies
    "get_db",
    "get_current_user",
    "PatientScope",
    "medication_scope",
    "adherence_scope",
    "pagination_params",
]


def include_routers(app):
    """
    Include all API routers in the FastAPI app

    Usage:
        from api import include_routers
        include_routers(app)
    """
    app.include_router(medications_router, prefix=settings.API_PREFIX)
    app.include_router(adherence_router, prefix=settings.API_PREFIX)
    app.include_router(caregivers_router, prefix=settings.API_PREFIX)
    app.include_router(patients_router, prefix=settings.API_PREFIX)
