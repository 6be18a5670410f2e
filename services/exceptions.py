"""
Service Errors
Domain error taxonomy raised by the service layer and mapped to HTTP
responses by the handlers registered in app.py
"""

from typing import Dict, Optional


class CareSyncError(Exception):
    """Base class for errors surfaced to API callers"""

    status_code: int = 500
    default_message: str = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AccessDenied(CareSyncError):
    """Requester may not act on the target user's data"""
    status_code = 403
    default_message = "Access denied to patient data"


class NotFound(CareSyncError):
    """Entity is absent or not owned by the requester"""
    status_code = 404
    default_message = "Resource not found"


class ValidationFailed(CareSyncError):
    """Malformed or out-of-range input, with per-field messages"""
    status_code = 400
    default_message = "Validation failed"

    def __init__(self, message: Optional[str] = None, errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.errors = errors or {}


class Conflict(CareSyncError):
    """Duplicate of an entity that must be unique"""
    status_code = 409
    default_message = "Conflict"


class InternalError(CareSyncError):
    """Store or transaction failure; details are logged, never returned"""
    status_code = 500


__all__ = [
    "CareSyncError",
    "AccessDenied",
    "NotFound",
    "ValidationFailed",
    "Conflict",
    "InternalError",
]
