"""
Common Schemas
Response envelopes and the camelCase base model shared by all routers
"""

from typing import Any, Optional, List, Dict, Generic, TypeVar, Union
from datetime import datetime, timezone
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


T = TypeVar("T")


class CamelModel(BaseModel):
    """Base schema: camelCase on the wire, snake_case accepted on input"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True
    )


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Stored timestamps are naive UTC; convert aware input accordingly"""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


# ==================== ENVELOPES ====================

class Pagination(CamelModel):
    """Page metadata for list endpoints"""
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(
            current_page=page,
            total_pages=(total + limit - 1) // limit if limit else 0,
            total_items=total,
            items_per_page=limit
        )


class Envelope(BaseModel, Generic[T]):
    """Successful response: {success, data[, message]}"""
    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None


class ListEnvelope(BaseModel, Generic[T]):
    """List response with a count"""
    success: bool = True
    count: int = 0
    data: List[T] = Field(default_factory=list)


class PageEnvelope(BaseModel, Generic[T]):
    """Paginated list response"""
    success: bool = True
    data: List[T] = Field(default_factory=list)
    pagination: Pagination


class ErrorResponse(BaseModel):
    """Failure response: {success: false, message[, errors]}"""
    success: bool = False
    message: str
    errors: Optional[Dict[str, str]] = None


# Documented failure shapes, shared by every router
ERROR_RESPONSES: Dict[Union[int, str], Dict[str, Any]] = {
    400: {"model": ErrorResponse, "description": "Validation failed"},
    401: {"model": ErrorResponse, "description": "Missing or unknown user identity"},
    403: {"model": ErrorResponse, "description": "Access denied to patient data"},
    404: {"model": ErrorResponse, "description": "Resource not found"},
}
