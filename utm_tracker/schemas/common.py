"""Common Pydantic models used across the API."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from ..models import utcnow

T = TypeVar("T")


class ErrorResponse(BaseModel):
    """Standard error response format."""

    status: str = Field(default="error", description="Always 'error'")
    message: str = Field(..., description="Error message")
    error: Optional[str] = Field(None, description="Underlying error detail")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "status": "error",
                "message": "UTM link not found or inactive",
            }
        }
    )


class MessageResponse(BaseModel):
    """Standard success message response."""

    status: str = Field(default="success")
    message: str = Field(..., description="Success message")


class PaginationMeta(BaseModel):
    """Pagination metadata for list responses."""

    model_config = ConfigDict(populate_by_name=True)

    count: int = Field(..., ge=0, description="Total number of records")
    page: int = Field(..., ge=1, description="Current page number")
    page_count: int = Field(..., ge=1, alias="pageCount", description="Total number of pages")
    limit: int = Field(..., ge=1, description="Items per page")
    from_: int = Field(..., ge=0, alias="from", description="First record number on the page (1-based)")
    to: int = Field(..., ge=0, description="Last record number on the page (1-based)")


class PaginatedResponse(BaseModel, Generic[T]):
    """Generic paginated response wrapper."""

    status: str = Field(default="success")
    message: str = Field(...)
    data: List[T] = Field(..., description="List of items")
    metadata: dict[str, PaginationMeta] = Field(..., description="{'pagination': PaginationMeta}")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Service status")
    version: str = Field(..., description="Service version")
    timestamp: datetime = Field(default_factory=utcnow)
    database: Optional[str] = Field(None, description="Database connection status")
    details: Optional[dict[str, Any]] = Field(None, description="Extra diagnostics")
