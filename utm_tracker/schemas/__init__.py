"""Pydantic schema models for Quart API validation."""

from .common import (
    ErrorResponse,
    HealthResponse,
    MessageResponse,
    PaginatedResponse,
    PaginationMeta,
)
from .links import (
    INVALID_URL_MESSAGE,
    MISSING_FIELDS_MESSAGE,
    CreateLinkRequest,
    LinkResponse,
    UpdateLinkRequest,
    is_absolute_url,
)

__all__ = [
    # Link schemas
    "CreateLinkRequest",
    "UpdateLinkRequest",
    "LinkResponse",
    "is_absolute_url",
    "MISSING_FIELDS_MESSAGE",
    "INVALID_URL_MESSAGE",
    # Common schemas
    "ErrorResponse",
    "MessageResponse",
    "PaginationMeta",
    "PaginatedResponse",
    "HealthResponse",
]
