"""UTM link request and response models."""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator

MISSING_FIELDS_MESSAGE = (
    "Missing required fields: destinationUrl, utmSource, and utmMedium are required"
)
INVALID_URL_MESSAGE = "Invalid destination URL format"


def is_absolute_url(value: str) -> bool:
    """True if ``value`` parses with both a scheme and a host."""
    try:
        parts = urlsplit(value)
    except ValueError:
        return False
    return bool(parts.scheme and parts.netloc)


class LinkFields(BaseModel):
    """Fields shared by create and update payloads.

    Required fields are declared optional here so a missing field yields
    the single "missing required fields" message rather than one error
    per field; see ``missing_required``.
    """

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    destination_url: Optional[str] = Field(None, alias="destinationUrl", description="Absolute destination URL")
    utm_source: Optional[str] = Field(None, alias="utmSource", max_length=255)
    utm_medium: Optional[str] = Field(None, alias="utmMedium", max_length=255)
    utm_campaign: Optional[str] = Field(None, alias="utmCampaign", max_length=255)
    utm_content: Optional[str] = Field(None, alias="utmContent", max_length=255)

    @field_validator("utm_campaign", "utm_content", mode="after")
    @classmethod
    def empty_to_none(cls, v: Optional[str]) -> Optional[str]:
        """Optional UTM fields are stored as null when empty."""
        return v or None

    def missing_required(self) -> bool:
        return not (self.destination_url and self.utm_source and self.utm_medium)

    def has_valid_destination(self) -> bool:
        return bool(self.destination_url) and is_absolute_url(self.destination_url)

    def to_db_fields(self) -> dict:
        return {
            "destination_url": self.destination_url,
            "utm_source": self.utm_source,
            "utm_medium": self.utm_medium,
            "utm_campaign": self.utm_campaign,
            "utm_content": self.utm_content,
        }


class CreateLinkRequest(LinkFields):
    """Create UTM link request payload."""

    model_config = ConfigDict(
        populate_by_name=True,
        str_strip_whitespace=True,
        json_schema_extra={
            "example": {
                "destinationUrl": "https://example.com/page?ref=x",
                "utmSource": "newsletter",
                "utmMedium": "email",
                "utmCampaign": "spring_sale",
            }
        },
    )


class UpdateLinkRequest(LinkFields):
    """Update UTM link request payload.

    Destination and UTM fields are overwritten wholesale; ``isActive`` is
    only changed when present.
    """

    is_active: Optional[bool] = Field(None, alias="isActive", description="Active status")

    def to_db_fields(self) -> dict:
        fields = super().to_db_fields()
        if self.is_active is not None:
            fields["is_active"] = self.is_active
        return fields


class LinkResponse(BaseModel):
    """UTM link representation."""

    model_config = ConfigDict(populate_by_name=True)

    id: int
    code: str
    destination_url: str = Field(..., alias="destinationUrl")
    utm_source: str = Field(..., alias="utmSource")
    utm_medium: str = Field(..., alias="utmMedium")
    utm_campaign: Optional[str] = Field(None, alias="utmCampaign")
    utm_content: Optional[str] = Field(None, alias="utmContent")
    is_active: bool = Field(True, alias="isActive")
    created_by: Optional[str] = Field(None, alias="createdBy")
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")

    @classmethod
    def from_link(cls, link) -> "LinkResponse":
        """Build from a ``Link`` snapshot."""
        return cls(
            id=link.id,
            code=link.code,
            destination_url=link.destination_url,
            utm_source=link.utm_source,
            utm_medium=link.utm_medium,
            utm_campaign=link.utm_campaign,
            utm_content=link.utm_content,
            is_active=link.is_active,
            created_by=link.created_by,
            created_at=link.created_at,
            updated_at=link.updated_at,
        )

    def to_api_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
