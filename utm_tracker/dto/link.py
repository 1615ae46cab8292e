"""Link snapshot dataclass for redirect and analytics lookups."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(slots=True, frozen=True)
class Link:
    """Immutable snapshot of a utm_links row.

    Frozen so a redirect can hand it to a detached tracking task without
    sharing mutable state with the request.

    Attributes:
        id: Database primary key.
        code: Short code (e.g., "aB3dE5fG").
        destination_url: Absolute URL the code redirects to.
        utm_source: Required UTM source.
        utm_medium: Required UTM medium.
        utm_campaign: Optional UTM campaign.
        utm_content: Optional UTM content.
        is_active: Whether redirects are served.
        created_by: Optional identity of the creator.
        created_at: Creation timestamp (naive UTC).
        updated_at: Last update timestamp (naive UTC).
    """

    id: int
    code: str
    destination_url: str
    utm_source: str
    utm_medium: str
    utm_campaign: Optional[str] = None
    utm_content: Optional[str] = None
    is_active: bool = True
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def utm_params(self) -> list[tuple[str, str]]:
        """UTM query parameters in their fixed append order.

        Source and medium are always present; campaign and content only
        when set to a non-empty value.
        """
        params = [
            ("utm_source", self.utm_source),
            ("utm_medium", self.utm_medium),
        ]
        if self.utm_campaign:
            params.append(("utm_campaign", self.utm_campaign))
        if self.utm_content:
            params.append(("utm_content", self.utm_content))
        return params

    @classmethod
    def from_db_row(cls, row: dict) -> "Link":
        """Create Link from database row."""
        return cls(
            id=row["id"],
            code=row["code"],
            destination_url=row["destination_url"],
            utm_source=row["utm_source"],
            utm_medium=row["utm_medium"],
            utm_campaign=row.get("utm_campaign"),
            utm_content=row.get("utm_content"),
            is_active=bool(row.get("is_active", True)),
            created_by=row.get("created_by"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )
