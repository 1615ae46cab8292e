"""Tracking event dataclass for asynchronous click recording."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from ..models import utcnow

REFERER_MAX_LENGTH = 500


@dataclass(slots=True)
class TrackingEvent:
    """One recorded visit to a link.

    Not frozen because the recorder fills in geolocation and device
    fields after the event is created.

    Attributes:
        link_id: Database ID of the owning link.
        code: Denormalized short code.
        clicked_at: Wall-clock time of the redirect (naive UTC).
        ip_address: Client IP exactly as extracted from the request.
        user_agent: Raw User-Agent header.
        referer: Referer header (either spelling).
        country: ISO 3166-1 alpha-2 country code.
        city: City name.
        geodata: Full provider payload.
        device_type: One of 'mobile', 'tablet', 'desktop'.
        browser: Browser label (e.g., 'Chrome', 'Firefox').
        os: Operating system label (e.g., 'Windows 10/11', 'iOS').
        id: Database ID once persisted.
    """

    link_id: int
    code: str
    clicked_at: datetime = field(default_factory=utcnow)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    referer: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None
    geodata: Optional[dict[str, Any]] = None
    device_type: Optional[str] = None
    browser: Optional[str] = None
    os: Optional[str] = None
    id: Optional[int] = None

    def to_db_dict(self) -> dict:
        """Convert to dictionary for database insert."""
        return {
            "utm_link_id": self.link_id,
            "code": self.code,
            "clicked_at": self.clicked_at,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "referer": self.referer[:REFERER_MAX_LENGTH] if self.referer else None,
            "country": self.country,
            "city": self.city,
            "geodata": self.geodata,
            "device_type": self.device_type,
            "browser": self.browser,
            "os": self.os,
        }

    @classmethod
    def from_db_row(cls, row: dict) -> "TrackingEvent":
        """Create TrackingEvent from database row."""
        return cls(
            id=row.get("id"),
            link_id=row["utm_link_id"],
            code=row["code"],
            clicked_at=row["clicked_at"],
            ip_address=row.get("ip_address"),
            user_agent=row.get("user_agent"),
            referer=row.get("referer"),
            country=row.get("country"),
            city=row.get("city"),
            geodata=row.get("geodata"),
            device_type=row.get("device_type"),
            browser=row.get("browser"),
            os=row.get("os"),
        )
