"""Analytics aggregation for a single link.

Reads every tracking event of a link once and computes the overview,
time series and seven distributions from that one in-memory set.

Breakdowns:
- Daily clicks (UTC date)
- Country, city (top 10), device, browser, OS, referer (top 10)
- Hour of day and day of week in the configured analytics timezone
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from typing import Any, Iterable, Optional
from zoneinfo import ZoneInfo

from ..async_db import run_sync
from ..datastore import LinkDatastore
from ..dto import Link, TrackingEvent
from ..errors import InvalidRequestError, LinkNotFoundError
from ..schemas import LinkResponse

logger = logging.getLogger(__name__)

UNKNOWN_LABEL = "Unknown"
DIRECT_LABEL = "Direct"
TOP_N = 10

# Sunday first
WEEKDAYS: tuple[str, ...] = (
    "Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday",
)


def count_by(values: Iterable[str]) -> dict[str, int]:
    """Count occurrences, keeping first-encountered key order."""
    counts: dict[str, int] = {}
    for value in values:
        counts[value] = counts.get(value, 0) + 1
    return counts


def rank(counts: dict[str, int], limit: Optional[int] = None) -> list[tuple[str, int]]:
    """Sort counts descending; ties keep first-encountered order.

    Args:
        counts: Label to count mapping (insertion ordered).
        limit: Keep at most this many entries.
    """
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return ranked[:limit] if limit is not None else ranked


def city_label(event: TrackingEvent) -> str:
    city = event.city or UNKNOWN_LABEL
    return f"{city}, {event.country}" if event.country else city


def _as_utc(value: datetime) -> datetime:
    # Stored timestamps are naive UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(slots=True)
class LinkAnalytics:
    """Aggregated analytics report for one link."""

    link: Link
    total_clicks: int = 0
    unique_ips: int = 0
    unique_countries: int = 0
    time_series: list[tuple[str, int]] = field(default_factory=list)
    countries: list[tuple[str, int]] = field(default_factory=list)
    cities: list[tuple[str, int]] = field(default_factory=list)
    devices: list[tuple[str, int]] = field(default_factory=list)
    browsers: list[tuple[str, int]] = field(default_factory=list)
    operating_systems: list[tuple[str, int]] = field(default_factory=list)
    referers: list[tuple[str, int]] = field(default_factory=list)
    hourly: list[tuple[int, int]] = field(default_factory=list)
    weekly: list[tuple[str, int]] = field(default_factory=list)

    @classmethod
    def from_events(
        cls,
        link: Link,
        events: list[TrackingEvent],
        tz: tzinfo = timezone.utc,
    ) -> "LinkAnalytics":
        """Aggregate a link's events.

        Args:
            link: Link the events belong to.
            events: Tracking events ascending by clicked_at.
            tz: Zone for the hour-of-day and day-of-week buckets.
        """
        clicked = [_as_utc(event.clicked_at) for event in events]
        local = [moment.astimezone(tz) for moment in clicked]

        daily = count_by(moment.date().isoformat() for moment in clicked)

        hourly = {hour: 0 for hour in range(24)}
        weekly = {day: 0 for day in WEEKDAYS}
        for moment in local:
            hourly[moment.hour] += 1
            # datetime.weekday() is Monday=0
            weekly[WEEKDAYS[(moment.weekday() + 1) % 7]] += 1

        return cls(
            link=link,
            total_clicks=len(events),
            unique_ips=len({e.ip_address for e in events if e.ip_address}),
            unique_countries=len({e.country for e in events if e.country}),
            time_series=sorted(daily.items()),
            countries=rank(count_by(e.country or UNKNOWN_LABEL for e in events)),
            cities=rank(count_by(city_label(e) for e in events), TOP_N),
            devices=rank(count_by(e.device_type or UNKNOWN_LABEL for e in events)),
            browsers=rank(count_by(e.browser or UNKNOWN_LABEL for e in events)),
            operating_systems=rank(count_by(e.os or UNKNOWN_LABEL for e in events)),
            referers=rank(count_by(e.referer or DIRECT_LABEL for e in events), TOP_N),
            hourly=sorted(hourly.items()),
            weekly=list(weekly.items()),
        )

    def to_api_dict(self) -> dict[str, Any]:
        """Convert to the camelCase report served by the API."""
        return {
            "link": LinkResponse.from_link(self.link).to_api_dict(),
            "overview": {
                "totalClicks": self.total_clicks,
                "uniqueIPs": self.unique_ips,
                "uniqueCountries": self.unique_countries,
            },
            "timeSeries": [{"date": d, "clicks": n} for d, n in self.time_series],
            "countryDistribution": [{"country": k, "count": n} for k, n in self.countries],
            "cityDistribution": [{"city": k, "count": n} for k, n in self.cities],
            "deviceDistribution": [{"device": k, "count": n} for k, n in self.devices],
            "browserDistribution": [{"browser": k, "count": n} for k, n in self.browsers],
            "osDistribution": [{"os": k, "count": n} for k, n in self.operating_systems],
            "refererDistribution": [{"referer": k, "count": n} for k, n in self.referers],
            "hourlyDistribution": [{"hour": h, "count": n} for h, n in self.hourly],
            "weeklyDistribution": [{"day": d, "count": n} for d, n in self.weekly],
        }


class AnalyticsService:
    """Builds analytics reports from stored tracking events."""

    __slots__ = ("_store", "_tz")

    def __init__(self, store: LinkDatastore, tz_name: str = "UTC"):
        """Initialize analytics service.

        Args:
            store: Datastore to read links and events from.
            tz_name: IANA zone for hourly and weekly buckets.
        """
        self._store = store
        # timezone.utc needs no tz database on the host
        self._tz = timezone.utc if tz_name.upper() == "UTC" else ZoneInfo(tz_name)

    async def for_code(self, code: Optional[str]) -> LinkAnalytics:
        """Compute analytics for a code.

        Inactive links still report analytics.

        Raises:
            InvalidRequestError: If the code is empty.
            LinkNotFoundError: If no link uses the code.
        """
        if not code or not code.strip():
            raise InvalidRequestError("Code parameter is required")

        link = await run_sync(self._store.find_link_by_code, code)
        if link is None:
            raise LinkNotFoundError("UTM link not found")

        events = await run_sync(self._store.list_tracking_events_for_link, link.id)
        logger.debug(f"Aggregating {len(events)} events for {code}")
        return LinkAnalytics.from_events(link, events, self._tz)
