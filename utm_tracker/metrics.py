"""Prometheus counters for the redirect and tracking pipeline."""

from prometheus_client import Counter

REDIRECTS = Counter(
    "utm_redirects_total",
    "Redirect requests by outcome",
    ["outcome"],
)

TRACKING_EVENTS = Counter(
    "utm_tracking_events_total",
    "Tracking event writes by outcome",
    ["outcome"],
)

GEO_LOOKUPS = Counter(
    "utm_geo_lookups_total",
    "Geolocation lookups by outcome",
    ["outcome"],
)
