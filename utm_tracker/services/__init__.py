"""Services for link management, redirects, tracking and analytics."""

from .analytics_service import AnalyticsService, LinkAnalytics
from .client_signals import ClientIPResolver, parse_user_agent
from .geo_service import GeoIPService, GeoLocation, init_geo_service
from .link_service import LinkService
from .redirect_service import RedirectService, build_redirect_url
from .tracking_service import (
    TrackingRecorder,
    Visit,
    init_tracking_recorder,
)

__all__ = [
    "AnalyticsService",
    "LinkAnalytics",
    "ClientIPResolver",
    "parse_user_agent",
    "GeoIPService",
    "GeoLocation",
    "init_geo_service",
    "LinkService",
    "RedirectService",
    "build_redirect_url",
    "TrackingRecorder",
    "Visit",
    "init_tracking_recorder",
]
