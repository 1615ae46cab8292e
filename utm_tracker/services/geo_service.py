"""GeoIP service for geographic analytics.

Looks IP addresses up against an HTTP geolocation provider
(ipapi.co-compatible: ``GET /<ip>/json/``). Lookups are best effort:
every failure, from a timeout to a provider-reported error, collapses to
an all-null result and never raises.

Environment variables (see Config):
- GEO_PROVIDER_URL: Provider URL template containing ``{ip}``
- GEO_USER_AGENT: User-Agent sent to the provider
- GEO_REQUEST_TIMEOUT: Per-call network timeout in seconds
- PUBLIC_IP_URL: Endpoint returning the caller's own public IPv4
"""

from __future__ import annotations

import ipaddress
import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from .client_signals import is_ip, is_private_ip, normalize_ip

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER_URL = "http://ipapi.co/{ip}/json/"
DEFAULT_PUBLIC_IP_URL = "https://api.ipify.org"
DEFAULT_USER_AGENT = "UTM-Tracker/1.0"
DEFAULT_TIMEOUT = 2.0


@dataclass(slots=True, frozen=True)
class GeoLocation:
    """Geographic location data from IP lookup."""

    full: Optional[dict[str, Any]]
    country: Optional[str]
    city: Optional[str]

    @classmethod
    def unknown(cls) -> "GeoLocation":
        """Return the all-null placeholder."""
        return cls(full=None, country=None, city=None)

    @property
    def is_known(self) -> bool:
        return self.full is not None


def parse_country_code(payload: dict[str, Any]) -> Optional[str]:
    """ISO two-letter code from ``country_code`` or the ISO3 fallback field."""
    country = payload.get("country_code")
    if country:
        return str(country)[:2].upper()

    iso3 = payload.get("country_code_iso3")
    if iso3:
        return str(iso3)[:2].upper()

    return None


class GeoIPService:
    """Service for IP geolocation over HTTP.

    A fresh ``httpx.AsyncClient`` is opened per lookup so an abandoned
    call releases its connection on its own timeout. Tests pass an
    ``httpx.MockTransport`` as ``transport``.
    """

    __slots__ = ("_provider_url", "_user_agent", "_timeout", "_public_ip_url", "_transport")

    def __init__(
        self,
        provider_url: str = DEFAULT_PROVIDER_URL,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = DEFAULT_TIMEOUT,
        public_ip_url: str = DEFAULT_PUBLIC_IP_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize GeoIP service.

        Args:
            provider_url: URL template with an ``{ip}`` placeholder.
            user_agent: User-Agent header for provider requests.
            timeout: Network timeout in seconds for each call.
            public_ip_url: Endpoint returning the host's public IPv4.
            transport: Optional httpx transport (testing).
        """
        self._provider_url = provider_url
        self._user_agent = user_agent
        self._timeout = timeout
        self._public_ip_url = public_ip_url
        self._transport = transport

    @property
    def timeout(self) -> float:
        return self._timeout

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._timeout,
            headers={"User-Agent": self._user_agent},
            transport=self._transport,
        )

    async def lookup(self, ip_address: Optional[str]) -> GeoLocation:
        """Look up geographic location for an IP address.

        Args:
            ip_address: IPv4 or IPv6 address, optionally with port or brackets.

        Returns:
            GeoLocation with provider data or the all-null placeholder.
        """
        ip = normalize_ip(ip_address)

        # Private/local IPs are never sent to the provider
        if is_private_ip(ip):
            return GeoLocation.unknown()

        # Only a literal address may be formatted into the provider path
        if not is_ip(ip):
            logger.debug(f"Not an IP address, skipping GeoIP lookup: {ip!r}")
            return GeoLocation.unknown()

        url = self._provider_url.format(ip=ip)

        try:
            async with self._client() as client:
                response = await client.get(url)

            if not response.is_success:
                logger.warning(f"GeoIP provider returned {response.status_code} for {ip}")
                return GeoLocation.unknown()

            data = response.json()

        except httpx.TimeoutException:
            logger.warning(f"GeoIP lookup timed out for {ip}")
            return GeoLocation.unknown()

        except Exception as e:
            logger.warning(f"GeoIP lookup failed for {ip}: {e}")
            return GeoLocation.unknown()

        if not isinstance(data, dict) or data.get("error"):
            reason = data.get("reason") if isinstance(data, dict) else "malformed payload"
            logger.debug(f"GeoIP provider reported an error for {ip}: {reason}")
            return GeoLocation.unknown()

        return GeoLocation(
            full=data,
            country=parse_country_code(data),
            city=data.get("city") or None,
        )

    async def get_public_ip(self) -> Optional[str]:
        """Get the host's own public IPv4 address.

        Used only outside production to make private client addresses
        geolocatable during local development.

        Returns:
            IP string or None on any failure.
        """
        try:
            async with self._client() as client:
                response = await client.get(self._public_ip_url)

            if not response.is_success:
                return None

            candidate = response.text.strip()
            ipaddress.IPv4Address(candidate)
            return candidate

        except Exception as e:
            logger.warning(f"Could not get server public IP for geolocation: {e}")
            return None


def init_geo_service(config: Any = None, transport: Optional[httpx.AsyncBaseTransport] = None) -> GeoIPService:
    """Build the GeoIP service from application config.

    Args:
        config: Mapping with GEO_* and PUBLIC_IP_URL keys (e.g. app.config).
        transport: Optional httpx transport.
    """
    config = config or {}
    return GeoIPService(
        provider_url=config.get("GEO_PROVIDER_URL", DEFAULT_PROVIDER_URL),
        user_agent=config.get("GEO_USER_AGENT", DEFAULT_USER_AGENT),
        timeout=config.get("GEO_REQUEST_TIMEOUT", DEFAULT_TIMEOUT),
        public_ip_url=config.get("PUBLIC_IP_URL", DEFAULT_PUBLIC_IP_URL),
        transport=transport,
    )
