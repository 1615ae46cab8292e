"""Client signal extraction: public client IP and user-agent classification.

Everything here is pure and synchronous so it can run on the request
path before the redirect response is issued.
"""

from __future__ import annotations

import ipaddress
import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Mapping, Optional, Sequence

logger = logging.getLogger(__name__)

IPV4_MAPPED_PREFIX = "::ffff:"

BRACKETED_IP = re.compile(r"\[([^\]]+)\]")

# Default resolution policy, highest priority first. X-Client-Real-IP is
# set by the trusted first-hop proxy and is the only header not appended
# to by intermediate proxies.
DEFAULT_IP_HEADERS: tuple[str, ...] = (
    "X-Client-Real-IP",
    "X-Forwarded-For",
    "X-Real-IP",
    "CF-Connecting-IP",
    "X-Client-IP",
)

# Headers carrying a comma-separated proxy chain
MULTI_VALUE_IP_HEADERS = frozenset({"x-forwarded-for"})

PRIVATE_NETWORKS = (
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
)

# Prefix fallback for values that do not parse as an address
# (e.g. "10.1.2.3:8080"). 172.16/12 is spelled out as its 16 /16 prefixes.
PRIVATE_PREFIXES: tuple[str, ...] = (
    "10.",
    "192.168.",
    "127.",
    *(f"172.{octet}." for octet in range(16, 32)),
)

PROVENANCE_RESOLVED = "request.remote_addr"
PROVENANCE_SOCKET = "socket"
PROVENANCE_SOCKET_PRIVATE = "socket (private)"
PROVENANCE_NONE = "none"


def strip_ipv4_mapped(value: str) -> str:
    """Remove a leading IPv4-mapped-IPv6 prefix (``::ffff:1.2.3.4``)."""
    if value.lower().startswith(IPV4_MAPPED_PREFIX):
        return value[len(IPV4_MAPPED_PREFIX):]
    return value


def is_ip(value: Optional[str]) -> bool:
    """Check that a string is a literal IPv4 or IPv6 address."""
    if not value:
        return False
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def normalize_ip(value: Optional[str]) -> Optional[str]:
    """Strip brackets, a trailing port and the IPv4-mapped prefix.

    ``[::1]:1234`` -> ``::1``, ``1.2.3.4:80`` -> ``1.2.3.4``,
    ``::ffff:1.2.3.4`` -> ``1.2.3.4``.
    """
    if not value:
        return None

    cleaned = value.strip()

    bracketed = BRACKETED_IP.search(cleaned)
    if bracketed:
        cleaned = bracketed.group(1)

    # A bare IPv6 address without "::" must not be mistaken for host:port
    if ":" in cleaned and "::" not in cleaned and not is_ip(cleaned):
        cleaned = cleaned.split(":")[0]

    cleaned = strip_ipv4_mapped(cleaned)
    return cleaned or None


def is_private_ip(value: Optional[str]) -> bool:
    """Check if an IP string is private, loopback or otherwise unusable.

    Empty input counts as private so callers skip it.

    Args:
        value: IP address string.

    Returns:
        True for loopback, RFC1918 and "localhost"; False for public addresses.
    """
    if not value:
        return True

    cleaned = strip_ipv4_mapped(value.strip())
    if not cleaned:
        return True
    if cleaned.lower() == "localhost":
        return True

    try:
        ip = ipaddress.ip_address(cleaned)
    except ValueError:
        return cleaned == "::1" or cleaned.startswith(PRIVATE_PREFIXES)

    if ip.is_loopback:
        return True
    if ip.version == 4:
        return any(ip in network for network in PRIVATE_NETWORKS)
    return False


@dataclass(slots=True, frozen=True)
class ClientIP:
    """Resolved client IP and the signal it came from."""

    address: Optional[str]
    source: str


class ClientIPResolver:
    """Resolve the best-guess public client IP from request signals.

    Candidates are tried in policy order; each is accepted only when it is
    a literal IP address (brackets and port allowed) that is not
    private/loopback. The raw socket address is the last resort and is
    the only candidate accepted even when private.
    """

    __slots__ = ("_headers",)

    def __init__(self, header_policy: Optional[Sequence[str]] = None):
        """Initialize resolver.

        Args:
            header_policy: Header names in priority order. Defaults to
                DEFAULT_IP_HEADERS.
        """
        self._headers = tuple(header_policy or DEFAULT_IP_HEADERS)

    @property
    def header_policy(self) -> tuple[str, ...]:
        return self._headers

    def resolve(
        self,
        headers: Mapping[str, str],
        remote_addr: Optional[str] = None,
        socket_addr: Optional[str] = None,
    ) -> ClientIP:
        """Pick the client IP.

        Args:
            headers: Request headers (case-insensitive mapping preferred).
            remote_addr: Framework-resolved request IP.
            socket_addr: Raw connection remote address.

        Returns:
            ClientIP with the chosen address (or None) and its provenance.
        """
        # Repeated header lines are joined the way proxies fold them
        lowered: dict[str, str] = {}
        for key, value in headers.items():
            key = key.lower()
            lowered[key] = f"{lowered[key]}, {value}" if key in lowered else value

        for header in self._headers:
            name = header.lower()
            raw = lowered.get(name)
            if not raw:
                continue

            if name in MULTI_VALUE_IP_HEADERS:
                # Leftmost non-private entry is the client; proxies append
                # themselves to the right.
                candidates = [part.strip() for part in raw.split(",")]
            else:
                candidates = [raw.strip()]

            for candidate in candidates:
                if not is_ip(normalize_ip(candidate)):
                    logger.debug(f"Ignoring non-IP value in {name}: {candidate!r}")
                    continue
                if not is_private_ip(candidate):
                    return ClientIP(candidate, name)

        if remote_addr and not is_private_ip(remote_addr):
            return ClientIP(remote_addr, PROVENANCE_RESOLVED)

        if socket_addr:
            if is_private_ip(socket_addr):
                return ClientIP(socket_addr, PROVENANCE_SOCKET_PRIVATE)
            return ClientIP(socket_addr, PROVENANCE_SOCKET)

        return ClientIP(None, PROVENANCE_NONE)


# ----------------------------------------------------------------------
# User-agent classification
#
# Each table is evaluated top to bottom and the first match wins, so the
# order of entries is part of the behaviour.
# ----------------------------------------------------------------------

# Mobile keywords are checked before tablet keywords: an Android tablet
# without "mobile" in its UA still counts as mobile via "android".
MOBILE_KEYWORDS: tuple[str, ...] = (
    "mobile", "android", "iphone", "ipod", "blackberry", "windows phone",
)
TABLET_KEYWORDS: tuple[str, ...] = ("tablet", "ipad")

# (label, any of these tokens, none of these tokens)
# Chrome must exclude "edg" (Edge ships a Chrome token); Safari must
# exclude "chrome" (Chrome ships a Safari token). Opera also ships a
# Chrome token and is therefore reported as Chrome.
BROWSER_RULES: tuple[tuple[str, tuple[str, ...], tuple[str, ...]], ...] = (
    ("Chrome", ("chrome",), ("edg",)),
    ("Firefox", ("firefox",), ()),
    ("Safari", ("safari",), ("chrome",)),
    ("Edge", ("edg",), ()),
    ("Opera", ("opera", "opr"), ()),
    ("Internet Explorer", ("msie", "trident"), ()),
    ("Brave", ("brave",), ()),
)

WINDOWS_VERSIONS: tuple[tuple[str, str], ...] = (
    ("windows nt 10", "Windows 10/11"),
    ("windows nt 6.3", "Windows 8.1"),
    ("windows nt 6.2", "Windows 8"),
    ("windows nt 6.1", "Windows 7"),
)

# Android before Linux: Android UAs contain "linux".
OS_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("android",), "Android"),
    (("linux",), "Linux"),
    (("iphone", "ipad"), "iOS"),
)

UNKNOWN = "unknown"


@dataclass(slots=True, frozen=True)
class DeviceInfo:
    """Device, browser and OS labels parsed from a user agent."""

    device_type: Optional[str]
    browser: Optional[str]
    os: Optional[str]


def _contains_any(ua: str, tokens: Sequence[str]) -> bool:
    return any(token in ua for token in tokens)


def detect_device_type(ua: str) -> str:
    """Classify a lower-cased UA as 'mobile', 'tablet' or 'desktop'."""
    if _contains_any(ua, MOBILE_KEYWORDS):
        return "mobile"
    if _contains_any(ua, TABLET_KEYWORDS):
        return "tablet"
    return "desktop"


def detect_browser(ua: str) -> str:
    """Classify a lower-cased UA into a browser label."""
    for label, required, excluded in BROWSER_RULES:
        if _contains_any(ua, required) and not _contains_any(ua, excluded):
            return label
    return UNKNOWN


def detect_os(ua: str) -> str:
    """Classify a lower-cased UA into an OS label."""
    if "windows" in ua:
        for token, label in WINDOWS_VERSIONS:
            if token in ua:
                return label
        return "Windows"

    # iOS UAs carry "like Mac OS X"; the device token tells them apart.
    if "mac os x" in ua or "macintosh" in ua:
        if "iphone" in ua or "ipad" in ua:
            return "iOS"
        return "macOS"

    for tokens, label in OS_RULES:
        if _contains_any(ua, tokens):
            return label
    return UNKNOWN


@lru_cache(maxsize=1000)
def parse_user_agent(user_agent: Optional[str]) -> DeviceInfo:
    """Parse user agent string with caching.

    Args:
        user_agent: Raw User-Agent header value.

    Returns:
        DeviceInfo; all fields None when the header is missing.
    """
    if not user_agent:
        return DeviceInfo(None, None, None)

    ua = user_agent.lower()
    return DeviceInfo(
        device_type=detect_device_type(ua),
        browser=detect_browser(ua),
        os=detect_os(ua),
    )
