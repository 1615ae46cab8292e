"""
Redirect service: short code resolution and destination URL building.

Flow:
1. Look up the active link for a code (inactive == not found)
2. Append UTM parameters to the stored destination URL
3. Hand the visit to the tracking recorder without awaiting it
"""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urlencode, urlsplit, urlunsplit

from ..async_db import run_sync
from ..datastore import LinkDatastore
from ..dto import Link
from ..errors import DestinationUrlError, InvalidRequestError, LinkNotFoundError

logger = logging.getLogger(__name__)


def build_redirect_url(link: Link) -> str:
    """Compose the redirect target for a link.

    UTM parameters are appended after any query string already present on
    the destination; existing parameters are never merged or overwritten.

    Args:
        link: Link snapshot.

    Returns:
        Absolute URL with UTM parameters.

    Raises:
        DestinationUrlError: If the stored destination does not parse as an
            absolute URL.
    """
    try:
        parts = urlsplit(link.destination_url)
    except ValueError as e:
        raise DestinationUrlError("Invalid destination URL", str(e)) from e

    if not parts.scheme or not parts.netloc:
        raise DestinationUrlError(
            "Invalid destination URL",
            f"not an absolute URL: {link.destination_url!r}",
        )

    utm_query = urlencode(link.utm_params())
    query = f"{parts.query}&{utm_query}" if parts.query else utm_query

    return urlunsplit((
        parts.scheme,
        parts.netloc,
        parts.path or "/",
        query,
        parts.fragment,
    ))


class RedirectService:
    """Resolves short codes to redirect targets."""

    __slots__ = ("_store",)

    def __init__(self, store: LinkDatastore):
        self._store = store

    async def resolve(self, code: Optional[str]) -> Link:
        """Find the active link for a code.

        Raises:
            InvalidRequestError: If the code is empty.
            LinkNotFoundError: If no active link uses the code.
        """
        if not code or not code.strip():
            raise InvalidRequestError("Code parameter is required")

        link = await run_sync(self._store.find_link_by_code, code, active_only=True)
        if link is None:
            raise LinkNotFoundError("UTM link not found or inactive")

        return link

    async def target_for(self, code: Optional[str]) -> tuple[Link, str]:
        """Resolve a code and build its redirect URL.

        Returns:
            Tuple of (link, redirect URL).
        """
        link = await self.resolve(code)
        url = build_redirect_url(link)
        logger.debug(f"Redirecting {link.code} -> {url}")
        return link, url
