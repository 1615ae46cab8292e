"""Tracking recorder: detached click recording for redirects.

The redirect handler hands a ``Visit`` to ``TrackingRecorder.schedule``
and returns immediately. The recorder then geolocates the client,
classifies the user agent and persists one tracking event. Nothing that
happens here can change the outcome of the redirect.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Optional

from ..async_db import run_sync
from ..datastore import LinkDatastore
from ..dto import Link, TrackingEvent
from ..metrics import GEO_LOOKUPS, TRACKING_EVENTS
from ..models import utcnow
from .client_signals import DeviceInfo, is_private_ip, parse_user_agent
from .geo_service import GeoIPService, GeoLocation

logger = logging.getLogger(__name__)

DEFAULT_GEO_TIMEOUT = 1.5
DEFAULT_PUBLIC_IP_TIMEOUT = 1.0

_TIMED_OUT = object()


@dataclass(slots=True, frozen=True)
class Visit:
    """Request-derived data owned by one detached tracking task.

    Built on the request path so the task never touches the request
    object, which may be torn down before the task runs.
    """

    link: Link
    client_ip: Optional[str]
    user_agent: Optional[str]
    referer: Optional[str]
    clicked_at: datetime

    @classmethod
    def capture(
        cls,
        link: Link,
        client_ip: Optional[str],
        headers: Any,
    ) -> "Visit":
        """Snapshot a visit at redirect time.

        Args:
            link: The resolved link.
            client_ip: Extracted client IP (unprocessed).
            headers: Request headers mapping.
        """
        return cls(
            link=link,
            client_ip=client_ip,
            user_agent=headers.get("User-Agent") or None,
            referer=headers.get("Referer") or headers.get("Referrer") or None,
            clicked_at=utcnow(),
        )


class TrackingRecorder:
    """Fire-and-forget recorder for tracking events.

    Scheduled tasks are held in a set until they finish so they are not
    garbage collected mid-flight; ``drain`` waits for them on shutdown.
    Calls that lose a timeout race are abandoned rather than cancelled and
    finish under their own HTTP timeout.
    """

    __slots__ = (
        "_store",
        "_geo",
        "_production",
        "_geo_timeout",
        "_public_ip_timeout",
        "_tasks",
        "_abandoned",
    )

    def __init__(
        self,
        store: LinkDatastore,
        geo_service: GeoIPService,
        production: bool = True,
        geo_timeout: float = DEFAULT_GEO_TIMEOUT,
        public_ip_timeout: float = DEFAULT_PUBLIC_IP_TIMEOUT,
    ):
        """Initialize tracking recorder.

        Args:
            store: Datastore the events are written to.
            geo_service: Geolocation and public IP lookups.
            production: In production the extracted IP is geolocated as-is.
            geo_timeout: Outer race timeout around geolocation, seconds.
            public_ip_timeout: Race timeout around the public IP lookup, seconds.
        """
        self._store = store
        self._geo = geo_service
        self._production = production
        self._geo_timeout = geo_timeout
        self._public_ip_timeout = public_ip_timeout
        self._tasks: set[asyncio.Task] = set()
        self._abandoned: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        """Number of scheduled recordings not yet finished."""
        return len(self._tasks)

    def schedule(self, visit: Visit) -> asyncio.Task:
        """Launch recording of a visit without waiting for it.

        Must be called from a running event loop.
        """
        task = asyncio.create_task(
            self.record(visit),
            name=f"track-{visit.link.code}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for scheduled recordings to finish.

        Args:
            timeout: Seconds to wait; None waits for all of them.
        """
        if not self._tasks:
            return

        _, still_running = await asyncio.wait(set(self._tasks), timeout=timeout)
        if still_running:
            logger.warning(f"{len(still_running)} tracking task(s) still running after drain")

    async def record(self, visit: Visit) -> Optional[int]:
        """Assemble and persist one tracking event.

        Geolocation and classification failures degrade their fields to
        null; a persistence failure is logged and swallowed.

        Returns:
            New tracking event id, or None if the write failed.
        """
        try:
            geo_ip = await self._ip_for_geolocation(visit.client_ip)
            geo = await self._geolocate(geo_ip)
            device = self._classify(visit.user_agent)

            event = TrackingEvent(
                link_id=visit.link.id,
                code=visit.link.code,
                clicked_at=visit.clicked_at,
                ip_address=visit.client_ip,
                user_agent=visit.user_agent,
                referer=visit.referer,
                country=geo.country,
                city=geo.city,
                geodata=geo.full,
                device_type=device.device_type,
                browser=device.browser,
                os=device.os,
            )

            event_id = await run_sync(self._store.create_tracking_event, event)
            TRACKING_EVENTS.labels(outcome="stored").inc()
            logger.debug(f"Tracked visit {event_id} for {visit.link.code}")
            return event_id

        except Exception as e:
            TRACKING_EVENTS.labels(outcome="failed").inc()
            logger.error(f"Error creating tracking record for {visit.link.code}: {e}", exc_info=True)
            return None

    async def _ip_for_geolocation(self, client_ip: Optional[str]) -> Optional[str]:
        """Choose the IP to geolocate; the stored IP is never changed.

        Outside production a private client IP is replaced by the host's
        public IP so local development gets real geodata.
        """
        if self._production or not client_ip or not is_private_ip(client_ip):
            return client_ip

        try:
            public_ip = await self._race(self._geo.get_public_ip(), self._public_ip_timeout)
        except Exception as e:
            logger.warning(f"Public IP lookup failed: {e}")
            return client_ip

        if public_ip is _TIMED_OUT or not public_ip:
            return client_ip

        logger.debug(f"Geolocating host public IP {public_ip} in place of {client_ip}")
        return public_ip

    async def _geolocate(self, ip: Optional[str]) -> GeoLocation:
        if not ip:
            GEO_LOOKUPS.labels(outcome="skipped").inc()
            return GeoLocation.unknown()

        try:
            result = await self._race(self._geo.lookup(ip), self._geo_timeout)
        except Exception as e:
            GEO_LOOKUPS.labels(outcome="failed").inc()
            logger.error(f"Geolocation error (non-blocking): {e}")
            return GeoLocation.unknown()

        if result is _TIMED_OUT:
            GEO_LOOKUPS.labels(outcome="timeout").inc()
            logger.debug(f"Geolocation for {ip} exceeded {self._geo_timeout}s")
            return GeoLocation.unknown()

        GEO_LOOKUPS.labels(outcome="ok" if result.is_known else "failed").inc()
        return result

    def _classify(self, user_agent: Optional[str]) -> DeviceInfo:
        if not user_agent:
            logger.warning("No user-agent header received for tracking")
        try:
            return parse_user_agent(user_agent)
        except Exception as e:
            logger.warning(f"User agent classification failed: {e}")
            return DeviceInfo(None, None, None)

    async def _race(self, awaitable: Awaitable[Any], timeout: float) -> Any:
        """Await ``awaitable`` for at most ``timeout`` seconds.

        Returns the result, or ``_TIMED_OUT`` if the timer wins. The losing
        call keeps running in the background instead of being cancelled.
        """
        task = asyncio.ensure_future(awaitable)
        done, _ = await asyncio.wait({task}, timeout=timeout)
        if task in done:
            return task.result()

        self._abandoned.add(task)
        task.add_done_callback(self._forget_abandoned)
        return _TIMED_OUT

    def _forget_abandoned(self, task: asyncio.Task) -> None:
        self._abandoned.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"Abandoned lookup failed late: {task.exception()}")


def init_tracking_recorder(
    store: LinkDatastore,
    geo_service: GeoIPService,
    config: Any = None,
) -> TrackingRecorder:
    """Build the tracking recorder from application config.

    Args:
        store: Datastore for tracking events.
        geo_service: GeoIP service.
        config: Mapping with PRODUCTION and timeout keys (e.g. app.config).
    """
    config = config or {}
    return TrackingRecorder(
        store,
        geo_service,
        production=config.get("PRODUCTION", True),
        geo_timeout=config.get("GEO_OUTER_TIMEOUT", DEFAULT_GEO_TIMEOUT),
        public_ip_timeout=config.get("PUBLIC_IP_TIMEOUT", DEFAULT_PUBLIC_IP_TIMEOUT),
    )
