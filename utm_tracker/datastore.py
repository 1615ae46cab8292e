"""
PyDAL datastore for links and tracking events.

Implements the storage interface the redirect, tracking and analytics
services depend on. Every method is synchronous and commits (or rolls
back) its own unit of work; async callers go through ``run_sync``.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from pydal import DAL

from .dto import Link, TrackingEvent

logger = logging.getLogger(__name__)

# Columns a link update may overwrite
LINK_UPDATE_FIELDS = frozenset({
    "destination_url",
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_content",
    "is_active",
})


class LinkDatastore:
    """Storage interface over the ``utm_links`` and ``utm_tracking`` tables."""

    __slots__ = ("_db",)

    def __init__(self, db: DAL) -> None:
        self._db = db

    @property
    def db(self) -> DAL:
        """Get underlying DAL instance."""
        return self._db

    def ping(self) -> None:
        """Run a trivial query, raising if the database is unreachable."""
        self._db.executesql("SELECT 1")

    # ------------------------------------------------------------------
    # Links
    # ------------------------------------------------------------------

    def find_link_by_code(self, code: str, active_only: bool = False) -> Optional[Link]:
        """Find a link by short code.

        Args:
            code: Short code.
            active_only: When True an inactive link is treated as absent.

        Returns:
            Link snapshot or None.
        """
        db = self._db
        query = db.utm_links.code == code
        if active_only:
            query &= db.utm_links.is_active == True  # noqa: E712
        row = db(query).select().first()
        return Link.from_db_row(row.as_dict()) if row else None

    def get_link(self, link_id: int) -> Optional[Link]:
        """Get a link by primary key."""
        row = self._db(self._db.utm_links.id == link_id).select().first()
        return Link.from_db_row(row.as_dict()) if row else None

    def link_exists(self, code: str) -> bool:
        """Check whether any link (active or not) already uses a code."""
        return self._db(self._db.utm_links.code == code).count() > 0

    def create_link(self, **fields: Any) -> Link:
        """Insert a link and return its snapshot.

        The unique constraint on ``code`` is the final arbiter of code
        uniqueness; a violation surfaces as the driver's exception.
        """
        db = self._db
        try:
            link_id = db.utm_links.insert(**fields)
            db.commit()
        except Exception:
            db.rollback()
            raise
        return self.get_link(link_id)

    def update_link(self, link_id: int, **fields: Any) -> Optional[Link]:
        """Overwrite link fields; unknown keys are ignored."""
        db = self._db
        update_data = {k: v for k, v in fields.items() if k in LINK_UPDATE_FIELDS}

        if update_data:
            try:
                db(db.utm_links.id == link_id).update(**update_data)
                db.commit()
            except Exception:
                db.rollback()
                raise

        return self.get_link(link_id)

    def delete_link(self, link_id: int) -> bool:
        """Delete a link together with its tracking events."""
        db = self._db
        try:
            db(db.utm_tracking.utm_link_id == link_id).delete()
            deleted = db(db.utm_links.id == link_id).delete()
            db.commit()
        except Exception:
            db.rollback()
            raise
        return deleted > 0

    def list_links(self, offset: int, limit: int) -> tuple[list[Link], int]:
        """List links newest first.

        Returns:
            Tuple of (links on the page, total link count).
        """
        db = self._db
        rows = db(db.utm_links).select(
            orderby=~db.utm_links.created_at | ~db.utm_links.id,
            limitby=(offset, offset + limit),
        )
        total = db(db.utm_links).count()
        return [Link.from_db_row(row.as_dict()) for row in rows], total

    # ------------------------------------------------------------------
    # Tracking events
    # ------------------------------------------------------------------

    def create_tracking_event(self, event: TrackingEvent) -> int:
        """Persist a tracking event and return its id."""
        db = self._db
        try:
            event_id = db.utm_tracking.insert(**event.to_db_dict())
            db.commit()
        except Exception:
            db.rollback()
            raise
        event.id = int(event_id)
        return event.id

    def list_tracking_events_for_link(self, link_id: int) -> list[TrackingEvent]:
        """All tracking events of a link, ascending by ``clicked_at``."""
        db = self._db
        rows = db(db.utm_tracking.utm_link_id == link_id).select(
            orderby=db.utm_tracking.clicked_at | db.utm_tracking.id,
        )
        return [TrackingEvent.from_db_row(row.as_dict()) for row in rows]
