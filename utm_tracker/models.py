"""PyDAL Database Models."""

from __future__ import annotations

import os
from datetime import datetime, timezone

from pydal import DAL, Field
from pydal.validators import IS_NOT_EMPTY, IS_URL
from quart import Quart

from .config import Config


def utcnow() -> datetime:
    """Naive UTC timestamp, the form PyDAL stores datetime fields in."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def init_db(app: Quart, config_class: type[Config] = Config) -> DAL:
    """Initialize database connection and define tables."""
    db_uri = config_class.get_db_uri()

    folder = config_class.DB_FOLDER
    if folder and not db_uri.startswith("sqlite:memory"):
        os.makedirs(folder, exist_ok=True)

    db = DAL(
        db_uri,
        folder=folder,
        pool_size=config_class.DB_POOL_SIZE,
        migrate=True,
        lazy_tables=False,
    )

    define_tables(db)

    # Store db instance in app
    app.config["db"] = db

    return db


def define_tables(db: DAL) -> DAL:
    """Define the link and tracking tables on an open connection."""
    # UTM links - short code mapped to a destination and UTM parameters
    db.define_table(
        "utm_links",
        Field("code", "string", length=50, unique=True, notnull=True,
              requires=IS_NOT_EMPTY()),
        Field("destination_url", "text", notnull=True, requires=[
            IS_NOT_EMPTY(error_message="Destination URL is required"),
            IS_URL(error_message="Invalid URL format"),
        ]),
        Field("utm_source", "string", length=255, notnull=True,
              requires=IS_NOT_EMPTY()),
        Field("utm_medium", "string", length=255, notnull=True,
              requires=IS_NOT_EMPTY()),
        Field("utm_campaign", "string", length=255),
        Field("utm_content", "string", length=255),
        Field("is_active", "boolean", default=True),
        Field("created_by", "string", length=255),
        Field("created_at", "datetime", default=utcnow),
        Field("updated_at", "datetime", default=utcnow, update=utcnow),
    )

    # Tracking events - one row per successful redirect
    db.define_table(
        "utm_tracking",
        Field("utm_link_id", "reference utm_links", ondelete="CASCADE",
              notnull=True),
        Field("code", "string", length=50, notnull=True),  # Denormalized
        Field("clicked_at", "datetime", default=utcnow),
        Field("ip_address", "string", length=45),
        Field("user_agent", "text"),
        Field("referer", "string", length=500),
        Field("country", "string", length=2),  # ISO 3166-1 alpha-2
        Field("city", "string", length=255),
        Field("device_type", "string", length=50),  # mobile, tablet, desktop
        Field("browser", "string", length=100),
        Field("os", "string", length=100),
        Field("geodata", "json"),  # Full provider payload
    )

    # Commit table definitions
    db.commit()

    return db
