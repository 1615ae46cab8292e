#!/usr/bin/env python3
"""
UTM Tracker Entry Point.

Runs the Quart application using Hypercorn ASGI server.
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys
import time

from hypercorn.asyncio import serve
from hypercorn.config import Config as HypercornConfig

from utm_tracker import create_app
from utm_tracker.config import get_config

logger = logging.getLogger("utm_tracker.run")


def wait_for_database(max_retries: int = 30, retry_delay: int = 2) -> bool:
    """
    Wait for database to be available.

    Args:
        max_retries: Maximum number of connection attempts
        retry_delay: Delay between retries in seconds

    Returns:
        True if database is available, False otherwise
    """
    from pydal import DAL

    config = get_config()
    if config.DB_TYPE == "sqlite":
        return True

    logger.info(f"Waiting for database connection: {config.DB_HOST}:{config.DB_PORT}")

    for attempt in range(1, max_retries + 1):
        try:
            db = DAL(config.get_db_uri(), pool_size=1, migrate=False)
            db.executesql("SELECT 1")
            db.close()
            logger.info(f"Database connection successful after {attempt} attempt(s)")
            return True
        except Exception as e:
            logger.warning(f"Database connection attempt {attempt}/{max_retries} failed: {e}")
            if attempt < max_retries:
                time.sleep(retry_delay)

    return False


async def main() -> None:
    """Main async entry point."""
    config = get_config()
    if hasattr(config, "validate"):
        config.validate()

    app = create_app(config)

    # Configure Hypercorn
    hypercorn_config = HypercornConfig()
    hypercorn_config.bind = [f"{config.ASGI_HOST}:{config.ASGI_PORT}"]
    hypercorn_config.workers = config.ASGI_WORKERS

    # Access log configuration
    hypercorn_config.accesslog = "-"  # Log to stdout
    hypercorn_config.errorlog = "-"   # Log errors to stdout

    # Graceful shutdown timeout, longer than the tracking drain
    hypercorn_config.graceful_timeout = 10

    # Keep-alive settings
    hypercorn_config.keep_alive_timeout = 5

    logger.info(f"Starting UTM tracker with Hypercorn on {config.ASGI_HOST}:{config.ASGI_PORT}")

    await serve(app, hypercorn_config)


def run_dev() -> None:
    """Run in development mode with auto-reload."""
    config = get_config()
    app = create_app(config)

    logger.info(f"Starting UTM tracker in development mode on {config.ASGI_HOST}:{config.ASGI_PORT}")
    app.run(host=config.ASGI_HOST, port=config.ASGI_PORT, debug=True)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)

    if not wait_for_database():
        logger.error("Could not connect to database after maximum retries")
        sys.exit(1)

    debug = os.getenv("FLASK_DEBUG", "false").lower() == "true"

    if debug:
        run_dev()
    else:
        asyncio.run(main())
