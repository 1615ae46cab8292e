"""UTM Tracker Application Factory."""

from __future__ import annotations

import logging
from typing import Optional

import httpx
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from quart import Quart, jsonify
from werkzeug.exceptions import HTTPException

from .async_db import async_db_operation, shutdown_executor
from .config import Config, get_config
from .datastore import LinkDatastore
from .errors import UTMTrackerError
from .models import init_db
from .schemas import ErrorResponse, HealthResponse

__version__ = "1.0.0"

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1/utm-links"

# Seconds to wait for in-flight tracking on shutdown
DRAIN_TIMEOUT = 5.0


@async_db_operation
def _ping(store: LinkDatastore) -> None:
    store.ping()


def create_app(
    config_class: Optional[type[Config]] = None,
    geo_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Quart:
    """Create and configure the Quart application.

    Args:
        config_class: Configuration class; chosen from FLASK_ENV if omitted.
        geo_transport: Optional httpx transport for geolocation calls.
    """
    config_class = config_class or get_config()

    app = Quart(__name__)
    app.config.from_object(config_class)

    _init_logging(app)

    # Initialize database
    db = init_db(app, config_class)
    app.extensions["link_store"] = LinkDatastore(db)

    # Initialize services
    _init_services(app, geo_transport)

    # Register blueprints
    from .routes import analytics_bp, links_bp, redirect_bp

    app.register_blueprint(links_bp, url_prefix=API_PREFIX)
    app.register_blueprint(redirect_bp, url_prefix=API_PREFIX)
    app.register_blueprint(analytics_bp, url_prefix=API_PREFIX)

    _register_error_handlers(app)

    # Health check endpoint
    @app.route("/healthz")
    async def health_check():
        """Health check endpoint."""
        try:
            await _ping(app.extensions["link_store"])
            health = HealthResponse(status="healthy", version=__version__, database="connected")
            code = 200
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            health = HealthResponse(
                status="unhealthy",
                version=__version__,
                database="disconnected",
                details={"error": str(e)},
            )
            code = 503
        return jsonify(health.model_dump(mode="json", exclude_none=True)), code

    # Readiness check endpoint
    @app.route("/readyz")
    async def readiness_check():
        """Readiness check endpoint."""
        return {"status": "ready"}, 200

    if app.config.get("PROMETHEUS_ENABLED"):
        @app.route("/metrics")
        async def metrics():
            """Prometheus metrics endpoint."""
            return generate_latest(), 200, {"Content-Type": CONTENT_TYPE_LATEST}

    @app.after_serving
    async def shutdown() -> None:
        await app.extensions["tracking_recorder"].drain(timeout=DRAIN_TIMEOUT)
        shutdown_executor()
        app.config["db"].close()

    return app


def _init_logging(app: Quart) -> None:
    """Configure root logging from LOG_LEVEL and LOG_FORMAT."""
    logging.basicConfig(
        level=getattr(logging, str(app.config["LOG_LEVEL"]).upper(), logging.INFO),
        format=app.config["LOG_FORMAT"],
    )


def _init_services(app: Quart, geo_transport: Optional[httpx.AsyncBaseTransport]) -> None:
    """Initialize application services.

    Args:
        app: Quart application instance.
        geo_transport: Optional httpx transport for the GeoIP service.
    """
    from .services import (
        AnalyticsService,
        ClientIPResolver,
        LinkService,
        RedirectService,
        init_geo_service,
        init_tracking_recorder,
    )

    store = app.extensions["link_store"]

    # Initialize GeoIP service
    geo_service = init_geo_service(app.config, transport=geo_transport)
    app.logger.info("GeoIP service initialized")

    app.extensions["ip_resolver"] = ClientIPResolver(app.config["CLIENT_IP_HEADERS"])
    app.extensions["tracking_recorder"] = init_tracking_recorder(store, geo_service, app.config)
    app.extensions["redirect_service"] = RedirectService(store)
    app.extensions["analytics_service"] = AnalyticsService(store, app.config["ANALYTICS_TIMEZONE"])
    app.extensions["link_service"] = LinkService(
        store,
        code_length=app.config["CODE_LENGTH"],
        max_retries=app.config["CODE_MAX_RETRIES"],
    )
    app.logger.info("Link, redirect, tracking and analytics services initialized")


def _error_body(message: str, error: Optional[str] = None) -> dict:
    return ErrorResponse(message=message, error=error or None).model_dump(exclude_none=True)


def _register_error_handlers(app: Quart) -> None:
    """Render every error as a JSON body, never an HTML page."""

    @app.errorhandler(UTMTrackerError)
    async def handle_tracker_error(error: UTMTrackerError):
        if error.status_code >= 500:
            logger.error(f"{error.message}: {error.error}")
        return jsonify(_error_body(error.message, error.error)), error.status_code

    @app.errorhandler(HTTPException)
    async def handle_http_error(error: HTTPException):
        return jsonify(_error_body(error.description or error.name)), error.code

    @app.errorhandler(Exception)
    async def handle_unexpected_error(error: Exception):
        logger.error(f"Unhandled error: {error}", exc_info=error)
        return jsonify(_error_body("Internal server error", str(error))), 500
