"""Redirect endpoint for short code resolution.

This is the latency-critical path: the response is issued as soon as the
link is resolved and tracking runs detached.
"""

from __future__ import annotations

import logging

from quart import Blueprint, current_app, redirect, request

from ..errors import LinkNotFoundError
from ..metrics import REDIRECTS
from ..services.client_signals import ClientIP
from ..services.tracking_service import Visit

logger = logging.getLogger(__name__)

redirect_bp = Blueprint("redirect", __name__)


def _client_ip() -> ClientIP:
    """Resolve the client IP from headers, Quart's peer and the socket."""
    client = request.scope.get("client")
    socket_addr = client[0] if client else None

    resolved = current_app.extensions["ip_resolver"].resolve(
        request.headers,
        remote_addr=request.remote_addr,
        socket_addr=socket_addr,
    )
    logger.debug(f"Client IP {resolved.address} from {resolved.source}")
    return resolved


@redirect_bp.route("/redirect/<code>", methods=["GET"])
async def redirect_link(code: str):
    """Handle short code redirect.

    Args:
        code: Short code.

    Returns:
        302 redirect to the destination with UTM parameters, or a JSON
        error (400/404/500).
    """
    service = current_app.extensions["redirect_service"]

    try:
        link, url = await service.target_for(code)
    except LinkNotFoundError:
        REDIRECTS.labels(outcome="not_found").inc()
        raise

    # Tracking must never change the redirect outcome
    try:
        visit = Visit.capture(link, _client_ip().address, request.headers)
        current_app.extensions["tracking_recorder"].schedule(visit)
    except Exception as e:
        logger.error(f"Could not schedule tracking for {link.code}: {e}", exc_info=True)

    REDIRECTS.labels(outcome="redirected").inc()
    return redirect(url, 302)
