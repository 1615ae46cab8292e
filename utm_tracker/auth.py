"""
Bearer-token authentication for the management endpoints.

Tokens are HS256 JWTs signed with ``JWT_SECRET_KEY``; the ``sub`` claim
identifies the caller and is recorded as a link's ``created_by``. The
redirect endpoint is always public.
"""

from __future__ import annotations

from functools import wraps
from typing import Any, Callable, Optional

import jwt
from quart import current_app, g, request

from .errors import AuthenticationError


def auth_required(func: Callable) -> Callable:
    """
    Decorator to require authentication.

    Checks for a valid JWT in the Authorization header when
    ``AUTH_ENABLED`` is set. Sets g.current_user_id on success.
    """

    @wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        g.current_user_id = None

        if not current_app.config.get("AUTH_ENABLED", True):
            return await func(*args, **kwargs)

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            raise AuthenticationError("Unauthorized")

        token = auth_header[7:]  # Remove "Bearer " prefix

        try:
            payload = jwt.decode(
                token,
                current_app.config["JWT_SECRET_KEY"],
                algorithms=["HS256"],
            )
        except jwt.InvalidTokenError as e:
            raise AuthenticationError("Invalid or expired token", str(e)) from e

        subject = payload.get("sub")
        if not subject:
            raise AuthenticationError("Invalid or expired token", "missing subject")

        g.current_user_id = str(subject)
        return await func(*args, **kwargs)

    return wrapper


def get_current_user_id() -> Optional[str]:
    """Identity of the authenticated caller, or None."""
    return g.get("current_user_id")
