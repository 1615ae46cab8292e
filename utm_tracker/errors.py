"""Exceptions raised by the link, redirect and analytics services."""

from __future__ import annotations


class UTMTrackerError(Exception):
    """Base error carrying the HTTP status it maps to."""

    status_code = 500

    def __init__(self, message: str, error: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.error = error


class InvalidRequestError(UTMTrackerError):
    """Missing or malformed client input."""

    status_code = 400


class LinkNotFoundError(UTMTrackerError):
    """No link (or no active link, on redirect) for the given code or id."""

    status_code = 404


class DestinationUrlError(UTMTrackerError):
    """A stored destination URL could not be parsed at redirect time."""

    status_code = 500


class CodeGenerationError(UTMTrackerError):
    """A unique short code could not be allocated."""

    status_code = 500


class AuthenticationError(UTMTrackerError):
    """Missing, malformed or expired bearer token."""

    status_code = 401
