"""Data Transfer Objects with slotted dataclasses."""

from .link import Link
from .tracking_event import TrackingEvent

__all__ = ["Link", "TrackingEvent"]
