"""API route blueprints for the UTM tracker."""

from .analytics import analytics_bp
from .links import links_bp
from .redirect import redirect_bp

__all__ = [
    "analytics_bp",
    "links_bp",
    "redirect_bp",
]
