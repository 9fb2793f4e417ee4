"""Route groups mounted onto the gateway pipeline."""

from __future__ import annotations

from ..pipeline import RouteGroup
from .api import api_routes
from .osint import osint_routes

__all__ = ["DEFAULT_ROUTE_GROUPS", "api_routes", "osint_routes"]

# Mount order matters: osint first, then api.
DEFAULT_ROUTE_GROUPS: tuple[RouteGroup, ...] = (osint_routes, api_routes)
