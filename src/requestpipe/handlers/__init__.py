"""
Terminal handlers: the router and validation helpers for route handlers.
"""

from .routes import Route, RouteMatch, Router, RouteHandler
from .validation import require_json, require_fields

__all__ = [
    "Route",
    "RouteMatch",
    "Router",
    "RouteHandler",
    "require_json",
    "require_fields",
]
