"""
Middleware package.
"""

from panel.middleware.route_guard import (
    ROUTE_ACCESS,
    PageAccess,
    RouteGuard,
    allowed_paths,
    resolve_redirect,
)

__all__ = [
    "ROUTE_ACCESS",
    "PageAccess",
    "RouteGuard",
    "allowed_paths",
    "resolve_redirect",
]
