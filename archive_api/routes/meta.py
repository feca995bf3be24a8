"""
Liveness and route directory endpoints.
"""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter

from archive_api import __version__
from archive_api.schemas import HealthResponse, RouteDirectoryResponse, RouteInfo

# (method, path under the API prefix, description, auth, admin)
ROUTES = [
    ("POST", "/auth/register", "Register a new user", False, False),
    ("POST", "/auth/login", "User login", False, False),
    ("POST", "/auth/logout", "User logout", False, False),
    ("GET", "/auth/user", "Get current user", True, False),
    ("GET", "/users/profile", "Get user profile", True, False),
    ("PUT", "/users/profile", "Update user profile", True, False),
    ("GET", "/users", "Get all users", True, True),
    ("GET", "/users/:id", "Get user by ID", True, True),
    ("DELETE", "/users/:id", "Delete user", True, True),
    ("GET", "/archives", "Get user archives", True, False),
    ("GET", "/archives/search", "Search user archives", True, False),
    ("POST", "/archives", "Create new archive", True, False),
    ("POST", "/archives/upload", "Upload archive file", True, False),
    ("GET", "/archives/:id", "Get archive by ID", True, False),
    ("PUT", "/archives/:id", "Update archive", True, False),
    ("DELETE", "/archives/:id", "Delete archive", True, False),
    ("GET", "/admin/stats", "Get system statistics", True, True),
    ("GET", "/admin/users", "Get all users with pagination", True, True),
    ("GET", "/admin/users/:id", "Get user by ID", True, True),
    ("PUT", "/admin/users/:id/role", "Update user role", True, True),
    ("DELETE", "/admin/users/:id", "Delete user", True, True),
    ("GET", "/admin/archives", "Get all archives with pagination", True, True),
    ("DELETE", "/admin/archives/:id", "Delete any archive", True, True),
]


def build_meta_router(api_prefix: str) -> APIRouter:
    """Liveness at ``/`` and the route directory at the API prefix itself."""
    router = APIRouter(tags=["Meta"])
    routes = [
        RouteInfo(method=m, path=f"{api_prefix}{p}", description=d, auth=a, admin=adm)
        for m, p, d, a, adm in ROUTES
    ]

    @router.get("/", response_model=HealthResponse)
    def health():
        return HealthResponse(
            message="Archive API is running!",
            timestamp=datetime.now(timezone.utc),
            version=__version__,
        )

    if api_prefix:

        @router.get(api_prefix, response_model=RouteDirectoryResponse)
        def route_directory():
            return RouteDirectoryResponse(
                title="Archive Management API",
                version=__version__,
                description="API for managing archives with Supabase backend",
                routes=routes,
            )

    return router
