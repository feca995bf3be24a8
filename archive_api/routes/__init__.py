"""
HTTP routes, one module per resource.
"""

from fastapi import APIRouter

from archive_api.routes import admin, archives, auth, users
from archive_api.routes.meta import build_meta_router


def build_api_router() -> APIRouter:
    api = APIRouter()
    api.include_router(auth.router, prefix="/auth")
    api.include_router(users.router, prefix="/users")
    api.include_router(archives.router, prefix="/archives")
    api.include_router(admin.router, prefix="/admin")
    return api


__all__ = ["build_api_router", "build_meta_router"]
