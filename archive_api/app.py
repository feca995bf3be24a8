"""
FastAPI application entry point for the archive API.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from archive_api import __version__
from archive_api.backend import BackendClient
from archive_api.config import Settings, get_settings
from archive_api.dependencies import build_clients
from archive_api.errors import register_error_handlers
from archive_api.routes import build_api_router, build_meta_router
from archive_api.storage import StorageClient

logger = logging.getLogger("archive_api.access")


async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    logger.info("--> %s %s", request.method, request.url.path)
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info(
        "<-- %s %s %s %.0fms",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
    )
    return response


def create_app(
    settings: Optional[Settings] = None,
    backend: Optional[BackendClient] = None,
    storage: Optional[StorageClient] = None,
) -> FastAPI:
    settings = settings or get_settings()
    if backend is None or storage is None:
        built_backend, built_storage = build_clients(settings)
        backend = backend or built_backend
        storage = storage or built_storage

    app = FastAPI(title="Archive Management API", version=__version__)
    app.state.backend = backend
    app.state.storage = storage

    app.middleware("http")(log_requests)
    app.add_middleware(GZipMiddleware, minimum_size=settings.gzip_minimum_size)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
        allow_credentials=True,
        max_age=86400,
    )

    register_error_handlers(app)
    app.include_router(build_meta_router(settings.api_prefix))
    app.include_router(build_api_router(), prefix=settings.api_prefix)
    return app
