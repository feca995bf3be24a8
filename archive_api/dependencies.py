"""
Dependency wiring for the FastAPI app.

Clients are built once by ``create_app`` and kept on ``app.state``; request
handlers receive them through the getters below.
"""

from __future__ import annotations

import logging
from functools import partial

from fastapi import Request
from supabase import Client, create_client
from supabase.client import ClientOptions

from archive_api.backend import (
    BackendClient,
    InMemoryBackendClient,
    SupabaseBackendClient,
)
from archive_api.config import Settings
from archive_api.storage import (
    InMemoryStorageClient,
    StorageClient,
    SupabaseStorageClient,
)

logger = logging.getLogger(__name__)


def _create_supabase_client(url: str, key: str) -> Client:
    # Server-side handles never persist or refresh a user session.
    options = ClientOptions(auto_refresh_token=False, persist_session=False)
    return create_client(url, key, options=options)


def build_clients(settings: Settings) -> tuple[BackendClient, StorageClient]:
    """Create the backend and storage clients for the process lifetime."""
    if settings.use_in_memory_backends:
        logger.info("Using in-memory backend and storage clients")
        return InMemoryBackendClient(), InMemoryStorageClient(
            bucket=settings.storage_bucket
        )

    service_key = settings.supabase_service_key
    if not service_key:
        logger.warning(
            "SUPABASE_SERVICE_KEY not set; administrative calls use the anon key"
        )
        service_key = settings.supabase_key

    client = _create_supabase_client(settings.supabase_url, settings.supabase_key)
    admin_client = _create_supabase_client(settings.supabase_url, service_key)
    logger.info("Supabase clients initialised for %s", settings.supabase_url)
    return (
        SupabaseBackendClient(
            client,
            admin_client,
            partial(_create_supabase_client, settings.supabase_url, settings.supabase_key),
        ),
        SupabaseStorageClient(client, settings.storage_bucket),
    )


def get_backend(request: Request) -> BackendClient:
    return request.app.state.backend


def get_storage(request: Request) -> StorageClient:
    return request.app.state.storage
