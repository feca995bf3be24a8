"""
Administrator routes. Every route here requires the admin role.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query
from starlette.concurrency import run_in_threadpool

from archive_api.authz import Caller, require_admin
from archive_api.backend import BackendClient
from archive_api.dependencies import get_backend, get_storage
from archive_api.errors import NotFoundError
from archive_api.routes import users
from archive_api.routes.archives import delete_archive_and_file, load_archive
from archive_api.routes.users import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from archive_api.schemas import (
    AdminArchiveItem,
    MessageResponse,
    Page,
    Profile,
    RoleUpdateRequest,
    SystemStats,
)
from archive_api.storage import StorageClient

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Administrator"])


@router.get("/stats", response_model=SystemStats)
async def system_stats(
    caller: Caller = Depends(require_admin),
    backend: BackendClient = Depends(get_backend),
):
    total_users, total_archives = await asyncio.gather(
        run_in_threadpool(backend.count_profiles),
        run_in_threadpool(backend.count_archives),
    )
    return SystemStats(
        totalUsers=total_users,
        totalArchives=total_archives,
        timestamp=datetime.now(timezone.utc),
    )


router.get("/users", response_model=Page[Profile])(users.list_users)
router.get("/users/{user_id}", response_model=Profile)(users.get_user)


@router.put("/users/{user_id}/role", response_model=Profile)
def update_user_role(
    user_id: str,
    payload: RoleUpdateRequest,
    caller: Caller = Depends(require_admin),
    backend: BackendClient = Depends(get_backend),
):
    profile = backend.update_profile(user_id, {"role": payload.role})
    if profile is None:
        raise NotFoundError("User not found")
    logger.info("Admin %s set role of %s to %s", caller.id, user_id, payload.role)
    return profile


router.delete("/users/{user_id}", response_model=MessageResponse)(users.delete_user)


@router.get("/archives", response_model=Page[AdminArchiveItem])
def list_archives(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    caller: Caller = Depends(require_admin),
    backend: BackendClient = Depends(get_backend),
):
    return backend.list_all_archives(page, limit)


@router.delete("/archives/{archive_id}", response_model=MessageResponse)
def delete_archive(
    archive_id: str,
    caller: Caller = Depends(require_admin),
    backend: BackendClient = Depends(get_backend),
    storage: StorageClient = Depends(get_storage),
):
    delete_archive_and_file(load_archive(archive_id, backend), backend, storage)
    logger.info("Admin %s deleted archive %s", caller.id, archive_id)
    return MessageResponse(message="Archive deleted successfully")
