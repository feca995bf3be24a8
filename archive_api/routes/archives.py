"""
Archive item routes. Items are scoped to their owner; admins may act on any.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
from starlette.concurrency import run_in_threadpool

from archive_api.authz import (
    Caller,
    authorize_resource,
    require_authenticated,
    require_owner_or_admin,
)
from archive_api.backend import BackendClient
from archive_api.dependencies import get_backend, get_storage
from archive_api.errors import NotFoundError, ValidationError
from archive_api.schemas import (
    ArchiveCreateRequest,
    ArchiveItem,
    ArchiveUpdateRequest,
    MessageResponse,
    StoredFile,
)
from archive_api.storage import StorageClient

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Archives"])


def load_archive(archive_id: str, backend: BackendClient) -> ArchiveItem:
    item = backend.get_archive(archive_id)
    if item is None:
        raise NotFoundError("Archive not found")
    return item


def owned_archive(
    archive_id: str,
    caller: Caller = Depends(require_owner_or_admin),
    backend: BackendClient = Depends(get_backend),
) -> ArchiveItem:
    return authorize_resource(caller, load_archive(archive_id, backend))


def delete_archive_and_file(
    item: ArchiveItem, backend: BackendClient, storage: StorageClient
) -> None:
    """Remove the stored file if any, then the record. File errors are logged only."""
    if item.file_url:
        try:
            storage.delete_file(item.file_url)
        except Exception:
            logger.warning(
                "Error deleting file for archive %s (%s)",
                item.id,
                item.file_url,
                exc_info=True,
            )
    backend.delete_archive(item.id)


@router.get("", response_model=list[ArchiveItem])
def list_archives(
    caller: Caller = Depends(require_authenticated),
    backend: BackendClient = Depends(get_backend),
):
    return backend.list_archives(caller.id)


@router.get("/search", response_model=list[ArchiveItem])
def search_archives(
    q: str = Query(""),
    caller: Caller = Depends(require_authenticated),
    backend: BackendClient = Depends(get_backend),
):
    return backend.search_archives(caller.id, q.strip())


@router.post("", response_model=ArchiveItem, status_code=201)
def create_archive(
    payload: ArchiveCreateRequest,
    caller: Caller = Depends(require_authenticated),
    backend: BackendClient = Depends(get_backend),
):
    data = payload.model_dump(mode="json")
    data["created_by"] = caller.id
    item = backend.create_archive(data)
    logger.info("User %s created archive %s", caller.id, item.id)
    return item


@router.post("/upload", response_model=StoredFile)
async def upload_file(
    file: Optional[UploadFile] = File(default=None),
    caller: Caller = Depends(require_authenticated),
    storage: StorageClient = Depends(get_storage),
):
    if file is None or not file.filename:
        raise ValidationError("No file provided")
    content = await file.read()
    return await run_in_threadpool(
        storage.upload_file,
        caller.id,
        file.filename,
        content,
        file.content_type or "application/octet-stream",
    )


@router.get("/{archive_id}", response_model=ArchiveItem)
def get_archive(item: ArchiveItem = Depends(owned_archive)):
    return item


@router.put("/{archive_id}", response_model=ArchiveItem)
def update_archive(
    payload: ArchiveUpdateRequest,
    item: ArchiveItem = Depends(owned_archive),
    backend: BackendClient = Depends(get_backend),
):
    changes = payload.model_dump(mode="json", exclude_none=True)
    if not changes:
        return item
    updated = backend.update_archive(item.id, changes)
    if updated is None:
        raise NotFoundError("Archive not found")
    return updated


@router.delete("/{archive_id}", response_model=MessageResponse)
def delete_archive(
    item: ArchiveItem = Depends(owned_archive),
    backend: BackendClient = Depends(get_backend),
    storage: StorageClient = Depends(get_storage),
):
    delete_archive_and_file(item, backend, storage)
    return MessageResponse(message="Archive deleted successfully")
