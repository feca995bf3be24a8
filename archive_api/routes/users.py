"""
Profile routes for the signed-in user and admin user management.

The admin user handlers here are also mounted under ``/admin/users``.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query

from archive_api.authz import Caller, require_admin, require_authenticated
from archive_api.backend import BackendClient
from archive_api.dependencies import get_backend
from archive_api.errors import NotFoundError, ValidationError
from archive_api.schemas import MessageResponse, Page, Profile, ProfileUpdateRequest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Users"])

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


@router.get("/profile", response_model=Profile)
def get_profile(caller: Caller = Depends(require_authenticated)):
    return caller.profile


@router.put("/profile", response_model=Profile)
def update_profile(
    payload: ProfileUpdateRequest,
    caller: Caller = Depends(require_authenticated),
    backend: BackendClient = Depends(get_backend),
):
    changes = payload.model_dump(exclude_none=True)
    if not changes:
        raise ValidationError("No profile fields to update")
    profile = backend.update_profile(caller.id, changes)
    if profile is None:
        raise NotFoundError("User not found")
    return profile


@router.get("", response_model=Page[Profile])
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    caller: Caller = Depends(require_admin),
    backend: BackendClient = Depends(get_backend),
):
    return backend.list_profiles(page, limit)


@router.get("/{user_id}", response_model=Profile)
def get_user(
    user_id: str,
    caller: Caller = Depends(require_admin),
    backend: BackendClient = Depends(get_backend),
):
    profile = backend.get_profile(user_id)
    if profile is None:
        raise NotFoundError("User not found")
    return profile


@router.delete("/{user_id}", response_model=MessageResponse)
def delete_user(
    user_id: str,
    caller: Caller = Depends(require_admin),
    backend: BackendClient = Depends(get_backend),
):
    if user_id == caller.id:
        raise ValidationError("You cannot delete your own admin account")
    if backend.get_profile(user_id) is None:
        raise NotFoundError("User not found")
    backend.delete_account(user_id)
    logger.info("Admin %s deleted user %s", caller.id, user_id)
    return MessageResponse(message="User deleted successfully")
