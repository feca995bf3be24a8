"""
Registration, login, logout and current-user routes.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header

from archive_api.authz import Caller, extract_token, optional_caller, require_authenticated
from archive_api.backend import BackendClient
from archive_api.dependencies import get_backend
from archive_api.errors import AuthenticationError
from archive_api.schemas import (
    Identity,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    Profile,
    RegisterRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Authentication"])


@router.post("/register", response_model=Profile, status_code=201)
def register(payload: RegisterRequest, backend: BackendClient = Depends(get_backend)):
    profile = backend.create_account(payload.name, payload.email, payload.password)
    logger.info("Registered user %s", profile.id)
    return profile


@router.post("/login", response_model=LoginResponse)
def login(payload: LoginRequest, backend: BackendClient = Depends(get_backend)):
    user_id, session = backend.sign_in(payload.email, payload.password)
    profile = backend.get_profile(user_id)
    if profile is None:
        raise AuthenticationError("User profile not found")
    return LoginResponse(user=profile, session=session)


@router.post("/logout", response_model=MessageResponse)
def logout(
    authorization: Optional[str] = Header(default=None),
    identity: Optional[Identity] = Depends(optional_caller),
    backend: BackendClient = Depends(get_backend),
):
    """Revoke the caller's sessions when a valid token is presented."""
    if identity is not None:
        backend.sign_out(extract_token(authorization))
        logger.info("Signed out user %s", identity.id)
    return MessageResponse(message="Logged out successfully")


@router.get("/user", response_model=Profile)
def current_user(caller: Caller = Depends(require_authenticated)):
    return caller.profile
