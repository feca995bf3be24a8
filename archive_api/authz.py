"""
Authorization contract.

Every route declares one requirement; the matching dependency resolves the
caller and enforces it before the handler runs. Nothing is cached between
requests, so a role change applies to the caller's very next request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from fastapi import Depends, Header

from archive_api.backend import BackendClient
from archive_api.dependencies import get_backend
from archive_api.errors import (
    AuthenticationError,
    AuthorizationError,
    BackendError,
    InvalidToken,
    MissingToken,
    ProfileNotFound,
)
from archive_api.schemas import ArchiveItem, Identity, Profile, Role

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


class Requirement(str, Enum):
    NONE = "none"
    AUTHENTICATED = "authenticated"
    ADMIN = "role:admin"
    OWNER_OR_ADMIN = "owner-or-admin"


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[str] = None

    @classmethod
    def allow(cls) -> "Decision":
        return cls(True)

    @classmethod
    def deny(cls, reason: str) -> "Decision":
        return cls(False, reason)


@dataclass(frozen=True)
class Caller:
    identity: Identity
    profile: Profile

    @property
    def id(self) -> str:
        return self.profile.id


def extract_token(header: Optional[str]) -> str:
    if not header or not header.startswith(BEARER_PREFIX):
        raise MissingToken()
    token = header[len(BEARER_PREFIX):].strip()
    if not token:
        raise MissingToken()
    return token


def resolve_identity(header: Optional[str], backend: BackendClient) -> Identity:
    token = extract_token(header)
    try:
        identity = backend.get_identity(token)
    except BackendError as exc:
        logger.warning("Token verification failed: %s", exc.message)
        raise AuthenticationError("Authentication failed") from exc
    if identity is None:
        raise InvalidToken()
    return identity


def resolve_profile(identity: Identity, backend: BackendClient) -> Profile:
    try:
        profile = backend.get_profile(identity.id)
    except BackendError as exc:
        logger.warning("Profile lookup for %s failed: %s", identity.id, exc.message)
        raise AuthenticationError("Authentication failed") from exc
    if profile is None:
        raise ProfileNotFound()
    return profile


def optional_resolve(header: Optional[str], backend: BackendClient) -> Optional[Identity]:
    """Like resolve_identity, but anonymous or unverifiable callers yield None."""
    try:
        return resolve_identity(header, backend)
    except AuthenticationError as exc:
        if header:
            logger.debug("Optional auth ignored: %s", exc.message)
        return None


def authorize(
    profile: Optional[Profile],
    requirement: Requirement,
    resource: Optional[ArchiveItem] = None,
) -> Decision:
    if requirement is Requirement.NONE:
        return Decision.allow()
    if profile is None:
        return Decision.deny("Unauthorized")
    if requirement is Requirement.AUTHENTICATED:
        return Decision.allow()
    if requirement is Requirement.ADMIN:
        if profile.role == Role.ADMIN:
            return Decision.allow()
        return Decision.deny("Admin access required")
    if requirement is Requirement.OWNER_OR_ADMIN:
        if resource is None:
            return Decision.deny("Insufficient permissions")
        if resource.created_by == profile.id or profile.role == Role.ADMIN:
            return Decision.allow()
        return Decision.deny("Insufficient permissions")
    raise ValueError(f"Unknown requirement: {requirement}")


def enforce(decision: Decision) -> None:
    if not decision.allowed:
        raise AuthorizationError(decision.reason or "Forbidden")


def require(requirement: Requirement):
    """
    Build the FastAPI dependency for a route requirement.

    ``OWNER_OR_ADMIN`` only resolves the caller here; the ownership check needs
    the resource and happens in the dependency that loads it.
    """

    def dependency(
        authorization: Optional[str] = Header(default=None),
        backend: BackendClient = Depends(get_backend),
    ) -> Optional[Caller]:
        if requirement is Requirement.NONE:
            return None
        identity = resolve_identity(authorization, backend)
        profile = resolve_profile(identity, backend)
        if requirement is not Requirement.OWNER_OR_ADMIN:
            enforce(authorize(profile, requirement))
        return Caller(identity=identity, profile=profile)

    dependency.__name__ = f"require_{requirement.name.lower()}"
    return dependency


require_authenticated = require(Requirement.AUTHENTICATED)
require_admin = require(Requirement.ADMIN)
require_owner_or_admin = require(Requirement.OWNER_OR_ADMIN)


def optional_caller(
    authorization: Optional[str] = Header(default=None),
    backend: BackendClient = Depends(get_backend),
) -> Optional[Identity]:
    return optional_resolve(authorization, backend)


def authorize_resource(caller: Caller, resource: ArchiveItem) -> ArchiveItem:
    enforce(authorize(caller.profile, Requirement.OWNER_OR_ADMIN, resource))
    return resource
