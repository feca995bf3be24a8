"""
Pydantic schemas for backend records and API payloads.
"""

from __future__ import annotations

import math
from datetime import datetime
from enum import Enum
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

T = TypeVar("T")


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


class Identity(BaseModel):
    """The caller resolved from a bearer token. Lives for one request."""

    id: str
    email: Optional[str] = None
    issued_at: Optional[datetime] = None
    expiry: Optional[datetime] = None


class Profile(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    email: str
    role: Role
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class FileMetadata(BaseModel):
    name: str
    size: int
    type: str


def _dedupe_tags(tags: Optional[list[str]]) -> Optional[list[str]]:
    if tags is None:
        return None
    seen: list[str] = []
    for tag in tags:
        if tag not in seen:
            seen.append(tag)
    return seen


class ArchiveItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    file_url: Optional[str] = None
    file_metadata: Optional[FileMetadata] = None
    created_by: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("tags", mode="before")
    @classmethod
    def _null_tags(cls, value):
        return [] if value is None else value

    @field_validator("tags")
    @classmethod
    def _tags_as_set(cls, value: list[str]) -> list[str]:
        return _dedupe_tags(value)


class AdminArchiveItem(ArchiveItem):
    owner_name: Optional[str] = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    totalPages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(
            page=page, limit=limit, total=total, totalPages=math.ceil(total / limit)
        )


class Page(BaseModel, Generic[T]):
    data: list[T]
    pagination: Pagination


class Session(BaseModel):
    model_config = ConfigDict(extra="ignore")

    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    expires_in: Optional[int] = None
    expires_at: Optional[int] = None


class StoredFile(BaseModel):
    url: str
    metadata: FileMetadata


# --- Request payloads ---


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class ProfileUpdateRequest(BaseModel):
    """Fields a user may change on their own profile. Anything else is dropped."""

    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[str] = Field(default=None, min_length=1)


class RoleUpdateRequest(BaseModel):
    role: str

    @field_validator("role")
    @classmethod
    def _known_role(cls, value: str) -> str:
        if value not in {r.value for r in Role}:
            raise ValueError('Invalid role. Must be "user" or "admin"')
        return value


class ArchiveCreateRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    category: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    file_url: Optional[str] = None
    file_metadata: Optional[FileMetadata] = None

    @field_validator("tags")
    @classmethod
    def _tags_as_set(cls, value: list[str]) -> list[str]:
        return _dedupe_tags(value)


class ArchiveUpdateRequest(BaseModel):
    """Partial update; ownership and identity columns are not accepted."""

    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[list[str]] = None
    file_url: Optional[str] = None
    file_metadata: Optional[FileMetadata] = None

    @field_validator("tags")
    @classmethod
    def _tags_as_set(cls, value: Optional[list[str]]) -> Optional[list[str]]:
        return _dedupe_tags(value)


# --- Responses ---


class LoginResponse(BaseModel):
    user: Profile
    session: Session


class MessageResponse(BaseModel):
    message: str


class SystemStats(BaseModel):
    totalUsers: int
    totalArchives: int
    timestamp: datetime


class HealthResponse(BaseModel):
    message: str
    timestamp: datetime
    version: str


class RouteInfo(BaseModel):
    method: str
    path: str
    description: str
    auth: bool
    admin: bool


class RouteDirectoryResponse(BaseModel):
    title: str
    version: str
    description: str
    routes: list[RouteInfo]
