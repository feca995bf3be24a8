"""
Backend client adapter for Supabase auth and tables, plus an in-memory
implementation for tests and local runs.

Two privilege levels are held: the standard client (anon key, row-level
security applies) and the elevated client (service key), which is used only
for account lifecycle and administrative listings.
"""

from __future__ import annotations

import itertools
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, Protocol

from jose import JWTError, jwt
from pydantic import ValidationError as PydanticValidationError
from supabase import AuthApiError, AuthError, Client, PostgrestAPIError

from archive_api.errors import AuthenticationError, BackendError
from archive_api.schemas import (
    AdminArchiveItem,
    ArchiveItem,
    Identity,
    Page,
    Pagination,
    Profile,
    Role,
    Session,
)

logger = logging.getLogger(__name__)

PROFILES_TABLE = "profiles"
ARCHIVES_TABLE = "archive_items"
PROFILE_COLUMNS = "id, name, role, email, created_at, updated_at"
ARCHIVE_OWNER_JOIN = "*, profiles!archive_items_created_by_fkey(name)"


class BackendClient(Protocol):
    """Operations the API needs from the hosted backend."""

    def get_identity(self, token: str) -> Optional[Identity]:
        ...

    def sign_in(self, email: str, password: str) -> tuple[str, Session]:
        ...

    def sign_out(self, token: Optional[str] = None) -> None:
        ...

    def create_account(self, name: str, email: str, password: str) -> Profile:
        ...

    def delete_account(self, user_id: str) -> None:
        ...

    def get_profile(self, user_id: str) -> Optional[Profile]:
        ...

    def update_profile(self, user_id: str, changes: dict) -> Optional[Profile]:
        ...

    def list_profiles(self, page: int, limit: int) -> Page[Profile]:
        ...

    def list_archives(self, owner_id: str) -> list[ArchiveItem]:
        ...

    def list_all_archives(self, page: int, limit: int) -> Page[AdminArchiveItem]:
        ...

    def search_archives(self, owner_id: str, query: str) -> list[ArchiveItem]:
        ...

    def get_archive(self, archive_id: str) -> Optional[ArchiveItem]:
        ...

    def create_archive(self, data: dict) -> ArchiveItem:
        ...

    def update_archive(self, archive_id: str, changes: dict) -> Optional[ArchiveItem]:
        ...

    def delete_archive(self, archive_id: str) -> None:
        ...

    def count_profiles(self) -> int:
        ...

    def count_archives(self) -> int:
        ...


def _parse(model, row: Any):
    try:
        return model.model_validate(row)
    except PydanticValidationError as exc:
        raise BackendError(
            f"Malformed {model.__name__} record returned by backend"
        ) from exc


def _token_times(token: str) -> tuple[Optional[datetime], Optional[datetime]]:
    """Read iat/exp from a token the backend has already accepted."""
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError:
        return None, None

    def _ts(key: str) -> Optional[datetime]:
        value = claims.get(key)
        if isinstance(value, (int, float)):
            return datetime.fromtimestamp(value, tz=timezone.utc)
        return None

    return _ts("iat"), _ts("exp")


def _ilike_pattern(query: str) -> str:
    # LIKE wildcards in the query match literally.
    literal = (
        query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    )
    # Quote the value so commas and parentheses survive the or=() filter.
    escaped = literal.replace("\\", "\\\\").replace('"', '\\"')
    return f'"%{escaped}%"'


class SupabaseBackendClient:
    """Direct pass-through to supabase-py; no retries, no caching."""

    def __init__(
        self,
        client: Client,
        admin_client: Client,
        session_client_factory: Callable[[], Client],
    ):
        self.client = client
        self.admin_client = admin_client
        # Password sign-in stores the session on the client that performed it,
        # so each sign-in gets a fresh client that is discarded afterwards.
        self.session_client_factory = session_client_factory

    # --- auth ---

    def get_identity(self, token: str) -> Optional[Identity]:
        try:
            response = self.client.auth.get_user(token)
        except AuthApiError:
            return None
        except AuthError as exc:
            raise BackendError(exc.message) from exc
        if response is None or response.user is None:
            return None
        issued_at, expiry = _token_times(token)
        return Identity(
            id=response.user.id,
            email=response.user.email,
            issued_at=issued_at,
            expiry=expiry,
        )

    def sign_in(self, email: str, password: str) -> tuple[str, Session]:
        try:
            response = self.session_client_factory().auth.sign_in_with_password(
                {"email": email, "password": password}
            )
        except AuthError as exc:
            raise AuthenticationError(exc.message) from exc
        if response.user is None or response.session is None:
            raise AuthenticationError("Invalid login credentials")
        return response.user.id, _parse(Session, response.session.model_dump())

    def sign_out(self, token: Optional[str] = None) -> None:
        # Shared clients hold no user session.
        if not token:
            return
        try:
            self.admin_client.auth.admin.sign_out(token)
        except AuthError as exc:
            raise BackendError(exc.message) from exc

    def create_account(self, name: str, email: str, password: str) -> Profile:
        try:
            created = self.admin_client.auth.admin.create_user(
                {
                    "email": email,
                    "password": password,
                    "email_confirm": True,
                    "user_metadata": {"name": name},
                }
            )
        except AuthError as exc:
            raise BackendError(exc.message) from exc

        row = self._single(
            lambda: self.client.table(PROFILES_TABLE)
            .insert(
                {
                    "id": created.user.id,
                    "name": name,
                    "email": email,
                    "role": Role.USER.value,
                }
            )
            .execute()
        )
        if row is None:
            raise BackendError("Profile was not created")
        return _parse(Profile, row)

    def delete_account(self, user_id: str) -> None:
        self._execute(
            lambda: self.client.table(PROFILES_TABLE).delete().eq("id", user_id).execute()
        )
        try:
            self.admin_client.auth.admin.delete_user(user_id)
        except AuthError as exc:
            raise BackendError(exc.message) from exc

    # --- profiles ---

    def get_profile(self, user_id: str) -> Optional[Profile]:
        row = self._single(
            lambda: self.client.table(PROFILES_TABLE)
            .select(PROFILE_COLUMNS)
            .eq("id", user_id)
            .limit(1)
            .execute()
        )
        return _parse(Profile, row) if row is not None else None

    def update_profile(self, user_id: str, changes: dict) -> Optional[Profile]:
        row = self._single(
            lambda: self.client.table(PROFILES_TABLE)
            .update(changes)
            .eq("id", user_id)
            .execute()
        )
        return _parse(Profile, row) if row is not None else None

    def list_profiles(self, page: int, limit: int) -> Page[Profile]:
        offset = (page - 1) * limit
        response = self._execute(
            lambda: self.admin_client.table(PROFILES_TABLE)
            .select("*", count="exact")
            .order("created_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        return Page[Profile](
            data=[_parse(Profile, row) for row in response.data or []],
            pagination=Pagination.build(page, limit, response.count or 0),
        )

    # --- archives ---

    def list_archives(self, owner_id: str) -> list[ArchiveItem]:
        response = self._execute(
            lambda: self.client.table(ARCHIVES_TABLE)
            .select("*")
            .eq("created_by", owner_id)
            .order("created_at", desc=True)
            .execute()
        )
        return [_parse(ArchiveItem, row) for row in response.data or []]

    def list_all_archives(self, page: int, limit: int) -> Page[AdminArchiveItem]:
        offset = (page - 1) * limit
        response = self._execute(
            lambda: self.admin_client.table(ARCHIVES_TABLE)
            .select(ARCHIVE_OWNER_JOIN, count="exact")
            .order("created_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        items = []
        for row in response.data or []:
            owner = row.pop("profiles", None) or {}
            items.append(_parse(AdminArchiveItem, {**row, "owner_name": owner.get("name")}))
        return Page[AdminArchiveItem](
            data=items,
            pagination=Pagination.build(page, limit, response.count or 0),
        )

    def search_archives(self, owner_id: str, query: str) -> list[ArchiveItem]:
        pattern = _ilike_pattern(query)
        response = self._execute(
            lambda: self.client.table(ARCHIVES_TABLE)
            .select("*")
            .eq("created_by", owner_id)
            .or_(f"title.ilike.{pattern},description.ilike.{pattern}")
            .order("created_at", desc=True)
            .execute()
        )
        return [_parse(ArchiveItem, row) for row in response.data or []]

    def get_archive(self, archive_id: str) -> Optional[ArchiveItem]:
        row = self._single(
            lambda: self.client.table(ARCHIVES_TABLE)
            .select("*")
            .eq("id", archive_id)
            .limit(1)
            .execute()
        )
        return _parse(ArchiveItem, row) if row is not None else None

    def create_archive(self, data: dict) -> ArchiveItem:
        row = self._single(
            lambda: self.client.table(ARCHIVES_TABLE).insert(data).execute()
        )
        if row is None:
            raise BackendError("Archive was not created")
        return _parse(ArchiveItem, row)

    def update_archive(self, archive_id: str, changes: dict) -> Optional[ArchiveItem]:
        row = self._single(
            lambda: self.client.table(ARCHIVES_TABLE)
            .update(changes)
            .eq("id", archive_id)
            .execute()
        )
        return _parse(ArchiveItem, row) if row is not None else None

    def delete_archive(self, archive_id: str) -> None:
        self._execute(
            lambda: self.client.table(ARCHIVES_TABLE)
            .delete()
            .eq("id", archive_id)
            .execute()
        )

    # --- statistics ---

    def count_profiles(self) -> int:
        return self._count(PROFILES_TABLE)

    def count_archives(self) -> int:
        return self._count(ARCHIVES_TABLE)

    def _count(self, table: str) -> int:
        response = self._execute(
            lambda: self.admin_client.table(table)
            .select("*", count="exact", head=True)
            .execute()
        )
        return response.count or 0

    # --- helpers ---

    @staticmethod
    def _execute(call):
        try:
            return call()
        except PostgrestAPIError as exc:
            raise BackendError(exc.message or str(exc)) from exc

    def _single(self, call) -> Optional[dict]:
        rows = self._execute(call).data or []
        return rows[0] if rows else None


class InMemoryBackendClient:
    """Simple in-memory backend for development and tests."""

    def __init__(self, token_ttl: timedelta = timedelta(hours=1)):
        self.token_ttl = token_ttl
        self.accounts: dict[str, dict] = {}
        self.profiles: dict[str, dict] = {}
        self.archives: dict[str, dict] = {}
        self.tokens: dict[str, Identity] = {}
        # Insertion order breaks created_at ties when sorting newest first.
        self._sequence = itertools.count()
        self._order: dict[str, int] = {}

    def issue_token(self, user_id: str) -> str:
        """Mint a bearer token for an existing account."""
        account = self.accounts.get(user_id)
        if account is None:
            raise BackendError("User not found")
        now = _now()
        token = uuid.uuid4().hex
        self.tokens[token] = Identity(
            id=user_id,
            email=account["email"],
            issued_at=now,
            expiry=now + self.token_ttl,
        )
        return token

    # --- auth ---

    def get_identity(self, token: str) -> Optional[Identity]:
        identity = self.tokens.get(token)
        if identity is None or identity.expiry <= _now():
            return None
        return identity

    def sign_in(self, email: str, password: str) -> tuple[str, Session]:
        for user_id, account in self.accounts.items():
            if account["email"] == email and account["password"] == password:
                token = self.issue_token(user_id)
                identity = self.tokens[token]
                return user_id, Session(
                    access_token=token,
                    refresh_token=uuid.uuid4().hex,
                    expires_in=int(self.token_ttl.total_seconds()),
                    expires_at=int(identity.expiry.timestamp()),
                )
        raise AuthenticationError("Invalid login credentials")

    def sign_out(self, token: Optional[str] = None) -> None:
        if not token:
            return
        identity = self.tokens.get(token)
        if identity is None:
            return
        for key in [k for k, v in self.tokens.items() if v.id == identity.id]:
            del self.tokens[key]

    def create_account(self, name: str, email: str, password: str) -> Profile:
        if any(a["email"] == email for a in self.accounts.values()):
            raise BackendError("A user with this email address has already been registered")
        user_id = str(uuid.uuid4())
        self.accounts[user_id] = {"email": email, "password": password}
        now = _now()
        row = {
            "id": user_id,
            "name": name,
            "email": email,
            "role": Role.USER.value,
            "created_at": now,
            "updated_at": now,
        }
        self.profiles[user_id] = row
        self._order[user_id] = next(self._sequence)
        return _parse(Profile, row)

    def delete_account(self, user_id: str) -> None:
        self.profiles.pop(user_id, None)
        if self.accounts.pop(user_id, None) is None:
            raise BackendError("User not found")
        for key in [k for k, v in self.tokens.items() if v.id == user_id]:
            del self.tokens[key]

    # --- profiles ---

    def get_profile(self, user_id: str) -> Optional[Profile]:
        row = self.profiles.get(user_id)
        return _parse(Profile, row) if row is not None else None

    def update_profile(self, user_id: str, changes: dict) -> Optional[Profile]:
        row = self.profiles.get(user_id)
        if row is None:
            return None
        row.update(changes)
        row["updated_at"] = _now()
        return _parse(Profile, row)

    def list_profiles(self, page: int, limit: int) -> Page[Profile]:
        rows = self._newest_first(self.profiles.values())
        return Page[Profile](
            data=[_parse(Profile, row) for row in _slice(rows, page, limit)],
            pagination=Pagination.build(page, limit, len(rows)),
        )

    # --- archives ---

    def list_archives(self, owner_id: str) -> list[ArchiveItem]:
        rows = [r for r in self.archives.values() if r["created_by"] == owner_id]
        return [_parse(ArchiveItem, row) for row in self._newest_first(rows)]

    def list_all_archives(self, page: int, limit: int) -> Page[AdminArchiveItem]:
        rows = self._newest_first(self.archives.values())
        items = []
        for row in _slice(rows, page, limit):
            owner = self.profiles.get(row["created_by"]) or {}
            items.append(_parse(AdminArchiveItem, {**row, "owner_name": owner.get("name")}))
        return Page[AdminArchiveItem](
            data=items,
            pagination=Pagination.build(page, limit, len(rows)),
        )

    def search_archives(self, owner_id: str, query: str) -> list[ArchiveItem]:
        needle = query.casefold()
        rows = [
            r
            for r in self.archives.values()
            if r["created_by"] == owner_id
            and (
                needle in (r.get("title") or "").casefold()
                or needle in (r.get("description") or "").casefold()
            )
        ]
        return [_parse(ArchiveItem, row) for row in self._newest_first(rows)]

    def get_archive(self, archive_id: str) -> Optional[ArchiveItem]:
        row = self.archives.get(archive_id)
        return _parse(ArchiveItem, row) if row is not None else None

    def create_archive(self, data: dict) -> ArchiveItem:
        if data.get("created_by") not in self.profiles:
            raise BackendError(
                'insert or update on table "archive_items" violates foreign key constraint'
            )
        archive_id = str(uuid.uuid4())
        now = _now()
        row = {**data, "id": archive_id, "created_at": now, "updated_at": now}
        self.archives[archive_id] = row
        self._order[archive_id] = next(self._sequence)
        return _parse(ArchiveItem, row)

    def update_archive(self, archive_id: str, changes: dict) -> Optional[ArchiveItem]:
        row = self.archives.get(archive_id)
        if row is None:
            return None
        row.update(changes)
        row["updated_at"] = _now()
        return _parse(ArchiveItem, row)

    def delete_archive(self, archive_id: str) -> None:
        self.archives.pop(archive_id, None)

    # --- statistics ---

    def count_profiles(self) -> int:
        return len(self.profiles)

    def count_archives(self) -> int:
        return len(self.archives)

    def _newest_first(self, rows) -> list[dict]:
        return sorted(rows, key=lambda r: self._order.get(r["id"], 0), reverse=True)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _slice(rows: list, page: int, limit: int) -> list:
    offset = (page - 1) * limit
    return rows[offset:offset + limit]
