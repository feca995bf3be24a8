"""
Storage abstraction for Supabase Storage and in-memory testing.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Protocol
from urllib.parse import unquote, urlparse

from supabase import Client, StorageException

from archive_api.errors import BackendError
from archive_api.schemas import FileMetadata, StoredFile

PUBLIC_OBJECT_SEGMENT = "/object/public/"


def build_object_path(owner_id: str, filename: str, now: float | None = None) -> str:
    """Key a new blob as ``{owner_id}/{timestamp_ms}-{filename}``."""
    millis = int((time.time() if now is None else now) * 1000)
    return f"{owner_id}/{millis}-{filename}"


def object_path_from_url(file_url: str, bucket: str) -> str:
    """
    Recover the object path from a public URL of the form
    ``.../object/public/<bucket>/<path>``.
    """
    path = unquote(urlparse(file_url).path)
    marker = f"{PUBLIC_OBJECT_SEGMENT}{bucket}/"
    index = path.find(marker)
    if index < 0:
        raise ValueError(f"URL does not point into bucket {bucket!r}: {file_url}")
    object_path = path[index + len(marker):]
    if not object_path:
        raise ValueError(f"URL has no object path: {file_url}")
    return object_path


class StorageClient(Protocol):
    """Defines the operations the API needs from object storage."""

    def upload_file(
        self, owner_id: str, filename: str, content: bytes, content_type: str
    ) -> StoredFile:
        ...

    def delete_file(self, file_url: str) -> None:
        ...

    def public_url(self, path: str) -> str:
        ...


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    base_url: str = "https://example.test/storage/v1"
    bucket: str = "archive-files"
    stored_objects: dict = field(default_factory=dict)

    def upload_file(
        self, owner_id: str, filename: str, content: bytes, content_type: str
    ) -> StoredFile:
        path = build_object_path(owner_id, filename)
        self.stored_objects[path] = content
        return StoredFile(
            url=self.public_url(path),
            metadata=FileMetadata(name=filename, size=len(content), type=content_type),
        )

    def delete_file(self, file_url: str) -> None:
        try:
            path = object_path_from_url(file_url, self.bucket)
        except ValueError as exc:
            raise BackendError(str(exc)) from exc
        if path not in self.stored_objects:
            raise BackendError(f"Object not found: {path}")
        del self.stored_objects[path]

    def public_url(self, path: str) -> str:
        return f"{self.base_url}{PUBLIC_OBJECT_SEGMENT}{self.bucket}/{path}"


class SupabaseStorageClient:
    """Supabase Storage bucket accessed through the standard client."""

    def __init__(self, client: Client, bucket: str):
        self._client = client
        self.bucket = bucket

    def _bucket(self):
        return self._client.storage.from_(self.bucket)

    def upload_file(
        self, owner_id: str, filename: str, content: bytes, content_type: str
    ) -> StoredFile:
        path = build_object_path(owner_id, filename)
        try:
            self._bucket().upload(
                path=path,
                file=content,
                file_options={"content-type": content_type},
            )
        except StorageException as exc:
            raise BackendError(_storage_message(exc)) from exc
        return StoredFile(
            url=self.public_url(path),
            metadata=FileMetadata(name=filename, size=len(content), type=content_type),
        )

    def delete_file(self, file_url: str) -> None:
        try:
            path = object_path_from_url(file_url, self.bucket)
        except ValueError as exc:
            raise BackendError(str(exc)) from exc
        try:
            self._bucket().remove([path])
        except StorageException as exc:
            raise BackendError(_storage_message(exc)) from exc

    def public_url(self, path: str) -> str:
        return self._bucket().get_public_url(path).rstrip("?")


def _storage_message(exc: StorageException) -> str:
    # storage3 raises with a dict payload ({"statusCode", "error", "message"}).
    payload = exc.args[0] if exc.args else None
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return str(exc)
