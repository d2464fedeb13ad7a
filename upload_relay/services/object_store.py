"""
Object store contract shared by every storage backend.

All calls are asynchronous network operations. Failures surface as
``StorageError`` and are never retried here; retry policy belongs to the
caller. ``cleanup`` is the only entry point that swallows errors.
"""

import logging
import os
import secrets
from abc import ABC
from abc import abstractmethod
from dataclasses import dataclass
from dataclasses import field
from typing import Sequence


logger = logging.getLogger(__name__)


@dataclass
class StoredObject:
    url: str
    key: str
    size_bytes: int = 0


@dataclass
class MultipartSession:
    upload_id: str
    key: str


@dataclass
class UploadedPart:
    etag: str
    part_number: int


@dataclass
class UploadTarget:
    """Presigned location a client can PUT bytes to directly."""

    upload_url: str
    url: str
    key: str
    method: str = "PUT"
    expires_in: int | None = None
    headers: dict[str, str] = field(default_factory=dict)


def with_random_suffix(key: str) -> str:
    """Insert a short random token before the extension: ``a/b.pdf`` -> ``a/b-Xy3k9QpL.pdf``."""
    stem, ext = os.path.splitext(key)
    return f"{stem}-{secrets.token_urlsafe(6)}{ext}"


class ObjectStore(ABC):
    """Uniform contract over the storage provider's put/get/delete and multipart primitives."""

    @abstractmethod
    async def store(
        self,
        key: str,
        data: bytes,
        *,
        public: bool = True,
        random_suffix: bool = True,
        content_type: str | None = None,
    ) -> StoredObject:
        """Write ``data`` as one object and return its location."""

    @abstractmethod
    def manages(self, url: str) -> bool:
        """Return True when ``url`` points at an object inside this store."""

    @abstractmethod
    async def retrieve(self, url: str) -> bytes:
        """Fetch the full contents of the object at ``url``. URLs outside the store are refused."""

    @abstractmethod
    async def delete(self, urls: str | Sequence[str]) -> None:
        """Delete one or many objects by URL."""

    @abstractmethod
    async def create_multipart_upload(self, key: str) -> MultipartSession:
        """Open a provider-side multipart session for ``key``."""

    @abstractmethod
    async def upload_part(self, key: str, data: bytes, *, upload_id: str, part_number: int) -> UploadedPart:
        """Upload one part of an open multipart session."""

    @abstractmethod
    async def complete_multipart_upload(
        self, key: str, parts: Sequence[UploadedPart], *, upload_id: str
    ) -> StoredObject:
        """Ask the provider to assemble ``parts`` into the final object."""

    @abstractmethod
    async def create_upload_target(self, key: str, content_type: str) -> UploadTarget:
        """Reserve ``key`` and return a presigned target for a direct client upload."""


async def cleanup(store: ObjectStore, urls: str | Sequence[str]) -> None:
    """Best-effort delete of transient objects. Never raises.

    Failures are logged at WARNING and swallowed so they cannot override the
    outcome of the operation that owned the objects.
    """
    try:
        targets = [urls] if isinstance(urls, str) else [u for u in urls if u]
        if not targets:
            return
        await store.delete(targets)
        logger.info(f"Deleted {len(targets)} transient object(s)")
    except Exception as e:
        logger.warning(f"Failed to delete transient object(s) {urls!r}: {e}")
