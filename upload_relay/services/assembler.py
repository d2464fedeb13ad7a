"""
Chunked-upload assembly strategies.

Two interchangeable implementations of one contract:

- ``ConcatenatingAssembler`` stores every chunk as its own object, then on
  completion fetches all parts, joins them in ascending part-number order
  and stores the result as a single object. Needed when the provider's
  minimum multipart part size is larger than the largest request body the
  platform accepts.
- ``MultipartAssembler`` delegates to the provider's native multipart
  upload and only forwards ETags on completion.

The strategy is picked once per process from configuration via
``get_assembler``.
"""

import asyncio
import logging
from abc import ABC
from abc import abstractmethod
from dataclasses import dataclass
from dataclasses import field
from typing import Any

from upload_relay.config import STRATEGY_CONCATENATE
from upload_relay.config import STRATEGY_MULTIPART
from upload_relay.errors import AssemblyError
from upload_relay.errors import ClientInputError
from upload_relay.services.object_store import MultipartSession
from upload_relay.services.object_store import ObjectStore
from upload_relay.services.object_store import StoredObject
from upload_relay.services.object_store import UploadedPart
from upload_relay.services.object_store import cleanup
from upload_relay.services.object_store import with_random_suffix
from upload_relay.services.part_tracker import PartTracker
from upload_relay.services.part_tracker import parse_part_number
from upload_relay.services.part_tracker import parse_text
from upload_relay.utils import async_timing_context


logger = logging.getLogger(__name__)


@dataclass
class PartSubmission:
    """One ``action=part`` request, whichever strategy is active."""

    chunk: bytes | None
    part_number: Any
    filename: str | None = None
    upload_id: str | None = None
    key: str | None = None


@dataclass
class PartReceipt:
    part_number: int
    url: str | None = None
    etag: str | None = None


@dataclass
class ManifestPart:
    part_number: int
    url: str | None = None
    etag: str | None = None


@dataclass
class CompletionManifest:
    """Client-supplied list of part references used to rebuild the file."""

    filename: str | None = None
    upload_id: str | None = None
    key: str | None = None
    parts: list[ManifestPart] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: Any) -> "CompletionManifest":
        if not isinstance(payload, dict):
            raise ClientInputError("Request body must be a JSON object")

        raw_parts = payload.get("parts") or []
        if not isinstance(raw_parts, list):
            raise ClientInputError("parts must be a list")

        parts = []
        for raw in raw_parts:
            if not isinstance(raw, dict):
                raise ClientInputError("Each part must be an object")
            parts.append(
                ManifestPart(
                    part_number=parse_part_number(raw.get("partNumber")),
                    url=parse_text(raw.get("url"), "url"),
                    etag=parse_text(raw.get("etag"), "etag"),
                )
            )

        return cls(
            filename=parse_text(payload.get("filename"), "filename"),
            upload_id=parse_text(payload.get("uploadId"), "uploadId"),
            key=parse_text(payload.get("key"), "key"),
            parts=parts,
        )


class Assembler(ABC):
    """Drives create -> part* -> complete for one assembly strategy."""

    strategy: str

    @abstractmethod
    async def create(self, filename: str | None) -> MultipartSession:
        """Open an upload session."""

    @abstractmethod
    async def add_part(self, submission: PartSubmission) -> PartReceipt:
        """Accept one chunk. Safe to call concurrently and in any order."""

    @abstractmethod
    async def complete(self, manifest: CompletionManifest) -> StoredObject:
        """Produce the single final object from a complete part set."""


class ConcatenatingAssembler(Assembler):
    strategy = STRATEGY_CONCATENATE

    def __init__(self, store: ObjectStore, tracker: PartTracker) -> None:
        self.store = store
        self.tracker = tracker

    async def create(self, filename: str | None) -> MultipartSession:
        raise ClientInputError(f"Action 'create' is not supported by the {self.strategy} assembly strategy")

    async def add_part(self, submission: PartSubmission) -> PartReceipt:
        tracked = await self.tracker.add_part(submission.chunk, submission.filename, submission.part_number)
        return PartReceipt(part_number=tracked.part_number, url=tracked.url)

    async def complete(self, manifest: CompletionManifest) -> StoredObject:
        filename = manifest.filename
        if not filename or not manifest.parts:
            raise ClientInputError("Missing filename or parts")
        if any(not p.url for p in manifest.parts):
            raise ClientInputError("Every part needs a url")
        foreign = [p.url for p in manifest.parts if p.url and not self.store.manages(p.url)]
        if foreign:
            raise ClientInputError(f"Part url is not managed by this store: {foreign[0]}")
        numbers = [p.part_number for p in manifest.parts]
        if len(set(numbers)) != len(numbers):
            raise ClientInputError("Duplicate partNumber in parts")

        # Arrival order is irrelevant, part numbers are authoritative
        ordered = sorted(manifest.parts, key=lambda p: p.part_number)
        urls = [str(p.url) for p in ordered]

        try:
            async with async_timing_context("assemble_parts", extra={"filename": filename, "parts": len(urls)}):
                buffers = await self._retrieve_all(urls)
                combined = b"".join(buffers)
                total_size = sum(len(b) for b in buffers)
                logger.info(f"Combined {len(buffers)} parts of {filename} ({total_size / 1024 / 1024:.2f} MB)")

                stored = await self.store.store(filename, combined, public=True, random_suffix=True)
        finally:
            await cleanup(self.store, urls)

        logger.info(f"Chunked upload complete: {stored.url}")
        return stored

    async def _retrieve_all(self, urls: list[str]) -> list[bytes]:
        """Fetch every part concurrently. The first failure aborts the rest."""
        tasks = [asyncio.ensure_future(self.store.retrieve(url)) for url in urls]
        try:
            return list(await asyncio.gather(*tasks))
        except Exception as e:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise AssemblyError(f"Failed to retrieve part: {e}") from e


class MultipartAssembler(Assembler):
    strategy = STRATEGY_MULTIPART

    def __init__(self, store: ObjectStore) -> None:
        self.store = store

    async def create(self, filename: str | None) -> MultipartSession:
        if not filename:
            raise ClientInputError("Missing filename")

        session = await self.store.create_multipart_upload(with_random_suffix(filename))
        logger.info(f"Created multipart upload: key={session.key}, uploadId={session.upload_id}")
        return session

    async def add_part(self, submission: PartSubmission) -> PartReceipt:
        if not submission.chunk or not submission.upload_id or not submission.key:
            raise ClientInputError("Missing chunk, uploadId, key, or partNumber")
        number = parse_part_number(submission.part_number)

        part = await self.store.upload_part(
            submission.key,
            submission.chunk,
            upload_id=submission.upload_id,
            part_number=number,
        )
        logger.info(f"Uploaded part {number} ({len(submission.chunk) / 1024 / 1024:.2f} MB)")
        return PartReceipt(part_number=part.part_number, etag=part.etag)

    async def complete(self, manifest: CompletionManifest) -> StoredObject:
        if not manifest.upload_id or not manifest.key or not manifest.parts:
            raise ClientInputError("Missing uploadId, key, or parts")
        if any(not p.etag for p in manifest.parts):
            raise ClientInputError("Every part needs an etag")

        # Passed through in caller order; the provider owns part lifecycle from here
        parts = [UploadedPart(etag=str(p.etag), part_number=p.part_number) for p in manifest.parts]
        stored = await self.store.complete_multipart_upload(manifest.key, parts, upload_id=manifest.upload_id)

        logger.info(f"Multipart upload complete: {stored.url}")
        return stored


def get_assembler(strategy: str, store: ObjectStore, key_prefix: str = "chunks") -> Assembler:
    """Return the assembler for the configured strategy."""
    if strategy == STRATEGY_CONCATENATE:
        return ConcatenatingAssembler(store, PartTracker(store, key_prefix))
    if strategy == STRATEGY_MULTIPART:
        return MultipartAssembler(store)
    raise ValueError(f"Unknown assembly strategy: {strategy}")
