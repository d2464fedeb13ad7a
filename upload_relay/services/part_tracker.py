"""Stores independently uploaded chunks for the concatenating assembler."""

import logging
import re
from dataclasses import dataclass
from typing import Any

from upload_relay.errors import ClientInputError
from upload_relay.services.object_store import ObjectStore


logger = logging.getLogger(__name__)

_PART_NUMBER_RE = re.compile(r"^\d+$")


@dataclass
class TrackedPart:
    url: str
    part_number: int


def parse_part_number(value: Any) -> int:
    """Parse a client-supplied part number. Only non-negative integers are accepted."""
    if value is None:
        raise ClientInputError("Missing partNumber")
    if isinstance(value, bool):
        raise ClientInputError(f"Invalid partNumber: {value!r}")
    if isinstance(value, int):
        if value < 0:
            raise ClientInputError(f"Invalid partNumber: {value!r}")
        return value
    if isinstance(value, str) and _PART_NUMBER_RE.match(value.strip()):
        return int(value.strip())
    raise ClientInputError(f"Invalid partNumber: {value!r}")


def parse_text(value: Any, name: str) -> str | None:
    """Return a client-supplied string field, or None when it is absent or blank. Non-strings are rejected."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ClientInputError(f"Invalid {name}: expected a string")
    return value.strip() or None


class PartTracker:
    """
    Records one part submission per call.

    Each chunk becomes its own transient object under
    ``{prefix}/{filename}/part-{NNNNN}``. Nothing is kept in memory between
    calls: the returned location and part number are what the client later
    sends back in its completion manifest.
    """

    def __init__(self, store: ObjectStore, key_prefix: str = "chunks") -> None:
        self.store = store
        self.key_prefix = key_prefix.strip("/")

    def part_key(self, filename: str, part_number: int) -> str:
        parts = [self.key_prefix, filename.strip("/"), f"part-{part_number:05d}"]
        return "/".join(p for p in parts if p)

    async def add_part(self, chunk: bytes | None, filename: str | None, part_number: Any) -> TrackedPart:
        if not chunk or not filename:
            raise ClientInputError("Missing chunk, filename, or partNumber")
        number = parse_part_number(part_number)

        stored = await self.store.store(
            self.part_key(filename, number),
            chunk,
            public=True,
            random_suffix=True,
            content_type="application/octet-stream",
        )
        logger.info(f"Stored part {number} of {filename} ({len(chunk) / 1024 / 1024:.2f} MB)")
        return TrackedPart(url=stored.url, part_number=number)
