"""Request body helpers shared by the upload endpoints."""

import json
from dataclasses import dataclass
from typing import Any

from fastapi import Request
from starlette.datastructures import FormData
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException
from starlette.formparsers import MultiPartException

from upload_relay.errors import ClientInputError
from upload_relay.services.part_tracker import parse_text


@dataclass
class ReceivedFile:
    data: bytes
    filename: str | None
    content_type: str | None

    @property
    def size_mb(self) -> float:
        return len(self.data) / 1024 / 1024


async def read_json(request: Request) -> dict[str, Any]:
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ClientInputError("Request body must be valid JSON") from e
    if not isinstance(payload, dict):
        raise ClientInputError("Request body must be a JSON object")
    return payload


def json_text(payload: dict[str, Any], name: str) -> str | None:
    return parse_text(payload.get(name), name)


async def read_form(request: Request) -> FormData:
    try:
        return await request.form()
    except MultiPartException as e:
        raise ClientInputError(f"Malformed form data: {e.message}") from e
    except HTTPException as e:
        raise ClientInputError(f"Malformed form data: {e.detail}") from e


def form_text(form: FormData, name: str) -> str | None:
    value = form.get(name)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


async def form_file(form: FormData, name: str) -> ReceivedFile | None:
    """Read an uploaded file field fully into memory. Returns None when the field is absent."""
    value = form.get(name)
    if isinstance(value, UploadFile):
        data = await value.read()
        return ReceivedFile(data=data, filename=value.filename or None, content_type=value.content_type)
    return None


def is_json_request(request: Request) -> bool:
    return "application/json" in request.headers.get("content-type", "")
