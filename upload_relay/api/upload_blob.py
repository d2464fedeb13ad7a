"""
Presigned targets for direct browser-to-storage uploads.

Lets clients bypass the request body ceiling entirely: the client PUTs the
file to ``uploadUrl`` and then calls POST /upload-large with
``{url, filename}``.
"""

import logging
import mimetypes

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Request
from fastapi import Response
from fastapi.responses import JSONResponse

from upload_relay import dependencies
from upload_relay.api.requests import json_text
from upload_relay.api.requests import read_json
from upload_relay.api.schemas import UploadTargetResponse
from upload_relay.config import Config
from upload_relay.errors import ClientInputError
from upload_relay.services.object_store import ObjectStore
from upload_relay.tracing import set_upload_attributes
from upload_relay.tracing import trace_upload_operation


logger = logging.getLogger(__name__)
router = APIRouter(tags=["upload"])


@router.post("/upload-blob")
@trace_upload_operation("upload_blob")
async def create_upload_target(
    request: Request,
    store: ObjectStore = Depends(dependencies.get_object_store),
    config: Config = Depends(dependencies.get_config),
) -> Response:
    payload = await read_json(request)
    filename = json_text(payload, "filename") or json_text(payload, "pathname")
    if not filename:
        raise ClientInputError("Missing filename")

    content_type = json_text(payload, "contentType") or mimetypes.guess_type(filename)[0]
    if content_type not in config.allowed_upload_content_types:
        raise ClientInputError(f"Content type not allowed: {content_type}")

    original_filename = json_text(payload, "originalFilename") or filename
    set_upload_attributes(filename=original_filename, content_type=content_type)

    target = await store.create_upload_target(filename, content_type)
    logger.info(f"Issued direct upload target: key={target.key}, filename={original_filename}")

    body = UploadTargetResponse(
        upload_url=target.upload_url,
        url=target.url,
        key=target.key,
        method=target.method,
        headers=target.headers,
        expires_in=target.expires_in,
        original_filename=original_filename,
    )
    return JSONResponse(content=body.model_dump(by_alias=True))
