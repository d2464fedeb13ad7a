"""
Chunked upload endpoint for files larger than one request body.

Client flow (multipart strategy):
1. POST ?action=create   { filename }                     -> { uploadId, key }
2. POST ?action=part     form(chunk, uploadId, key, partNumber) -> { etag, partNumber }   (repeat per chunk)
3. POST ?action=complete { uploadId, key, parts }          -> { url }

Client flow (concatenate strategy):
1. POST ?action=part     form(chunk, filename, partNumber) -> { url, partNumber }     (repeat per chunk)
2. POST ?action=complete { filename, parts: [{url, partNumber}] } -> { url }

The returned url is then handed to POST /upload-large for processing.
"""

import logging

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Request
from fastapi import Response
from fastapi.responses import JSONResponse

from upload_relay import dependencies
from upload_relay.api.requests import form_file
from upload_relay.api.requests import form_text
from upload_relay.api.requests import json_text
from upload_relay.api.requests import read_form
from upload_relay.api.requests import read_json
from upload_relay.api.schemas import CompleteUploadResponse
from upload_relay.api.schemas import CreateUploadResponse
from upload_relay.api.schemas import PartUploadResponse
from upload_relay.errors import ClientInputError
from upload_relay.services.assembler import Assembler
from upload_relay.services.assembler import CompletionManifest
from upload_relay.services.assembler import PartSubmission
from upload_relay.tracing import set_upload_attributes
from upload_relay.tracing import trace_upload_operation


logger = logging.getLogger(__name__)
router = APIRouter(tags=["upload-chunk"])


@router.post("/upload-chunk")
@trace_upload_operation("chunk")
async def upload_chunk(
    request: Request,
    action: str | None = None,
    assembler: Assembler = Depends(dependencies.get_assembler),
) -> Response:
    """Dispatch on ``?action=create|part|complete``."""
    set_upload_attributes(strategy=assembler.strategy)

    if action == "create":
        return await handle_create(request, assembler)
    if action == "part":
        return await handle_part(request, assembler)
    if action == "complete":
        return await handle_complete(request, assembler)

    raise ClientInputError(f"Unknown action: {action}")


async def handle_create(request: Request, assembler: Assembler) -> Response:
    payload = await read_json(request)
    filename = json_text(payload, "filename")
    set_upload_attributes(filename=filename)

    session = await assembler.create(filename)

    body = CreateUploadResponse(upload_id=session.upload_id, key=session.key)
    return JSONResponse(content=body.model_dump(by_alias=True))


async def handle_part(request: Request, assembler: Assembler) -> Response:
    form = await read_form(request)
    chunk = await form_file(form, "chunk")

    submission = PartSubmission(
        chunk=chunk.data if chunk else None,
        part_number=form_text(form, "partNumber"),
        filename=form_text(form, "filename"),
        upload_id=form_text(form, "uploadId"),
        key=form_text(form, "key"),
    )
    set_upload_attributes(
        filename=submission.filename,
        upload_id=submission.upload_id,
        part_number=submission.part_number,
    )

    receipt = await assembler.add_part(submission)

    body = PartUploadResponse(part_number=receipt.part_number, url=receipt.url, etag=receipt.etag)
    return JSONResponse(content=body.model_dump(by_alias=True, exclude_none=True))


async def handle_complete(request: Request, assembler: Assembler) -> Response:
    manifest = CompletionManifest.from_payload(await read_json(request))
    set_upload_attributes(
        filename=manifest.filename,
        upload_id=manifest.upload_id,
        parts=len(manifest.parts),
    )

    stored = await assembler.complete(manifest)

    return JSONResponse(content=CompleteUploadResponse(url=stored.url).model_dump())
