"""
Server-side upload proxy for large files.

Two request modes:

1. JSON body ``{url, filename}``: the file already sits in object storage
   (direct client upload or a completed chunked upload). The URL is handed
   to the backend processor and the object is deleted afterwards.

2. Form body ``file`` + ``filename``: the file is stored server-side as a
   transient object, processed, then deleted. When the store is unavailable
   the bytes are forwarded straight to the backend instead.
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
from upload_relay.api.requests import is_json_request
from upload_relay.api.requests import json_text
from upload_relay.api.requests import read_form
from upload_relay.api.requests import read_json
from upload_relay.errors import ClientInputError
from upload_relay.errors import StorageError
from upload_relay.services.dispatcher import BackendTarget
from upload_relay.services.dispatcher import ProcessingDispatcher
from upload_relay.services.object_store import ObjectStore
from upload_relay.tracing import set_upload_attributes
from upload_relay.tracing import trace_upload_operation


logger = logging.getLogger(__name__)
router = APIRouter(tags=["upload"])


@router.post("/upload-large")
@trace_upload_operation("upload_large")
async def upload_large(
    request: Request,
    store: ObjectStore = Depends(dependencies.get_object_store),
    dispatcher: ProcessingDispatcher = Depends(dependencies.get_dispatcher),
    backend: BackendTarget = Depends(dependencies.get_backend_target),
) -> Response:
    if is_json_request(request):
        payload = await read_json(request)
        url = json_text(payload, "url")
        filename = json_text(payload, "filename")
        if not url or not filename:
            raise ClientInputError("Missing url or filename")

        set_upload_attributes(filename=filename, mode="url")
        logger.info(f"Processing from stored URL: {filename}")
        result = await dispatcher.dispatch(url, filename, backend)
        return JSONResponse(content=result)

    form = await read_form(request)
    received = await form_file(form, "file")
    if received is None:
        raise ClientInputError("No file provided")

    filename = form_text(form, "filename") or received.filename
    if not filename:
        raise ClientInputError("No filename provided")

    set_upload_attributes(filename=filename, mode="form", size_bytes=len(received.data))
    logger.info(f"Received file: {filename} ({received.size_mb:.2f} MB)")

    try:
        stored = await store.store(
            filename,
            received.data,
            public=True,
            random_suffix=True,
            content_type=received.content_type,
        )
    except StorageError as e:
        logger.warning(f"Transient store unavailable, forwarding {filename} directly to backend: {e}")
        result = await dispatcher.forward_file(received.data, filename, backend, received.content_type)
        return JSONResponse(content=result)

    logger.info(f"Stored transient object: {stored.url}")
    result = await dispatcher.dispatch(stored.url, filename, backend)
    return JSONResponse(content=result)
