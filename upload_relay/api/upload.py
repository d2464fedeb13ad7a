"""Single-request upload for files that fit in one request body."""

import logging
from typing import Any

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Request
from fastapi import Response
from fastapi.responses import JSONResponse

from upload_relay import dependencies
from upload_relay.api.requests import form_file
from upload_relay.api.requests import form_text
from upload_relay.api.requests import read_form
from upload_relay.errors import ClientInputError
from upload_relay.errors import UploadRelayError
from upload_relay.errors import error_response
from upload_relay.services.dispatcher import BackendTarget
from upload_relay.services.dispatcher import ProcessingDispatcher
from upload_relay.services.object_store import ObjectStore
from upload_relay.tracing import set_upload_attributes
from upload_relay.tracing import trace_upload_operation


logger = logging.getLogger(__name__)
router = APIRouter(tags=["upload"])


def _with_success(result: Any) -> dict[str, Any]:
    if isinstance(result, dict):
        return {"success": True, **result}
    return {"success": True, "result": result}


@router.post("/upload")
@trace_upload_operation("upload")
async def upload(
    request: Request,
    store: ObjectStore = Depends(dependencies.get_object_store),
    dispatcher: ProcessingDispatcher = Depends(dependencies.get_dispatcher),
    backend: BackendTarget = Depends(dependencies.get_backend_target),
) -> Response:
    """Store the file as a transient object, process it, and return ``{success, ...result}``."""
    form = await read_form(request)
    received = await form_file(form, "file")
    if received is None:
        raise ClientInputError("No file provided")

    filename = form_text(form, "filename") or received.filename
    if not filename:
        raise ClientInputError("No filename provided")

    set_upload_attributes(filename=filename, size_bytes=len(received.data))
    logger.info(f"Received file: {filename} ({received.size_mb:.2f} MB)")

    try:
        stored = await store.store(
            filename,
            received.data,
            public=True,
            random_suffix=True,
            content_type=received.content_type,
        )
        result = await dispatcher.dispatch(stored.url, filename, backend)
    except ClientInputError:
        raise
    except UploadRelayError as e:
        logger.error(f"Upload of {filename} failed: {e.message}")
        return error_response("Upload failed", status_code=e.status_code, detail=e.detail or e.message)

    return JSONResponse(content=_with_success(result))
