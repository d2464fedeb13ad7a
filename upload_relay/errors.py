"""Error types and the uniform JSON error response for the upload relay."""

import logging
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse


logger = logging.getLogger(__name__)


class UploadRelayError(Exception):
    """Base class for errors translated into ``{error, detail?}`` responses."""

    status_code = 500

    def __init__(self, message: str, detail: str | None = None):
        self.message = message
        self.detail = detail
        super().__init__(message)


class ClientInputError(UploadRelayError):
    """Missing or malformed request fields. Raised before any side effect."""

    status_code = 400


class StorageError(UploadRelayError):
    """Object store put/get/delete or multipart call failed."""


class AssemblyError(UploadRelayError):
    """A part could not be retrieved while concatenating a chunked upload."""


class BackendProcessingError(UploadRelayError):
    """The backend processor answered with a non-success status."""


class BackendTimeoutError(BackendProcessingError):
    """The backend processor did not answer before the dispatch deadline."""


def error_response(message: str, status_code: int = 500, detail: str | None = None) -> JSONResponse:
    """Build the JSON error body shared by every endpoint.

    Args:
        message: Human-readable error message
        status_code: HTTP status code
        detail: Optional extra detail (e.g. the backend's own error message)
    """
    content: dict[str, Any] = {"error": message}
    if detail:
        content["detail"] = detail
    return JSONResponse(content=content, status_code=status_code)


async def upload_relay_error_handler(request: Request, exc: UploadRelayError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}", exc_info=exc)
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.message}")
    return error_response(exc.message, status_code=exc.status_code, detail=exc.detail)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler: anything that is not an UploadRelayError becomes a plain 500."""
    logger.error(f"{request.method} {request.url.path} crashed: {exc}", exc_info=exc)
    return error_response("Internal server error", status_code=500)
