"""Hands assembled uploads to the backend processor and deletes the transient object afterwards."""

import asyncio
import io
import logging
from dataclasses import dataclass
from dataclasses import field
from typing import Any

import httpx

from upload_relay.errors import BackendProcessingError
from upload_relay.errors import BackendTimeoutError
from upload_relay.services.object_store import ObjectStore
from upload_relay.services.object_store import cleanup


logger = logging.getLogger(__name__)


@dataclass
class BackendTarget:
    """Resolved backend location for one request."""

    base_url: str
    headers: dict[str, str] = field(default_factory=dict)

    def endpoint(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"


def extract_error_detail(response: httpx.Response) -> str | None:
    """Return the backend's ``detail`` message when the body carries one."""
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and isinstance(body.get("detail"), str):
        return body["detail"]
    return None


class ProcessingDispatcher:
    """
    Submits a stored object's URL to the backend processor.

    The backend call is bounded by a wall-clock deadline measured from the
    start of the dispatch. The transient object is deleted only after the
    backend call has settled, on success and failure alike, so the backend
    always has a valid URL while it is processing.
    """

    def __init__(self, store: ObjectStore, client: httpx.AsyncClient, timeout_seconds: float = 240.0) -> None:
        self.store = store
        self.client = client
        self.timeout_seconds = timeout_seconds

    async def dispatch(self, url: str, filename: str, backend: BackendTarget) -> Any:
        """Process the object at ``url`` and delete it exactly once afterwards.

        Raises:
            BackendProcessingError: non-success status from the backend
            BackendTimeoutError: the deadline elapsed first
        """
        try:
            result = await self._post(backend, "/upload-from-url", json={"url": url, "filename": filename})
            logger.info(f"Processing complete for {filename}")
            return result
        finally:
            await cleanup(self.store, url)

    async def forward_file(
        self,
        data: bytes,
        filename: str,
        backend: BackendTarget,
        content_type: str | None = None,
    ) -> Any:
        """Send the file bytes straight to the backend. Nothing is stored, so nothing is deleted."""
        files = {"file": (filename, io.BytesIO(data), content_type or "application/octet-stream")}
        result = await self._post(backend, "/upload", files=files, data={"filename": filename})
        logger.info(f"Direct upload complete for {filename}")
        return result

    async def _post(self, backend: BackendTarget, path: str, **kwargs: Any) -> Any:
        target = backend.endpoint(path)
        try:
            response = await asyncio.wait_for(
                self.client.post(target, headers=backend.headers, **kwargs),
                timeout=self.timeout_seconds,
            )
        except (TimeoutError, httpx.TimeoutException) as e:
            raise BackendTimeoutError(f"Backend processing timed out after {self.timeout_seconds:g}s") from e
        except httpx.HTTPError as e:
            raise BackendProcessingError(f"Backend request failed: {e}") from e

        if not response.is_success:
            raise BackendProcessingError(
                f"Backend processing failed: {response.status_code}",
                detail=extract_error_detail(response),
            )

        try:
            return response.json()
        except ValueError as e:
            raise BackendProcessingError("Backend returned a non-JSON response") from e
