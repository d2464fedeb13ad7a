from typing import Awaitable
from typing import Callable

from fastapi import Request
from fastapi import Response

from upload_relay.services.ray_id_service import generate_ray_id
from upload_relay.services.ray_id_service import ray_id_context


RAY_ID_HEADER = "X-Upload-Relay-Ray-ID"


async def ray_id_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    """Ray ID middleware that generates a unique ID for each request.

    Sets the ray ID in the contextvar read by the logging filter and echoes
    it in the response headers.
    """
    ray_id = generate_ray_id()
    ray_id_context.set(ray_id)

    response = await call_next(request)

    response.headers[RAY_ID_HEADER] = ray_id

    return response
