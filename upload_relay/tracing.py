from functools import wraps
from typing import Any
from typing import Callable
from typing import Optional

from fastapi import Request
from fastapi import Response
from opentelemetry import trace
from opentelemetry.trace import Status
from opentelemetry.trace import StatusCode


tracer = trace.get_tracer(__name__)


def set_upload_attributes(**attributes: Any) -> None:
    """Attach upload context (filename, part number, upload id) to the active span. None values are skipped."""
    span = trace.get_current_span()
    for key, value in attributes.items():
        if value is not None:
            span.set_attribute(f"upload.{key}", value if isinstance(value, (str, int, float, bool)) else str(value))


def trace_upload_operation(operation_name: str) -> Callable[[Callable], Callable]:
    """
    Decorator to trace upload endpoints.

    Captures HTTP details (method, route, query), the response status code
    and error details. Handlers add upload-specific context through
    ``set_upload_attributes`` once the request body is parsed.

    Example usage:
        @trace_upload_operation("chunk")
        async def upload_chunk(request: Request, ...):
            ...
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            request: Optional[Request] = kwargs.get("request")

            with tracer.start_as_current_span(f"upload.{operation_name}") as span:
                span.set_attribute("upload.operation", operation_name)

                if request:
                    span.set_attribute("http.method", request.method)
                    span.set_attribute("http.route", request.url.path)
                    query_params = dict(request.query_params)
                    if query_params:
                        span.set_attribute("upload.query_params", str(query_params))
                    if "action" in query_params:
                        span.set_attribute("upload.action", query_params["action"])

                try:
                    result = await func(*args, **kwargs)

                    if isinstance(result, Response):
                        span.set_attribute("http.status_code", result.status_code)
                        if 400 <= result.status_code < 600:
                            span.set_status(Status(StatusCode.ERROR))
                            span.set_attribute("error", True)
                        else:
                            span.set_status(Status(StatusCode.OK))

                    return result

                except Exception as e:
                    span.record_exception(e)
                    span.set_status(Status(StatusCode.ERROR, str(e)))
                    span.set_attribute("error", True)
                    span.set_attribute("error.type", type(e).__name__)
                    span.set_attribute("error.message", str(e))
                    raise

        return wrapper

    return decorator
