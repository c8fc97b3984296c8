"""
Request context middleware.

Every request gets an id (the client's X-Request-ID or a fresh one) and,
when the route names a learner, the handle. Both go into the logging
context vars for the duration of the request. Calls that reach the judge
are logged with their latency; anything slower than SLOW_REQUEST_MS is a
warning.
"""

import time
import uuid
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from cfplanner.api.middleware.rate_limit import scope_for
from cfplanner.config import get_settings
from cfplanner.logging_config import get_logger, handle_var, request_id_var

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
RESPONSE_TIME_HEADER = "X-Response-Time-Ms"

SLOW_REQUEST_MS = 3000

# Route name -> position of the handle among the segments that follow it
_HANDLE_SEGMENT = {
    "stats": 0,
    "daily": 0,
    "submit": 0,
    "sync": 0,
    "recent": 1,
}


def handle_from_request(path: str, query_handle: Optional[str], api_prefix: str) -> Optional[str]:
    """The learner a request is about, from ?handle= or the route path."""
    if query_handle:
        return query_handle
    if not path.startswith(api_prefix):
        return None
    segments = [s for s in path[len(api_prefix):].split("/") if s]
    if not segments or segments[0] not in _HANDLE_SEGMENT:
        return None
    position = 1 + _HANDLE_SEGMENT[segments[0]]
    return segments[position] if len(segments) > position else None


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        settings = get_settings()
        path = request.url.path or ""
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id

        id_token = request_id_var.set(request_id)
        handle_token = handle_var.set(
            handle_from_request(path, request.query_params.get("handle"), settings.api_prefix)
        )
        start = time.perf_counter()
        try:
            response = await call_next(request)
            elapsed_ms = round((time.perf_counter() - start) * 1000, 1)
            response.headers[REQUEST_ID_HEADER] = request_id
            response.headers[RESPONSE_TIME_HEADER] = str(elapsed_ms)

            fields = {
                "path": path,
                "method": request.method,
                "status_code": response.status_code,
                "duration_ms": elapsed_ms,
            }
            if elapsed_ms > SLOW_REQUEST_MS:
                logger.warning("Slow request", extra=fields)
            elif scope_for(path, request.method, settings.api_prefix) == "judge":
                logger.info("Judge-backed request", extra=fields)
            return response
        finally:
            handle_var.reset(handle_token)
            request_id_var.reset(id_token)
