"""Logging middleware for FastAPI.

Adds a per-request UUID, binds it (plus client IP) into the logging contextvars
and writes one access-log line with latency once the response is ready.
"""

import time
import uuid
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from socialapp.core.logging_config import (
    bind_request_context,
    log_request,
    reset_request_context,
)

REQUEST_ID_HEADER = "X-Request-ID"


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log HTTP requests/responses with timing and a correlation id."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id
        ip_address = request.client.host if request.client else "unknown"

        tokens = bind_request_context(request_id=request_id, ip_address=ip_address)
        start_time = time.perf_counter()

        response: Optional[Response] = None
        try:
            response = await call_next(request)
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            log_request(
                method=request.method,
                endpoint=request.url.path,
                status_code=response.status_code if response else 500,
                duration_ms=duration_ms,
                ip_address=ip_address,
                user_id=getattr(request.state, "user_id", None),
                request_id=request_id,
            )
            reset_request_context(tokens)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
