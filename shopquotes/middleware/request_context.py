"""
Per-request context: request ID, access log line and response time.

The request ID comes from the caller's X-Request-ID header or is generated
here. It is stored in a context variable so log records and error bodies
(trace_id) can refer to the request that caused them, and it is echoed back
on the response.
"""

import logging
import time
import uuid
from contextvars import ContextVar
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("shopquotes.access")

REQUEST_ID_HEADER = "X-Request-ID"

# PDF rendering is the slowest path; anything beyond this is worth a warning
SLOW_REQUEST_MS = 2000

_request_id: ContextVar[str] = ContextVar("request_id", default="")


def new_request_id() -> str:
    return uuid.uuid4().hex[:12]


def get_request_id() -> str:
    """Current request ID, or "-" outside a request."""
    return _request_id.get() or "-"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a request ID, time the request and log one line for it."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or new_request_id()
        token = _request_id.set(request_id)
        request.state.request_id = request_id
        start = time.perf_counter()
        try:
            response = await call_next(request)
            elapsed_ms = (time.perf_counter() - start) * 1000

            response.headers[REQUEST_ID_HEADER] = request_id
            response.headers["X-Response-Time"] = f"{elapsed_ms:.1f}ms"

            level = logging.WARNING if elapsed_ms >= SLOW_REQUEST_MS else logging.INFO
            logger.log(
                level,
                "%s %s -> %s (%.0fms)",
                request.method,
                request.url.path,
                response.status_code,
                elapsed_ms,
            )
            return response
        finally:
            _request_id.reset(token)


class RequestIdLogFilter(logging.Filter):
    """Adds ``request_id`` to every record so formatters can print it."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id()
        return True
