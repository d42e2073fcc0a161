"""
Civil Registry Backend - Request Logging Middleware
====================================================

What:  One access-log line per HTTP request.
How:   Measures the time spent in the rest of the stack and logs method,
       path, status, duration, request ID and client IP. The level follows
       the status class: 5xx → ERROR, 4xx → WARNING, else INFO.

Example:
    2024-01-15T12:00:00 [INFO] civil_registry.access: POST /api/residents 201 18.4ms [3f2a9c1d] from 10.0.0.7

Privacy:
    Request and response bodies are never logged; resident records are PII.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from civil_registry.middleware.request_id import request_id_var

logger = logging.getLogger("civil_registry.access")

# Probed every few seconds by orchestrators
QUIET_PATHS = {"/health"}


def level_for(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


def download_name(response: Response) -> str:
    """Filename of an export download, or '' for ordinary responses."""
    disposition = response.headers.get("content-disposition", "")
    _, _, name = disposition.partition("filename=")
    return name.strip('"')


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Access log with request-ID correlation; exports also log the file name."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in QUIET_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        peer = request.client.host if request.client else "unknown"
        rid = request_id_var.get("")
        line = "%s %s %d %.1fms [%s] from %s"
        args = [request.method, request.url.path, response.status_code, elapsed_ms, rid, peer]

        filename = download_name(response)
        if filename:
            line += " file=%s"
            args.append(filename)

        logger.log(level_for(response.status_code), line, *args)
        return response
