"""HTTP middleware: access logging with the configuration segment masked."""

from __future__ import annotations

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

log = structlog.get_logger(__name__)

# First path segments that are routes, not a user configuration blob.
_PLAIN_SEGMENTS = frozenset({"api", "manifest.json", "docs", "openapi.json"})


def redact_path(path: str) -> str:
    """Mask the configuration segment of addon paths; it holds API keys."""
    parts = path.split("/", 2)
    if len(parts) == 3 and parts[1] not in _PLAIN_SEGMENTS:
        return f"/<config>/{parts[2]}"
    return path


class RequestLogMiddleware(BaseHTTPMiddleware):
    """One ``http_request`` event per request, with timing and status.

    The query string is never logged and the path is passed through
    ``redact_path``.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            log.info(
                "http_request",
                method=request.method,
                path=redact_path(request.url.path),
                status_code=status_code,
                duration_ms=round((time.perf_counter() - start) * 1000.0, 2),
                client_host=request.client.host if request.client else None,
            )
