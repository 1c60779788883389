"""
Quick Thoughts Backend: Request Logging Middleware
====================================================

What:  One access-log line per request: method, path, status, duration.
Who:   Runs inside RequestIDMiddleware, so the line carries the request id.

Privacy: bodies are never logged. Audio clips and transcriptions are user
content, and Authorization headers carry session tokens.

Typical durations:
    GET /api/folders      10-50ms
    POST /api/transcribe  3-15s (Gemini dominates)
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("quickthoughts.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    QUIET_PATHS = {"/health"}

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in self.QUIET_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else "unknown"

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        logger.log(
            log_level,
            "%s %s %d %.1fms from %s",
            request.method,
            path,
            status,
            duration_ms,
            client_ip,
        )
        return response
