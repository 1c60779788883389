"""
Quick Thoughts Backend: Rate Limiting Middleware
==================================================

What:  Sliding window limiter on POST /api/transcribe, the only route that
       spends Gemini quota.
How:   Each caller key keeps a list of request timestamps; timestamps older
       than the window are dropped; at the limit the request is rejected
       with 429 and Retry-After.

Caller key:
    The access token (hashed, never stored raw) when one is sent, else the
    client IP. Keying on the token keeps users behind one NAT apart.

Single-process only: state is in memory. Multiple workers each keep their
own counters.
"""

import hashlib
import logging
import time
from collections import defaultdict
from typing import Dict, List

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from quickthoughts.auth import extract_access_token
from quickthoughts.config import settings
from quickthoughts.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)


class RateLimitMiddleware(BaseHTTPMiddleware):
    LIMITED_ROUTES = {("POST", "/api/transcribe")}

    def __init__(self, app, **kwargs):
        super().__init__(app, **kwargs)
        self._requests: Dict[str, List[float]] = defaultdict(list)

    @staticmethod
    def caller_key(request: Request) -> str:
        token = extract_access_token(request)
        if token:
            return "user:" + hashlib.sha256(token.encode()).hexdigest()[:16]
        host = request.client.host if request.client else "unknown"
        return "ip:" + host

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if (request.method, request.url.path) not in self.LIMITED_ROUTES:
            return await call_next(request)

        key = self.caller_key(request)
        now = time.time()
        window_start = now - settings.rate_limit_window

        self._requests[key] = [ts for ts in self._requests[key] if ts > window_start]

        if len(self._requests[key]) >= settings.rate_limit_requests:
            oldest = self._requests[key][0]
            retry_after = int(oldest + settings.rate_limit_window - now) + 1
            logger.warning(
                "Rate limit exceeded for %s: %d clips in %ds window",
                key,
                len(self._requests[key]),
                settings.rate_limit_window,
            )
            return JSONResponse(
                status_code=429,
                content={
                    "error": "rate_limit_exceeded",
                    "message": f"Too many recordings. Please wait {retry_after} seconds.",
                    "details": {"retry_after": retry_after},
                    "request_id": request_id_var.get("") or None,
                },
                headers={"Retry-After": str(retry_after)},
            )

        self._requests[key].append(now)

        if len(self._requests) > 1000:
            self._cleanup_inactive(window_start)

        return await call_next(request)

    def _cleanup_inactive(self, window_start: float) -> None:
        inactive = [
            key for key, timestamps in self._requests.items()
            if not timestamps or timestamps[-1] < window_start
        ]
        for key in inactive:
            del self._requests[key]
        if inactive:
            logger.debug("Dropped %d inactive rate limit entries", len(inactive))
