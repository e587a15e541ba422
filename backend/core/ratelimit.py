# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Per-IP fixed-window rate limiting.

Counters live in process memory, so the limit applies per worker.  Over the
limit the request is answered with 429 in the standard error envelope and
``Retry-After`` set to the seconds left in the window.
"""

import threading
import time

from fastapi import Request
from fastapi.responses import JSONResponse, Response
from starlette.middleware.base import BaseHTTPMiddleware

from core.logger import logger
from core.security import get_client_ip


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, limit: int, window_seconds: int, excluded_paths=("/health",)):
        super().__init__(app)
        self.limit = limit
        self.window = window_seconds
        self.excluded_paths = tuple(excluded_paths)
        # ip -> (window start, count)
        self._hits: dict[str, tuple[float, int]] = {}
        self._lock = threading.Lock()

    def _hit(self, ip: str) -> tuple[bool, int, int]:
        """Count one request.  Returns (allowed, remaining, seconds until reset)."""
        now = time.monotonic()
        with self._lock:
            start, count = self._hits.get(ip, (now, 0))
            if now - start >= self.window:
                start, count = now, 0
            count += 1
            self._hits[ip] = (start, count)
            # Drop idle entries once the table grows
            if len(self._hits) > 10000:
                self._hits = {k: v for k, v in self._hits.items() if now - v[0] < self.window}
        reset = max(1, int(self.window - (now - start)))
        return count <= self.limit, max(0, self.limit - count), reset

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path.startswith(self.excluded_paths):
            return await call_next(request)

        ip = get_client_ip(request)
        allowed, remaining, reset = self._hit(ip)
        if not allowed:
            logger.warning("Rate limit exceeded | client=%s path=%s", ip, request.url.path)
            return JSONResponse(
                status_code=429,
                content={
                    "status": "error",
                    "code": "RATE_LIMITED",
                    "message": "Too many requests from this IP, please try again later.",
                },
                headers={
                    "X-RateLimit-Limit": str(self.limit),
                    "X-RateLimit-Remaining": "0",
                    "Retry-After": str(reset),
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.limit)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        return response
