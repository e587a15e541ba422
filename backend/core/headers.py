# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Response hardening and request size guard.

``SecurityHeadersMiddleware`` stamps the usual browser security headers on
every response (including error envelopes and 429s).  ``BodySizeLimitMiddleware``
answers 413 before the route runs when a request body is larger than
``settings.max_body_bytes``.
"""

from fastapi import Request
from fastapi.responses import JSONResponse, Response
from starlette.middleware.base import BaseHTTPMiddleware

from core.logger import logger
from core.security import get_client_ip

SECURITY_HEADERS = {
    "Content-Security-Policy": (
        "default-src 'self';base-uri 'self';font-src 'self' https: data:;"
        "form-action 'self';frame-ancestors 'self';img-src 'self' data:;"
        "object-src 'none';script-src 'self';script-src-attr 'none';"
        "style-src 'self' https: 'unsafe-inline';upgrade-insecure-requests"
    ),
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Origin-Agent-Cluster": "?1",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Frame-Options": "SAMEORIGIN",
    "X-Permitted-Cross-Domain-Policies": "none",
    "X-XSS-Protection": "0",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, headers: dict[str, str] | None = None):
        super().__init__(app)
        self.headers = dict(SECURITY_HEADERS if headers is None else headers)

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        for name, value in self.headers.items():
            response.headers.setdefault(name, value)
        return response


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, max_bytes: int):
        super().__init__(app)
        self.max_bytes = max_bytes

    def _too_large(self, request: Request, size: int) -> JSONResponse:
        logger.warning(
            "Request body too large | client=%s path=%s size=%d",
            get_client_ip(request),
            request.url.path,
            size,
        )
        return JSONResponse(
            status_code=413,
            content={
                "status": "error",
                "code": "PAYLOAD_TOO_LARGE",
                "message": f"Request body exceeds {self.max_bytes} bytes",
            },
        )

    async def dispatch(self, request: Request, call_next) -> Response:
        length = request.headers.get("content-length")
        if length is not None:
            if not length.isdigit():
                return JSONResponse(
                    status_code=400,
                    content={"status": "error", "code": "BAD_REQUEST", "message": "Invalid Content-Length"},
                )
            if int(length) > self.max_bytes:
                return self._too_large(request, int(length))
        elif request.method in ("POST", "PUT", "PATCH"):
            # Chunked upload: the body has to be read to be measured
            body = await request.body()
            if len(body) > self.max_bytes:
                return self._too_large(request, len(body))
        return await call_next(request)
