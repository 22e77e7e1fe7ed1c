"""Security headers middleware for JSON API responses."""

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

# Responses carry bearer tokens and account data: never cache, never frame
DEFAULT_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Cache-Control": "no-store",
    "Pragma": "no-cache",
    "Referrer-Policy": "no-referrer",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
}

HSTS_VALUE = "max-age=31536000; includeSubDomains"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to every response.

    Strict-Transport-Security is only sent when the request arrived over
    HTTPS, directly or via a proxy reporting X-Forwarded-Proto.
    """

    def __init__(self, app: ASGIApp, extra_headers: dict[str, str] | None = None):
        super().__init__(app)
        self.headers = {**DEFAULT_HEADERS, **(extra_headers or {})}

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)

        for name, value in self.headers.items():
            response.headers.setdefault(name, value)

        forwarded_proto = request.headers.get("x-forwarded-proto", "")
        if forwarded_proto == "https" or request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = HSTS_VALUE

        return response
