"""Security middleware: response hardening headers and request body size limit"""
import logging
from collections.abc import Callable

from fastapi import Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from shopfloor.infrastructure.config.settings import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

DOCS_PATHS = ("/docs", "/redoc", "/openapi.json")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Add security headers to all HTTP responses.

    HSTS is only sent over HTTPS or in production; the API documentation
    pages get a CSP that allows the Swagger/ReDoc CDN assets.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error("Error processing request %s %s: %s", request.method, request.url.path, e)
            raise

        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = (
            "accelerometer=(), camera=(), geolocation=(), gyroscope=(), "
            "magnetometer=(), microphone=(), payment=(), usb=()"
        )
        response.headers["X-Permitted-Cross-Domain-Policies"] = "none"

        if request.url.scheme == "https" or settings.environment == "production":
            response.headers["Strict-Transport-Security"] = (
                "max-age=63072000; includeSubDomains"
            )

        if request.url.path in DOCS_PATHS:
            response.headers["Content-Security-Policy"] = (
                "default-src 'self'; "
                "script-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
                "style-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
                "img-src 'self' data: https:; "
                "frame-ancestors 'none';"
            )
        else:
            response.headers["Content-Security-Policy"] = (
                "default-src 'none'; frame-ancestors 'none'; base-uri 'none';"
            )

        if "server" in response.headers:
            del response.headers["server"]

        return response


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject requests whose Content-Length exceeds max_request_size bytes"""

    def __init__(self, app, max_request_size: int = 10 * 1024 * 1024) -> None:
        super().__init__(app)
        self.max_request_size = max_request_size

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        content_length = request.headers.get("content-length")
        if not content_length:
            return await call_next(request)

        try:
            size = int(content_length)
        except ValueError:
            logger.error("Invalid Content-Length header: %s", content_length)
            return JSONResponse(
                status_code=400,
                content={
                    "error": "INVALID_CONTENT_LENGTH",
                    "message": "Invalid Content-Length header",
                },
            )

        if size > self.max_request_size:
            logger.warning(
                "Request size %d exceeds limit %d from %s",
                size,
                self.max_request_size,
                request.client.host if request.client else "unknown",
            )
            return JSONResponse(
                status_code=413,
                content={
                    "error": "PAYLOAD_TOO_LARGE",
                    "message": f"Request body too large. Maximum size: {self.max_request_size} bytes",
                    "details": {
                        "max_size_bytes": self.max_request_size,
                        "received_size_bytes": size,
                    },
                },
            )

        return await call_next(request)
