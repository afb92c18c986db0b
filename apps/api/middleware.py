"""
Security middleware for the relay API:
- Security headers on every response
- Request logging with client IP for storage endpoints
"""

import logging
import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Add security headers to all responses.

    Responses from the storage endpoints may carry a bearer capability, so
    they are never cached.
    """

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "no-referrer"

        if "/storage/" in request.url.path:
            response.headers["Cache-Control"] = "no-store"

        return response


class StorageAccessLoggingMiddleware(BaseHTTPMiddleware):
    """Log who hits the storage endpoints and how long the call took."""

    async def dispatch(self, request: Request, call_next):
        if "/storage/" not in request.url.path:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        logger.info(
            f"Storage request: {request.method} {request.url.path} "
            f"from {client_ip} -> {response.status_code} ({elapsed_ms:.0f}ms)"
        )
        return response
