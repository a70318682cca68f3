"""
Security headers middleware.

WHY: The API serves patient medical data and staff sessions. Security
headers instruct browsers to enforce additional policies so that a
compromised or misconfigured frontend leaks less.
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from typing import Callable

from app.core.config import settings


# Swagger UI and ReDoc load scripts and styles from a CDN
DOCS_PATHS = ("/api/docs", "/api/redoc", "/api/openapi.json")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Middleware that adds security headers to all responses.

    - Strict-Transport-Security: Forces HTTPS (omitted in DEBUG, where the
      API is served over plain HTTP)
    - X-Content-Type-Options: Prevents MIME-sniffing
    - X-Frame-Options / frame-ancestors: Prevents clickjacking
    - Content-Security-Policy: API responses are JSON, so nothing may load
    - Referrer-Policy / Permissions-Policy: Limit leaked data and features
    - Cache-Control: API responses hold personal data and are never cached
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        path = request.url.path

        if not settings.DEBUG:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = (
            "geolocation=(), microphone=(), camera=(), payment=(), usb=()"
        )

        if not path.startswith(DOCS_PATHS):
            response.headers["Content-Security-Policy"] = (
                "default-src 'none'; frame-ancestors 'none'; base-uri 'none'"
            )

        if path.startswith("/api"):
            response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, private"
            response.headers["Pragma"] = "no-cache"

        return response
