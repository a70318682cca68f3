"""
HTTP middleware for the clinic API.

Added in app.main in the order request context, rate limiting, security
headers; Starlette runs the last one added outermost.
"""

from app.middleware.rate_limiter import RateLimitMiddleware
from app.middleware.request_context import RequestContextMiddleware
from app.middleware.security_headers import SecurityHeadersMiddleware

__all__ = [
    "RateLimitMiddleware",
    "RequestContextMiddleware",
    "SecurityHeadersMiddleware",
]
