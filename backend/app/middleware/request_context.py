"""
Request context middleware.

WHAT: Middleware that captures the request id, client IP and user agent
and makes them available for the whole request lifecycle.

WHY: Audit entries (who registered a patient, who cancelled an appointment)
need the caller's IP and user agent, and the same values are stored in
the booking metadata of public appointment requests. Services have no
Request object, so the values are published through a ContextVar.

HOW: BaseHTTPMiddleware wraps every request. The context is stored on
request.state and in a ContextVar, the request id is echoed back in the
X-Request-ID header, and the request duration is logged at debug level.
"""

import logging
import time
import uuid
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Optional, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


@dataclass
class RequestContext:
    """
    Request-scoped data captured once per request.

    Fields:
    - request_id: Unique identifier for log correlation
    - ip_address: Client's real IP (considering proxies)
    - user_agent: Client's browser/application identifier
    - path / method: What was called
    """

    request_id: str
    ip_address: str
    user_agent: Optional[str]
    path: str
    method: str


# Each async request gets its own isolated value
_request_context: ContextVar[Optional[RequestContext]] = ContextVar(
    "request_context", default=None
)


def get_request_context() -> Optional[RequestContext]:
    """
    Get the current request context.

    Returns:
        RequestContext if within a request, None otherwise (e.g. in
        scheduler jobs)
    """
    return _request_context.get()


def get_client_ip(request: Request) -> str:
    """
    Extract the real client IP address from a request.

    HOW: Checks headers in order of trust:
    1. X-Real-IP (set by nginx-style proxies)
    2. X-Forwarded-For (first entry is the original client)
    3. request.client.host (direct connection IP)

    Security Note:
        These headers can be spoofed by clients if not behind a trusted proxy.
        In production, configure your proxy to overwrite them.
    """
    x_real_ip = request.headers.get("X-Real-IP")
    if x_real_ip:
        return x_real_ip.strip()

    x_forwarded_for = request.headers.get("X-Forwarded-For")
    if x_forwarded_for:
        # Format: "client, proxy1, proxy2"
        return x_forwarded_for.split(",")[0].strip()

    if request.client and request.client.host:
        return request.client.host

    return "unknown"


def get_user_agent(request: Request) -> Optional[str]:
    """Extract the User-Agent header, if present."""
    return request.headers.get("User-Agent")


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Middleware that captures and stores request context.

    Example:
        @router.post("/book")
        async def book(request: Request):
            ctx = request.state.context  # or get_request_context()
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Reuse an upstream id (API gateway, load balancer) when one is sent
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())

        context = RequestContext(
            request_id=request_id,
            ip_address=get_client_ip(request),
            user_agent=get_user_agent(request),
            path=request.url.path,
            method=request.method,
        )

        request.state.context = context
        token = _request_context.set(context)
        started = time.perf_counter()

        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id

            logger.debug(
                "%s %s -> %s in %.1fms",
                context.method,
                context.path,
                response.status_code,
                (time.perf_counter() - started) * 1000,
                extra={"request_id": request_id, "ip_address": context.ip_address},
            )
            return response

        finally:
            _request_context.reset(token)
