"""
Rate limiting middleware for login and registration endpoints.

WHAT: Fixed-window rate limiting for the authentication endpoints of all
three actor types (staff users, doctors, patients).

WHY: Login endpoints are brute-force and credential-stuffing targets,
and the public registration endpoints attract spam sign-ups.

HOW: Uses a Redis counter per client IP and endpoint:
1. Each request increments a counter for IP+endpoint combination
2. Counter key expires after the window duration
3. If counter exceeds limit, return 429 Too Many Requests
4. Rate limit headers inform clients of their current status

Design decisions:
- Fail-open: If Redis is unavailable, allow requests (prevents self-DOS)
- Per-endpoint limits: Different endpoints can have different limits
- IP-based limiting: Uses client IP (supports X-Forwarded-For for proxies)
"""

from dataclasses import dataclass
from typing import Optional, Dict
import logging
import redis.asyncio as aioredis
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from app.core.config import settings
from app.core.exceptions import RateLimitExceeded
from app.middleware.request_context import get_client_ip


logger = logging.getLogger(__name__)


@dataclass
class RateLimitConfig:
    """
    Rate limit parameters for an endpoint.

    - requests_per_window: Maximum requests allowed in the window
    - window_seconds: Duration of the window
    - key_prefix: Redis key namespace for the counters
    """

    requests_per_window: int = 5
    window_seconds: int = 60
    key_prefix: str = "ratelimit"


def _login_limit(actor: str) -> RateLimitConfig:
    return RateLimitConfig(requests_per_window=5, window_seconds=60, key_prefix=f"ratelimit:{actor}:login")


def _register_limit(actor: str) -> RateLimitConfig:
    return RateLimitConfig(requests_per_window=10, window_seconds=60, key_prefix=f"ratelimit:{actor}:register")


# Endpoint-specific rate limit configurations
AUTH_RATE_LIMITS: Dict[str, RateLimitConfig] = {
    "/api/users/login": _login_limit("user"),
    "/api/users/register-super-admin": RateLimitConfig(
        requests_per_window=3,
        window_seconds=60,
        key_prefix="ratelimit:user:register",
    ),
    "/api/doctors/login": _login_limit("doctor"),
    "/api/doctors/register": _register_limit("doctor"),
    "/api/patients/login": _login_limit("patient"),
    "/api/patients/register": _register_limit("patient"),
}


@dataclass
class RateLimitResult:
    """
    Result of a rate limit check.

    - allowed: Whether the request is under the limit
    - remaining: Requests left in the window (-1 when unknown)
    - reset_after: Seconds until the window resets
    - limit: Maximum requests per window
    """

    allowed: bool
    remaining: int
    reset_after: int
    limit: int


class RateLimiter:
    """
    Rate limiter service using Redis.

    HOW: Uses a Redis pipeline for increment + expire:
    1. INCR key (creates the counter with value 1 if new)
    2. EXPIRE key window_seconds
    3. Compare counter to limit
    """

    def __init__(
        self,
        redis_client: aioredis.Redis,
        config: Optional[RateLimitConfig] = None,
    ):
        """
        Args:
            redis_client: Async Redis client
            config: Default configuration for endpoints without their own
        """
        self._redis = redis_client
        self._config = config or RateLimitConfig()

    def _build_key(self, identifier: str, endpoint: str, config: RateLimitConfig) -> str:
        """Format: {prefix}:{endpoint with / replaced by :}:{identifier}"""
        normalized_endpoint = endpoint.strip("/").replace("/", ":")
        return f"{config.key_prefix}:{normalized_endpoint}:{identifier}"

    async def check_rate_limit(
        self,
        identifier: str,
        endpoint: str,
        config: Optional[RateLimitConfig] = None,
    ) -> RateLimitResult:
        """
        Count this request and report whether it is within the limit.

        Args:
            identifier: Client identifier (IP address)
            endpoint: API endpoint being accessed
            config: Limit to apply (defaults to the endpoint's or the limiter's)

        Returns:
            RateLimitResult with allowed status and metadata
        """
        config = config or AUTH_RATE_LIMITS.get(endpoint) or self._config
        key = self._build_key(identifier, endpoint, config)

        try:
            pipe = self._redis.pipeline()
            pipe.incr(key)
            pipe.expire(key, config.window_seconds)

            results = await pipe.execute()
            current_count = results[0]

            return RateLimitResult(
                allowed=current_count <= config.requests_per_window,
                remaining=max(0, config.requests_per_window - current_count),
                reset_after=config.window_seconds,
                limit=config.requests_per_window,
            )

        except Exception as e:
            # Fail-open: a Redis outage must not lock every user out
            logger.error(
                f"Rate limit Redis error (allowing request): {e}",
                extra={"identifier": identifier, "endpoint": endpoint},
            )
            return RateLimitResult(
                allowed=True,
                remaining=-1,
                reset_after=config.window_seconds,
                limit=config.requests_per_window,
            )


_rate_limiter: Optional[RateLimiter] = None


async def get_rate_limiter() -> RateLimiter:
    """
    Get or create the global rate limiter instance.

    HOW: Creates the Redis connection on first call and reuses it.
    Tests replace this function to avoid needing Redis.
    """
    global _rate_limiter

    if _rate_limiter is None:
        redis_client = aioredis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
        )
        _rate_limiter = RateLimiter(redis_client=redis_client)

    return _rate_limiter


async def check_rate_limit(
    identifier: str,
    endpoint: str,
    config: Optional[RateLimitConfig] = None,
) -> RateLimitResult:
    """
    Check the rate limit and raise if exceeded.

    Raises:
        RateLimitExceeded: If rate limit is exceeded (429)
    """
    limiter = await get_rate_limiter()
    result = await limiter.check_rate_limit(identifier, endpoint, config)

    if not result.allowed:
        raise RateLimitExceeded(
            message=f"Rate limit exceeded. Try again in {result.reset_after} seconds.",
            retry_after=result.reset_after,
            limit=result.limit,
            remaining=result.remaining,
        )

    return result


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Middleware applying rate limits to the authentication endpoints.

    HOW: Checks the request path, applies the endpoint's limit and adds
    X-RateLimit-* headers to the response.

    Usage:
        app.add_middleware(RateLimitMiddleware)
    """

    RATE_LIMITED_PATHS = frozenset(AUTH_RATE_LIMITS)

    async def dispatch(self, request: Request, call_next):
        path = request.url.path.rstrip("/") or "/"

        # Only POSTs to the auth endpoints are counted
        if request.method != "POST" or path not in self.RATE_LIMITED_PATHS:
            return await call_next(request)

        identifier = get_client_ip(request)

        try:
            limiter = await get_rate_limiter()
            result = await limiter.check_rate_limit(identifier, path, AUTH_RATE_LIMITS[path])
        except Exception as e:
            logger.error(f"Rate limit middleware error: {e}")
            return await call_next(request)

        if not result.allowed:
            logger.warning(
                "Rate limit exceeded",
                extra={"identifier": identifier, "endpoint": path},
            )
            return JSONResponse(
                status_code=429,
                content={
                    "success": False,
                    "error": "RateLimitExceeded",
                    "message": f"Rate limit exceeded. Try again in {result.reset_after} seconds.",
                    "status_code": 429,
                    "details": {"retry_after": result.reset_after},
                },
                headers={
                    "X-RateLimit-Limit": str(result.limit),
                    "X-RateLimit-Remaining": str(result.remaining),
                    "X-RateLimit-Reset": str(result.reset_after),
                    "Retry-After": str(result.reset_after),
                },
            )

        response = await call_next(request)

        response.headers["X-RateLimit-Limit"] = str(result.limit)
        response.headers["X-RateLimit-Remaining"] = str(result.remaining)
        response.headers["X-RateLimit-Reset"] = str(result.reset_after)

        return response
