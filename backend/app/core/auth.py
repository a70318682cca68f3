"""
JWT authentication and password hashing utilities.

WHY: This module provides secure authentication functionality:
1. Password hashing with bcrypt (OWASP A07: Authentication Failures)
2. JWT token generation and verification for staff, doctors and patients
3. Token blacklist for logout functionality
"""

import time
from datetime import datetime, timedelta
from typing import Dict, Any, Optional
from jose import jwt, JWTError
from passlib.context import CryptContext
import redis.asyncio as aioredis

from app.core.config import settings
from app.core.exceptions import (
    TokenExpiredError,
    TokenInvalidError,
)


# Actor kinds carried in the "actor" claim
# WHY: Staff users, doctors and patients live in separate tables, so the
# token must say which table its id refers to.
ACTOR_USER = "user"
ACTOR_DOCTOR = "doctor"
ACTOR_PATIENT = "patient"

ACTOR_ID_CLAIMS = {
    ACTOR_USER: "user_id",
    ACTOR_DOCTOR: "doctor_id",
    ACTOR_PATIENT: "patient_id",
}


# Password hashing context
# WHY: bcrypt with default cost factor (12 rounds) provides strong protection
# against brute-force attacks while maintaining acceptable performance.
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


# Redis connection for token blacklist
_redis_client: Optional[aioredis.Redis] = None


async def get_redis() -> aioredis.Redis:
    """
    Get Redis client for token blacklist.

    WHY: Lazy initialization ensures Redis is only connected when needed,
    and connection is reused across requests for performance.

    Returns:
        Redis client instance
    """
    global _redis_client
    if _redis_client is None:
        _redis_client = await aioredis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
        )
    return _redis_client


# ============================================================================
# Password Hashing
# ============================================================================


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.

    Args:
        password: Plain text password

    Returns:
        Hashed password (60 characters, includes salt and cost factor)
    """
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """
    Verify a password against its hash.

    WHY: Patients registered by front-desk staff may have no password yet;
    those accounts simply cannot log in.

    Args:
        plain_password: Password provided by the caller
        hashed_password: Hashed password from database (may be None)

    Returns:
        True if password matches, False otherwise
    """
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


# ============================================================================
# JWT Token Management
# ============================================================================


def create_access_token(
    data: Dict[str, Any],
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a JWT access token.

    Token includes:
    - Actor data (actor kind, actor id, role for staff)
    - exp: Expiration time (default: 24 hours)
    - iat: Issued at time (for audit)
    - nbf: Not before time (prevents premature use)

    Args:
        data: Claims to encode in the token
        expires_delta: Optional custom expiration time

    Returns:
        JWT token string
    """
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=settings.JWT_EXPIRATION_MINUTES)

    to_encode.update(
        {
            "exp": expire,
            "iat": datetime.utcnow(),
            "nbf": datetime.utcnow(),
        }
    )

    return jwt.encode(
        to_encode,
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )


def create_actor_token(actor: str, actor_id: int, **claims: Any) -> str:
    """
    Create an access token for a staff user, doctor or patient.

    Example:
        >>> token = create_actor_token(ACTOR_DOCTOR, 7)
        >>> verify_token(token)["doctor_id"]
        7
    """
    if actor not in ACTOR_ID_CLAIMS:
        raise ValueError(f"Unknown actor kind: {actor}")
    payload = {"actor": actor, ACTOR_ID_CLAIMS[actor]: actor_id}
    payload.update(claims)
    return create_access_token(payload)


def verify_token(token: str) -> Dict[str, Any]:
    """
    Verify and decode a JWT token.

    Args:
        token: JWT token string

    Returns:
        Decoded token payload

    Raises:
        TokenExpiredError: If token has expired
        TokenInvalidError: If token is malformed or signature invalid
    """
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )

    except jwt.ExpiredSignatureError:
        raise TokenExpiredError(message="Token has expired")

    except JWTError as e:
        raise TokenInvalidError(
            message="Invalid token",
            error=str(e),
        )


# ============================================================================
# Token Blacklist (Logout)
# ============================================================================


async def blacklist_token(
    token: str,
    actor_id: int,
    ttl_seconds: Optional[int] = None,
) -> None:
    """
    Add a token to the blacklist (for logout).

    WHY: JWT tokens are stateless and can't be "deleted". Blacklisting
    prevents a token from being used even if it hasn't expired yet.

    Args:
        token: JWT token to blacklist
        actor_id: Id of the user, doctor or patient logging out
        ttl_seconds: Optional TTL (defaults to the token's remaining lifetime)
    """
    redis = await get_redis()

    # No need to keep blacklist entries longer than token lifetime
    if ttl_seconds is None:
        try:
            payload = jwt.decode(
                token,
                settings.JWT_SECRET,
                algorithms=[settings.JWT_ALGORITHM],
                options={"verify_signature": False, "verify_exp": False},
            )
            exp_timestamp = payload.get("exp")
            if exp_timestamp:
                ttl_seconds = max(
                    int(exp_timestamp - time.time()),
                    1,
                )
            else:
                ttl_seconds = settings.JWT_EXPIRATION_MINUTES * 60
        except JWTError:
            ttl_seconds = settings.JWT_EXPIRATION_MINUTES * 60

    await redis.setex(
        f"blacklist:token:{token}",
        ttl_seconds,
        str(actor_id),
    )


async def is_token_blacklisted(token: str) -> bool:
    """
    Check if a token is blacklisted.

    Args:
        token: JWT token to check

    Returns:
        True if token is blacklisted, False otherwise
    """
    redis = await get_redis()
    exists = await redis.exists(f"blacklist:token:{token}")
    return exists > 0
