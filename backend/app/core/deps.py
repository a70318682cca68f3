"""
FastAPI dependencies for authentication and authorization.

WHY: Dependencies provide reusable authentication and authorization logic
that can be injected into route handlers, ensuring consistent security
across the API.

HOW: Three kinds of actors authenticate with bearer tokens: staff users,
doctors and patients. Each resolver verifies the token, rejects
blacklisted (logged out) tokens, checks the "actor" claim and loads the
current record so that deactivation takes effect immediately.
"""

import hashlib
import hmac
import logging
import time
from typing import Any, Dict, Optional
from fastapi import Depends, Header, Query, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import (
    ACTOR_DOCTOR,
    ACTOR_PATIENT,
    ACTOR_USER,
    verify_token,
    is_token_blacklisted,
)
from app.core.config import settings
from app.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    TokenExpiredError,
    TokenInvalidError,
    ValidationError,
)
from app.db.session import get_db
from app.models.user import User, UserRole
from app.models.doctor import Doctor
from app.models.patient import Patient
from app.dao.user import UserDAO
from app.dao.doctor import DoctorDAO
from app.dao.patient import PatientDAO


logger = logging.getLogger(__name__)


# HTTP Bearer token security scheme
# Format: "Authorization: Bearer <token>"
security = HTTPBearer()


async def _decode_bearer(credentials: HTTPAuthorizationCredentials, actor: str) -> Dict[str, Any]:
    """
    Verify a bearer token and make sure it belongs to the expected actor kind.

    Raises:
        AuthenticationError: If the token is invalid, expired, revoked or
            was issued to another kind of actor
    """
    token = credentials.credentials

    try:
        payload = verify_token(token)
    except (TokenExpiredError, TokenInvalidError) as e:
        raise AuthenticationError(
            message=str(e),
            status_code=e.status_code,
        )

    if await is_token_blacklisted(token):
        raise AuthenticationError(
            message="Token has been revoked",
            reason="logged_out",
        )

    # Staff tokens issued without an actor claim are treated as staff
    if payload.get("actor", ACTOR_USER) != actor:
        raise AuthenticationError(message="Invalid token")

    return payload


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Get current authenticated staff user from JWT token.

    Returns:
        Authenticated User instance

    Raises:
        AuthenticationError: If token is invalid, expired, or user not found
    """
    payload = await _decode_bearer(credentials, ACTOR_USER)

    user_id = payload.get("user_id")
    if not user_id:
        raise AuthenticationError(message="Invalid token: missing user_id")

    user = await UserDAO(User, db).get_by_id(user_id)

    if not user:
        raise AuthenticationError(message="User not found", user_id=user_id)

    if not user.is_active:
        raise AuthenticationError(
            message="Account is inactive or suspended",
            user_id=user_id,
        )

    return user


def require_role(*roles: UserRole):
    """
    Factory function to create a role requirement dependency.

    Usage:
        @router.delete("/{user_id}")
        async def delete_user(admin: User = Depends(require_role(UserRole.SUPER_ADMIN))):
            ...

    Args:
        roles: Roles allowed to call the endpoint

    Returns:
        Dependency function that checks for one of the roles
    """

    async def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise AuthorizationError(
                message="Access denied. Insufficient privileges.",
                user_id=current_user.id,
                user_role=current_user.role.value,
                required_roles=[role.value for role in roles],
            )
        return current_user

    return role_checker


async def require_admin(
    current_user: User = Depends(get_current_user),
) -> User:
    """
    Require the staff user to be an admin or super admin.

    Raises:
        AuthorizationError: If user is not an admin
    """
    if not current_user.is_admin:
        raise AuthorizationError(
            message="Admin access required",
            user_id=current_user.id,
            user_role=current_user.role.value,
        )

    return current_user


require_super_admin = require_role(UserRole.SUPER_ADMIN)


async def get_current_doctor(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> Doctor:
    """
    Get the doctor a token was issued to.

    Raises:
        AuthenticationError: If the token is not a valid doctor token or the
            doctor account is gone or deactivated
    """
    payload = await _decode_bearer(credentials, ACTOR_DOCTOR)

    doctor_id = payload.get("doctor_id")
    if not doctor_id:
        raise AuthenticationError(message="Invalid token: missing doctor_id")

    doctor = await DoctorDAO(db).get_by_id(doctor_id)
    if not doctor:
        raise AuthenticationError(message="Doctor not found", doctor_id=doctor_id)
    if not doctor.is_active:
        raise AuthenticationError(
            message="Account is inactive or suspended",
            doctor_id=doctor_id,
        )
    return doctor


async def get_current_patient(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> Patient:
    """
    Get the patient a token was issued to.

    Raises:
        AuthenticationError: If the token is not a valid patient token or the
            patient account is deleted or deactivated
    """
    payload = await _decode_bearer(credentials, ACTOR_PATIENT)

    patient_id = payload.get("patient_id")
    if not patient_id:
        raise AuthenticationError(message="Invalid token: missing patient_id")

    patient = await PatientDAO(db).get_by_id(patient_id)
    if not patient or patient.is_deleted:
        raise AuthenticationError(message="Patient not found", patient_id=patient_id)
    if not patient.is_active:
        raise AuthenticationError(
            message="Account is inactive or suspended",
            patient_id=patient_id,
        )
    return patient


def search_term(
    q: str = Query(..., min_length=1, max_length=100, description="Text to search for"),
) -> str:
    """
    Required free-text search parameter, trimmed.

    A query of only whitespace is rejected rather than turned into a
    match-everything search.
    """
    term = q.strip()
    if not term:
        raise ValidationError(message="Search query is required", field="q")
    return term


async def verify_webhook_signature(
    request: Request,
    x_webhook_signature: Optional[str] = Header(default=None),
    x_webhook_timestamp: Optional[str] = Header(default=None),
) -> None:
    """
    Verify a signed inbound webhook.

    WHY: Webhooks create patients and bookings without a user token, so
    the sender proves itself with the shared WEBHOOK_SECRET instead.

    HOW: The signature is the hex HMAC-SHA256 of "<timestamp>.<raw body>".
    Timestamps outside WEBHOOK_TOLERANCE_SECONDS are refused so a captured
    request cannot be replayed later. With no secret configured every call
    is refused.

    Raises:
        AuthenticationError: Missing, stale or invalid signature
    """
    secret = settings.WEBHOOK_SECRET
    if not secret:
        raise AuthenticationError(message="Webhooks are not configured")
    if not x_webhook_signature or not x_webhook_timestamp:
        raise AuthenticationError(message="Missing webhook signature")

    try:
        sent_at = int(x_webhook_timestamp)
    except ValueError:
        raise AuthenticationError(message="Invalid webhook timestamp")
    if abs(time.time() - sent_at) > settings.WEBHOOK_TOLERANCE_SECONDS:
        raise AuthenticationError(message="Webhook timestamp outside the allowed window")

    body = await request.body()
    expected = hmac.new(
        secret.encode(),
        f"{x_webhook_timestamp}.".encode() + body,
        hashlib.sha256,
    ).hexdigest()
    if not hmac.compare_digest(expected, x_webhook_signature):
        logger.warning("Rejected webhook with bad signature", extra={"path": request.url.path})
        raise AuthenticationError(message="Invalid webhook signature")
