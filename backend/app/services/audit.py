"""
Audit logging service.

WHAT: Service layer for creating audit log entries with proper context.

WHY: Clinic data (medical records, doctor verification, supplier payments)
must be traceable to whoever changed it. This service provides:
- Simplified interface for logging common events
- Automatic context extraction from request middleware
- Background-safe logging that won't break if context is missing

HOW: Uses the AuditLogDAO for persistence and RequestContext middleware
for automatic IP/user-agent capture. The actor can be a staff user, a
doctor, a patient or the system (background jobs).
"""

import logging
from typing import Optional, Dict, Any, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import RateLimitExceeded
from app.dao.audit_log import AuditLogDAO
from app.models.audit_log import AuditLog, AuditAction, AuditActorType
from app.models.doctor import Doctor
from app.models.patient import Patient
from app.middleware.request_context import get_request_context


# Logger for audit service errors (not audit events themselves)
logger = logging.getLogger(__name__)


def actor_ref(actor: Any) -> Tuple[AuditActorType, Optional[int]]:
    """
    Map an authenticated record to the (actor_type, actor_id) pair.

    None means the system itself (scheduled jobs, public booking).
    """
    if actor is None:
        return AuditActorType.SYSTEM, None
    if isinstance(actor, Doctor):
        return AuditActorType.DOCTOR, actor.id
    if isinstance(actor, Patient):
        return AuditActorType.PATIENT, actor.id
    return AuditActorType.USER, actor.id


class AuditService:
    """
    Service for creating audit log entries.

    WHY: Centralizes audit logging logic with:
    - Automatic request context extraction
    - Consistent event formatting
    - Error handling that won't break business operations

    Example:
        audit = AuditService(db)
        await audit.log_create(current_user, "service_category", category.id)
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize audit service with database session.

        Args:
            session: Async database session for audit log persistence
        """
        self.dao = AuditLogDAO(session)
        self._session = session

    def _get_context(self) -> Tuple[Optional[str], Optional[str]]:
        """
        Get IP address and user agent from request context.

        Returns:
            Tuple of (ip_address, user_agent), both may be None
        """
        ctx = get_request_context()
        if ctx:
            return ctx.ip_address, ctx.user_agent
        return None, None

    async def log_event(
        self,
        action: AuditAction,
        resource_type: str,
        actor: Any = None,
        resource_id: Optional[int] = None,
        changes: Optional[Dict[str, Any]] = None,
        extra_data: Optional[Dict[str, Any]] = None,
        actor_type: Optional[AuditActorType] = None,
        actor_id: Optional[int] = None,
    ) -> Optional[AuditLog]:
        """
        Log a generic audit event.

        Args:
            action: Type of event (from AuditAction enum)
            resource_type: Category of affected resource
            actor: User, Doctor or Patient who acted (None for the system)
            resource_id: Specific resource ID (optional)
            changes: Before/after values for mutations
            extra_data: Additional context
            actor_type / actor_id: Explicit actor, used when no record is
                loaded (e.g. a failed login for a known email)

        Returns:
            Created AuditLog or None if logging failed

        Note:
            This method never raises exceptions to prevent audit
            logging from breaking business operations. Errors are
            logged to the application logger instead.
        """
        try:
            if actor_type is None:
                actor_type, actor_id = actor_ref(actor)
            ip_address, user_agent = self._get_context()

            return await self.dao.create(
                actor_type=actor_type,
                actor_id=actor_id,
                action=action,
                resource_type=resource_type,
                resource_id=resource_id,
                changes=changes,
                extra_data=extra_data,
                ip_address=ip_address,
                user_agent=user_agent,
            )

        except Exception as e:
            # Audit failures are reported but never abort the business operation
            logger.error(f"Failed to create audit log: {e}", exc_info=True)
            return None

    # =========================================================================
    # Authentication Events
    # =========================================================================

    async def log_login_success(self, actor: Any) -> Optional[AuditLog]:
        """Record a successful login of a staff user, doctor or patient."""
        return await self.log_event(AuditAction.LOGIN_SUCCESS, "auth", actor=actor)

    async def log_login_failure(
        self,
        attempted_email: str,
        actor_type: AuditActorType,
        actor_id: Optional[int] = None,
        reason: str = "Invalid credentials",
    ) -> Optional[AuditLog]:
        """
        Log a failed login attempt.

        WHY: Failed logins are critical for detecting brute force and
        credential stuffing. The attempted email is kept even when no
        account matches it.

        HOW: The entry is committed immediately. The login then fails with
        a 401, which rolls back the rest of the request, and the lockout
        check counts these rows.
        """
        log = await self.log_event(
            AuditAction.LOGIN_FAILURE,
            "auth",
            actor_type=actor_type,
            actor_id=actor_id,
            extra_data={"attempted_email": attempted_email, "reason": reason},
        )
        if log is not None:
            await self._session.commit()
        return log

    async def ensure_login_allowed(self) -> None:
        """
        Refuse a login from an address with too many recent failures.

        WHY: The per-minute rate limiter slows guessing down; this stops an
        address that keeps failing over a longer window, on any of the
        login endpoints.

        Raises:
            RateLimitExceeded (429): LOGIN_LOCKOUT_ATTEMPTS failures from
                this IP within the last LOGIN_LOCKOUT_MINUTES
        """
        ip_address, _ = self._get_context()
        if ip_address is None:
            return

        failures = await self.dao.count_recent_failed_logins(
            ip_address=ip_address, minutes=settings.LOGIN_LOCKOUT_MINUTES
        )
        if failures >= settings.LOGIN_LOCKOUT_ATTEMPTS:
            logger.warning(
                "Login refused after repeated failures",
                extra={"ip_address": ip_address, "failures": failures},
            )
            raise RateLimitExceeded(
                message="Too many failed login attempts. Please try again later.",
                retry_after=settings.LOGIN_LOCKOUT_MINUTES * 60,
            )

    async def log_logout(self, actor: Any) -> Optional[AuditLog]:
        return await self.log_event(AuditAction.LOGOUT, "auth", actor=actor)

    async def log_password_change(self, actor: Any) -> Optional[AuditLog]:
        return await self.log_event(AuditAction.PASSWORD_CHANGE, "auth", actor=actor)

    async def log_account_created(
        self,
        actor: Any,
        resource_type: str,
        resource_id: int,
        extra_data: Optional[Dict[str, Any]] = None,
    ) -> Optional[AuditLog]:
        """Record a registration or an admin-created account."""
        return await self.log_event(
            AuditAction.ACCOUNT_CREATED,
            resource_type,
            actor=actor,
            resource_id=resource_id,
            extra_data=extra_data,
        )

    # =========================================================================
    # Data Mutation Events
    # =========================================================================

    async def log_create(
        self,
        actor: Any,
        resource_type: str,
        resource_id: int,
        extra_data: Optional[Dict[str, Any]] = None,
    ) -> Optional[AuditLog]:
        return await self.log_event(
            AuditAction.CREATE,
            resource_type,
            actor=actor,
            resource_id=resource_id,
            extra_data=extra_data,
        )

    async def log_update(
        self,
        actor: Any,
        resource_type: str,
        resource_id: int,
        changes: Dict[str, Any],
    ) -> Optional[AuditLog]:
        """
        Log resource update.

        Args:
            changes: Dict with field names as keys and {"before": x, "after": y} as values
        """
        return await self.log_event(
            AuditAction.UPDATE,
            resource_type,
            actor=actor,
            resource_id=resource_id,
            changes=changes,
        )

    async def log_delete(
        self,
        actor: Any,
        resource_type: str,
        resource_id: int,
        extra_data: Optional[Dict[str, Any]] = None,
    ) -> Optional[AuditLog]:
        return await self.log_event(
            AuditAction.DELETE,
            resource_type,
            actor=actor,
            resource_id=resource_id,
            extra_data=extra_data,
        )

    async def log_status_change(
        self,
        actor: Any,
        resource_type: str,
        resource_id: int,
        before: Any,
        after: Any,
        reason: Optional[str] = None,
    ) -> Optional[AuditLog]:
        """Record a status or activation change with its reason."""
        return await self.log_event(
            AuditAction.STATUS_CHANGE,
            resource_type,
            actor=actor,
            resource_id=resource_id,
            changes={"status": {"before": _plain(before), "after": _plain(after)}},
            extra_data={"reason": reason} if reason else None,
        )

    async def log_bulk_operation(
        self,
        actor: Any,
        resource_type: str,
        operation: str,
        resource_ids: list,
        affected_count: int,
    ) -> Optional[AuditLog]:
        return await self.log_event(
            AuditAction.BULK_OPERATION,
            resource_type,
            actor=actor,
            extra_data={
                "operation": operation,
                "resource_ids": resource_ids,
                "affected_count": affected_count,
            },
        )


def diff_changes(instance: Any, values: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """
    Build the {"field": {"before", "after"}} dict for fields about to change.

    Call before applying values to the instance.
    """
    changes = {}
    for field, new_value in values.items():
        old_value = getattr(instance, field, None)
        if old_value != new_value:
            changes[field] = {"before": _plain(old_value), "after": _plain(new_value)}
    return changes


def _plain(value: Any) -> Any:
    """Make a value JSON-storable (enums to values, dates to ISO strings)."""
    if hasattr(value, "value") and not isinstance(value, (dict, list)):
        return value.value
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value
