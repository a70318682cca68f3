"""
Audit Log Data Access Object (DAO).

WHAT: Data access layer for audit log operations.

WHY: Clinic records carry medical and payment data, so every change must
be traceable. This DAO provides:
- Tamper-proof logging (immutable records)
- Query methods for investigations (by actor, action, resource)

HOW: Does not extend BaseDAO; update/delete exist only to refuse.
"""

from datetime import datetime, timedelta
from typing import Optional, List, Dict, Any
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit_log import AuditLog, AuditAction, AuditActorType
from app.core.exceptions import AuditLogImmutableError


class AuditLogDAO:
    """
    Data Access Object for audit log operations.

    WHAT: Provides methods for creating and querying audit logs.

    WHY: Centralizes all audit log database operations with
    immutability enforcement.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize AuditLogDAO with database session.

        Args:
            session: Async database session
        """
        self.session = session

    async def create(
        self,
        action: AuditAction,
        resource_type: str,
        actor_type: AuditActorType = AuditActorType.USER,
        actor_id: Optional[int] = None,
        resource_id: Optional[int] = None,
        changes: Optional[Dict[str, Any]] = None,
        extra_data: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AuditLog:
        """
        Create a new audit log entry.

        Args:
            action: Type of event (from AuditAction enum)
            resource_type: Category of affected resource
            actor_type: Kind of actor (staff user, doctor, patient, system)
            actor_id: Actor primary key (nullable for failed logins)
            resource_id: Specific resource ID (nullable)
            changes: Before/after values for mutations
            extra_data: Additional context (e.g., attempted_email for failed logins)
            ip_address: Client IP address
            user_agent: Client browser/application info

        Returns:
            The created AuditLog entry
        """
        log = AuditLog(
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
        self.session.add(log)
        await self.session.flush()
        await self.session.refresh(log)
        return log

    async def get_by_id(self, log_id: int) -> Optional[AuditLog]:
        result = await self.session.execute(select(AuditLog).where(AuditLog.id == log_id))
        return result.scalar_one_or_none()

    async def get_by_actor(
        self,
        actor_type: AuditActorType,
        actor_id: int,
        skip: int = 0,
        limit: int = 100,
    ) -> List[AuditLog]:
        """
        Retrieve audit logs for one actor, newest first.

        WHY: Investigations often need to trace every action by a
        specific staff member, doctor or patient.
        """
        result = await self.session.execute(
            select(AuditLog)
            .where(AuditLog.actor_type == actor_type)
            .where(AuditLog.actor_id == actor_id)
            .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_by_resource(
        self,
        resource_type: str,
        resource_id: int,
        skip: int = 0,
        limit: int = 100,
    ) -> List[AuditLog]:
        """Retrieve the change history of one resource, newest first."""
        result = await self.session.execute(
            select(AuditLog)
            .where(AuditLog.resource_type == resource_type)
            .where(AuditLog.resource_id == resource_id)
            .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_by_action(
        self,
        action: AuditAction,
        skip: int = 0,
        limit: int = 100,
    ) -> List[AuditLog]:
        result = await self.session.execute(
            select(AuditLog)
            .where(AuditLog.action == action)
            .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def count_recent_failed_logins(
        self,
        ip_address: Optional[str] = None,
        minutes: int = 15,
    ) -> int:
        """
        Count LOGIN_FAILURE events within a time window.

        Args:
            ip_address: Optional IP address to filter by
            minutes: Time window in minutes (default 15)
        """
        cutoff_time = datetime.utcnow() - timedelta(minutes=minutes)

        query = (
            select(func.count(AuditLog.id))
            .where(AuditLog.action == AuditAction.LOGIN_FAILURE)
            .where(AuditLog.created_at >= cutoff_time)
        )
        if ip_address is not None:
            query = query.where(AuditLog.ip_address == ip_address)

        result = await self.session.execute(query)
        return result.scalar() or 0

    async def update(self, log_id: int, **kwargs: Any) -> None:
        """
        Attempt to update an audit log (BLOCKED).

        Raises:
            AuditLogImmutableError: Always raised - updates not allowed
        """
        raise AuditLogImmutableError(
            "Audit logs are immutable and cannot be updated."
        )

    async def delete(self, log_id: int) -> None:
        """
        Attempt to delete an audit log (BLOCKED).

        Raises:
            AuditLogImmutableError: Always raised - deletions not allowed
        """
        raise AuditLogImmutableError(
            "Audit logs cannot be deleted."
        )
