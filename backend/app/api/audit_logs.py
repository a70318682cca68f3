"""
Audit log viewer API routes.

WHAT: Read-only endpoints for administrators: everything one actor did,
the change history of one record, all events of one kind, and the recent
failed-login count for an address.

WHY: Medical, payment and verification changes must be traceable when a
patient disputes a record or an account looks compromised. Entries are
immutable, so there is nothing to write here.
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.deps import require_admin
from app.dao.audit_log import AuditLogDAO
from app.db.session import get_db
from app.models.audit_log import AuditAction, AuditActorType, AuditLog
from app.models.user import User
from app.schemas.audit_log import AuditLogResponse
from app.schemas.common import APIResponse, api_response


router = APIRouter(prefix="/audit-logs", tags=["audit-logs"])


def _page(logs: List[AuditLog], skip: int, limit: int) -> APIResponse:
    return api_response(
        {
            "logs": [AuditLogResponse.model_validate(log) for log in logs],
            "skip": skip,
            "limit": limit,
        }
    )


@router.get("/actors/{actor_type}/{actor_id}", response_model=APIResponse, summary="Audit trail of one actor")
async def list_by_actor(
    actor_type: AuditActorType,
    actor_id: int,
    skip: int = Query(default=0, ge=0, description="Number of entries to skip"),
    limit: int = Query(default=50, ge=1, le=500, description="Maximum entries to return"),
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """Everything a staff user, doctor or patient did, newest first."""
    logs = await AuditLogDAO(db).get_by_actor(actor_type, actor_id, skip=skip, limit=limit)
    return _page(logs, skip, limit)


@router.get(
    "/resources/{resource_type}/{resource_id}",
    response_model=APIResponse,
    summary="Change history of one record",
)
async def list_by_resource(
    resource_type: str,
    resource_id: int,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=500),
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    logs = await AuditLogDAO(db).get_by_resource(resource_type, resource_id, skip=skip, limit=limit)
    return _page(logs, skip, limit)


@router.get("/actions/{action}", response_model=APIResponse, summary="Events of one kind")
async def list_by_action(
    action: AuditAction,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=500),
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    logs = await AuditLogDAO(db).get_by_action(action, skip=skip, limit=limit)
    return _page(logs, skip, limit)


@router.get("/failed-logins", response_model=APIResponse, summary="Recent failed login count")
async def count_failed_logins(
    ip_address: Optional[str] = Query(default=None, max_length=45, description="Limit to one address"),
    minutes: int = Query(default=settings.LOGIN_LOCKOUT_MINUTES, ge=1, le=1440, description="Window in minutes"),
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """
    Count failed logins in the window, across all addresses or for one.

    With the default window the count is the one the login lockout
    compares against LOGIN_LOCKOUT_ATTEMPTS.
    """
    failures = await AuditLogDAO(db).count_recent_failed_logins(ip_address=ip_address, minutes=minutes)
    return api_response({"ip_address": ip_address, "minutes": minutes, "failed_logins": failures})
