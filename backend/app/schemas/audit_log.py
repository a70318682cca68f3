"""
Pydantic schemas for the audit log viewer.
"""

from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel

from app.models.audit_log import AuditAction, AuditActorType


class AuditLogResponse(BaseModel):
    """One audit entry as shown to administrators."""

    id: int
    actor_type: AuditActorType
    actor_id: Optional[int] = None
    action: AuditAction
    resource_type: str
    resource_id: Optional[int] = None
    changes: Optional[Dict[str, Any]] = None
    extra_data: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
