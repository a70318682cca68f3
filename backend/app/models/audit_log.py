"""
Audit Log Model.

WHAT: SQLAlchemy model for storing security and data-change audit events.

WHY: Clinics handle medical and payment data. Knowing who registered a
patient, who changed a doctor's status or who adjusted inventory stock is
required for accountability. This model provides:
- Append-only audit trail
- Authentication event tracking (login, logout, failures)
- Data mutation tracking (CRUD operations with before/after)
- Request context (IP address, user agent)

HOW: Immutable append-only table. The actor is stored as a (type, id) pair
because staff users, doctors and patients live in different tables.
"""

import enum
from sqlalchemy import Column, Integer, String, Enum, Text, JSON

from app.models.base import Base, TimestampMixin, PrimaryKeyMixin


class AuditAction(str, enum.Enum):
    """
    Enumeration of auditable actions.

    Categories:
    - Authentication: Login, logout, password changes
    - Data: CRUD operations on resources
    - Account: Activation, deactivation
    """

    # Authentication events
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILURE = "LOGIN_FAILURE"
    LOGOUT = "LOGOUT"
    PASSWORD_CHANGE = "PASSWORD_CHANGE"

    # Data mutation events
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    STATUS_CHANGE = "STATUS_CHANGE"

    # Account lifecycle events
    ACCOUNT_CREATED = "ACCOUNT_CREATED"
    ACCOUNT_ACTIVATED = "ACCOUNT_ACTIVATED"
    ACCOUNT_DEACTIVATED = "ACCOUNT_DEACTIVATED"

    # Administrative events
    BULK_OPERATION = "BULK_OPERATION"
    EXPORT_DATA = "EXPORT_DATA"


class AuditActorType(str, enum.Enum):
    """Kind of actor that performed an audited action."""

    USER = "user"
    DOCTOR = "doctor"
    PATIENT = "patient"
    SYSTEM = "system"


class AuditLog(Base, PrimaryKeyMixin, TimestampMixin):
    """
    Immutable audit log entry.

    Fields:
    - actor_type / actor_id: Who performed the action (id nullable for failed logins)
    - action: What type of event occurred (AuditAction enum)
    - resource_type: Category of affected resource (e.g., "appointment")
    - resource_id: Specific resource ID (nullable)
    - changes: Before/after values for mutations
    - extra_data: Additional context
    - ip_address / user_agent: Request context
    """

    __tablename__ = "audit_logs"

    actor_type = Column(Enum(AuditActorType), nullable=False, default=AuditActorType.USER, index=True)
    actor_id = Column(Integer, nullable=True, index=True)

    action = Column(Enum(AuditAction), nullable=False, index=True)

    resource_type = Column(String(100), nullable=False, index=True)
    resource_id = Column(Integer, nullable=True, index=True)

    # Example: {"is_active": {"before": true, "after": false}}
    changes = Column(JSON, nullable=True)

    # NOTE: Named 'extra_data' because 'metadata' is reserved by SQLAlchemy
    extra_data = Column(JSON, nullable=True)

    ip_address = Column(String(45), nullable=True, index=True)  # IPv6 max length
    user_agent = Column(Text, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<AuditLog(id={self.id}, action={self.action.value}, "
            f"actor={self.actor_type.value}:{self.actor_id}, resource_type={self.resource_type})>"
        )
