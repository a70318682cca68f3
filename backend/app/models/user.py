"""
Staff user model.

WHY: Staff users administer the clinic (categories, inventory, patients,
doctor verification). Doctors and patients authenticate separately and
live in their own tables.
"""

import enum
from sqlalchemy import Column, String, Enum, Boolean, DateTime

from app.models.base import Base, TimestampMixin, PrimaryKeyMixin


class UserRole(str, enum.Enum):
    """
    Staff role enumeration.

    WHY: SUPER_ADMIN manages admins, ADMIN manages clinic data, the other
    roles can read clinic data but not change master data.
    """

    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    STAFF = "staff"
    RECEPTIONIST = "receptionist"
    NURSE = "nurse"


ADMIN_ROLES = frozenset({UserRole.SUPER_ADMIN, UserRole.ADMIN})


class User(Base, PrimaryKeyMixin, TimestampMixin):
    """Staff member who can log in to the clinic back office."""

    __tablename__ = "users"

    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(20), nullable=True)

    hashed_password = Column(String(255), nullable=False)

    role = Column(Enum(UserRole), nullable=False, default=UserRole.STAFF)

    # WHY: is_active allows suspending staff without losing their audit trail
    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime, nullable=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
