"""
Service category and clinic service models.

WHAT: ServiceCategory groups the treatments a clinic offers
(e.g. "Orthodontics", "Cosmetic Dentistry"); ClinicService is a single
bookable treatment within a category.

WHY: Categories drive the public service menu. They carry display data
(color, position) and a denormalized service_count so menus can render
without counting services on every request.

HOW: service_count is kept in step by the services API whenever a service
is created, moved to another category or deleted. Category deletion is
refused while services still point at it.
"""

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    Float,
    ForeignKey,
)

from app.models.base import Base, TimestampMixin, PrimaryKeyMixin


class ServiceCategory(Base, PrimaryKeyMixin, TimestampMixin):
    """A named grouping of clinic services."""

    __tablename__ = "service_categories"

    # Uniqueness is case-insensitive and enforced in the DAO
    name = Column(String(50), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=False)
    color = Column(String(7), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    position = Column(Integer, default=0, nullable=False)
    service_count = Column(Integer, default=0, nullable=False)

    def __repr__(self) -> str:
        return f"<ServiceCategory(id={self.id}, name={self.name})>"


class ClinicService(Base, PrimaryKeyMixin, TimestampMixin):
    """A bookable treatment offered by the clinic."""

    __tablename__ = "clinic_services"

    name = Column(String(100), nullable=False, index=True)
    description = Column(Text, nullable=True)
    category_id = Column(
        Integer,
        ForeignKey("service_categories.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    price = Column(Float, nullable=False, default=0.0)
    duration_minutes = Column(Integer, nullable=False, default=30)
    is_active = Column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<ClinicService(id={self.id}, name={self.name}, category_id={self.category_id})>"
