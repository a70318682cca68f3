"""
Doctor model.

WHAT: SQLAlchemy models for doctors and the dates they are unavailable.

WHY: Doctors are both bookable resources and authenticated actors. A doctor
registers, waits for an admin to activate and verify the account, then
manages their own schedule, fees and appointments.

HOW: The weekly schedule (working days, breaks) is stored as JSON because
it is always read and written as a whole. Unavailable dates get their own
table so they can be queried by date range and kept unique per doctor.
"""

import enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    Float,
    Date,
    DateTime,
    JSON,
    Enum,
    ForeignKey,
    UniqueConstraint,
)

from app.models.base import Base, TimestampMixin, PrimaryKeyMixin, generate_reference_code


class VerificationStatus(str, enum.Enum):
    """Admin verification state of a doctor's credentials."""

    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class UnavailabilityType(str, enum.Enum):
    """Which part of the day a doctor is away."""

    FULL_DAY = "full-day"
    HALF_DAY = "half-day"
    MORNING = "morning"
    AFTERNOON = "afternoon"


WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


class Doctor(Base, PrimaryKeyMixin, TimestampMixin):
    """
    A doctor working at the clinic.

    Fields:
    - doctor_code: Human-readable identifier (DOC-...)
    - working_days: [{"day", "start_time", "end_time", "is_working"}]
    - break_times: [{"id", "day", "start_time", "end_time", "title"}]
    - is_active: False until an admin activates the registration
    """

    __tablename__ = "doctors"

    doctor_code = Column(
        String(40),
        unique=True,
        nullable=False,
        index=True,
        default=lambda: generate_reference_code("DOC"),
    )

    # Personal information
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    phone = Column(String(20), unique=True, nullable=False)

    # Professional information
    specialization = Column(String(100), nullable=False, index=True)
    qualifications = Column(JSON, nullable=False, default=list)
    experience = Column(Integer, nullable=False, default=0)
    license_number = Column(String(20), unique=True, nullable=False, index=True)
    department = Column(String(100), nullable=True)

    # Schedule
    working_days = Column(JSON, nullable=False, default=list)
    slot_duration = Column(Integer, nullable=False, default=30)
    break_times = Column(JSON, nullable=False, default=list)

    # Availability
    is_available = Column(Boolean, nullable=False, default=True)
    max_appointments_per_day = Column(Integer, nullable=False, default=20)

    # Fees
    consultation_fee = Column(Float, nullable=False, default=0.0)
    follow_up_fee = Column(Float, nullable=True)
    emergency_fee = Column(Float, nullable=True)

    # Statistics
    total_appointments = Column(Integer, nullable=False, default=0)
    completed_appointments = Column(Integer, nullable=False, default=0)
    cancelled_appointments = Column(Integer, nullable=False, default=0)
    rating = Column(Float, nullable=False, default=0.0)
    review_count = Column(Integer, nullable=False, default=0)

    # Account
    hashed_password = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=False, index=True)
    is_verified_by_admin = Column(Boolean, nullable=False, default=False)
    verification_status = Column(
        Enum(VerificationStatus),
        nullable=False,
        default=VerificationStatus.PENDING,
    )
    verification_notes = Column(Text, nullable=True)
    status_reason = Column(String(200), nullable=True)
    last_login = Column(DateTime, nullable=True)
    last_password_change = Column(DateTime, nullable=True)

    @property
    def full_name(self) -> str:
        return f"Dr. {self.first_name} {self.last_name}"

    def working_day(self, day_name: str) -> dict | None:
        """Return the schedule entry for a weekday name, if any."""
        for entry in self.working_days or []:
            if entry.get("day") == day_name:
                return entry
        return None

    def __repr__(self) -> str:
        return f"<Doctor(id={self.id}, code={self.doctor_code}, specialization={self.specialization})>"


class DoctorUnavailableDate(Base, PrimaryKeyMixin, TimestampMixin):
    """A calendar date on which a doctor does not see patients."""

    __tablename__ = "doctor_unavailable_dates"
    __table_args__ = (
        UniqueConstraint("doctor_id", "date", name="uq_doctor_unavailable_date"),
    )

    doctor_id = Column(
        Integer,
        ForeignKey("doctors.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    date = Column(Date, nullable=False, index=True)
    reason = Column(String(100), nullable=False, default="Personal leave")
    type = Column(Enum(UnavailabilityType), nullable=False, default=UnavailabilityType.FULL_DAY)
    notes = Column(String(500), nullable=True)

    def __repr__(self) -> str:
        return f"<DoctorUnavailableDate(doctor_id={self.doctor_id}, date={self.date})>"
