"""
Appointment model.

WHAT: SQLAlchemy model for patient appointments with doctors.

WHY: Appointments tie patients to doctors at a specific time. Their status
lifecycle drives doctor and patient statistics (completed, cancelled,
no-show counts) and the reminder job.

HOW: Start and end timestamps are stored explicitly (naive UTC) so slot
overlap can be checked with a simple range query. appointment_date is
denormalized for per-day lookups (doctor unavailability, daily reports).
"""

import enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Float,
    Date,
    DateTime,
    JSON,
    Enum,
    ForeignKey,
)

from app.models.base import Base, TimestampMixin, PrimaryKeyMixin, generate_reference_code


class AppointmentType(str, enum.Enum):
    CONSULTATION = "consultation"
    FOLLOW_UP = "follow-up"
    EMERGENCY = "emergency"
    ROUTINE_CHECKUP = "routine-checkup"
    PROCEDURE = "procedure"


class AppointmentStatus(str, enum.Enum):
    """
    Appointment lifecycle status.

    - SCHEDULED: Booked, awaiting confirmation
    - CONFIRMED: Confirmed by clinic or doctor
    - IN_PROGRESS: Patient is with the doctor
    - COMPLETED / CANCELLED / NO_SHOW: Terminal states
    """

    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"


class AppointmentPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class BookingSource(str, enum.Enum):
    """Channel the booking arrived through."""

    WEBSITE = "website"
    MOBILE_APP = "mobile-app"
    WHATSAPP = "whatsapp"
    PHONE_CALL = "phone-call"
    EMAIL = "email"
    SMS = "sms"
    IN_PERSON = "in-person"
    THIRD_PARTY = "third-party"
    REFERRAL = "referral"
    QR_CODE = "qr-code"
    SOCIAL_MEDIA = "social-media"
    VOICE_BOT = "voice-bot"
    API = "api"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


# Statuses that occupy a doctor's time slot
ACTIVE_STATUSES = (
    AppointmentStatus.SCHEDULED,
    AppointmentStatus.CONFIRMED,
    AppointmentStatus.IN_PROGRESS,
)

# Statuses from which no further transition is possible
TERMINAL_STATUSES = (
    AppointmentStatus.COMPLETED,
    AppointmentStatus.CANCELLED,
    AppointmentStatus.NO_SHOW,
)

ALLOWED_TRANSITIONS = {
    AppointmentStatus.SCHEDULED: {
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.IN_PROGRESS,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    },
    AppointmentStatus.CONFIRMED: {
        AppointmentStatus.IN_PROGRESS,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    },
    AppointmentStatus.IN_PROGRESS: {
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
    },
    AppointmentStatus.COMPLETED: set(),
    AppointmentStatus.CANCELLED: set(),
    AppointmentStatus.NO_SHOW: set(),
}


class Appointment(Base, PrimaryKeyMixin, TimestampMixin):
    """
    A booked appointment.

    Fields:
    - appointment_code: Confirmation code handed to the patient (APT-...)
    - consultation: {"diagnosis", "prescription", "notes", "follow_up_required",
      "follow_up_date", "recommendations"}
    - booking_metadata: {"ip_address", "user_agent", "referral_source", "campaign_id"}
    """

    __tablename__ = "appointments"

    appointment_code = Column(
        String(40),
        unique=True,
        nullable=False,
        index=True,
        default=lambda: generate_reference_code("APT"),
    )

    patient_id = Column(
        Integer,
        ForeignKey("patients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    doctor_id = Column(
        Integer,
        ForeignKey("doctors.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    appointment_date = Column(Date, nullable=False, index=True)
    appointment_datetime = Column(DateTime, nullable=False, index=True)
    end_datetime = Column(DateTime, nullable=False)
    duration = Column(Integer, nullable=False, default=30)

    appointment_type = Column(Enum(AppointmentType), nullable=False)
    status = Column(
        Enum(AppointmentStatus),
        nullable=False,
        default=AppointmentStatus.SCHEDULED,
        index=True,
    )
    priority = Column(Enum(AppointmentPriority), nullable=False, default=AppointmentPriority.MEDIUM)
    booking_source = Column(Enum(BookingSource), nullable=False, index=True)

    symptoms = Column(JSON, nullable=False, default=list)
    notes = Column(Text, nullable=True)
    special_requirements = Column(Text, nullable=True)

    # Reminders
    reminders_sent = Column(Integer, nullable=False, default=0)
    last_reminder_sent = Column(DateTime, nullable=True)

    # Status bookkeeping
    cancelled_at = Column(DateTime, nullable=True)
    cancellation_reason = Column(String(500), nullable=True)
    status_update_reason = Column(String(500), nullable=True)

    # Payment
    payment_status = Column(Enum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)
    payment_amount = Column(Float, nullable=False, default=0.0)
    payment_method = Column(String(50), nullable=True)

    consultation = Column(JSON, nullable=True)
    booking_metadata = Column(JSON, nullable=True)

    def can_transition_to(self, new_status: AppointmentStatus) -> bool:
        return new_status in ALLOWED_TRANSITIONS.get(self.status, set())

    def __repr__(self) -> str:
        return (
            f"<Appointment(id={self.id}, code={self.appointment_code}, "
            f"status={self.status}, at={self.appointment_datetime})>"
        )
