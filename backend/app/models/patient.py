"""
Patient model.

WHAT: SQLAlchemy model for clinic patients.

WHY: Patients can self-register through the website or app, or be
registered by front-desk staff. Their medical information (allergies,
medications) must be available to doctors at booking time.

HOW: Address, medical info and preferences are JSON documents because
they are always edited as a unit. Deletion is soft (is_deleted) so that
appointment history stays intact.
"""

import enum
from datetime import date
from typing import Optional
from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    Date,
    DateTime,
    JSON,
    Enum,
)

from app.models.base import Base, TimestampMixin, PrimaryKeyMixin, generate_reference_code


class Gender(str, enum.Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class BloodGroup(str, enum.Enum):
    A_POSITIVE = "A+"
    A_NEGATIVE = "A-"
    B_POSITIVE = "B+"
    B_NEGATIVE = "B-"
    AB_POSITIVE = "AB+"
    AB_NEGATIVE = "AB-"
    O_POSITIVE = "O+"
    O_NEGATIVE = "O-"


class RegistrationSource(str, enum.Enum):
    """Channel through which the patient first registered."""

    WEBSITE = "website"
    MOBILE_APP = "mobile-app"
    WHATSAPP = "whatsapp"
    PHONE_CALL = "phone-call"
    IN_PERSON = "in-person"
    REFERRAL = "referral"


class CommunicationMethod(str, enum.Enum):
    EMAIL = "email"
    SMS = "sms"
    WHATSAPP = "whatsapp"
    PHONE = "phone"


DEFAULT_PREFERENCES = {
    "preferred_language": "english",
    "communication_method": CommunicationMethod.EMAIL.value,
    "reminder_settings": {"enable_reminders": True, "reminder_time": 24},
}

DEFAULT_MEDICAL_INFO = {
    "allergies": [],
    "chronic_conditions": [],
    "current_medications": [],
    "emergency_contact": None,
}


class Patient(Base, PrimaryKeyMixin, TimestampMixin):
    """
    A patient of the clinic.

    Fields:
    - patient_code: Human-readable identifier (PAT-...)
    - address: {"street", "city", "state", "zip_code", "country"}
    - medical_info: {"allergies", "chronic_conditions", "current_medications", "emergency_contact"}
    - preferences: {"preferred_language", "communication_method", "reminder_settings"}
    """

    __tablename__ = "patients"

    patient_code = Column(
        String(40),
        unique=True,
        nullable=False,
        index=True,
        default=lambda: generate_reference_code("PAT"),
    )

    # Personal information
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    date_of_birth = Column(Date, nullable=False)
    gender = Column(Enum(Gender), nullable=False)
    blood_group = Column(Enum(BloodGroup), nullable=True)

    # Contact information
    email = Column(String(255), unique=True, nullable=False, index=True)
    phone = Column(String(20), nullable=False, index=True)
    alternate_phone = Column(String(20), nullable=True)
    address = Column(JSON, nullable=True)

    medical_info = Column(JSON, nullable=False, default=lambda: dict(DEFAULT_MEDICAL_INFO))
    preferences = Column(JSON, nullable=False, default=lambda: dict(DEFAULT_PREFERENCES))

    # Statistics
    total_appointments = Column(Integer, nullable=False, default=0)
    completed_appointments = Column(Integer, nullable=False, default=0)
    cancelled_appointments = Column(Integer, nullable=False, default=0)
    no_show_count = Column(Integer, nullable=False, default=0)
    last_visit = Column(DateTime, nullable=True)

    registration_source = Column(Enum(RegistrationSource), nullable=False)

    # Account
    # WHY: Nullable because staff-registered patients have no login until they set one
    hashed_password = Column(String(255), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    is_deleted = Column(Boolean, nullable=False, default=False, index=True)
    deleted_at = Column(DateTime, nullable=True)
    last_login = Column(DateTime, nullable=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def age(self) -> Optional[int]:
        if not self.date_of_birth:
            return None
        today = date.today()
        born = self.date_of_birth
        return today.year - born.year - ((today.month, today.day) < (born.month, born.day))

    def __repr__(self) -> str:
        return f"<Patient(id={self.id}, code={self.patient_code})>"
