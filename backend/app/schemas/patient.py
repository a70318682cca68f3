"""
Pydantic schemas for patient endpoints.

WHAT: Registration, profile sections (personal, contact, medical,
preferences), admin management and response shapes.

WHY: Address, medical info and preferences are stored as JSON documents;
these schemas are the only place their structure is enforced.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from app.core.config import settings
from app.models.patient import Gender, BloodGroup, RegistrationSource, CommunicationMethod
from app.schemas.common import INDIAN_MOBILE_PATTERN, NAME_PATTERN, PartialUpdate, check_password_strength


class Address(BaseModel):
    street: str = Field(..., min_length=5, max_length=200)
    city: str = Field(..., min_length=2, max_length=100)
    state: str = Field(..., min_length=2, max_length=100)
    zip_code: str = Field(..., pattern=r"^\d{6}$", description="6-digit PIN code")
    country: str = Field(default_factory=lambda: settings.DEFAULT_COUNTRY, max_length=100)


class EmergencyContact(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    relationship: str = Field(..., min_length=2, max_length=50)
    phone: str = Field(..., pattern=INDIAN_MOBILE_PATTERN)


class MedicalInfo(BaseModel):
    allergies: List[str] = Field(default_factory=list, max_length=20)
    chronic_conditions: List[str] = Field(default_factory=list, max_length=20)
    current_medications: List[str] = Field(default_factory=list, max_length=50)
    emergency_contact: Optional[EmergencyContact] = None

    @field_validator("allergies", "chronic_conditions")
    @classmethod
    def check_short_items(cls, value: List[str]) -> List[str]:
        cleaned = [item.strip() for item in value]
        if any(not 2 <= len(item) <= 100 for item in cleaned):
            raise ValueError("Each entry must be 2-100 characters")
        return cleaned

    @field_validator("current_medications")
    @classmethod
    def check_medications(cls, value: List[str]) -> List[str]:
        cleaned = [item.strip() for item in value]
        if any(not 2 <= len(item) <= 200 for item in cleaned):
            raise ValueError("Each medication must be 2-200 characters")
        return cleaned


class ReminderSettings(BaseModel):
    enable_reminders: bool = True
    reminder_time: int = Field(
        default=24, ge=1, le=settings.APPOINTMENT_REMINDER_MAX_HOURS, description="Hours before the appointment"
    )


class Preferences(BaseModel):
    preferred_language: str = Field(default="english", max_length=30)
    communication_method: CommunicationMethod = CommunicationMethod.EMAIL
    reminder_settings: ReminderSettings = Field(default_factory=ReminderSettings)


def _check_birth_date(value: Optional[date]) -> Optional[date]:
    if value is None:
        return None
    if value < date(1900, 1, 1):
        raise ValueError("Date of birth cannot be before 1900-01-01")
    if value > date.today():
        raise ValueError("Date of birth cannot be in the future")
    return value


class PersonalInfo(PartialUpdate):
    NULLABLE = frozenset({"blood_group"})

    first_name: Optional[str] = Field(default=None, min_length=2, max_length=50, pattern=NAME_PATTERN)
    last_name: Optional[str] = Field(default=None, min_length=2, max_length=50, pattern=NAME_PATTERN)
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    blood_group: Optional[BloodGroup] = None

    @field_validator("date_of_birth")
    @classmethod
    def validate_birth_date(cls, value: Optional[date]) -> Optional[date]:
        return _check_birth_date(value)


class ContactInfo(PartialUpdate):
    NULLABLE = frozenset({"alternate_phone", "address"})

    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, pattern=INDIAN_MOBILE_PATTERN)
    alternate_phone: Optional[str] = Field(default=None, pattern=INDIAN_MOBILE_PATTERN)
    address: Optional[Address] = None


class PatientRegister(BaseModel):
    """
    Patient registration request.

    WHY: password is optional because front-desk staff register walk-in
    patients who never log in themselves.
    """

    first_name: str = Field(..., min_length=2, max_length=50, pattern=NAME_PATTERN)
    last_name: str = Field(..., min_length=2, max_length=50, pattern=NAME_PATTERN)
    date_of_birth: date
    gender: Gender
    blood_group: Optional[BloodGroup] = None

    email: EmailStr
    phone: str = Field(..., pattern=INDIAN_MOBILE_PATTERN)
    alternate_phone: Optional[str] = Field(default=None, pattern=INDIAN_MOBILE_PATTERN)
    address: Optional[Address] = None

    medical_info: Optional[MedicalInfo] = None
    preferences: Optional[Preferences] = None

    registration_source: RegistrationSource = RegistrationSource.WEBSITE
    password: Optional[str] = None

    @field_validator("date_of_birth")
    @classmethod
    def validate_birth_date(cls, value: date) -> date:
        return _check_birth_date(value)

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: Optional[str]) -> Optional[str]:
        return check_password_strength(value) if value is not None else None

    class Config:
        json_schema_extra = {
            "example": {
                "first_name": "Ravi",
                "last_name": "Kumar",
                "date_of_birth": "1990-04-12",
                "gender": "male",
                "email": "ravi.kumar@example.com",
                "phone": "+919876543210",
                "registration_source": "website",
                "password": "Secure@Pass1",
            }
        }


class PatientProfileUpdate(PartialUpdate):
    """Profile update grouped by section; every section is optional but none may be null."""

    personal_info: Optional[PersonalInfo] = None
    contact_info: Optional[ContactInfo] = None
    medical_info: Optional[MedicalInfo] = None
    preferences: Optional[Preferences] = None

    @model_validator(mode="after")
    def at_least_one_section(self) -> "PatientProfileUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one profile section must be provided")
        return self


class PatientAdminUpdate(PersonalInfo, ContactInfo):
    """Flat update used by admins."""

    NULLABLE = PersonalInfo.NULLABLE | ContactInfo.NULLABLE

    medical_info: Optional[MedicalInfo] = None
    preferences: Optional[Preferences] = None
    registration_source: Optional[RegistrationSource] = None


class CheckPatientEmailRequest(BaseModel):
    email: EmailStr


class CheckPhoneRequest(BaseModel):
    phone: str = Field(..., pattern=INDIAN_MOBILE_PATTERN)


class PatientSortField(str, Enum):
    CREATED_AT = "created_at"
    FIRST_NAME = "first_name"
    LAST_NAME = "last_name"
    LAST_VISIT = "last_visit"
    TOTAL_APPOINTMENTS = "total_appointments"


class PatientResponse(BaseModel):
    id: int
    patient_code: str
    first_name: str
    last_name: str
    full_name: str
    date_of_birth: date
    age: Optional[int] = None
    gender: Gender
    blood_group: Optional[BloodGroup] = None
    email: str
    phone: str
    alternate_phone: Optional[str] = None
    address: Optional[Dict[str, Any]] = None
    medical_info: Dict[str, Any]
    preferences: Dict[str, Any]
    total_appointments: int
    completed_appointments: int
    cancelled_appointments: int
    no_show_count: int
    last_visit: Optional[datetime] = None
    registration_source: RegistrationSource
    is_active: bool
    is_deleted: bool
    last_login: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
