"""
Pydantic schemas for doctor endpoints.

WHAT: Registration, profile, schedule, availability, fee, unavailable-date
and admin verification schemas, plus public and private response shapes.

WHY: Doctor schedules are stored as JSON, so every structural rule
(valid weekday, HH:MM times, end after start, no repeated day) has to be
enforced here before the data is saved.
"""

import datetime as dt
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from app.models.doctor import UnavailabilityType, VerificationStatus
from app.schemas.common import (
    INTL_PHONE_PATTERN,
    NAME_PATTERN,
    TIME_PATTERN,
    PartialUpdate,
    check_password_strength,
    time_to_minutes,
)


class Weekday(str, Enum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"


class DoctorSortField(str, Enum):
    RATING = "rating"
    EXPERIENCE = "experience"
    CONSULTATION_FEE = "consultation_fee"
    FIRST_NAME = "first_name"


class WorkingDay(BaseModel):
    """One weekday of a doctor's weekly schedule."""

    day: Weekday
    start_time: str = Field(..., pattern=TIME_PATTERN, description="HH:MM")
    end_time: str = Field(..., pattern=TIME_PATTERN, description="HH:MM")
    is_working: bool = True

    @model_validator(mode="after")
    def end_after_start(self) -> "WorkingDay":
        if self.is_working and time_to_minutes(self.end_time) <= time_to_minutes(self.start_time):
            raise ValueError("End time must be after start time")
        return self


class BreakTimeCreate(BaseModel):
    """A recurring break (lunch, prayer, admin time)."""

    day: Optional[Weekday] = Field(default=None, description="Omit for a break every working day")
    start_time: str = Field(..., pattern=TIME_PATTERN)
    end_time: str = Field(..., pattern=TIME_PATTERN)
    title: Optional[str] = Field(default=None, max_length=100)

    @model_validator(mode="after")
    def end_after_start(self) -> "BreakTimeCreate":
        if time_to_minutes(self.end_time) <= time_to_minutes(self.start_time):
            raise ValueError("Break end time must be after start time")
        return self


class BreakTime(BreakTimeCreate):
    id: Optional[str] = Field(default=None, description="Server-generated break id")


def _unique_days(days: Optional[List[WorkingDay]]) -> Optional[List[WorkingDay]]:
    if days is None:
        return None
    names = [entry.day for entry in days]
    if len(names) != len(set(names)):
        raise ValueError("Working days must not repeat")
    return days


class _DoctorNames(BaseModel):
    @field_validator("first_name", "last_name", check_fields=False)
    @classmethod
    def strip_names(cls, value: Optional[str]) -> Optional[str]:
        return value.strip() if value is not None else None


class DoctorRegister(_DoctorNames):
    """
    Doctor self-registration request.

    WHY: Registration creates an inactive account; an admin activates and
    verifies it before the doctor can log in or be booked.
    """

    first_name: str = Field(..., min_length=2, max_length=50, pattern=NAME_PATTERN)
    last_name: str = Field(..., min_length=2, max_length=50, pattern=NAME_PATTERN)
    email: EmailStr
    phone: str = Field(..., pattern=INTL_PHONE_PATTERN)
    password: str

    specialization: str = Field(..., min_length=2, max_length=100)
    qualifications: List[str] = Field(..., min_length=1, max_length=10)
    experience: int = Field(..., ge=0, le=50, description="Years of practice")
    license_number: str = Field(..., min_length=3, max_length=20, pattern=r"^[A-Za-z0-9]+$")
    department: Optional[str] = Field(default=None, max_length=100)

    working_days: List[WorkingDay] = Field(default_factory=list)
    slot_duration: int = Field(default=30, ge=15, le=120)
    break_times: List[BreakTimeCreate] = Field(default_factory=list)
    max_appointments_per_day: int = Field(default=20, ge=1, le=100)

    consultation_fee: float = Field(..., ge=0)
    follow_up_fee: Optional[float] = Field(default=None, ge=0)
    emergency_fee: Optional[float] = Field(default=None, ge=0)

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        return check_password_strength(value)

    @field_validator("license_number")
    @classmethod
    def upper_license(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("qualifications")
    @classmethod
    def clean_qualifications(cls, value: List[str]) -> List[str]:
        cleaned = [item.strip() for item in value]
        if any(not item for item in cleaned):
            raise ValueError("Qualifications cannot be blank")
        return cleaned

    @field_validator("working_days")
    @classmethod
    def validate_days(cls, value: List[WorkingDay]) -> List[WorkingDay]:
        return _unique_days(value)

    class Config:
        json_schema_extra = {
            "example": {
                "first_name": "Asha",
                "last_name": "Rao",
                "email": "asha.rao@clinic.example",
                "phone": "+919812345678",
                "password": "Secure@Pass1",
                "specialization": "Orthodontics",
                "qualifications": ["BDS", "MDS"],
                "experience": 8,
                "license_number": "DCI12345",
                "consultation_fee": 500,
            }
        }


class DoctorProfileUpdate(_DoctorNames, PartialUpdate):
    NULLABLE = frozenset({"department"})

    first_name: Optional[str] = Field(default=None, min_length=2, max_length=50, pattern=NAME_PATTERN)
    last_name: Optional[str] = Field(default=None, min_length=2, max_length=50, pattern=NAME_PATTERN)
    department: Optional[str] = Field(default=None, max_length=100)


class ProfessionalInfoUpdate(PartialUpdate):
    NULLABLE = frozenset({"department"})

    specialization: Optional[str] = Field(default=None, min_length=2, max_length=100)
    qualifications: Optional[List[str]] = Field(default=None, min_length=1, max_length=10)
    experience: Optional[int] = Field(default=None, ge=0, le=50)
    license_number: Optional[str] = Field(default=None, min_length=3, max_length=20, pattern=r"^[A-Za-z0-9]+$")
    department: Optional[str] = Field(default=None, max_length=100)

    @field_validator("license_number")
    @classmethod
    def upper_license(cls, value: Optional[str]) -> Optional[str]:
        return value.strip().upper() if value else value


class ContactInfoUpdate(PartialUpdate):
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, pattern=INTL_PHONE_PATTERN)


class ScheduleUpdate(PartialUpdate):
    working_days: Optional[List[WorkingDay]] = None
    slot_duration: Optional[int] = Field(default=None, ge=15, le=120)
    break_times: Optional[List[BreakTime]] = None

    @field_validator("working_days")
    @classmethod
    def validate_days(cls, value: Optional[List[WorkingDay]]) -> Optional[List[WorkingDay]]:
        return _unique_days(value)


class AvailabilityUpdate(PartialUpdate):
    is_available: Optional[bool] = None
    max_appointments_per_day: Optional[int] = Field(default=None, ge=1, le=100)

    @model_validator(mode="after")
    def at_least_one_field(self) -> "AvailabilityUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update")
        return self


class FeesUpdate(PartialUpdate):
    NULLABLE = frozenset({"follow_up_fee", "emergency_fee"})

    consultation_fee: Optional[float] = Field(default=None, ge=0)
    follow_up_fee: Optional[float] = Field(default=None, ge=0)
    emergency_fee: Optional[float] = Field(default=None, ge=0)


class UnavailableDateCreate(BaseModel):
    date: date
    reason: str = Field(default="Personal leave", min_length=1, max_length=100)
    type: UnavailabilityType = UnavailabilityType.FULL_DAY
    notes: Optional[str] = Field(default=None, max_length=500)


class UnavailableDateRangeCreate(BaseModel):
    start_date: date
    end_date: date
    reason: str = Field(default="Personal leave", min_length=1, max_length=100)
    type: UnavailabilityType = UnavailabilityType.FULL_DAY
    notes: Optional[str] = Field(default=None, max_length=500)


class UnavailableDateUpdate(PartialUpdate):
    NULLABLE = frozenset({"notes"})

    # Module-qualified so the field name does not shadow the type
    date: Optional[dt.date] = None
    reason: Optional[str] = Field(default=None, min_length=1, max_length=100)
    type: Optional[UnavailabilityType] = None
    notes: Optional[str] = Field(default=None, max_length=500)


class BulkRemoveRequest(BaseModel):
    ids: List[int] = Field(..., min_length=1, max_length=100)


class UnavailableDateResponse(BaseModel):
    id: int
    date: date
    reason: str
    type: UnavailabilityType
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class DoctorStatusUpdate(BaseModel):
    is_active: bool
    reason: str = Field(..., min_length=5, max_length=200)


class DoctorVerifyRequest(BaseModel):
    verification_status: VerificationStatus
    verification_notes: Optional[str] = Field(default=None, max_length=1000)


class CheckEmailRequest(BaseModel):
    email: EmailStr


class CheckLicenseRequest(BaseModel):
    license_number: str = Field(..., min_length=3, max_length=20)


class DoctorPublicResponse(BaseModel):
    """Doctor fields patients may see. No account or contact data."""

    id: int
    doctor_code: str
    first_name: str
    last_name: str
    full_name: str
    specialization: str
    qualifications: List[str]
    experience: int
    department: Optional[str] = None
    working_days: List[Dict[str, Any]]
    slot_duration: int
    is_available: bool
    consultation_fee: float
    follow_up_fee: Optional[float] = None
    emergency_fee: Optional[float] = None
    rating: float
    review_count: int

    class Config:
        from_attributes = True


class DoctorResponse(DoctorPublicResponse):
    """Full doctor record for the doctor themself and for admins."""

    email: str
    phone: str
    license_number: str
    break_times: List[Dict[str, Any]]
    max_appointments_per_day: int
    total_appointments: int
    completed_appointments: int
    cancelled_appointments: int
    is_active: bool
    is_verified_by_admin: bool
    verification_status: VerificationStatus
    verification_notes: Optional[str] = None
    status_reason: Optional[str] = None
    last_login: Optional[datetime] = None
    last_password_change: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

