"""
Pydantic schemas for appointment endpoints.

WHAT: Booking, update, status change, cancel, reschedule, completion and
consultation schemas, plus the appointment response.

WHY: Booking is public (website, WhatsApp bot, phone agents), so the
request is validated strictly before any slot check runs.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator

from app.models.appointment import (
    AppointmentType,
    AppointmentStatus,
    AppointmentPriority,
    BookingSource,
    PaymentStatus,
)
from app.schemas.common import PartialUpdate, strip_or_none


class AppointmentSortField(str, Enum):
    APPOINTMENT_DATETIME = "appointment_datetime"
    CREATED_AT = "created_at"
    STATUS = "status"
    PRIORITY = "priority"


def _clean_symptoms(value: Optional[List[str]]) -> Optional[List[str]]:
    if value is None:
        return None
    cleaned = [item.strip() for item in value if item and item.strip()]
    if any(len(item) > 200 for item in cleaned):
        raise ValueError("Each symptom must be at most 200 characters")
    return cleaned


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value
    return (value - value.utcoffset()).replace(tzinfo=None)


def future_start(value: datetime) -> datetime:
    value = to_naive_utc(value)
    if value <= datetime.utcnow():
        raise ValueError("Appointment time must be in the future")
    return value


class BookingMetadata(BaseModel):
    referral_source: Optional[str] = Field(default=None, max_length=200)
    campaign_id: Optional[str] = Field(default=None, max_length=100)
    platform: Optional[str] = Field(default=None, max_length=50)
    external_booking_id: Optional[str] = Field(default=None, max_length=100)


class AppointmentBook(BaseModel):
    """
    Public booking request.

    WHY: appointment_datetime must be in the future; slot availability is
    checked afterwards against the doctor's active appointments.
    """

    patient_id: int = Field(..., ge=1)
    doctor_id: int = Field(..., ge=1)
    appointment_datetime: datetime = Field(..., description="Start time (UTC)")
    duration: int = Field(default=30, ge=5, le=180, description="Minutes")
    appointment_type: AppointmentType = AppointmentType.CONSULTATION
    priority: AppointmentPriority = AppointmentPriority.MEDIUM
    booking_source: BookingSource = BookingSource.WEBSITE
    symptoms: List[str] = Field(default_factory=list, max_length=20)
    notes: Optional[str] = Field(default=None, max_length=1000)
    special_requirements: Optional[str] = Field(default=None, max_length=500)
    metadata: Optional[BookingMetadata] = None

    @field_validator("appointment_datetime")
    @classmethod
    def in_future(cls, value: datetime) -> datetime:
        return future_start(value)

    @field_validator("symptoms")
    @classmethod
    def validate_symptoms(cls, value: List[str]) -> List[str]:
        return _clean_symptoms(value)

    class Config:
        json_schema_extra = {
            "example": {
                "patient_id": 1,
                "doctor_id": 1,
                "appointment_datetime": "2030-01-15T10:30:00",
                "duration": 30,
                "appointment_type": "consultation",
                "booking_source": "website",
                "symptoms": ["toothache"],
            }
        }


class AppointmentUpdate(PartialUpdate):
    NULLABLE = frozenset({"notes", "special_requirements", "payment_method"})

    appointment_type: Optional[AppointmentType] = None
    priority: Optional[AppointmentPriority] = None
    symptoms: Optional[List[str]] = Field(default=None, max_length=20)
    notes: Optional[str] = Field(default=None, max_length=1000)
    special_requirements: Optional[str] = Field(default=None, max_length=500)
    payment_status: Optional[PaymentStatus] = None
    payment_amount: Optional[float] = Field(default=None, ge=0)
    payment_method: Optional[str] = Field(default=None, max_length=50)

    @field_validator("symptoms")
    @classmethod
    def validate_symptoms(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        return _clean_symptoms(value)

    @field_validator("notes", "special_requirements", "payment_method")
    @classmethod
    def strip_optional(cls, value: Optional[str]) -> Optional[str]:
        return strip_or_none(value)

    @model_validator(mode="after")
    def at_least_one_field(self) -> "AppointmentUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update")
        return self


class StatusUpdateRequest(BaseModel):
    status: AppointmentStatus
    reason: Optional[str] = Field(default=None, max_length=500)


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)


class RescheduleRequest(BaseModel):
    appointment_datetime: datetime
    duration: Optional[int] = Field(default=None, ge=5, le=180)
    reason: Optional[str] = Field(default=None, max_length=500)

    @field_validator("appointment_datetime")
    @classmethod
    def in_future(cls, value: datetime) -> datetime:
        return future_start(value)


class ConsultationData(BaseModel):
    """Doctor's notes recorded at the end of a visit."""

    diagnosis: str = Field(..., min_length=1, max_length=2000)
    prescription: Optional[str] = Field(default=None, max_length=2000)
    notes: Optional[str] = Field(default=None, max_length=2000)
    follow_up_required: bool = False
    follow_up_date: Optional[date] = None
    recommendations: Optional[str] = Field(default=None, max_length=2000)

    @model_validator(mode="after")
    def follow_up_after_today(self) -> "ConsultationData":
        if self.follow_up_date is not None and self.follow_up_date < date.today():
            raise ValueError("Follow-up date cannot be in the past")
        return self


class CompleteRequest(BaseModel):
    consultation: Optional[ConsultationData] = None


class AppointmentResponse(BaseModel):
    id: int
    appointment_code: str
    patient_id: int
    doctor_id: int
    appointment_date: date
    appointment_datetime: datetime
    end_datetime: datetime
    duration: int
    appointment_type: AppointmentType
    status: AppointmentStatus
    priority: AppointmentPriority
    booking_source: BookingSource
    symptoms: List[str]
    notes: Optional[str] = None
    special_requirements: Optional[str] = None
    reminders_sent: int
    last_reminder_sent: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    status_update_reason: Optional[str] = None
    payment_status: PaymentStatus
    payment_amount: float
    payment_method: Optional[str] = None
    consultation: Optional[Dict[str, Any]] = None
    booking_metadata: Optional[Dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

