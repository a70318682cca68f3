"""
Pydantic schemas for inbound booking webhooks.

WHAT: The payload each channel sends (WordPress plugin, WhatsApp and SMS
gateways, the email parser, Practo and other partner platforms) and the
channel-neutral InboundBooking every payload is reduced to.

WHY: Each sender names the same facts differently. Reducing them to one
shape early means patient lookup and slot checks run once, the same way
for every channel.

HOW: Channel payloads expose to_booking(). It builds InboundBooking with
model_validate, so a bad name, phone or date raised there is a pydantic
error the webhook service reports as a 400.
"""

from datetime import date, datetime, time
from typing import Any, Dict, Optional, Tuple, Type
from pydantic import BaseModel, EmailStr, Field, field_validator

from app.models.appointment import AppointmentType
from app.schemas.appointment import future_start
from app.schemas.common import INDIAN_MOBILE_PATTERN, NAME_PATTERN, TIME_PATTERN

WHATSAPP_PREFIX = "whatsapp:"


def split_name(full_name: str) -> Tuple[str, str]:
    """Split "First Rest Of Name"; a single name is used for both parts."""
    parts = full_name.split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:]) or parts[0]


class WebhookPatient(BaseModel):
    """Who the booking is for; matched to an existing patient by email."""

    first_name: str = Field(..., min_length=1, max_length=50, pattern=NAME_PATTERN)
    last_name: str = Field(..., min_length=1, max_length=50, pattern=NAME_PATTERN)
    email: EmailStr
    phone: str = Field(..., pattern=INDIAN_MOBILE_PATTERN)

    class Config:
        str_strip_whitespace = True


class InboundBooking(BaseModel):
    patient: WebhookPatient
    doctor_id: int = Field(..., ge=1)
    appointment_datetime: datetime
    appointment_type: AppointmentType = AppointmentType.CONSULTATION
    notes: Optional[str] = Field(default=None, max_length=1000)
    external_booking_id: Optional[str] = Field(default=None, max_length=100)

    @field_validator("appointment_datetime")
    @classmethod
    def in_future(cls, value: datetime) -> datetime:
        return future_start(value)


# ============================================================================
# Website and messaging channels
# ============================================================================


class WordPressBooking(BaseModel):
    """Form submission from the clinic website's booking plugin."""

    patient_name: str = Field(..., min_length=1, max_length=101)
    patient_email: str
    patient_phone: str
    doctor_id: int = Field(..., ge=1)
    appointment_date: date
    appointment_time: str = Field(..., pattern=TIME_PATTERN)
    service_type: AppointmentType = AppointmentType.CONSULTATION
    notes: Optional[str] = Field(default=None, max_length=1000)

    def to_booking(self) -> InboundBooking:
        first_name, last_name = split_name(self.patient_name)
        hour, minute = self.appointment_time.split(":")
        return InboundBooking.model_validate(
            {
                "patient": {
                    "first_name": first_name,
                    "last_name": last_name,
                    "email": self.patient_email,
                    "phone": self.patient_phone,
                },
                "doctor_id": self.doctor_id,
                "appointment_datetime": datetime.combine(self.appointment_date, time(int(hour), int(minute))),
                "appointment_type": self.service_type,
                "notes": self.notes,
            }
        )


class StructuredBooking(BaseModel):
    """Booking details a chatbot has already collected from the conversation."""

    email: str
    doctor_id: int = Field(..., ge=1)
    appointment_datetime: datetime
    symptoms_note: Optional[str] = Field(default=None, max_length=1000)


class ChannelMessage(BaseModel):
    """
    Inbound WhatsApp or SMS message in the gateway's field names.

    Free text is never parsed into a booking. When the gateway's bot has
    collected the details it sends them in `booking`; otherwise the sender
    is pointed to the booking page.
    """

    body: str = Field(..., alias="Body", max_length=1600)
    sender: str = Field(..., alias="From", min_length=1, max_length=50)
    profile_name: Optional[str] = Field(default=None, alias="ProfileName", max_length=101)
    booking: Optional[StructuredBooking] = None

    class Config:
        populate_by_name = True

    @property
    def phone(self) -> str:
        sender = self.sender.strip()
        if sender.startswith(WHATSAPP_PREFIX):
            sender = sender[len(WHATSAPP_PREFIX):]
        return sender

    def mentions(self, keyword: str) -> bool:
        return keyword in self.body.lower()

    def to_booking(self) -> Optional[InboundBooking]:
        if self.booking is None:
            return None
        first_name, last_name = split_name(self.profile_name or "")
        return InboundBooking.model_validate(
            {
                "patient": {
                    "first_name": first_name,
                    "last_name": last_name,
                    "email": self.booking.email,
                    "phone": self.phone,
                },
                "doctor_id": self.booking.doctor_id,
                "appointment_datetime": self.booking.appointment_datetime,
                "notes": self.booking.symptoms_note,
            }
        )


class ParsedEmail(BaseModel):
    patient_name: str = Field(..., min_length=1, max_length=101)
    phone: str
    doctor_id: int = Field(..., ge=1)
    preferred_date: datetime


class EmailBooking(BaseModel):
    """
    Email forwarded by the mail parser.

    Only emails the parser could structure (`parsed_data`) become bookings;
    the email body is kept as the appointment notes.
    """

    from_email: str
    subject: str = Field(default="", max_length=300)
    body: str = Field(default="", max_length=5000)
    parsed_data: Optional[ParsedEmail] = None

    def to_booking(self) -> Optional[InboundBooking]:
        if self.parsed_data is None:
            return None
        first_name, last_name = split_name(self.parsed_data.patient_name)
        return InboundBooking.model_validate(
            {
                "patient": {
                    "first_name": first_name,
                    "last_name": last_name,
                    "email": self.from_email,
                    "phone": self.parsed_data.phone,
                },
                "doctor_id": self.parsed_data.doctor_id,
                "appointment_datetime": self.parsed_data.preferred_date,
                "notes": self.body[:1000] or None,
            }
        )


# ============================================================================
# Partner platforms
# ============================================================================


class PartnerPatient(BaseModel):
    first_name: str
    last_name: str
    email: str
    phone: str


class PractoDoctor(BaseModel):
    internal_id: int


class PractoBooking(BaseModel):
    patient: PartnerPatient
    doctor: PractoDoctor
    appointment_datetime: datetime
    booking_id: str = Field(..., min_length=1, max_length=100)

    def to_booking(self) -> InboundBooking:
        return InboundBooking.model_validate(
            {
                "patient": self.patient.model_dump(),
                "doctor_id": self.doctor.internal_id,
                "appointment_datetime": self.appointment_datetime,
                "external_booking_id": self.booking_id,
            }
        )


class _ZocdocProvider(BaseModel):
    internal_id: int


class _ZocdocSlot(BaseModel):
    start_time: datetime


class ZocdocBooking(BaseModel):
    patient: PartnerPatient
    provider: _ZocdocProvider
    appointment: _ZocdocSlot

    def to_booking(self) -> InboundBooking:
        return InboundBooking.model_validate(
            {
                "patient": self.patient.model_dump(),
                "doctor_id": self.provider.internal_id,
                "appointment_datetime": self.appointment.start_time,
            }
        )


class _LybrateUser(BaseModel):
    name: str
    email: str
    mobile: str


class _LybrateDoctor(BaseModel):
    mapped_id: int


class _LybrateSlot(BaseModel):
    starts_at: datetime = Field(..., alias="datetime")


class LybrateBooking(BaseModel):
    user: _LybrateUser
    doctor: _LybrateDoctor
    slot: _LybrateSlot

    def to_booking(self) -> InboundBooking:
        first_name, last_name = split_name(self.user.name)
        return InboundBooking.model_validate(
            {
                "patient": {
                    "first_name": first_name,
                    "last_name": last_name,
                    "email": self.user.email,
                    "phone": self.user.mobile,
                },
                "doctor_id": self.doctor.mapped_id,
                "appointment_datetime": self.slot.starts_at,
            }
        )


class GenericBooking(BaseModel):
    """
    Any other partner: camelCase or snake_case field names are accepted.

    Name parts may come split or as one patient_name.
    """

    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")
    patient_name: Optional[str] = None
    email: Optional[str] = None
    patient_email: Optional[str] = None
    phone: Optional[str] = None
    patient_phone: Optional[str] = None
    doctor_id: Optional[int] = Field(default=None, alias="doctorId")
    appointment_datetime: Optional[datetime] = Field(default=None, alias="appointmentDateTime")
    appointment_date: Optional[datetime] = None
    booking_id: Optional[str] = Field(default=None, max_length=100)

    class Config:
        populate_by_name = True
        extra = "ignore"

    def to_booking(self) -> InboundBooking:
        given, family = split_name(self.patient_name or "")
        return InboundBooking.model_validate(
            {
                "patient": {
                    "first_name": self.first_name or given,
                    "last_name": self.last_name or family,
                    "email": self.email or self.patient_email,
                    "phone": self.phone or self.patient_phone,
                },
                "doctor_id": self.doctor_id,
                "appointment_datetime": self.appointment_datetime or self.appointment_date,
                "external_booking_id": self.booking_id,
            }
        )


EXTERNAL_FORMATS: Dict[str, Type[BaseModel]] = {
    "zocdoc": ZocdocBooking,
    "lybrate": LybrateBooking,
}


def parse_external(source: str, payload: Dict[str, Any]) -> InboundBooking:
    """Read a partner payload in the partner's own format, or the generic one."""
    model = EXTERNAL_FORMATS.get(source, GenericBooking)
    return model.model_validate(payload).to_booking()
