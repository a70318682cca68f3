"""
Booking from inbound webhooks.

WHAT: Turns a channel payload into a booked appointment: resolve the
patient by email (registering them on first contact), then book through
AppointmentService with the channel as booking_source.

WHY: Partners and gateways know a patient's email and phone, never our
patient id. Booking through AppointmentService keeps the doctor,
unavailable-date and overlap checks identical to the public /book route.

HOW:
1. The channel payload is reduced to an InboundBooking
2. The patient is looked up by email; unknown emails are registered with
   placeholder date of birth and gender that staff correct at the visit
3. An AppointmentBook request is validated (future time, duration) and booked

Pydantic errors from steps 1 and 3 are raised as ValidationError (400)
with the same {field, message, type} details as a rejected request body.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exception_handlers import describe_errors
from app.core.exceptions import ValidationError
from app.dao.patient import PatientDAO
from app.models.appointment import Appointment, BookingSource
from app.models.patient import Gender, Patient, RegistrationSource
from app.schemas.appointment import AppointmentBook, BookingMetadata
from app.schemas.webhook import InboundBooking, WebhookPatient
from app.services.appointment_service import AppointmentService


logger = logging.getLogger(__name__)

PLACEHOLDER_DATE_OF_BIRTH = date(1990, 1, 1)

REGISTRATION_SOURCES = {
    BookingSource.WEBSITE: RegistrationSource.WEBSITE,
    BookingSource.EMAIL: RegistrationSource.WEBSITE,
    BookingSource.WHATSAPP: RegistrationSource.WHATSAPP,
    BookingSource.SMS: RegistrationSource.PHONE_CALL,
    BookingSource.THIRD_PARTY: RegistrationSource.REFERRAL,
}


def standardize(build: Callable[[], Optional[InboundBooking]]) -> Optional[InboundBooking]:
    """Run a payload's to_booking(), reporting invalid data as a 400."""
    try:
        return build()
    except PydanticValidationError as exc:
        raise ValidationError(message="Invalid booking data", errors=describe_errors(exc.errors()))


@dataclass
class WebhookBooking:
    appointment: Appointment
    patient: Patient
    patient_created: bool


class WebhookBookingService:
    """
    Book appointments arriving from webhooks.

    Example:
        service = WebhookBookingService(db)
        result = await service.book(booking, BookingSource.WEBSITE)
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.patients = PatientDAO(session)
        self.appointments = AppointmentService(session)

    async def resolve_patient(self, info: WebhookPatient, source: BookingSource) -> Tuple[Patient, bool]:
        """
        Find the patient by email or register them.

        Returns:
            (patient, created)
        """
        patient = await self.patients.get_by_email(info.email)
        if patient is not None:
            return patient, False

        patient = await self.patients.create(
            first_name=info.first_name,
            last_name=info.last_name,
            date_of_birth=PLACEHOLDER_DATE_OF_BIRTH,
            gender=Gender.OTHER,
            email=info.email.lower(),
            phone=info.phone,
            registration_source=REGISTRATION_SOURCES.get(source, RegistrationSource.REFERRAL),
        )
        logger.info(
            "Patient registered from webhook",
            extra={"patient_id": patient.id, "booking_source": source.value},
        )
        return patient, True

    async def book(
        self,
        booking: InboundBooking,
        source: BookingSource,
        platform: Optional[str] = None,
    ) -> WebhookBooking:
        """
        Book the appointment for an inbound booking.

        Raises:
            ValidationError: Appointment time in the past or invalid fields (400)
            PatientNotFoundError: Email belongs to a deleted patient (404)
            DoctorNotFoundError: Unknown or inactive doctor (404)
            SlotUnavailableError: Doctor away that day or slot overlaps (409)
        """
        patient, created = await self.resolve_patient(booking.patient, source)

        metadata = None
        if platform or booking.external_booking_id:
            metadata = BookingMetadata(platform=platform, external_booking_id=booking.external_booking_id)

        try:
            request = AppointmentBook(
                patient_id=patient.id,
                doctor_id=booking.doctor_id,
                appointment_datetime=booking.appointment_datetime,
                appointment_type=booking.appointment_type,
                booking_source=source,
                notes=booking.notes,
                metadata=metadata,
            )
        except PydanticValidationError as exc:
            raise ValidationError(message="Invalid booking data", errors=describe_errors(exc.errors()))

        appointment = await self.appointments.book(request)
        return WebhookBooking(appointment=appointment, patient=patient, patient_created=created)
