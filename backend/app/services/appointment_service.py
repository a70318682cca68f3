"""
Appointment service.

WHAT: Business rules for booking appointments and moving them through
their lifecycle.

WHY: The same rules apply whether a transition comes from front-desk
staff, from the doctor's own dashboard or from the doctor marking a day
unavailable: the transition must be allowed, cancellation timestamps must
be set and doctor and patient statistics must stay in step.

HOW: Route handlers load and authorize the appointment, then call this
service. The service mutates the appointment, updates the counters
through the DAOs and flushes; the request's get_db dependency commits.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    DoctorNotFoundError,
    InvalidStateTransitionError,
    PatientNotFoundError,
    ResourceInUseError,
    SlotUnavailableError,
)
from app.dao.appointment import AppointmentDAO
from app.dao.doctor import DoctorDAO, UnavailableDateDAO
from app.dao.patient import PatientDAO
from app.middleware.request_context import get_request_context
from app.models.appointment import (
    Appointment,
    AppointmentStatus,
    AppointmentType,
    PaymentStatus,
)
from app.models.doctor import Doctor
from app.models.inventory import round_money
from app.schemas.appointment import AppointmentBook, ConsultationData


logger = logging.getLogger(__name__)

# Cancelling earlier than this before the start keeps a paid booking refundable
REFUND_NOTICE = timedelta(hours=24)

EDIT_LOCKED_STATUSES = (AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED)


def fee_for(doctor: Doctor, appointment_type: AppointmentType) -> float:
    """
    Pick the doctor's fee for an appointment type.

    Follow-ups and emergencies have their own fee; everything else is a
    consultation. A fee the doctor never set counts as 0.
    """
    if appointment_type == AppointmentType.FOLLOW_UP:
        fee = doctor.follow_up_fee
    elif appointment_type == AppointmentType.EMERGENCY:
        fee = doctor.emergency_fee
    else:
        fee = doctor.consultation_fee
    return round_money(fee)


def is_refund_eligible(appointment: Appointment, now: Optional[datetime] = None) -> bool:
    """A paid appointment cancelled more than 24 hours ahead can be refunded."""
    now = now or datetime.utcnow()
    return (
        appointment.payment_status == PaymentStatus.PAID
        and appointment.appointment_datetime - now > REFUND_NOTICE
    )


class AppointmentService:
    """
    Booking and status transitions for appointments.

    Example:
        service = AppointmentService(db)
        appointment = await service.book(payload)
        await service.change_status(appointment, AppointmentStatus.CONFIRMED)
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.appointments = AppointmentDAO(session)
        self.doctors = DoctorDAO(session)
        self.patients = PatientDAO(session)
        self.unavailable_dates = UnavailableDateDAO(session)

    async def book(self, data: AppointmentBook) -> Appointment:
        """
        Book a new appointment.

        Raises:
            PatientNotFoundError: Unknown or deleted patient (404)
            DoctorNotFoundError: Unknown or inactive doctor (404)
            SlotUnavailableError: Doctor away that day or slot overlaps (409)
        """
        patient = await self.patients.get_existing(data.patient_id)
        if patient is None:
            raise PatientNotFoundError(patient_id=data.patient_id)

        doctor = await self.doctors.get_by_id(data.doctor_id)
        if doctor is None or not doctor.is_active:
            raise DoctorNotFoundError(
                message="Doctor not found or unavailable",
                doctor_id=data.doctor_id,
            )

        start = data.appointment_datetime
        end = start + timedelta(minutes=data.duration)

        if await self.unavailable_dates.is_unavailable(doctor.id, start.date()):
            raise SlotUnavailableError(
                message="Doctor is not available on the selected date",
                date=start.date().isoformat(),
            )

        if await self.appointments.has_overlap(doctor.id, start, end):
            raise SlotUnavailableError(doctor_id=doctor.id, appointment_datetime=start.isoformat())

        metadata: Dict[str, Any] = data.metadata.model_dump(exclude_none=True) if data.metadata else {}
        ctx = get_request_context()
        if ctx:
            metadata["ip_address"] = ctx.ip_address
            metadata["user_agent"] = ctx.user_agent

        appointment = await self.appointments.create(
            patient_id=patient.id,
            doctor_id=doctor.id,
            appointment_date=start.date(),
            appointment_datetime=start,
            end_datetime=end,
            duration=data.duration,
            appointment_type=data.appointment_type,
            status=AppointmentStatus.SCHEDULED,
            priority=data.priority,
            booking_source=data.booking_source,
            symptoms=list(data.symptoms),
            notes=data.notes,
            special_requirements=data.special_requirements,
            payment_status=PaymentStatus.PENDING,
            payment_amount=fee_for(doctor, data.appointment_type),
            booking_metadata=metadata or None,
        )

        await self.doctors.increment_counter(doctor.id, "total_appointments")
        await self.patients.increment_counter(patient.id, "total_appointments")

        logger.info(
            "Appointment booked",
            extra={
                "appointment_id": appointment.id,
                "doctor_id": doctor.id,
                "patient_id": patient.id,
                "booking_source": data.booking_source.value,
            },
        )
        return appointment

    async def change_status(
        self,
        appointment: Appointment,
        new_status: AppointmentStatus,
        reason: Optional[str] = None,
    ) -> Appointment:
        """
        Move an appointment to a new status and apply the side effects.

        Side effects:
        - cancelled: cancelled_at and cancellation_reason are set, doctor
          and patient cancelled counts go up
        - completed: doctor and patient completed counts go up, the
          patient's last_visit is set
        - no-show: the patient's no_show_count goes up

        Raises:
            InvalidStateTransitionError: If the transition is not allowed (400)
        """
        old_status = appointment.status
        if not appointment.can_transition_to(new_status):
            raise InvalidStateTransitionError(
                message=f"Cannot change appointment status from {old_status.value} to {new_status.value}",
                current_status=old_status.value,
                requested_status=new_status.value,
            )

        now = datetime.utcnow()
        appointment.status = new_status
        if reason:
            appointment.status_update_reason = reason

        if new_status == AppointmentStatus.CANCELLED:
            appointment.cancelled_at = now
            appointment.cancellation_reason = reason
            await self.doctors.increment_counter(appointment.doctor_id, "cancelled_appointments")
            await self.patients.increment_counter(appointment.patient_id, "cancelled_appointments")
        elif new_status == AppointmentStatus.COMPLETED:
            await self.doctors.increment_counter(appointment.doctor_id, "completed_appointments")
            await self.patients.increment_counter(appointment.patient_id, "completed_appointments")
            patient = await self.patients.get_by_id(appointment.patient_id)
            if patient is not None:
                patient.last_visit = now
                await self.patients.save(patient)
        elif new_status == AppointmentStatus.NO_SHOW:
            await self.patients.increment_counter(appointment.patient_id, "no_show_count")

        appointment = await self.appointments.save(appointment)
        logger.info(
            "Appointment status changed",
            extra={
                "appointment_id": appointment.id,
                "from_status": old_status.value,
                "to_status": new_status.value,
            },
        )
        return appointment

    async def cancel(self, appointment: Appointment, reason: Optional[str] = None) -> Tuple[Appointment, bool]:
        """
        Cancel an appointment.

        Returns:
            (appointment, refund_eligible)
        """
        refund_eligible = is_refund_eligible(appointment)
        appointment = await self.change_status(appointment, AppointmentStatus.CANCELLED, reason)
        return appointment, refund_eligible

    async def confirm(self, appointment: Appointment) -> Appointment:
        if appointment.status != AppointmentStatus.SCHEDULED:
            raise InvalidStateTransitionError(
                message="Only scheduled appointments can be confirmed",
                current_status=appointment.status.value,
            )
        return await self.change_status(appointment, AppointmentStatus.CONFIRMED)

    async def complete(
        self,
        appointment: Appointment,
        consultation: Optional[ConsultationData] = None,
    ) -> Appointment:
        """
        Complete a confirmed or in-progress appointment.

        WHY: A confirmed appointment is moved through in-progress first so
        that the transition table stays the single source of truth.
        """
        if appointment.status not in (AppointmentStatus.CONFIRMED, AppointmentStatus.IN_PROGRESS):
            raise InvalidStateTransitionError(
                message="Only confirmed or in-progress appointments can be completed",
                current_status=appointment.status.value,
            )
        if consultation is not None:
            appointment.consultation = consultation.model_dump(mode="json")
        if appointment.status == AppointmentStatus.CONFIRMED:
            appointment.status = AppointmentStatus.IN_PROGRESS
        return await self.change_status(appointment, AppointmentStatus.COMPLETED)

    async def record_consultation(self, appointment: Appointment, consultation: ConsultationData) -> Appointment:
        """
        Store the doctor's consultation notes.

        The appointment is completed when it was confirmed or in progress;
        otherwise only the notes are saved.
        """
        if appointment.status in (AppointmentStatus.CONFIRMED, AppointmentStatus.IN_PROGRESS):
            return await self.complete(appointment, consultation)
        appointment.consultation = consultation.model_dump(mode="json")
        return await self.appointments.save(appointment)

    async def reschedule(
        self,
        appointment: Appointment,
        new_start: datetime,
        duration: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> Appointment:
        """
        Move an appointment to a new time.

        Raises:
            InvalidStateTransitionError: Unless scheduled or confirmed (400)
            SlotUnavailableError: If the new slot is taken or the doctor is away (409)
        """
        if appointment.status not in (AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED):
            raise InvalidStateTransitionError(
                message="Only scheduled or confirmed appointments can be rescheduled",
                current_status=appointment.status.value,
            )

        duration = duration or appointment.duration
        new_end = new_start + timedelta(minutes=duration)

        if await self.unavailable_dates.is_unavailable(appointment.doctor_id, new_start.date()):
            raise SlotUnavailableError(message="Doctor is not available on the selected date")
        if await self.appointments.has_overlap(
            appointment.doctor_id, new_start, new_end, exclude_id=appointment.id
        ):
            raise SlotUnavailableError()

        previous = appointment.appointment_datetime
        appointment.appointment_datetime = new_start
        appointment.appointment_date = new_start.date()
        appointment.end_datetime = new_end
        appointment.duration = duration
        appointment.status = AppointmentStatus.SCHEDULED
        appointment.reminders_sent = 0
        appointment.last_reminder_sent = None
        appointment.status_update_reason = reason or f"Rescheduled from {previous.isoformat()}"

        appointment = await self.appointments.save(appointment)
        logger.info(
            "Appointment rescheduled",
            extra={"appointment_id": appointment.id, "new_datetime": new_start.isoformat()},
        )
        return appointment

    async def apply_update(self, appointment: Appointment, values: Dict[str, Any]) -> Appointment:
        """
        Update descriptive and payment fields.

        Raises:
            ResourceInUseError: If the appointment is completed or cancelled (400)
        """
        if appointment.status in EDIT_LOCKED_STATUSES:
            raise ResourceInUseError(
                message=f"Cannot update a {appointment.status.value} appointment",
                status=appointment.status.value,
            )
        for field, value in values.items():
            setattr(appointment, field, value)
        return await self.appointments.save(appointment)

    async def cancel_for_unavailable_date(self, doctor_id: int, day: date, reason: str) -> int:
        """
        Cancel a doctor's booked appointments on a day they became unavailable.

        Returns:
            Number of appointments cancelled
        """
        cancelled = 0
        for appointment in await self.appointments.get_booked_on_date(doctor_id, day):
            await self.change_status(
                appointment,
                AppointmentStatus.CANCELLED,
                reason=f"Doctor unavailable: {reason}",
            )
            cancelled += 1
        return cancelled
