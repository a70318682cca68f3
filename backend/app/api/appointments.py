"""
Appointment API endpoints.

WHAT: Public booking plus staff management of appointments: listing,
updates, status transitions, cancellation, rescheduling and reports.

WHY: Bookings arrive from many channels (website, WhatsApp, phone,
walk-in). Every channel goes through the same slot and unavailability
checks, and every status change updates doctor and patient statistics.

HOW: Handlers load the appointment and delegate the rules to
AppointmentService. Mutations are audit logged.
"""

import calendar
import logging
from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.deps import get_current_user
from app.core.exceptions import AppointmentNotFoundError, ValidationError
from app.db.session import get_db
from app.dao.appointment import AppointmentDAO
from app.models.appointment import Appointment, AppointmentStatus, BookingSource
from app.models.user import User
from app.schemas.appointment import (
    AppointmentBook,
    AppointmentResponse,
    AppointmentSortField,
    AppointmentUpdate,
    CancelRequest,
    CompleteRequest,
    RescheduleRequest,
    StatusUpdateRequest,
)
from app.schemas.common import APIResponse, api_response
from app.schemas.service_category import SortOrder
from app.services.appointment_service import AppointmentService
from app.services.audit import AuditService, diff_changes


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["appointments"])


def _appointment(appointment: Appointment) -> AppointmentResponse:
    return AppointmentResponse.model_validate(appointment)


async def _get_or_404(appointment_id: int, db: AsyncSession) -> Appointment:
    appointment = await AppointmentDAO(db).get_by_id(appointment_id)
    if not appointment:
        raise AppointmentNotFoundError(message="Appointment not found", appointment_id=appointment_id)
    return appointment


@router.post(
    "/book",
    response_model=APIResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Book an appointment",
)
async def book_appointment(
    data: AppointmentBook,
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """
    Book an appointment (public).

    Raises:
        PatientNotFoundError (404): If the patient does not exist
        DoctorNotFoundError (404): If the doctor is missing or inactive
        SlotUnavailableError (409): If the doctor is away or the slot overlaps
    """
    appointment = await AppointmentService(db).book(data)
    await AuditService(db).log_create(
        None,
        "appointment",
        appointment.id,
        {
            "appointment_code": appointment.appointment_code,
            "doctor_id": appointment.doctor_id,
            "patient_id": appointment.patient_id,
            "booking_source": appointment.booking_source.value,
        },
    )
    return api_response(
        {"appointment": _appointment(appointment), "confirmation_code": appointment.appointment_code},
        message="Appointment booked successfully",
    )


# ============================================================================
# Staff endpoints (static paths before /{appointment_id})
# ============================================================================


@router.get("/reports/daily", response_model=APIResponse, summary="Daily appointment report")
async def daily_report(
    report_date: Optional[date] = Query(default=None, alias="date"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    day = report_date or date.today()
    report = await AppointmentDAO(db).get_report(day, day)
    return api_response({"date": day.isoformat(), "report": report})


@router.get("/reports/monthly", response_model=APIResponse, summary="Monthly appointment report")
async def monthly_report(
    year: Optional[int] = Query(default=None, ge=2000, le=2100),
    month: Optional[int] = Query(default=None, ge=1, le=12),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    today = date.today()
    year = year or today.year
    month = month or today.month
    last_day = calendar.monthrange(year, month)[1]
    report = await AppointmentDAO(db).get_report(date(year, month, 1), date(year, month, last_day))
    return api_response({"year": year, "month": month, "report": report})


@router.get("", response_model=APIResponse, summary="List appointments")
async def list_appointments(
    status_filter: Optional[AppointmentStatus] = Query(default=None, alias="status"),
    doctor_id: Optional[int] = Query(default=None, ge=1),
    patient_id: Optional[int] = Query(default=None, ge=1),
    booking_source: Optional[BookingSource] = Query(default=None),
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    sort_by: AppointmentSortField = Query(default=AppointmentSortField.APPOINTMENT_DATETIME),
    sort_order: SortOrder = Query(default=SortOrder.DESC),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """
    Raises:
        ValidationError (400): If start_date is after end_date
    """
    if start_date and end_date and start_date > end_date:
        raise ValidationError(message="Start date must be on or before end date", field="start_date")

    appointments, total = await AppointmentDAO(db).list_appointments(
        page=page,
        limit=limit,
        status=status_filter,
        doctor_id=doctor_id,
        patient_id=patient_id,
        booking_source=booking_source,
        start_date=start_date,
        end_date=end_date,
        sort_by=sort_by.value,
        sort_order=sort_order.value,
    )
    return api_response(
        {"appointments": [_appointment(a) for a in appointments]},
        page=page,
        limit=limit,
        total=total,
    )


@router.get("/{appointment_id}", response_model=APIResponse, summary="Get appointment")
async def get_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    appointment = await _get_or_404(appointment_id, db)
    return api_response({"appointment": _appointment(appointment)})


@router.put("/{appointment_id}", response_model=APIResponse, summary="Update appointment")
async def update_appointment(
    appointment_id: int,
    data: AppointmentUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """
    Raises:
        ResourceInUseError (400): If the appointment is completed or cancelled
    """
    appointment = await _get_or_404(appointment_id, db)
    values = data.model_dump(exclude_unset=True)
    changes = diff_changes(appointment, values)
    appointment = await AppointmentService(db).apply_update(appointment, values)

    if changes:
        await AuditService(db).log_update(current_user, "appointment", appointment.id, changes)
    return api_response({"appointment": _appointment(appointment)}, message="Appointment updated successfully")


@router.patch("/{appointment_id}/status", response_model=APIResponse, summary="Change appointment status")
async def update_status(
    appointment_id: int,
    data: StatusUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """
    Raises:
        InvalidStateTransitionError (400): If the transition is not allowed
    """
    appointment = await _get_or_404(appointment_id, db)
    before = appointment.status
    appointment = await AppointmentService(db).change_status(appointment, data.status, data.reason)
    await AuditService(db).log_status_change(
        current_user, "appointment", appointment.id, before, appointment.status, data.reason
    )
    return api_response({"appointment": _appointment(appointment)}, message="Appointment status updated successfully")


@router.post("/{appointment_id}/cancel", response_model=APIResponse, summary="Cancel appointment")
async def cancel_appointment(
    appointment_id: int,
    data: Optional[CancelRequest] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """Cancel and report whether a paid booking is still refundable."""
    appointment = await _get_or_404(appointment_id, db)
    reason = data.reason if data else None
    before = appointment.status
    appointment, refund_eligible = await AppointmentService(db).cancel(appointment, reason)
    await AuditService(db).log_status_change(
        current_user, "appointment", appointment.id, before, appointment.status, reason
    )
    return api_response(
        {"appointment": _appointment(appointment), "refund_eligible": refund_eligible},
        message="Appointment cancelled successfully",
    )


@router.post("/{appointment_id}/reschedule", response_model=APIResponse, summary="Reschedule appointment")
async def reschedule_appointment(
    appointment_id: int,
    data: RescheduleRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """
    Raises:
        InvalidStateTransitionError (400): Unless scheduled or confirmed
        SlotUnavailableError (409): If the new slot is not free
    """
    appointment = await _get_or_404(appointment_id, db)
    previous = appointment.appointment_datetime
    appointment = await AppointmentService(db).reschedule(
        appointment, data.appointment_datetime, data.duration, data.reason
    )
    await AuditService(db).log_update(
        current_user,
        "appointment",
        appointment.id,
        {"appointment_datetime": {"before": previous.isoformat(), "after": appointment.appointment_datetime.isoformat()}},
    )
    return api_response({"appointment": _appointment(appointment)}, message="Appointment rescheduled successfully")


@router.post("/{appointment_id}/confirm", response_model=APIResponse, summary="Confirm appointment")
async def confirm_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    appointment = await _get_or_404(appointment_id, db)
    before = appointment.status
    appointment = await AppointmentService(db).confirm(appointment)
    await AuditService(db).log_status_change(current_user, "appointment", appointment.id, before, appointment.status)
    return api_response({"appointment": _appointment(appointment)}, message="Appointment confirmed successfully")


@router.post("/{appointment_id}/complete", response_model=APIResponse, summary="Complete appointment")
async def complete_appointment(
    appointment_id: int,
    data: Optional[CompleteRequest] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    appointment = await _get_or_404(appointment_id, db)
    before = appointment.status
    consultation = data.consultation if data else None
    appointment = await AppointmentService(db).complete(appointment, consultation)
    await AuditService(db).log_status_change(current_user, "appointment", appointment.id, before, appointment.status)
    return api_response({"appointment": _appointment(appointment)}, message="Appointment completed successfully")
