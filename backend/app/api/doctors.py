"""
Doctor API endpoints.

WHAT: Registration, login, public discovery, self-service profile and
schedule management, the doctor's own appointments, and admin
verification of doctors.

WHY: Doctors are both bookable resources and authenticated actors:
1. Patients find doctors by specialization, rating and availability
2. Doctors maintain their weekly schedule, fees and days off
3. Admins activate and verify new registrations

HOW: FastAPI router with three access levels:
- Public endpoints (register, login, search, public profile)
- Doctor endpoints via get_current_doctor
- Admin endpoints under /admin via require_admin
Static paths are declared before the parameterized ones.
"""

import logging
import uuid
from collections import Counter
from datetime import date, datetime, timedelta
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import (
    ACTOR_DOCTOR,
    blacklist_token,
    create_actor_token,
    hash_password,
    verify_password,
)
from app.core.config import settings
from app.core.deps import get_current_doctor, require_admin, security
from app.core.exceptions import (
    AppointmentNotFoundError,
    AuthenticationError,
    DoctorNotFoundError,
    ResourceAlreadyExistsError,
    ResourceInUseError,
    ResourceNotFoundError,
    UnavailableDateNotFoundError,
    ValidationError,
)
from app.db.session import get_db
from app.dao.appointment import AppointmentDAO
from app.dao.doctor import DoctorDAO, UnavailableDateDAO
from app.models.appointment import AppointmentStatus
from app.models.audit_log import AuditActorType
from app.models.doctor import Doctor, VerificationStatus
from app.models.user import User
from app.schemas.appointment import AppointmentResponse, ConsultationData, StatusUpdateRequest
from app.schemas.common import APIResponse, api_response
from app.schemas.doctor import (
    AvailabilityUpdate,
    BreakTimeCreate,
    BulkRemoveRequest,
    CheckEmailRequest,
    CheckLicenseRequest,
    ContactInfoUpdate,
    DoctorProfileUpdate,
    DoctorPublicResponse,
    DoctorRegister,
    DoctorResponse,
    DoctorSortField,
    DoctorStatusUpdate,
    DoctorVerifyRequest,
    FeesUpdate,
    ProfessionalInfoUpdate,
    ScheduleUpdate,
    UnavailableDateCreate,
    UnavailableDateRangeCreate,
    UnavailableDateResponse,
    UnavailableDateUpdate,
)
from app.schemas.service_category import SortOrder
from app.schemas.user import ChangePasswordRequest, LoginRequest, TokenPayload
from app.services.appointment_service import AppointmentService
from app.services.audit import AuditService, diff_changes


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/doctors", tags=["doctors"])

MAX_UNAVAILABLE_RANGE_DAYS = 90


def _public(doctor: Doctor) -> DoctorPublicResponse:
    return DoctorPublicResponse.model_validate(doctor)


def _private(doctor: Doctor) -> DoctorResponse:
    return DoctorResponse.model_validate(doctor)


def _appointment(appointment) -> AppointmentResponse:
    return AppointmentResponse.model_validate(appointment)


def _rate(part: int, total: int) -> float:
    """Percentage rounded to one decimal; 0 when there is nothing to divide."""
    return round(part / total * 100, 1) if total else 0.0


async def _apply(doctor: Doctor, values: dict, db: AsyncSession) -> Doctor:
    """Set values on the doctor, save and audit the diff."""
    changes = diff_changes(doctor, values)
    for field, value in values.items():
        setattr(doctor, field, value)
    doctor = await DoctorDAO(db).save(doctor)
    if changes:
        await AuditService(db).log_update(doctor, "doctor", doctor.id, changes)
    return doctor


async def _ensure_contact_free(
    dao: DoctorDAO,
    email: Optional[str] = None,
    phone: Optional[str] = None,
    license_number: Optional[str] = None,
    exclude_id: Optional[int] = None,
) -> None:
    """
    Raises:
        ResourceAlreadyExistsError (409): If email, phone or license belong to another doctor
    """
    if email and await dao.email_exists(email, exclude_id):
        raise ResourceAlreadyExistsError(message="Doctor with this email already exists", field="email")
    if phone and await dao.phone_exists(phone, exclude_id):
        raise ResourceAlreadyExistsError(message="Doctor with this phone number already exists", field="phone")
    if license_number and await dao.license_exists(license_number, exclude_id):
        raise ResourceAlreadyExistsError(
            message="Doctor with this license number already exists",
            field="license_number",
        )


# ============================================================================
# Public endpoints
# ============================================================================


@router.post(
    "/register",
    response_model=APIResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Doctor registration",
)
async def register_doctor(
    data: DoctorRegister,
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """
    Register a doctor account.

    WHY: New doctors start inactive and pending verification; an admin
    must activate them before they can log in or be booked.

    Raises:
        ResourceAlreadyExistsError (409): If email, phone or license exists
    """
    dao = DoctorDAO(db)
    await _ensure_contact_free(dao, data.email, data.phone, data.license_number)

    values = data.model_dump(exclude={"password", "break_times"})
    values["email"] = data.email.lower()
    values["working_days"] = [day.model_dump(mode="json") for day in data.working_days]
    values["break_times"] = [
        {"id": uuid.uuid4().hex[:12], **entry.model_dump(mode="json")} for entry in data.break_times
    ]

    doctor = await dao.create(
        **values,
        hashed_password=hash_password(data.password),
        is_active=False,
        verification_status=VerificationStatus.PENDING,
        last_password_change=datetime.utcnow(),
    )
    await AuditService(db).log_account_created(doctor, "doctor", doctor.id, {"doctor_code": doctor.doctor_code})
    logger.info("Doctor registered", extra={"doctor_id": doctor.id, "doctor_code": doctor.doctor_code})

    return api_response(
        {"doctor": _private(doctor)},
        message="Registration successful. Your account will be activated after admin verification.",
    )


@router.post("/login", response_model=APIResponse, summary="Doctor login")
async def login_doctor(
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """
    Authenticate a doctor.

    Raises:
        AuthenticationError (401): Unknown email, wrong password or inactive account
        RateLimitExceeded (429): Too many recent failed logins from this address
    """
    audit = AuditService(db)
    await audit.ensure_login_allowed()
    dao = DoctorDAO(db)
    doctor = await dao.get_by_email(credentials.email)

    if not doctor or not verify_password(credentials.password, doctor.hashed_password):
        await audit.log_login_failure(
            credentials.email,
            AuditActorType.DOCTOR,
            doctor.id if doctor else None,
            reason="Invalid credentials",
        )
        raise AuthenticationError(message="Invalid email or password")

    if not doctor.is_active:
        await audit.log_login_failure(credentials.email, AuditActorType.DOCTOR, doctor.id, reason="Account inactive")
        raise AuthenticationError(message="Account is not active. Please wait for admin activation.")

    doctor.last_login = datetime.utcnow()
    doctor = await dao.save(doctor)
    await audit.log_login_success(doctor)

    token = TokenPayload(
        access_token=create_actor_token(ACTOR_DOCTOR, doctor.id),
        expires_in=settings.JWT_EXPIRATION_MINUTES * 60,
    )
    return api_response({"doctor": _private(doctor), **token.model_dump()}, message="Login successful")


@router.get("/search", response_model=APIResponse, summary="Search doctors")
async def search_doctors(
    q: Optional[str] = Query(default=None, max_length=100),
    specialization: Optional[str] = Query(default=None, max_length=100),
    min_experience: Optional[int] = Query(default=None, ge=0, le=50),
    min_rating: Optional[float] = Query(default=None, ge=0, le=5),
    available_today: bool = Query(default=False),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=50),
    sort_by: DoctorSortField = Query(default=DoctorSortField.RATING),
    sort_order: SortOrder = Query(default=SortOrder.DESC),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """
    Search active, available doctors.

    available_today also requires today to be a working day that is not
    one of the doctor's unavailable dates.
    """
    doctors, total = await DoctorDAO(db).search(
        q=q.strip() if q else None,
        specialization=specialization,
        min_experience=min_experience,
        min_rating=min_rating,
        available_today=available_today,
        page=page,
        limit=limit,
        sort_by=sort_by.value,
        sort_order=sort_order.value,
    )
    return api_response({"doctors": [_public(d) for d in doctors]}, page=page, limit=limit, total=total)


@router.get("/list", response_model=APIResponse, summary="List active doctors")
async def list_doctors(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    doctors, total = await DoctorDAO(db).list_public(page, limit)
    return api_response({"doctors": [_public(d) for d in doctors]}, page=page, limit=limit, total=total)


@router.get("/specializations", response_model=APIResponse, summary="List specializations")
async def list_specializations(db: AsyncSession = Depends(get_db)) -> APIResponse:
    specializations = await DoctorDAO(db).get_specializations()
    return api_response({"specializations": specializations})


@router.get("/specialization/{name}", response_model=APIResponse, summary="Doctors by specialization")
async def doctors_by_specialization(name: str, db: AsyncSession = Depends(get_db)) -> APIResponse:
    doctors = await DoctorDAO(db).get_by_specialization(name)
    return api_response({"doctors": [_public(d) for d in doctors], "count": len(doctors)})


@router.get("/public/{doctor_id}", response_model=APIResponse, summary="Public doctor profile")
async def public_profile(doctor_id: int, db: AsyncSession = Depends(get_db)) -> APIResponse:
    doctor = await DoctorDAO(db).get_by_id(doctor_id)
    if not doctor or not doctor.is_active:
        raise DoctorNotFoundError(message="Doctor not found", doctor_id=doctor_id)
    return api_response({"doctor": _public(doctor)})


@router.post("/check-email", response_model=APIResponse, summary="Check doctor email availability")
async def check_email(data: CheckEmailRequest, db: AsyncSession = Depends(get_db)) -> APIResponse:
    available = not await DoctorDAO(db).email_exists(data.email)
    return api_response({"available": available})


@router.post("/check-license", response_model=APIResponse, summary="Check license availability")
async def check_license(data: CheckLicenseRequest, db: AsyncSession = Depends(get_db)) -> APIResponse:
    available = not await DoctorDAO(db).license_exists(data.license_number.strip().upper())
    return api_response({"available": available})


# ============================================================================
# Doctor self-service
# ============================================================================


@router.post("/logout", response_model=APIResponse, summary="Doctor logout")
async def logout_doctor(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    doctor: Doctor = Depends(get_current_doctor),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    await blacklist_token(credentials.credentials, doctor.id)
    await AuditService(db).log_logout(doctor)
    return api_response(message="Logged out successfully")


@router.get("/profile", response_model=APIResponse, summary="Get own profile")
async def get_profile(doctor: Doctor = Depends(get_current_doctor)) -> APIResponse:
    return api_response({"doctor": _private(doctor)})


@router.put("/profile", response_model=APIResponse, summary="Update name and department")
async def update_profile(
    data: DoctorProfileUpdate,
    doctor: Doctor = Depends(get_current_doctor),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    doctor = await _apply(doctor, data.model_dump(exclude_unset=True), db)
    return api_response({"doctor": _private(doctor)}, message="Profile updated successfully")


@router.put("/profile/professional-info", response_model=APIResponse, summary="Update professional info")
async def update_professional_info(
    data: ProfessionalInfoUpdate,
    doctor: Doctor = Depends(get_current_doctor),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    values = data.model_dump(exclude_unset=True)
    if values.get("license_number"):
        await _ensure_contact_free(DoctorDAO(db), license_number=values["license_number"], exclude_id=doctor.id)
    doctor = await _apply(doctor, values, db)
    return api_response({"doctor": _private(doctor)}, message="Professional information updated successfully")


@router.put("/profile/contact-info", response_model=APIResponse, summary="Update email and phone")
async def update_contact_info(
    data: ContactInfoUpdate,
    doctor: Doctor = Depends(get_current_doctor),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    values = data.model_dump(exclude_unset=True)
    if "email" in values:
        values["email"] = values["email"].lower()
    await _ensure_contact_free(
        DoctorDAO(db),
        email=values.get("email"),
        phone=values.get("phone"),
        exclude_id=doctor.id,
    )
    doctor = await _apply(doctor, values, db)
    return api_response({"doctor": _private(doctor)}, message="Contact information updated successfully")


@router.get("/schedule", response_model=APIResponse, summary="Get weekly schedule")
async def get_schedule(doctor: Doctor = Depends(get_current_doctor)) -> APIResponse:
    return api_response(
        {
            "working_days": doctor.working_days or [],
            "slot_duration": doctor.slot_duration,
            "break_times": doctor.break_times or [],
        }
    )


@router.put("/schedule", response_model=APIResponse, summary="Replace weekly schedule")
async def update_schedule(
    data: ScheduleUpdate,
    doctor: Doctor = Depends(get_current_doctor),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    values = {}
    if data.working_days is not None:
        values["working_days"] = [day.model_dump(mode="json") for day in data.working_days]
    if data.slot_duration is not None:
        values["slot_duration"] = data.slot_duration
    if data.break_times is not None:
        values["break_times"] = [
            {**entry.model_dump(mode="json"), "id": entry.id or uuid.uuid4().hex[:12]}
            for entry in data.break_times
        ]
    doctor = await _apply(doctor, values, db)
    return api_response(
        {
            "working_days": doctor.working_days,
            "slot_duration": doctor.slot_duration,
            "break_times": doctor.break_times,
        },
        message="Schedule updated successfully",
    )


@router.post(
    "/schedule/breaks",
    response_model=APIResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a break",
)
async def add_break(
    data: BreakTimeCreate,
    doctor: Doctor = Depends(get_current_doctor),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    entry = {"id": uuid.uuid4().hex[:12], **data.model_dump(mode="json")}
    doctor.break_times = [*(doctor.break_times or []), entry]
    await DoctorDAO(db).save(doctor)
    return api_response({"break": entry}, message="Break added successfully")


@router.delete("/schedule/breaks/{break_id}", response_model=APIResponse, summary="Remove a break")
async def remove_break(
    break_id: str,
    doctor: Doctor = Depends(get_current_doctor),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    remaining = [entry for entry in (doctor.break_times or []) if entry.get("id") != break_id]
    if len(remaining) == len(doctor.break_times or []):
        raise ResourceNotFoundError(message="Break not found", break_id=break_id)
    doctor.break_times = remaining
    await DoctorDAO(db).save(doctor)
    return api_response(message="Break removed successfully")


@router.patch("/availability", response_model=APIResponse, summary="Update availability")
async def update_availability(
    data: AvailabilityUpdate,
    doctor: Doctor = Depends(get_current_doctor),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    doctor = await _apply(doctor, data.model_dump(exclude_unset=True), db)
    return api_response(
        {"is_available": doctor.is_available, "max_appointments_per_day": doctor.max_appointments_per_day},
        message="Availability updated successfully",
    )


# ---------------------------------------------------------------------------
# Unavailable dates
# ---------------------------------------------------------------------------


@router.get("/unavailable-dates/summary", response_model=APIResponse, summary="Unavailable dates summary")
async def unavailable_dates_summary(
    doctor: Doctor = Depends(get_current_doctor),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    today = date.today()
    entries = await UnavailableDateDAO(db).list_for_doctor(doctor.id)
    summary = {
        "total": len(entries),
        "upcoming": sum(1 for e in entries if e.date >= today),
        "past": sum(1 for e in entries if e.date < today),
        "this_month": sum(1 for e in entries if e.date.year == today.year and e.date.month == today.month),
        "by_type": dict(Counter(e.type.value for e in entries)),
        "by_reason": dict(Counter(e.reason for e in entries)),
    }
    return api_response({"summary": summary})


@router.get("/unavailable-dates", response_model=APIResponse, summary="List unavailable dates")
async def list_unavailable_dates(
    upcoming_only: bool = Query(default=False),
    doctor: Doctor = Depends(get_current_doctor),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    entries = await UnavailableDateDAO(db).list_for_doctor(doctor.id, upcoming_only=upcoming_only)
    return api_response(
        {"unavailable_dates": [UnavailableDateResponse.model_validate(e) for e in entries], "count": len(entries)}
    )


@router.post(
    "/unavailable-dates",
    response_model=APIResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add an unavailable date",
)
async def add_unavailable_date(
    data: UnavailableDateCreate,
    doctor: Doctor = Depends(get_current_doctor),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """
    Mark a date unavailable and cancel that day's booked appointments.

    Raises:
        ResourceAlreadyExistsError (409): If the date is already marked
    """
    dao = UnavailableDateDAO(db)
    if await dao.get_by_date(doctor.id, data.date):
        raise ResourceAlreadyExistsError(
            message="This date is already marked as unavailable",
            date=data.date.isoformat(),
        )

    entry = await dao.create(doctor_id=doctor.id, **data.model_dump())
    cancelled = await AppointmentService(db).cancel_for_unavailable_date(doctor.id, data.date, data.reason)

    await AuditService(db).log_create(
        doctor,
        "doctor_unavailable_date",
        entry.id,
        {"date": data.date.isoformat(), "cancelled_appointments": cancelled},
    )
    logger.info(
        "Doctor unavailable date added",
        extra={"doctor_id": doctor.id, "date": data.date.isoformat(), "cancelled_appointments": cancelled},
    )
    return api_response(
        {"unavailable_date": UnavailableDateResponse.model_validate(entry), "cancelled_appointments": cancelled},
        message="Unavailable date added successfully",
    )


@router.post(
    "/unavailable-dates/range",
    response_model=APIResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a range of unavailable dates",
)
async def add_unavailable_range(
    data: UnavailableDateRangeCreate,
    doctor: Doctor = Depends(get_current_doctor),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """
    Mark every date in [start_date, end_date] unavailable.

    Dates already marked are skipped.

    Raises:
        ValidationError (400): If start is after end or the range exceeds 90 days
        ResourceAlreadyExistsError (409): If every date is already marked
    """
    if data.start_date > data.end_date:
        raise ValidationError(message="Start date must be on or before end date", field="start_date")
    span = (data.end_date - data.start_date).days + 1
    if span > MAX_UNAVAILABLE_RANGE_DAYS:
        raise ValidationError(
            message=f"Date range cannot exceed {MAX_UNAVAILABLE_RANGE_DAYS} days",
            field="end_date",
        )

    days = [data.start_date + timedelta(days=offset) for offset in range(span)]
    dao = UnavailableDateDAO(db)
    existing = await dao.existing_dates(doctor.id, days)
    new_days = [day for day in days if day not in existing]
    if not new_days:
        raise ResourceAlreadyExistsError(message="All dates in this range are already marked as unavailable")

    appointment_service = AppointmentService(db)
    cancelled = 0
    for day in new_days:
        await dao.create(doctor_id=doctor.id, date=day, reason=data.reason, type=data.type, notes=data.notes)
        cancelled += await appointment_service.cancel_for_unavailable_date(doctor.id, day, data.reason)

    await AuditService(db).log_bulk_operation(
        doctor, "doctor_unavailable_date", "add_range", [day.isoformat() for day in new_days], len(new_days)
    )
    return api_response(
        {
            "added_dates": [day.isoformat() for day in new_days],
            "count": len(new_days),
            "skipped": [day.isoformat() for day in days if day in existing],
            "cancelled_appointments": cancelled,
        },
        message=f"{len(new_days)} unavailable dates added successfully",
    )


@router.post("/unavailable-dates/bulk-remove", response_model=APIResponse, summary="Remove several unavailable dates")
async def bulk_remove_unavailable_dates(
    data: BulkRemoveRequest,
    doctor: Doctor = Depends(get_current_doctor),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    removed = await UnavailableDateDAO(db).delete_many(doctor.id, data.ids)
    if not removed:
        raise UnavailableDateNotFoundError(message="No matching unavailable dates found")
    await AuditService(db).log_bulk_operation(doctor, "doctor_unavailable_date", "bulk_remove", data.ids, removed)
    return api_response({"removed_count": removed}, message=f"{removed} unavailable dates removed")


@router.put("/unavailable-dates/{entry_id}", response_model=APIResponse, summary="Update an unavailable date")
async def update_unavailable_date(
    entry_id: int,
    data: UnavailableDateUpdate,
    doctor: Doctor = Depends(get_current_doctor),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    dao = UnavailableDateDAO(db)
    entry = await dao.get_for_doctor(doctor.id, entry_id)
    if not entry:
        raise UnavailableDateNotFoundError(entry_id=entry_id)

    values = data.model_dump(exclude_unset=True)
    if "date" in values and values["date"] != entry.date:
        if await dao.get_by_date(doctor.id, values["date"]):
            raise ResourceAlreadyExistsError(
                message="This date is already marked as unavailable",
                date=values["date"].isoformat(),
            )

    for field, value in values.items():
        setattr(entry, field, value)
    entry = await dao.save(entry)
    return api_response(
        {"unavailable_date": UnavailableDateResponse.model_validate(entry)},
        message="Unavailable date updated successfully",
    )


@router.delete("/unavailable-dates/{entry_id}", response_model=APIResponse, summary="Remove an unavailable date")
async def delete_unavailable_date(
    entry_id: int,
    doctor: Doctor = Depends(get_current_doctor),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    dao = UnavailableDateDAO(db)
    entry = await dao.get_for_doctor(doctor.id, entry_id)
    if not entry:
        raise UnavailableDateNotFoundError(entry_id=entry_id)
    await dao.delete(entry.id)
    await AuditService(db).log_delete(doctor, "doctor_unavailable_date", entry_id, {"date": entry.date.isoformat()})
    return api_response(message="Unavailable date removed successfully")


# ---------------------------------------------------------------------------
# Fees, password and account
# ---------------------------------------------------------------------------


@router.get("/fees", response_model=APIResponse, summary="Get fees")
async def get_fees(doctor: Doctor = Depends(get_current_doctor)) -> APIResponse:
    return api_response(
        {
            "consultation_fee": doctor.consultation_fee,
            "follow_up_fee": doctor.follow_up_fee,
            "emergency_fee": doctor.emergency_fee,
        }
    )


@router.put("/fees", response_model=APIResponse, summary="Update fees")
async def update_fees(
    data: FeesUpdate,
    doctor: Doctor = Depends(get_current_doctor),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    doctor = await _apply(doctor, data.model_dump(exclude_unset=True), db)
    return api_response(
        {
            "consultation_fee": doctor.consultation_fee,
            "follow_up_fee": doctor.follow_up_fee,
            "emergency_fee": doctor.emergency_fee,
        },
        message="Fees updated successfully",
    )


@router.put("/change-password", response_model=APIResponse, summary="Change password")
async def change_password(
    data: ChangePasswordRequest,
    doctor: Doctor = Depends(get_current_doctor),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    if not verify_password(data.current_password, doctor.hashed_password):
        raise ValidationError(message="Current password is incorrect", field="current_password")
    if data.current_password == data.new_password:
        raise ValidationError(
            message="New password must be different from the current password",
            field="new_password",
        )
    doctor.hashed_password = hash_password(data.new_password)
    doctor.last_password_change = datetime.utcnow()
    await DoctorDAO(db).save(doctor)
    await AuditService(db).log_password_change(doctor)
    return api_response(message="Password changed successfully")


@router.post("/deactivate", response_model=APIResponse, summary="Deactivate own account")
async def deactivate_account(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    doctor: Doctor = Depends(get_current_doctor),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    doctor.is_active = False
    doctor.status_reason = "Deactivated by doctor"
    await DoctorDAO(db).save(doctor)
    await blacklist_token(credentials.credentials, doctor.id)
    await AuditService(db).log_status_change(doctor, "doctor", doctor.id, True, False, doctor.status_reason)
    return api_response(message="Account deactivated successfully")


# ---------------------------------------------------------------------------
# Doctor's appointments
# ---------------------------------------------------------------------------


@router.get("/appointments", response_model=APIResponse, summary="Own appointments")
async def list_own_appointments(
    status_filter: Optional[AppointmentStatus] = Query(default=None, alias="status"),
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    doctor: Doctor = Depends(get_current_doctor),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    appointments, total = await AppointmentDAO(db).list_appointments(
        page=page,
        limit=limit,
        status=status_filter,
        doctor_id=doctor.id,
        start_date=start_date,
        end_date=end_date,
        sort_by="appointment_datetime",
        sort_order="asc",
    )
    return api_response(
        {"appointments": [_appointment(a) for a in appointments]},
        page=page,
        limit=limit,
        total=total,
    )


@router.get("/appointments/today", response_model=APIResponse, summary="Today's appointments")
async def todays_appointments(
    doctor: Doctor = Depends(get_current_doctor),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    appointments = await AppointmentDAO(db).get_on_date(date.today(), doctor_id=doctor.id)
    return api_response({"appointments": [_appointment(a) for a in appointments], "count": len(appointments)})


@router.get("/appointments/upcoming", response_model=APIResponse, summary="Upcoming appointments")
async def upcoming_appointments(
    limit: int = Query(default=10, ge=1, le=50),
    doctor: Doctor = Depends(get_current_doctor),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    appointments = await AppointmentDAO(db).get_upcoming(datetime.utcnow(), limit=limit, doctor_id=doctor.id)
    return api_response({"appointments": [_appointment(a) for a in appointments], "count": len(appointments)})


async def _own_appointment(doctor: Doctor, appointment_id: int, db: AsyncSession):
    appointment = await AppointmentDAO(db).get_for_doctor(doctor.id, appointment_id)
    if not appointment:
        raise AppointmentNotFoundError(message="Appointment not found", appointment_id=appointment_id)
    return appointment


@router.get("/appointments/{appointment_id}", response_model=APIResponse, summary="Get own appointment")
async def get_own_appointment(
    appointment_id: int,
    doctor: Doctor = Depends(get_current_doctor),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    appointment = await _own_appointment(doctor, appointment_id, db)
    return api_response({"appointment": _appointment(appointment)})


@router.patch("/appointments/{appointment_id}/status", response_model=APIResponse, summary="Change appointment status")
async def update_own_appointment_status(
    appointment_id: int,
    data: StatusUpdateRequest,
    doctor: Doctor = Depends(get_current_doctor),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    appointment = await _own_appointment(doctor, appointment_id, db)
    before = appointment.status
    appointment = await AppointmentService(db).change_status(appointment, data.status, data.reason)
    await AuditService(db).log_status_change(doctor, "appointment", appointment.id, before, appointment.status, data.reason)
    return api_response({"appointment": _appointment(appointment)}, message="Appointment status updated successfully")


@router.put("/appointments/{appointment_id}/consultation", response_model=APIResponse, summary="Record consultation")
async def record_consultation(
    appointment_id: int,
    data: ConsultationData,
    doctor: Doctor = Depends(get_current_doctor),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """Save consultation notes; confirmed or in-progress visits are completed."""
    appointment = await _own_appointment(doctor, appointment_id, db)
    appointment = await AppointmentService(db).record_consultation(appointment, data)
    await AuditService(db).log_update(
        doctor, "appointment", appointment.id, {"consultation": {"before": None, "after": "recorded"}}
    )
    return api_response({"appointment": _appointment(appointment)}, message="Consultation recorded successfully")


@router.get("/dashboard", response_model=APIResponse, summary="Doctor dashboard")
async def dashboard(
    doctor: Doctor = Depends(get_current_doctor),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    dao = AppointmentDAO(db)
    today = await dao.get_on_date(date.today(), doctor_id=doctor.id)
    upcoming = await dao.get_upcoming(datetime.utcnow(), limit=5, doctor_id=doctor.id)
    recent = await dao.get_recent(limit=5, doctor_id=doctor.id, status=AppointmentStatus.COMPLETED)
    counts = await dao.count_by_status(doctor_id=doctor.id)

    return api_response(
        {
            "today_appointments": [_appointment(a) for a in today],
            "upcoming_appointments": [_appointment(a) for a in upcoming],
            "recent_completed": [_appointment(a) for a in recent],
            "statistics": {
                "total_appointments": doctor.total_appointments,
                "completed_appointments": doctor.completed_appointments,
                "cancelled_appointments": doctor.cancelled_appointments,
                "today_count": len(today),
                "rating": doctor.rating,
                "review_count": doctor.review_count,
                "by_status": counts,
            },
        }
    )


@router.get("/statistics", response_model=APIResponse, summary="Doctor statistics")
async def statistics(
    doctor: Doctor = Depends(get_current_doctor),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    counts = await AppointmentDAO(db).count_by_status(doctor_id=doctor.id)
    total = sum(counts.values())
    return api_response(
        {
            "statistics": {
                "total": total,
                "by_status": counts,
                "completion_rate": _rate(counts[AppointmentStatus.COMPLETED.value], total),
                "cancellation_rate": _rate(counts[AppointmentStatus.CANCELLED.value], total),
            }
        }
    )


# ============================================================================
# Admin endpoints
# ============================================================================


@router.get("/admin/all", response_model=APIResponse, summary="List all doctors (admin)")
async def admin_list_doctors(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    is_active: Optional[bool] = Query(default=None),
    verification_status: Optional[VerificationStatus] = Query(default=None),
    search: Optional[str] = Query(default=None, max_length=100),
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    doctors, total = await DoctorDAO(db).list_for_admin(
        page=page,
        limit=limit,
        is_active=is_active,
        verification_status=verification_status,
        search=search.strip() if search else None,
    )
    return api_response({"doctors": [_private(d) for d in doctors]}, page=page, limit=limit, total=total)


@router.get("/admin/pending-verification", response_model=APIResponse, summary="Doctors awaiting verification")
async def admin_pending_verification(
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    doctors = await DoctorDAO(db).get_pending_verification()
    return api_response({"doctors": [_private(d) for d in doctors], "count": len(doctors)})


@router.get(
    "/admin/analytics/specialization-stats",
    response_model=APIResponse,
    summary="Statistics per specialization",
)
async def admin_specialization_stats(
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    stats = await DoctorDAO(db).get_specialization_stats()
    return api_response({"specializations": stats})


async def _admin_get(doctor_id: int, db: AsyncSession) -> Doctor:
    doctor = await DoctorDAO(db).get_by_id(doctor_id)
    if not doctor:
        raise DoctorNotFoundError(message="Doctor not found", doctor_id=doctor_id)
    return doctor


@router.get("/admin/{doctor_id}", response_model=APIResponse, summary="Get doctor (admin)")
async def admin_get_doctor(
    doctor_id: int,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    doctor = await _admin_get(doctor_id, db)
    return api_response({"doctor": _private(doctor)})


@router.put("/admin/{doctor_id}/status", response_model=APIResponse, summary="Activate or deactivate a doctor")
async def admin_update_status(
    doctor_id: int,
    data: DoctorStatusUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    doctor = await _admin_get(doctor_id, db)
    before = doctor.is_active
    doctor.is_active = data.is_active
    doctor.status_reason = data.reason
    doctor = await DoctorDAO(db).save(doctor)

    await AuditService(db).log_status_change(current_user, "doctor", doctor.id, before, doctor.is_active, data.reason)
    state = "activated" if doctor.is_active else "deactivated"
    return api_response({"doctor": _private(doctor)}, message=f"Doctor {state} successfully")


@router.put("/admin/{doctor_id}/verify", response_model=APIResponse, summary="Verify a doctor")
async def admin_verify_doctor(
    doctor_id: int,
    data: DoctorVerifyRequest,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    doctor = await _admin_get(doctor_id, db)
    before = doctor.verification_status
    doctor.verification_status = data.verification_status
    doctor.verification_notes = data.verification_notes
    doctor.is_verified_by_admin = data.verification_status == VerificationStatus.VERIFIED
    doctor = await DoctorDAO(db).save(doctor)

    await AuditService(db).log_status_change(
        current_user, "doctor", doctor.id, before, doctor.verification_status, data.verification_notes
    )
    return api_response(
        {"doctor": _private(doctor)},
        message=f"Doctor verification status set to {doctor.verification_status.value}",
    )


@router.delete("/admin/{doctor_id}", response_model=APIResponse, summary="Delete a doctor")
async def admin_delete_doctor(
    doctor_id: int,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """
    Delete a doctor.

    Raises:
        ResourceInUseError (400): If the doctor has future booked appointments
    """
    doctor = await _admin_get(doctor_id, db)
    if await AppointmentDAO(db).has_future_booked(datetime.utcnow(), doctor_id=doctor.id):
        raise ResourceInUseError(
            message="Cannot delete doctor with upcoming scheduled or confirmed appointments",
            doctor_id=doctor.id,
        )

    await DoctorDAO(db).delete(doctor.id)
    await AuditService(db).log_delete(current_user, "doctor", doctor_id, {"doctor_code": doctor.doctor_code})
    logger.info("Doctor deleted", extra={"doctor_id": doctor_id})
    return api_response(message="Doctor deleted successfully")
