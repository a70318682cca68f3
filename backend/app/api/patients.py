"""
Patient API endpoints.

WHAT: Patient registration and login, self-service profile and
appointment views, and admin management of patient records.

WHY: Patients book through the website, WhatsApp or the front desk.
Records created by staff may have no password; such patients cannot log
in until one is set, but can still be booked.

HOW: FastAPI router with public, patient (get_current_patient) and admin
(require_admin) endpoints. Deletion is soft so appointment history keeps
its patient.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, Query, status
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import (
    ACTOR_PATIENT,
    blacklist_token,
    create_actor_token,
    hash_password,
    verify_password,
)
from app.core.config import settings
from app.core.deps import get_current_patient, require_admin, search_term, security
from app.core.exceptions import (
    AppointmentNotFoundError,
    AuthenticationError,
    PatientNotFoundError,
    ResourceAlreadyExistsError,
    ResourceInUseError,
    ValidationError,
)
from app.db.session import get_db
from app.dao.appointment import AppointmentDAO
from app.dao.patient import PatientDAO
from app.models.appointment import AppointmentStatus
from app.models.audit_log import AuditActorType
from app.models.patient import BloodGroup, Gender, Patient, RegistrationSource
from app.models.user import User
from app.schemas.appointment import AppointmentResponse
from app.schemas.common import APIResponse, StatusReasonRequest, api_response
from app.schemas.patient import (
    CheckPatientEmailRequest,
    CheckPhoneRequest,
    ContactInfo,
    MedicalInfo,
    PatientAdminUpdate,
    PatientProfileUpdate,
    PatientRegister,
    PatientResponse,
    PatientSortField,
    Preferences,
)
from app.schemas.service_category import SortOrder
from app.schemas.user import ChangePasswordRequest, LoginRequest, TokenPayload
from app.services.audit import AuditService, diff_changes


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/patients", tags=["patients"])

HISTORY_STATUSES = (AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW)

JSON_SECTIONS = ("address", "medical_info", "preferences")


def _patient(patient: Patient) -> PatientResponse:
    return PatientResponse.model_validate(patient)


def _appointment(appointment) -> AppointmentResponse:
    return AppointmentResponse.model_validate(appointment)


def _contact_values(contact: ContactInfo) -> Dict[str, Any]:
    values = contact.model_dump(exclude_unset=True, mode="json")
    if "email" in values:
        values["email"] = values["email"].lower()
    return values


async def _ensure_email_free(dao: PatientDAO, email: Optional[str], exclude_id: Optional[int] = None) -> None:
    if email and await dao.email_exists(email, exclude_id):
        raise ResourceAlreadyExistsError(
            message="Patient with this email already exists",
            resource_type="Patient",
            field="email",
        )


async def _apply(patient: Patient, values: Dict[str, Any], actor: Any, db: AsyncSession) -> Patient:
    """Set values on the patient, save and audit the diff."""
    changes = diff_changes(patient, values)
    for field, value in values.items():
        setattr(patient, field, value)
    patient = await PatientDAO(db).save(patient)
    if changes:
        await AuditService(db).log_update(actor, "patient", patient.id, changes)
    return patient


# ============================================================================
# Public endpoints
# ============================================================================


@router.post(
    "/register",
    response_model=APIResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Patient registration",
)
async def register_patient(
    data: PatientRegister,
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """
    Register a patient.

    Raises:
        ResourceAlreadyExistsError (409): If the email is already registered
    """
    dao = PatientDAO(db)
    await _ensure_email_free(dao, data.email)

    values = data.model_dump(exclude={"password", "medical_info", "preferences", "address"})
    values["email"] = data.email.lower()
    if data.address:
        values["address"] = data.address.model_dump(mode="json")
    if data.medical_info:
        values["medical_info"] = data.medical_info.model_dump(mode="json")
    if data.preferences:
        values["preferences"] = data.preferences.model_dump(mode="json")

    patient = await dao.create(
        **values,
        hashed_password=hash_password(data.password) if data.password else None,
    )
    await AuditService(db).log_account_created(
        patient,
        "patient",
        patient.id,
        {"patient_code": patient.patient_code, "registration_source": patient.registration_source.value},
    )
    logger.info("Patient registered", extra={"patient_id": patient.id, "patient_code": patient.patient_code})
    return api_response({"patient": _patient(patient)}, message="Patient registered successfully")


@router.post("/login", response_model=APIResponse, summary="Patient login")
async def login_patient(
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """
    Authenticate a patient.

    Raises:
        AuthenticationError (401): Unknown email, no password set, wrong
            password, or an inactive or deleted account
        RateLimitExceeded (429): Too many recent failed logins from this address
    """
    audit = AuditService(db)
    await audit.ensure_login_allowed()
    dao = PatientDAO(db)
    patient = await dao.get_by_email(credentials.email)

    if not patient or not patient.hashed_password or not verify_password(credentials.password, patient.hashed_password):
        await audit.log_login_failure(
            credentials.email,
            AuditActorType.PATIENT,
            patient.id if patient else None,
            reason="Invalid credentials",
        )
        raise AuthenticationError(message="Invalid email or password")

    if not patient.is_active or patient.is_deleted:
        await audit.log_login_failure(credentials.email, AuditActorType.PATIENT, patient.id, reason="Account inactive")
        raise AuthenticationError(message="Account is inactive")

    patient.last_login = datetime.utcnow()
    patient = await dao.save(patient)
    await audit.log_login_success(patient)

    token = TokenPayload(
        access_token=create_actor_token(ACTOR_PATIENT, patient.id),
        expires_in=settings.JWT_EXPIRATION_MINUTES * 60,
    )
    return api_response({"patient": _patient(patient), **token.model_dump()}, message="Login successful")


@router.post("/check-email", response_model=APIResponse, summary="Check patient email availability")
async def check_email(data: CheckPatientEmailRequest, db: AsyncSession = Depends(get_db)) -> APIResponse:
    available = not await PatientDAO(db).email_exists(data.email)
    return api_response({"available": available})


@router.post("/check-phone", response_model=APIResponse, summary="Check patient phone availability")
async def check_phone(data: CheckPhoneRequest, db: AsyncSession = Depends(get_db)) -> APIResponse:
    available = not await PatientDAO(db).phone_exists(data.phone)
    return api_response({"available": available})


# ============================================================================
# Patient self-service
# ============================================================================


@router.post("/logout", response_model=APIResponse, summary="Patient logout")
async def logout_patient(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    patient: Patient = Depends(get_current_patient),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    await blacklist_token(credentials.credentials, patient.id)
    await AuditService(db).log_logout(patient)
    return api_response(message="Logged out successfully")


@router.get("/profile", response_model=APIResponse, summary="Get own profile")
async def get_profile(patient: Patient = Depends(get_current_patient)) -> APIResponse:
    return api_response({"patient": _patient(patient)})


@router.put("/profile", response_model=APIResponse, summary="Update own profile")
async def update_profile(
    data: PatientProfileUpdate,
    patient: Patient = Depends(get_current_patient),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """
    Update any of the personal, contact, medical and preferences sections.

    Medical info and preferences are replaced as a whole.
    """
    values: Dict[str, Any] = {}
    if data.personal_info:
        values.update(data.personal_info.model_dump(exclude_unset=True))
    if data.contact_info:
        values.update(_contact_values(data.contact_info))
        await _ensure_email_free(PatientDAO(db), values.get("email"), exclude_id=patient.id)
    if data.medical_info:
        values["medical_info"] = data.medical_info.model_dump(mode="json")
    if data.preferences:
        values["preferences"] = data.preferences.model_dump(mode="json")

    patient = await _apply(patient, values, patient, db)
    return api_response({"patient": _patient(patient)}, message="Profile updated successfully")


@router.patch("/profile/preferences", response_model=APIResponse, summary="Update preferences")
async def update_preferences(
    data: Preferences,
    patient: Patient = Depends(get_current_patient),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    patient = await _apply(patient, {"preferences": data.model_dump(mode="json")}, patient, db)
    return api_response({"preferences": patient.preferences}, message="Preferences updated successfully")


@router.patch("/profile/medical-info", response_model=APIResponse, summary="Update medical information")
async def update_medical_info(
    data: MedicalInfo,
    patient: Patient = Depends(get_current_patient),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    patient = await _apply(patient, {"medical_info": data.model_dump(mode="json")}, patient, db)
    return api_response({"medical_info": patient.medical_info}, message="Medical information updated successfully")


@router.patch("/profile/contact-info", response_model=APIResponse, summary="Update contact information")
async def update_contact_info(
    data: ContactInfo,
    patient: Patient = Depends(get_current_patient),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """
    Raises:
        ResourceAlreadyExistsError (409): If the new email belongs to another patient
    """
    values = _contact_values(data)
    await _ensure_email_free(PatientDAO(db), values.get("email"), exclude_id=patient.id)
    patient = await _apply(patient, values, patient, db)
    return api_response({"patient": _patient(patient)}, message="Contact information updated successfully")


@router.post("/change-password", response_model=APIResponse, summary="Change password")
async def change_password(
    data: ChangePasswordRequest,
    patient: Patient = Depends(get_current_patient),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    if not verify_password(data.current_password, patient.hashed_password):
        raise ValidationError(message="Current password is incorrect", field="current_password")
    if data.current_password == data.new_password:
        raise ValidationError(
            message="New password must be different from the current password",
            field="new_password",
        )
    patient.hashed_password = hash_password(data.new_password)
    await PatientDAO(db).save(patient)
    await AuditService(db).log_password_change(patient)
    return api_response(message="Password changed successfully")


@router.get("/appointments", response_model=APIResponse, summary="Own appointments")
async def list_own_appointments(
    status_filter: Optional[AppointmentStatus] = Query(default=None, alias="status"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=50),
    patient: Patient = Depends(get_current_patient),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    appointments, total = await AppointmentDAO(db).list_appointments(
        page=page,
        limit=limit,
        status=status_filter,
        patient_id=patient.id,
    )
    return api_response(
        {"appointments": [_appointment(a) for a in appointments]},
        page=page,
        limit=limit,
        total=total,
    )


@router.get("/appointments/upcoming", response_model=APIResponse, summary="Upcoming appointments")
async def upcoming_appointments(
    limit: int = Query(default=10, ge=1, le=50),
    patient: Patient = Depends(get_current_patient),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    appointments = await AppointmentDAO(db).get_upcoming(datetime.utcnow(), limit=limit, patient_id=patient.id)
    return api_response({"appointments": [_appointment(a) for a in appointments], "count": len(appointments)})


@router.get("/appointments/history", response_model=APIResponse, summary="Past appointments")
async def appointment_history(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=50),
    patient: Patient = Depends(get_current_patient),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    appointments, total = await AppointmentDAO(db).list_with_statuses(
        HISTORY_STATUSES, page=page, limit=limit, patient_id=patient.id
    )
    return api_response(
        {"appointments": [_appointment(a) for a in appointments]},
        page=page,
        limit=limit,
        total=total,
    )


@router.get("/appointments/{appointment_id}", response_model=APIResponse, summary="Get own appointment")
async def get_own_appointment(
    appointment_id: int,
    patient: Patient = Depends(get_current_patient),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    appointment = await AppointmentDAO(db).get_for_patient(patient.id, appointment_id)
    if not appointment:
        raise AppointmentNotFoundError(message="Appointment not found", appointment_id=appointment_id)
    return api_response({"appointment": _appointment(appointment)})


@router.get("/dashboard", response_model=APIResponse, summary="Patient dashboard")
async def dashboard(
    patient: Patient = Depends(get_current_patient),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    dao = AppointmentDAO(db)
    upcoming = await dao.get_upcoming(datetime.utcnow(), limit=5, patient_id=patient.id)
    recent = await dao.get_recent(limit=5, patient_id=patient.id)
    counts = await dao.count_by_status(patient_id=patient.id)
    return api_response(
        {
            "upcoming_appointments": [_appointment(a) for a in upcoming],
            "recent_appointments": [_appointment(a) for a in recent],
            "statistics": {
                "total_appointments": patient.total_appointments,
                "completed_appointments": patient.completed_appointments,
                "cancelled_appointments": patient.cancelled_appointments,
                "no_show_count": patient.no_show_count,
                "last_visit": patient.last_visit,
                "by_status": counts,
            },
        }
    )


@router.post("/deactivate-account", response_model=APIResponse, summary="Deactivate own account")
async def deactivate_account(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    patient: Patient = Depends(get_current_patient),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    patient.is_active = False
    await PatientDAO(db).save(patient)
    await blacklist_token(credentials.credentials, patient.id)
    await AuditService(db).log_status_change(patient, "patient", patient.id, True, False, "Deactivated by patient")
    return api_response(message="Account deactivated successfully")


# ============================================================================
# Admin endpoints
# ============================================================================


@router.get("/admin/all", response_model=APIResponse, summary="List patients (admin)")
async def admin_list_patients(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    is_active: Optional[bool] = Query(default=None),
    gender: Optional[Gender] = Query(default=None),
    blood_group: Optional[BloodGroup] = Query(default=None),
    registration_source: Optional[RegistrationSource] = Query(default=None),
    search: Optional[str] = Query(default=None, max_length=100),
    include_deleted: bool = Query(default=False),
    sort_by: PatientSortField = Query(default=PatientSortField.CREATED_AT),
    sort_order: SortOrder = Query(default=SortOrder.DESC),
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    patients, total = await PatientDAO(db).list_for_admin(
        page=page,
        limit=limit,
        is_active=is_active,
        gender=gender,
        blood_group=blood_group,
        registration_source=registration_source,
        search=search.strip() if search else None,
        include_deleted=include_deleted,
        sort_by=sort_by.value,
        sort_order=sort_order.value,
    )
    return api_response({"patients": [_patient(p) for p in patients]}, page=page, limit=limit, total=total)


@router.get("/admin/search", response_model=APIResponse, summary="Search patients (admin)")
async def admin_search_patients(
    q: str = Depends(search_term),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """Match name, email, phone or patient code."""
    patients, total = await PatientDAO(db).search(q, page=page, limit=limit)
    return api_response({"patients": [_patient(p) for p in patients]}, page=page, limit=limit, total=total)


async def _admin_get(patient_id: int, db: AsyncSession) -> Patient:
    patient = await PatientDAO(db).get_existing(patient_id)
    if not patient:
        raise PatientNotFoundError(message="Patient not found", patient_id=patient_id)
    return patient


@router.get("/admin/{patient_id}", response_model=APIResponse, summary="Get patient (admin)")
async def admin_get_patient(
    patient_id: int,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    patient = await _admin_get(patient_id, db)
    return api_response({"patient": _patient(patient)})


@router.put("/admin/{patient_id}", response_model=APIResponse, summary="Update patient (admin)")
async def admin_update_patient(
    patient_id: int,
    data: PatientAdminUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    patient = await _admin_get(patient_id, db)
    values = data.model_dump(exclude_unset=True, exclude=set(JSON_SECTIONS))
    for section in data.model_fields_set & set(JSON_SECTIONS):
        document = getattr(data, section)
        values[section] = document.model_dump(mode="json") if document is not None else None
    if "email" in values:
        values["email"] = values["email"].lower()
        await _ensure_email_free(PatientDAO(db), values["email"], exclude_id=patient.id)

    patient = await _apply(patient, values, current_user, db)
    return api_response({"patient": _patient(patient)}, message="Patient updated successfully")


@router.patch("/admin/{patient_id}/status", response_model=APIResponse, summary="Activate or deactivate a patient")
async def admin_update_status(
    patient_id: int,
    data: StatusReasonRequest,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    patient = await _admin_get(patient_id, db)
    before = patient.is_active
    patient.is_active = data.is_active
    patient = await PatientDAO(db).save(patient)
    await AuditService(db).log_status_change(current_user, "patient", patient.id, before, patient.is_active, data.reason)

    state = "activated" if patient.is_active else "deactivated"
    return api_response({"patient": _patient(patient)}, message=f"Patient {state} successfully")


@router.delete("/admin/{patient_id}", response_model=APIResponse, summary="Delete patient (admin)")
async def admin_delete_patient(
    patient_id: int,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """
    Soft-delete a patient.

    Raises:
        ResourceInUseError (400): If the patient has future booked appointments
    """
    patient = await _admin_get(patient_id, db)
    if await AppointmentDAO(db).has_future_booked(datetime.utcnow(), patient_id=patient.id):
        raise ResourceInUseError(
            message="Cannot delete patient with upcoming scheduled or confirmed appointments",
            patient_id=patient.id,
        )

    patient.is_deleted = True
    patient.deleted_at = datetime.utcnow()
    patient.is_active = False
    await PatientDAO(db).save(patient)

    await AuditService(db).log_delete(current_user, "patient", patient.id, {"patient_code": patient.patient_code})
    logger.info("Patient deleted", extra={"patient_id": patient.id})
    return api_response(message="Patient deleted successfully")
