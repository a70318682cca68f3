"""
Database models package.

WHY: Centralizing model imports ensures Alembic can discover all models
for migration generation and makes it easier to import models elsewhere.
"""

from app.models.base import Base, TimestampMixin, PrimaryKeyMixin
from app.models.user import User, UserRole, ADMIN_ROLES
from app.models.audit_log import AuditLog, AuditAction, AuditActorType
from app.models.service_category import ServiceCategory, ClinicService
from app.models.doctor import (
    Doctor,
    DoctorUnavailableDate,
    UnavailabilityType,
    VerificationStatus,
    WEEKDAYS,
)
from app.models.patient import (
    Patient,
    Gender,
    BloodGroup,
    RegistrationSource,
    CommunicationMethod,
)
from app.models.appointment import (
    Appointment,
    AppointmentType,
    AppointmentStatus,
    AppointmentPriority,
    BookingSource,
    PaymentStatus,
)
from app.models.medicine import (
    Medicine,
    MedicineCategory,
    DentalUse,
    DosageForm,
    MedicineUnit,
    MedicineStatus,
)
from app.models.inventory import (
    ImplantMaterial,
    ItemCategory,
    ItemType,
    Supplier,
    StockUnit,
    MaterialStatus,
    SupplierPaymentStatus,
    PaymentMode,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "PrimaryKeyMixin",
    "User",
    "UserRole",
    "ADMIN_ROLES",
    "AuditLog",
    "AuditAction",
    "AuditActorType",
    "ServiceCategory",
    "ClinicService",
    "Doctor",
    "DoctorUnavailableDate",
    "UnavailabilityType",
    "VerificationStatus",
    "WEEKDAYS",
    "Patient",
    "Gender",
    "BloodGroup",
    "RegistrationSource",
    "CommunicationMethod",
    "Appointment",
    "AppointmentType",
    "AppointmentStatus",
    "AppointmentPriority",
    "BookingSource",
    "PaymentStatus",
    "Medicine",
    "MedicineCategory",
    "DentalUse",
    "DosageForm",
    "MedicineUnit",
    "MedicineStatus",
    "ImplantMaterial",
    "ItemCategory",
    "ItemType",
    "Supplier",
    "StockUnit",
    "MaterialStatus",
    "SupplierPaymentStatus",
    "PaymentMode",
]
