"""
Test factories for creating test data.

WHY: Factories provide a consistent, reusable way to create test objects,
reducing duplication and making tests more maintainable. Using factories
instead of manual object creation ensures tests stay consistent when models change.
"""

import itertools
from datetime import date, datetime, timedelta
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import hash_password
from app.models.appointment import (
    Appointment,
    AppointmentStatus,
    AppointmentType,
    BookingSource,
    PaymentStatus,
)
from app.models.doctor import Doctor, DoctorUnavailableDate, VerificationStatus
from app.models.inventory import (
    ImplantMaterial,
    ItemCategory,
    ItemType,
    Supplier,
    SupplierPaymentStatus,
)
from app.models.medicine import DentalUse, DosageForm, Medicine, MedicineCategory
from app.models.patient import Gender, Patient, RegistrationSource
from app.models.service_category import ClinicService, ServiceCategory
from app.models.user import User, UserRole


DEFAULT_PASSWORD = "TestPass123!"

# Unique suffixes for emails, phones and licence numbers
_sequence = itertools.count(1)


def _next() -> int:
    return next(_sequence)


async def _persist(session: AsyncSession, instance: Any) -> Any:
    session.add(instance)
    await session.commit()
    await session.refresh(instance)
    return instance


STANDARD_WEEK = [
    {"day": day, "start_time": "09:00", "end_time": "17:00", "is_working": True}
    for day in ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday")
]


class UserFactory:
    """
    Factory for creating staff User test instances.

    WHY: Tests need staff with different roles to verify RBAC on admin
    and super admin endpoints.
    """

    @staticmethod
    async def create(
        session: AsyncSession,
        email: Optional[str] = None,
        password: str = DEFAULT_PASSWORD,
        first_name: str = "Test",
        last_name: str = "User",
        role: UserRole = UserRole.STAFF,
        is_active: bool = True,
    ) -> User:
        user = User(
            email=email or f"user{_next()}@clinic.com",
            hashed_password=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            role=role,
            is_active=is_active,
        )
        return await _persist(session, user)


class DoctorFactory:
    """
    Factory for creating Doctor test instances.

    Defaults to an active, verified doctor so the doctor can log in and
    receive bookings.
    """

    @staticmethod
    async def create(
        session: AsyncSession,
        email: Optional[str] = None,
        password: str = DEFAULT_PASSWORD,
        first_name: str = "Asha",
        last_name: str = "Mehta",
        specialization: str = "Orthodontics",
        consultation_fee: float = 500.0,
        follow_up_fee: Optional[float] = 300.0,
        emergency_fee: Optional[float] = None,
        is_active: bool = True,
        verification_status: VerificationStatus = VerificationStatus.VERIFIED,
        **kwargs: Any,
    ) -> Doctor:
        n = _next()
        doctor = Doctor(
            email=email or f"doctor{n}@clinic.com",
            phone=kwargs.pop("phone", f"+9198{n:08d}"),
            hashed_password=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            specialization=specialization,
            qualifications=kwargs.pop("qualifications", ["BDS", "MDS"]),
            experience=kwargs.pop("experience", 8),
            license_number=kwargs.pop("license_number", f"LIC{n:06d}"),
            working_days=kwargs.pop("working_days", list(STANDARD_WEEK)),
            break_times=kwargs.pop("break_times", []),
            consultation_fee=consultation_fee,
            follow_up_fee=follow_up_fee,
            emergency_fee=emergency_fee,
            is_active=is_active,
            is_verified_by_admin=verification_status == VerificationStatus.VERIFIED,
            verification_status=verification_status,
            **kwargs,
        )
        return await _persist(session, doctor)


class UnavailableDateFactory:
    @staticmethod
    async def create(
        session: AsyncSession,
        doctor: Doctor,
        day: Optional[date] = None,
        reason: str = "Conference",
    ) -> DoctorUnavailableDate:
        entry = DoctorUnavailableDate(
            doctor_id=doctor.id,
            date=day or date.today() + timedelta(days=7),
            reason=reason,
        )
        return await _persist(session, entry)


class PatientFactory:
    """
    Factory for creating Patient test instances.

    WHY: Bookings, dashboards and admin listings all start from a patient.
    A password is set so the patient can log in.
    """

    @staticmethod
    async def create(
        session: AsyncSession,
        email: Optional[str] = None,
        password: Optional[str] = DEFAULT_PASSWORD,
        first_name: str = "Ravi",
        last_name: str = "Kumar",
        date_of_birth: date = date(1990, 5, 17),
        gender: Gender = Gender.MALE,
        is_active: bool = True,
        **kwargs: Any,
    ) -> Patient:
        n = _next()
        patient = Patient(
            email=email or f"patient{n}@clinic.com",
            phone=kwargs.pop("phone", f"98{n:08d}"),
            hashed_password=hash_password(password) if password else None,
            first_name=first_name,
            last_name=last_name,
            date_of_birth=date_of_birth,
            gender=gender,
            registration_source=kwargs.pop("registration_source", RegistrationSource.WEBSITE),
            is_active=is_active,
            **kwargs,
        )
        return await _persist(session, patient)


class AppointmentFactory:
    """
    Factory for creating Appointment test instances directly.

    WHY: Tests of transitions, reports and reminders need appointments in
    specific states without going through the booking endpoint.
    """

    @staticmethod
    async def create(
        session: AsyncSession,
        doctor: Doctor,
        patient: Patient,
        start: Optional[datetime] = None,
        duration: int = 30,
        status: AppointmentStatus = AppointmentStatus.SCHEDULED,
        appointment_type: AppointmentType = AppointmentType.CONSULTATION,
        booking_source: BookingSource = BookingSource.WEBSITE,
        payment_status: PaymentStatus = PaymentStatus.PENDING,
        payment_amount: float = 500.0,
        **kwargs: Any,
    ) -> Appointment:
        start = start or (datetime.utcnow() + timedelta(days=2)).replace(
            hour=10, minute=0, second=0, microsecond=0
        )
        appointment = Appointment(
            doctor_id=doctor.id,
            patient_id=patient.id,
            appointment_date=start.date(),
            appointment_datetime=start,
            end_datetime=start + timedelta(minutes=duration),
            duration=duration,
            status=status,
            appointment_type=appointment_type,
            booking_source=booking_source,
            payment_status=payment_status,
            payment_amount=payment_amount,
            symptoms=kwargs.pop("symptoms", []),
            **kwargs,
        )
        return await _persist(session, appointment)


class ServiceCategoryFactory:
    @staticmethod
    async def create(
        session: AsyncSession,
        name: Optional[str] = None,
        description: str = "Treatments grouped for the service menu",
        is_active: bool = True,
        position: int = 0,
        color: Optional[str] = None,
        service_count: int = 0,
    ) -> ServiceCategory:
        category = ServiceCategory(
            name=name or f"Category {_next()}",
            description=description,
            is_active=is_active,
            position=position,
            color=color,
            service_count=service_count,
        )
        return await _persist(session, category)


class ClinicServiceFactory:
    @staticmethod
    async def create(
        session: AsyncSession,
        category: ServiceCategory,
        name: str = "Scaling and polishing",
        price: float = 1200.0,
        duration_minutes: int = 45,
        is_active: bool = True,
    ) -> ClinicService:
        service = ClinicService(
            category_id=category.id,
            name=name,
            price=price,
            duration_minutes=duration_minutes,
            is_active=is_active,
        )
        return await _persist(session, service)


class MedicineFactory:
    @staticmethod
    async def create(
        session: AsyncSession,
        medicine_name: str = "Amoxicillin",
        strength: str = "500",
        dosage_form: DosageForm = DosageForm.CAPSULE,
        category: MedicineCategory = MedicineCategory.ANTIBIOTIC,
        dental_use: DentalUse = DentalUse.TOOTH_EXTRACTION,
        **kwargs: Any,
    ) -> Medicine:
        medicine = Medicine(
            medicine_name=medicine_name,
            strength=strength,
            dosage_form=dosage_form,
            category=category,
            dental_use=dental_use,
            dosage_instructions=kwargs.pop("dosage_instructions", "One capsule three times a day"),
            **kwargs,
        )
        return await _persist(session, medicine)


class InventoryItemFactory:
    """
    Factory for creating ImplantMaterial test instances.

    WHY: Derived fields are filled in through recalculate() exactly as the
    service does, so stored rows are consistent with their inputs.
    """

    @staticmethod
    async def create(
        session: AsyncSession,
        item_name: Optional[str] = None,
        quantity: int = 10,
        unit_price: float = 1000.0,
        minimum_stock: int = 2,
        received_date: Optional[date] = None,
        expiry_date: Optional[date] = None,
        payment_status: SupplierPaymentStatus = SupplierPaymentStatus.PENDING,
        category: ItemCategory = ItemCategory.IMPLANT,
        supplier: Supplier = Supplier.DENTIST_SHOP,
        **kwargs: Any,
    ) -> ImplantMaterial:
        item = ImplantMaterial(
            item_name=item_name or f"BLX Implant {_next()}",
            category=category,
            type=kwargs.pop("type", ItemType.STRAUMANN_BLX),
            implant_brand=kwargs.pop("implant_brand", "Straumann"),
            supplier=supplier,
            quantity=quantity,
            unit_price=unit_price,
            minimum_stock=minimum_stock,
            received_date=received_date or date.today() - timedelta(days=30),
            expiry_date=expiry_date,
            payment_status=payment_status,
            is_active=kwargs.pop("is_active", True),
            **kwargs,
        )
        item.recalculate(keep_active_flag=True)
        return await _persist(session, item)
