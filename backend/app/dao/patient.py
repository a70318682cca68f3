"""
Patient Data Access Object.

WHY: Patient lookups exclude soft-deleted records everywhere except the
admin listing, so the filter lives in one place.
"""

from typing import List, Optional, Tuple
from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.dao.base import LIKE_ESCAPE, BaseDAO, like_pattern
from app.models.patient import Patient, Gender, BloodGroup, RegistrationSource


class PatientDAO(BaseDAO[Patient]):
    """Data Access Object for patients."""

    def __init__(self, session: AsyncSession):
        super().__init__(Patient, session)

    async def get_by_email(self, email: str) -> Optional[Patient]:
        result = await self.session.execute(
            select(Patient).where(func.lower(Patient.email) == email.strip().lower())
        )
        return result.scalar_one_or_none()

    async def email_exists(self, email: str, exclude_id: Optional[int] = None) -> bool:
        query = select(Patient.id).where(func.lower(Patient.email) == email.strip().lower())
        if exclude_id is not None:
            query = query.where(Patient.id != exclude_id)
        result = await self.session.execute(query.limit(1))
        return result.scalar_one_or_none() is not None

    async def phone_exists(self, phone: str, exclude_id: Optional[int] = None) -> bool:
        query = select(Patient.id).where(Patient.phone == phone)
        if exclude_id is not None:
            query = query.where(Patient.id != exclude_id)
        result = await self.session.execute(query.limit(1))
        return result.scalar_one_or_none() is not None

    async def get_existing(self, patient_id: int) -> Optional[Patient]:
        """Return the patient unless it has been soft-deleted."""
        patient = await self.get_by_id(patient_id)
        if patient is None or patient.is_deleted:
            return None
        return patient

    async def list_for_admin(
        self,
        page: int = 1,
        limit: int = 20,
        is_active: Optional[bool] = None,
        gender: Optional[Gender] = None,
        blood_group: Optional[BloodGroup] = None,
        registration_source: Optional[RegistrationSource] = None,
        search: Optional[str] = None,
        include_deleted: bool = False,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> Tuple[List[Patient], int]:
        query = select(Patient)
        if not include_deleted:
            query = query.where(Patient.is_deleted.is_(False))
        if is_active is not None:
            query = query.where(Patient.is_active.is_(is_active))
        if gender is not None:
            query = query.where(Patient.gender == gender)
        if blood_group is not None:
            query = query.where(Patient.blood_group == blood_group)
        if registration_source is not None:
            query = query.where(Patient.registration_source == registration_source)
        if search:
            query = query.where(self._matches(search))
        return await self.paginate(query, page, limit, sort_by=sort_by, sort_order=sort_order)

    async def search(self, q: str, page: int = 1, limit: int = 20) -> Tuple[List[Patient], int]:
        """Match name, email, phone or patient code."""
        query = select(Patient).where(Patient.is_deleted.is_(False)).where(self._matches(q))
        return await self.paginate(query, page, limit, sort_by="first_name", sort_order="asc")

    async def increment_counter(self, patient_id: int, field: str, amount: int = 1) -> None:
        patient = await self.get_by_id(patient_id)
        if patient is None:
            return
        setattr(patient, field, (getattr(patient, field) or 0) + amount)
        await self.save(patient)

    @staticmethod
    def _matches(term: str):
        pattern = like_pattern(term)
        return or_(
            Patient.first_name.ilike(pattern, escape=LIKE_ESCAPE),
            Patient.last_name.ilike(pattern, escape=LIKE_ESCAPE),
            Patient.email.ilike(pattern, escape=LIKE_ESCAPE),
            Patient.phone.ilike(pattern, escape=LIKE_ESCAPE),
            Patient.patient_code.ilike(pattern, escape=LIKE_ESCAPE),
        )
