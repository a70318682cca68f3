"""
Doctor Data Access Objects.

WHAT: Database operations for doctors and their unavailable dates.

WHY: Doctors are looked up from three directions (public search, their
own account, admin verification), and availability checks are reused by
appointment booking.
"""

from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple
from sqlalchemy import select, func, or_, delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.dao.base import LIKE_ESCAPE, BaseDAO, like_pattern
from app.models.doctor import Doctor, DoctorUnavailableDate, VerificationStatus, WEEKDAYS


class DoctorDAO(BaseDAO[Doctor]):
    """Data Access Object for doctors."""

    def __init__(self, session: AsyncSession):
        super().__init__(Doctor, session)

    async def get_by_email(self, email: str) -> Optional[Doctor]:
        result = await self.session.execute(
            select(Doctor).where(func.lower(Doctor.email) == email.strip().lower())
        )
        return result.scalar_one_or_none()

    async def _taken(self, column, value: str, exclude_id: Optional[int]) -> bool:
        query = select(Doctor.id).where(column == value)
        if exclude_id is not None:
            query = query.where(Doctor.id != exclude_id)
        result = await self.session.execute(query.limit(1))
        return result.scalar_one_or_none() is not None

    async def email_exists(self, email: str, exclude_id: Optional[int] = None) -> bool:
        return await self._taken(func.lower(Doctor.email), email.strip().lower(), exclude_id)

    async def phone_exists(self, phone: str, exclude_id: Optional[int] = None) -> bool:
        return await self._taken(Doctor.phone, phone, exclude_id)

    async def license_exists(self, license_number: str, exclude_id: Optional[int] = None) -> bool:
        return await self._taken(Doctor.license_number, license_number.strip().upper(), exclude_id)

    async def search(
        self,
        q: Optional[str] = None,
        specialization: Optional[str] = None,
        min_experience: Optional[int] = None,
        min_rating: Optional[float] = None,
        available_today: bool = False,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "rating",
        sort_order: str = "desc",
    ) -> Tuple[List[Doctor], int]:
        """
        Public doctor search. Only active, available doctors are returned.

        WHY: available_today depends on the JSON weekly schedule, which is
        filtered in Python before the paginated query runs.
        """
        query = select(Doctor).where(Doctor.is_active.is_(True), Doctor.is_available.is_(True))
        if q:
            pattern = like_pattern(q)
            query = query.where(
                or_(
                    Doctor.first_name.ilike(pattern, escape=LIKE_ESCAPE),
                    Doctor.last_name.ilike(pattern, escape=LIKE_ESCAPE),
                    Doctor.specialization.ilike(pattern, escape=LIKE_ESCAPE),
                    Doctor.department.ilike(pattern, escape=LIKE_ESCAPE),
                )
            )
        if specialization:
            query = query.where(
                Doctor.specialization.ilike(like_pattern(specialization), escape=LIKE_ESCAPE)
            )
        if min_experience is not None:
            query = query.where(Doctor.experience >= min_experience)
        if min_rating is not None:
            query = query.where(Doctor.rating >= min_rating)
        if available_today:
            ids = await self.working_today_ids(query)
            query = query.where(Doctor.id.in_(ids))
        return await self.paginate(query, page, limit, sort_by=sort_by, sort_order=sort_order)

    async def working_today_ids(self, query, today: Optional[date] = None) -> List[int]:
        """Ids of doctors in query who work today and are not on leave today."""
        today = today or date.today()
        day_name = WEEKDAYS[today.weekday()]
        away = await UnavailableDateDAO(self.session).doctor_ids_unavailable_on(today)

        result = await self.session.execute(query)
        ids = []
        for doctor in result.scalars().all():
            entry = doctor.working_day(day_name)
            if entry and entry.get("is_working", True) and doctor.id not in away:
                ids.append(doctor.id)
        return ids

    async def list_public(self, page: int = 1, limit: int = 10) -> Tuple[List[Doctor], int]:
        query = select(Doctor).where(Doctor.is_active.is_(True))
        return await self.paginate(query, page, limit, sort_by="first_name", sort_order="asc")

    async def get_specializations(self) -> List[Dict[str, Any]]:
        """Distinct specializations of active doctors with head counts."""
        result = await self.session.execute(
            select(Doctor.specialization, func.count(Doctor.id))
            .where(Doctor.is_active.is_(True))
            .group_by(Doctor.specialization)
            .order_by(Doctor.specialization.asc())
        )
        return [{"specialization": name, "count": count} for name, count in result.all()]

    async def get_by_specialization(self, specialization: str) -> List[Doctor]:
        result = await self.session.execute(
            select(Doctor)
            .where(Doctor.is_active.is_(True))
            .where(func.lower(Doctor.specialization) == specialization.strip().lower())
            .order_by(Doctor.rating.desc(), Doctor.id.asc())
        )
        return list(result.scalars().all())

    async def list_for_admin(
        self,
        page: int = 1,
        limit: int = 20,
        is_active: Optional[bool] = None,
        verification_status: Optional[VerificationStatus] = None,
        search: Optional[str] = None,
    ) -> Tuple[List[Doctor], int]:
        query = select(Doctor)
        if is_active is not None:
            query = query.where(Doctor.is_active.is_(is_active))
        if verification_status is not None:
            query = query.where(Doctor.verification_status == verification_status)
        if search:
            pattern = like_pattern(search)
            query = query.where(
                or_(
                    Doctor.first_name.ilike(pattern, escape=LIKE_ESCAPE),
                    Doctor.last_name.ilike(pattern, escape=LIKE_ESCAPE),
                    Doctor.email.ilike(pattern, escape=LIKE_ESCAPE),
                    Doctor.license_number.ilike(pattern, escape=LIKE_ESCAPE),
                    Doctor.specialization.ilike(pattern, escape=LIKE_ESCAPE),
                )
            )
        return await self.paginate(query, page, limit, sort_by="created_at", sort_order="desc")

    async def get_pending_verification(self) -> List[Doctor]:
        result = await self.session.execute(
            select(Doctor)
            .where(Doctor.verification_status == VerificationStatus.PENDING)
            .order_by(Doctor.created_at.asc(), Doctor.id.asc())
        )
        return list(result.scalars().all())

    async def get_specialization_stats(self) -> List[Dict[str, Any]]:
        """Per-specialization averages for the admin analytics view."""
        result = await self.session.execute(
            select(
                Doctor.specialization,
                func.count(Doctor.id),
                func.avg(Doctor.experience),
                func.avg(Doctor.rating),
                func.avg(Doctor.consultation_fee),
            )
            .group_by(Doctor.specialization)
            .order_by(func.count(Doctor.id).desc(), Doctor.specialization.asc())
        )
        return [
            {
                "specialization": name,
                "count": count,
                "average_experience": round(float(avg_experience or 0), 1),
                "average_rating": round(float(avg_rating or 0), 2),
                "average_consultation_fee": round(float(avg_fee or 0), 2),
            }
            for name, count, avg_experience, avg_rating, avg_fee in result.all()
        ]

    async def increment_counter(self, doctor_id: int, field: str, amount: int = 1) -> None:
        """Bump one of the appointment statistics counters."""
        doctor = await self.get_by_id(doctor_id)
        if doctor is None:
            return
        setattr(doctor, field, (getattr(doctor, field) or 0) + amount)
        await self.save(doctor)


class UnavailableDateDAO(BaseDAO[DoctorUnavailableDate]):
    """Data Access Object for doctor unavailable dates."""

    def __init__(self, session: AsyncSession):
        super().__init__(DoctorUnavailableDate, session)

    async def list_for_doctor(
        self, doctor_id: int, upcoming_only: bool = False, today: Optional[date] = None
    ) -> List[DoctorUnavailableDate]:
        query = select(DoctorUnavailableDate).where(DoctorUnavailableDate.doctor_id == doctor_id)
        if upcoming_only:
            query = query.where(DoctorUnavailableDate.date >= (today or date.today()))
        result = await self.session.execute(query.order_by(DoctorUnavailableDate.date.asc()))
        return list(result.scalars().all())

    async def get_for_doctor(self, doctor_id: int, entry_id: int) -> Optional[DoctorUnavailableDate]:
        result = await self.session.execute(
            select(DoctorUnavailableDate)
            .where(DoctorUnavailableDate.id == entry_id)
            .where(DoctorUnavailableDate.doctor_id == doctor_id)
        )
        return result.scalar_one_or_none()

    async def get_by_date(self, doctor_id: int, day: date) -> Optional[DoctorUnavailableDate]:
        result = await self.session.execute(
            select(DoctorUnavailableDate)
            .where(DoctorUnavailableDate.doctor_id == doctor_id)
            .where(DoctorUnavailableDate.date == day)
        )
        return result.scalar_one_or_none()

    async def is_unavailable(self, doctor_id: int, day: date) -> bool:
        return await self.get_by_date(doctor_id, day) is not None

    async def existing_dates(self, doctor_id: int, days: Iterable[date]) -> Set[date]:
        days = list(days)
        if not days:
            return set()
        result = await self.session.execute(
            select(DoctorUnavailableDate.date)
            .where(DoctorUnavailableDate.doctor_id == doctor_id)
            .where(DoctorUnavailableDate.date.in_(days))
        )
        return set(result.scalars().all())

    async def doctor_ids_unavailable_on(self, day: date) -> Set[int]:
        result = await self.session.execute(
            select(DoctorUnavailableDate.doctor_id).where(DoctorUnavailableDate.date == day)
        )
        return set(result.scalars().all())

    async def delete_many(self, doctor_id: int, entry_ids: List[int]) -> int:
        """Delete the doctor's own entries among entry_ids; returns the count removed."""
        result = await self.session.execute(
            delete(DoctorUnavailableDate)
            .where(DoctorUnavailableDate.doctor_id == doctor_id)
            .where(DoctorUnavailableDate.id.in_(entry_ids))
        )
        return result.rowcount
