"""
Appointment Data Access Object.

WHAT: Database operations for appointments: slot checks, per-actor
listings, reminder selection and reporting aggregates.

WHY: The same queries serve the staff API, the doctor and patient
self-service APIs and the background reminder job.
"""

from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple
from sqlalchemy import select, func
from sqlalchemy.sql import Select
from sqlalchemy.ext.asyncio import AsyncSession

from app.dao.base import BaseDAO
from app.models.appointment import (
    Appointment,
    AppointmentStatus,
    BookingSource,
    PaymentStatus,
    ACTIVE_STATUSES,
)


class AppointmentDAO(BaseDAO[Appointment]):
    """Data Access Object for appointments."""

    def __init__(self, session: AsyncSession):
        super().__init__(Appointment, session)

    async def has_overlap(
        self,
        doctor_id: int,
        start: datetime,
        end: datetime,
        exclude_id: Optional[int] = None,
    ) -> bool:
        """
        Check whether [start, end) intersects an active appointment of the doctor.

        Two ranges overlap when start < other_end and end > other_start.
        """
        query = (
            select(Appointment.id)
            .where(Appointment.doctor_id == doctor_id)
            .where(Appointment.status.in_(ACTIVE_STATUSES))
            .where(Appointment.appointment_datetime < end)
            .where(Appointment.end_datetime > start)
        )
        if exclude_id is not None:
            query = query.where(Appointment.id != exclude_id)
        result = await self.session.execute(query.limit(1))
        return result.scalar_one_or_none() is not None

    async def list_appointments(
        self,
        page: int = 1,
        limit: int = 20,
        status: Optional[AppointmentStatus] = None,
        doctor_id: Optional[int] = None,
        patient_id: Optional[int] = None,
        booking_source: Optional[BookingSource] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        sort_by: str = "appointment_datetime",
        sort_order: str = "desc",
    ) -> Tuple[List[Appointment], int]:
        query = self._filtered(
            status=status,
            doctor_id=doctor_id,
            patient_id=patient_id,
            start_date=start_date,
            end_date=end_date,
        )
        if booking_source is not None:
            query = query.where(Appointment.booking_source == booking_source)
        return await self.paginate(query, page, limit, sort_by=sort_by, sort_order=sort_order)

    async def list_with_statuses(
        self,
        statuses: Iterable[AppointmentStatus],
        page: int = 1,
        limit: int = 20,
        doctor_id: Optional[int] = None,
        patient_id: Optional[int] = None,
    ) -> Tuple[List[Appointment], int]:
        query = self._filtered(doctor_id=doctor_id, patient_id=patient_id).where(
            Appointment.status.in_(list(statuses))
        )
        return await self.paginate(query, page, limit, sort_by="appointment_datetime", sort_order="desc")

    async def get_for_doctor(self, doctor_id: int, appointment_id: int) -> Optional[Appointment]:
        result = await self.session.execute(
            select(Appointment)
            .where(Appointment.id == appointment_id)
            .where(Appointment.doctor_id == doctor_id)
        )
        return result.scalar_one_or_none()

    async def get_for_patient(self, patient_id: int, appointment_id: int) -> Optional[Appointment]:
        result = await self.session.execute(
            select(Appointment)
            .where(Appointment.id == appointment_id)
            .where(Appointment.patient_id == patient_id)
        )
        return result.scalar_one_or_none()

    async def get_on_date(self, day: date, doctor_id: Optional[int] = None) -> List[Appointment]:
        """All appointments on one calendar day, earliest first."""
        query = self._filtered(doctor_id=doctor_id).where(Appointment.appointment_date == day)
        result = await self.session.execute(query.order_by(Appointment.appointment_datetime.asc()))
        return list(result.scalars().all())

    async def get_upcoming(
        self,
        now: datetime,
        limit: int = 10,
        doctor_id: Optional[int] = None,
        patient_id: Optional[int] = None,
    ) -> List[Appointment]:
        """Scheduled or confirmed appointments starting after now, earliest first."""
        query = (
            self._filtered(doctor_id=doctor_id, patient_id=patient_id)
            .where(Appointment.appointment_datetime > now)
            .where(Appointment.status.in_([AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED]))
            .order_by(Appointment.appointment_datetime.asc())
            .limit(limit)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_recent(
        self,
        limit: int = 5,
        doctor_id: Optional[int] = None,
        patient_id: Optional[int] = None,
        status: Optional[AppointmentStatus] = None,
    ) -> List[Appointment]:
        query = (
            self._filtered(status=status, doctor_id=doctor_id, patient_id=patient_id)
            .order_by(Appointment.appointment_datetime.desc(), Appointment.id.desc())
            .limit(limit)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def has_future_booked(
        self,
        now: datetime,
        doctor_id: Optional[int] = None,
        patient_id: Optional[int] = None,
    ) -> bool:
        """True if scheduled or confirmed appointments exist after now."""
        return bool(await self.get_upcoming(now, limit=1, doctor_id=doctor_id, patient_id=patient_id))

    async def get_booked_on_date(self, doctor_id: int, day: date) -> List[Appointment]:
        """Scheduled or confirmed appointments of a doctor on a given day."""
        result = await self.session.execute(
            select(Appointment)
            .where(Appointment.doctor_id == doctor_id)
            .where(Appointment.appointment_date == day)
            .where(Appointment.status.in_([AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED]))
        )
        return list(result.scalars().all())

    async def get_due_for_reminder(self, now: datetime, horizon: timedelta) -> List[Appointment]:
        """Booked appointments starting within horizon that have not been reminded."""
        result = await self.session.execute(
            select(Appointment)
            .where(Appointment.status.in_([AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED]))
            .where(Appointment.appointment_datetime > now)
            .where(Appointment.appointment_datetime <= now + horizon)
            .where(Appointment.reminders_sent == 0)
            .order_by(Appointment.appointment_datetime.asc())
        )
        return list(result.scalars().all())

    async def count_by_status(
        self,
        doctor_id: Optional[int] = None,
        patient_id: Optional[int] = None,
    ) -> Dict[str, int]:
        """Appointment counts keyed by status value, zero-filled."""
        query = select(Appointment.status, func.count(Appointment.id)).group_by(Appointment.status)
        if doctor_id is not None:
            query = query.where(Appointment.doctor_id == doctor_id)
        if patient_id is not None:
            query = query.where(Appointment.patient_id == patient_id)
        counts = {status.value: 0 for status in AppointmentStatus}
        for status, count in (await self.session.execute(query)).all():
            counts[status.value] = count
        return counts

    async def get_report(self, start_date: date, end_date: date) -> Dict[str, Any]:
        """
        Aggregate appointments between two dates (inclusive).

        Returns:
            total, by_status, by_type, by_source, total_revenue (paid) and
            pending_revenue
        """
        result = await self.session.execute(
            select(Appointment)
            .where(Appointment.appointment_date >= start_date)
            .where(Appointment.appointment_date <= end_date)
        )
        appointments = result.scalars().all()

        by_status: Dict[str, int] = {}
        by_type: Dict[str, int] = {}
        by_source: Dict[str, int] = {}
        total_revenue = 0.0
        pending_revenue = 0.0
        for appointment in appointments:
            by_status[appointment.status.value] = by_status.get(appointment.status.value, 0) + 1
            by_type[appointment.appointment_type.value] = by_type.get(appointment.appointment_type.value, 0) + 1
            by_source[appointment.booking_source.value] = by_source.get(appointment.booking_source.value, 0) + 1
            if appointment.payment_status == PaymentStatus.PAID:
                total_revenue += appointment.payment_amount or 0
            elif appointment.payment_status == PaymentStatus.PENDING:
                pending_revenue += appointment.payment_amount or 0

        return {
            "total": len(appointments),
            "by_status": by_status,
            "by_type": by_type,
            "by_source": by_source,
            "total_revenue": round(total_revenue, 2),
            "pending_revenue": round(pending_revenue, 2),
        }

    def _filtered(
        self,
        status: Optional[AppointmentStatus] = None,
        doctor_id: Optional[int] = None,
        patient_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Select:
        query = select(Appointment)
        if status is not None:
            query = query.where(Appointment.status == status)
        if doctor_id is not None:
            query = query.where(Appointment.doctor_id == doctor_id)
        if patient_id is not None:
            query = query.where(Appointment.patient_id == patient_id)
        if start_date is not None:
            query = query.where(Appointment.appointment_date >= start_date)
        if end_date is not None:
            query = query.where(Appointment.appointment_date <= end_date)
        return query
