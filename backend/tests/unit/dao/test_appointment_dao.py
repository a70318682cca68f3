"""
Appointment DAO tests: slot overlap, reminder selection and reports.
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.dao.appointment import AppointmentDAO
from app.models.appointment import (
    AppointmentStatus,
    AppointmentType,
    BookingSource,
    PaymentStatus,
)
from tests.factories import AppointmentFactory, DoctorFactory


def slot(hour: int, minute: int = 0, days: int = 2) -> datetime:
    return (datetime.utcnow() + timedelta(days=days)).replace(
        hour=hour, minute=minute, second=0, microsecond=0
    )


@pytest.mark.asyncio
class TestOverlap:
    @pytest.mark.parametrize(
        "start_minute,duration,expected",
        [
            (0, 30, True),     # same slot
            (15, 30, True),    # starts inside
            (-15, 30, True),   # ends inside
            (-30, 30, False),  # ends exactly at start
            (30, 30, False),   # starts exactly at end
            (-15, 60, True),   # contains
        ],
    )
    async def test_overlap(self, db_session: AsyncSession, test_doctor, test_patient, start_minute, duration, expected):
        booked = slot(10)
        await AppointmentFactory.create(db_session, test_doctor, test_patient, start=booked, duration=30)
        start = booked + timedelta(minutes=start_minute)

        result = await AppointmentDAO(db_session).has_overlap(
            test_doctor.id, start, start + timedelta(minutes=duration)
        )

        assert result is expected

    async def test_other_doctor_not_blocked(self, db_session: AsyncSession, test_doctor, test_patient):
        other = await DoctorFactory.create(db_session)
        await AppointmentFactory.create(db_session, test_doctor, test_patient, start=slot(10))

        assert await AppointmentDAO(db_session).has_overlap(other.id, slot(10), slot(10, 30)) is False

    async def test_no_show_frees_slot(self, db_session: AsyncSession, test_doctor, test_patient):
        await AppointmentFactory.create(
            db_session, test_doctor, test_patient, start=slot(10), status=AppointmentStatus.NO_SHOW
        )

        assert await AppointmentDAO(db_session).has_overlap(test_doctor.id, slot(10), slot(10, 30)) is False


@pytest.mark.asyncio
class TestQueries:
    async def test_count_by_status_zero_filled(self, db_session: AsyncSession, test_doctor, test_patient):
        await AppointmentFactory.create(db_session, test_doctor, test_patient, start=slot(9))
        await AppointmentFactory.create(
            db_session, test_doctor, test_patient, start=slot(11), status=AppointmentStatus.COMPLETED
        )

        counts = await AppointmentDAO(db_session).count_by_status(doctor_id=test_doctor.id)

        assert counts["scheduled"] == 1
        assert counts["completed"] == 1
        assert counts["no-show"] == 0
        assert len(counts) == len(AppointmentStatus)

    async def test_upcoming_excludes_past_and_cancelled(self, db_session: AsyncSession, test_doctor, test_patient):
        now = datetime.utcnow()
        soon = await AppointmentFactory.create(db_session, test_doctor, test_patient, start=now + timedelta(hours=2))
        await AppointmentFactory.create(db_session, test_doctor, test_patient, start=now - timedelta(hours=2))
        await AppointmentFactory.create(
            db_session,
            test_doctor,
            test_patient,
            start=now + timedelta(hours=4),
            status=AppointmentStatus.CANCELLED,
        )

        upcoming = await AppointmentDAO(db_session).get_upcoming(now, patient_id=test_patient.id)

        assert [a.id for a in upcoming] == [soon.id]

    async def test_report(self, db_session: AsyncSession, test_doctor, test_patient):
        day = slot(9).date()
        await AppointmentFactory.create(
            db_session,
            test_doctor,
            test_patient,
            start=slot(9),
            payment_status=PaymentStatus.PAID,
            payment_amount=800,
        )
        await AppointmentFactory.create(
            db_session,
            test_doctor,
            test_patient,
            start=slot(10),
            appointment_type=AppointmentType.EMERGENCY,
            booking_source=BookingSource.PHONE_CALL,
            payment_amount=1200,
        )
        await AppointmentFactory.create(
            db_session,
            test_doctor,
            test_patient,
            start=slot(11),
            status=AppointmentStatus.CANCELLED,
            payment_status=PaymentStatus.REFUNDED,
        )

        report = await AppointmentDAO(db_session).get_report(day, day)

        assert report["total"] == 3
        assert report["by_status"] == {"scheduled": 2, "cancelled": 1}
        assert report["by_type"]["emergency"] == 1
        assert report["by_source"]["phone-call"] == 1
        assert report["total_revenue"] == 800.0
        assert report["pending_revenue"] == 1200.0
