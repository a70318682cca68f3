"""
Integration tests for appointment endpoints.

WHY: Booking is public and arrives from every channel, so the slot and
leave checks must hold at the HTTP boundary. Staff then drive each
appointment through its lifecycle and read the reports built from it.
"""

from datetime import datetime, timedelta

import pytest
from httpx import AsyncClient

from app.models.appointment import AppointmentStatus, PaymentStatus
from tests.factories import AppointmentFactory, DoctorFactory, UnavailableDateFactory


def slot(days: int = 3, hour: int = 10, minute: int = 0) -> datetime:
    return (datetime.utcnow() + timedelta(days=days)).replace(hour=hour, minute=minute, second=0, microsecond=0)


def booking(doctor, patient, start: datetime, **overrides) -> dict:
    payload = {
        "patient_id": patient.id,
        "doctor_id": doctor.id,
        "appointment_datetime": start.isoformat(),
        "duration": 30,
    }
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
class TestBooking:
    async def test_book(self, client: AsyncClient, test_doctor, test_patient, db_session):
        response = await client.post(
            "/api/appointments/book",
            json=booking(test_doctor, test_patient, slot(), symptoms=[" toothache ", ""], booking_source="whatsapp"),
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["confirmation_code"] == data["appointment"]["appointment_code"]
        assert data["appointment"]["status"] == "scheduled"
        assert data["appointment"]["payment_amount"] == 500.0
        assert data["appointment"]["symptoms"] == ["toothache"]
        await db_session.refresh(test_doctor)
        assert test_doctor.total_appointments == 1

    async def test_follow_up_uses_follow_up_fee(self, client: AsyncClient, test_doctor, test_patient):
        response = await client.post(
            "/api/appointments/book",
            json=booking(test_doctor, test_patient, slot(), appointment_type="follow-up"),
        )

        assert response.json()["data"]["appointment"]["payment_amount"] == 300.0

    async def test_overlapping_slot(self, client: AsyncClient, test_doctor, test_patient, db_session):
        await AppointmentFactory.create(db_session, test_doctor, test_patient, start=slot())

        response = await client.post(
            "/api/appointments/book",
            json=booking(test_doctor, test_patient, slot(minute=15)),
        )

        assert response.status_code == 409
        assert response.json()["message"] == "Selected time slot is not available"

    async def test_back_to_back_is_fine(self, client: AsyncClient, test_doctor, test_patient, db_session):
        await AppointmentFactory.create(db_session, test_doctor, test_patient, start=slot())

        response = await client.post(
            "/api/appointments/book",
            json=booking(test_doctor, test_patient, slot(minute=30)),
        )

        assert response.status_code == 201

    async def test_doctor_on_leave(self, client: AsyncClient, test_doctor, test_patient, db_session):
        start = slot(days=5)
        await UnavailableDateFactory.create(db_session, test_doctor, day=start.date())

        response = await client.post("/api/appointments/book", json=booking(test_doctor, test_patient, start))

        assert response.status_code == 409
        assert response.json()["message"] == "Doctor is not available on the selected date"

    async def test_inactive_doctor(self, client: AsyncClient, test_patient, db_session):
        doctor = await DoctorFactory.create(db_session, is_active=False)

        response = await client.post("/api/appointments/book", json=booking(doctor, test_patient, slot()))

        assert response.status_code == 404

    @pytest.mark.parametrize(
        "overrides",
        [
            {"duration": 4},
            {"duration": 181},
            {"appointment_datetime": "2020-01-01T10:00:00"},
            {"booking_source": "carrier-pigeon"},
        ],
    )
    async def test_rejects_bad_input(self, client: AsyncClient, test_doctor, test_patient, overrides):
        response = await client.post(
            "/api/appointments/book", json=booking(test_doctor, test_patient, slot(), **overrides)
        )

        assert response.status_code == 400

    async def test_timezone_aware_times_are_stored_as_utc(self, client: AsyncClient, test_doctor, test_patient):
        start = slot(hour=10)
        local = f"{start.strftime('%Y-%m-%dT')}15:30:00+05:30"

        response = await client.post(
            "/api/appointments/book",
            json=booking(test_doctor, test_patient, start, appointment_datetime=local),
        )

        assert response.json()["data"]["appointment"]["appointment_datetime"].startswith(
            f"{start.strftime('%Y-%m-%d')}T10:00:00"
        )


@pytest.mark.asyncio
class TestStaffManagement:
    async def test_listing_requires_staff(self, client: AsyncClient, patient_headers):
        response = await client.get("/api/appointments", headers=patient_headers)

        assert response.status_code == 401

    async def test_list_filters(self, client: AsyncClient, staff_headers, test_doctor, test_patient, db_session):
        await AppointmentFactory.create(db_session, test_doctor, test_patient, start=slot(days=2))
        await AppointmentFactory.create(
            db_session, test_doctor, test_patient, start=slot(days=4), status=AppointmentStatus.CONFIRMED
        )

        response = await client.get("/api/appointments", params={"status": "confirmed"}, headers=staff_headers)

        body = response.json()
        assert [a["status"] for a in body["data"]["appointments"]] == ["confirmed"]
        assert body["pagination"]["total"] == 1

    async def test_list_date_order(self, client: AsyncClient, staff_headers):
        response = await client.get(
            "/api/appointments",
            params={"start_date": "2030-02-01", "end_date": "2030-01-01"},
            headers=staff_headers,
        )

        assert response.status_code == 400

    async def test_update_locked_after_completion(
        self, client: AsyncClient, staff_headers, test_doctor, test_patient, db_session
    ):
        appointment = await AppointmentFactory.create(
            db_session, test_doctor, test_patient, status=AppointmentStatus.COMPLETED
        )

        response = await client.put(
            f"/api/appointments/{appointment.id}", json={"notes": "late edit"}, headers=staff_headers
        )

        assert response.status_code == 400

    async def test_update_payment(self, client: AsyncClient, staff_headers, test_doctor, test_patient, db_session):
        appointment = await AppointmentFactory.create(db_session, test_doctor, test_patient)

        response = await client.put(
            f"/api/appointments/{appointment.id}",
            json={"payment_status": "paid", "payment_method": "UPI"},
            headers=staff_headers,
        )

        assert response.json()["data"]["appointment"]["payment_status"] == "paid"

    async def test_update_rejects_null_for_required_fields(
        self, client: AsyncClient, staff_headers, test_doctor, test_patient, db_session
    ):
        appointment = await AppointmentFactory.create(db_session, test_doctor, test_patient)

        required = await client.put(
            f"/api/appointments/{appointment.id}", json={"payment_amount": None}, headers=staff_headers
        )
        optional = await client.put(
            f"/api/appointments/{appointment.id}", json={"notes": None}, headers=staff_headers
        )

        assert required.status_code == 400
        assert optional.status_code == 200

    async def test_lifecycle(self, client: AsyncClient, staff_headers, test_doctor, test_patient, db_session):
        appointment = await AppointmentFactory.create(db_session, test_doctor, test_patient)

        confirmed = await client.post(f"/api/appointments/{appointment.id}/confirm", headers=staff_headers)
        again = await client.post(f"/api/appointments/{appointment.id}/confirm", headers=staff_headers)
        completed = await client.post(
            f"/api/appointments/{appointment.id}/complete",
            json={"consultation": {"diagnosis": "Gingivitis", "follow_up_required": True}},
            headers=staff_headers,
        )

        assert confirmed.json()["data"]["appointment"]["status"] == "confirmed"
        assert again.status_code == 400
        assert completed.json()["data"]["appointment"]["status"] == "completed"
        await db_session.refresh(test_patient)
        assert test_patient.completed_appointments == 1
        assert test_patient.last_visit is not None

    async def test_complete_needs_confirmation(
        self, client: AsyncClient, staff_headers, test_doctor, test_patient, db_session
    ):
        appointment = await AppointmentFactory.create(db_session, test_doctor, test_patient)

        response = await client.post(f"/api/appointments/{appointment.id}/complete", headers=staff_headers)

        assert response.status_code == 400

    async def test_terminal_status_cannot_change(
        self, client: AsyncClient, staff_headers, test_doctor, test_patient, db_session
    ):
        appointment = await AppointmentFactory.create(
            db_session, test_doctor, test_patient, status=AppointmentStatus.CANCELLED
        )

        response = await client.patch(
            f"/api/appointments/{appointment.id}/status", json={"status": "scheduled"}, headers=staff_headers
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Cannot change appointment status from cancelled to scheduled"

    async def test_no_show_counts_against_patient(
        self, client: AsyncClient, staff_headers, test_doctor, test_patient, db_session
    ):
        appointment = await AppointmentFactory.create(db_session, test_doctor, test_patient)

        await client.patch(
            f"/api/appointments/{appointment.id}/status", json={"status": "no-show"}, headers=staff_headers
        )

        await db_session.refresh(test_patient)
        assert test_patient.no_show_count == 1


@pytest.mark.asyncio
class TestCancelAndReschedule:
    @pytest.mark.parametrize(
        "days_ahead,payment_status,expected",
        [
            (3, PaymentStatus.PAID, True),
            (3, PaymentStatus.PENDING, False),
        ],
    )
    async def test_refund_eligibility(
        self,
        client: AsyncClient,
        staff_headers,
        test_doctor,
        test_patient,
        db_session,
        days_ahead,
        payment_status,
        expected,
    ):
        appointment = await AppointmentFactory.create(
            db_session, test_doctor, test_patient, start=slot(days=days_ahead), payment_status=payment_status
        )

        response = await client.post(
            f"/api/appointments/{appointment.id}/cancel", json={"reason": "Travelling"}, headers=staff_headers
        )

        data = response.json()["data"]
        assert data["refund_eligible"] is expected
        assert data["appointment"]["status"] == "cancelled"
        assert data["appointment"]["cancellation_reason"] == "Travelling"

    async def test_paid_but_too_late_for_refund(
        self, client: AsyncClient, staff_headers, test_doctor, test_patient, db_session
    ):
        appointment = await AppointmentFactory.create(
            db_session,
            test_doctor,
            test_patient,
            start=datetime.utcnow() + timedelta(hours=5),
            payment_status=PaymentStatus.PAID,
        )

        response = await client.post(f"/api/appointments/{appointment.id}/cancel", headers=staff_headers)

        assert response.json()["data"]["refund_eligible"] is False

    async def test_reschedule(self, client: AsyncClient, staff_headers, test_doctor, test_patient, db_session):
        appointment = await AppointmentFactory.create(
            db_session, test_doctor, test_patient, start=slot(), status=AppointmentStatus.CONFIRMED
        )
        new_start = slot(days=6, hour=11)

        response = await client.post(
            f"/api/appointments/{appointment.id}/reschedule",
            json={"appointment_datetime": new_start.isoformat()},
            headers=staff_headers,
        )

        moved = response.json()["data"]["appointment"]
        assert moved["status"] == "scheduled"
        assert moved["appointment_datetime"].startswith(new_start.isoformat()[:16])

    async def test_reschedule_into_taken_slot(
        self, client: AsyncClient, staff_headers, test_doctor, test_patient, db_session
    ):
        appointment = await AppointmentFactory.create(db_session, test_doctor, test_patient, start=slot(days=2))
        await AppointmentFactory.create(db_session, test_doctor, test_patient, start=slot(days=6))

        response = await client.post(
            f"/api/appointments/{appointment.id}/reschedule",
            json={"appointment_datetime": slot(days=6, minute=10).isoformat()},
            headers=staff_headers,
        )

        assert response.status_code == 409

    async def test_reschedule_into_the_past(
        self, client: AsyncClient, staff_headers, test_doctor, test_patient, db_session
    ):
        appointment = await AppointmentFactory.create(db_session, test_doctor, test_patient)

        response = await client.post(
            f"/api/appointments/{appointment.id}/reschedule",
            json={"appointment_datetime": "2020-01-01T10:00:00"},
            headers=staff_headers,
        )

        assert response.status_code == 400


@pytest.mark.asyncio
class TestReports:
    async def test_daily_report(self, client: AsyncClient, staff_headers, test_doctor, test_patient, db_session):
        start = slot(days=3)
        await AppointmentFactory.create(
            db_session, test_doctor, test_patient, start=start, payment_status=PaymentStatus.PAID
        )
        await AppointmentFactory.create(
            db_session, test_doctor, test_patient, start=start + timedelta(hours=1), payment_amount=300.0
        )

        response = await client.get(
            "/api/appointments/reports/daily", params={"date": start.date().isoformat()}, headers=staff_headers
        )

        report = response.json()["data"]["report"]
        assert report["total"] == 2
        assert report["total_revenue"] == 500.0
        assert report["pending_revenue"] == 300.0
        assert report["by_source"] == {"website": 2}

    async def test_monthly_report(self, client: AsyncClient, staff_headers, test_doctor, test_patient, db_session):
        start = slot(days=3)
        await AppointmentFactory.create(db_session, test_doctor, test_patient, start=start)

        response = await client.get(
            "/api/appointments/reports/monthly",
            params={"year": start.year, "month": start.month},
            headers=staff_headers,
        )

        data = response.json()["data"]
        assert data["month"] == start.month
        assert data["report"]["by_status"] == {"scheduled": 1}

    async def test_monthly_report_month_bounds(self, client: AsyncClient, staff_headers):
        response = await client.get(
            "/api/appointments/reports/monthly", params={"month": 13}, headers=staff_headers
        )

        assert response.status_code == 400
