"""
Integration tests for inbound booking webhooks.

WHY: Webhooks book appointments and register patients without a user
token, so the signature check and the per-channel booking_source are
exercised through signed HTTP requests.
"""

import hashlib
import hmac
import json
import time
from datetime import date, datetime, timedelta
from typing import Optional

import pytest
from httpx import AsyncClient

from app.core.config import settings
from app.dao.patient import PatientDAO
from app.models.patient import Gender, RegistrationSource
from tests.factories import AppointmentFactory, PatientFactory


BASE = "/api/webhooks"
SECRET = "webhook-test-secret"


def slot(days: int = 3, hour: int = 10, minute: int = 0) -> datetime:
    return (datetime.utcnow() + timedelta(days=days)).replace(hour=hour, minute=minute, second=0, microsecond=0)


def signed(payload: dict, secret: str = SECRET, timestamp: Optional[int] = None) -> dict:
    """Request kwargs carrying the body and its signature headers."""
    body = json.dumps(payload).encode()
    sent_at = str(int(time.time()) if timestamp is None else timestamp)
    signature = hmac.new(secret.encode(), f"{sent_at}.".encode() + body, hashlib.sha256).hexdigest()
    return {
        "content": body,
        "headers": {
            "Content-Type": "application/json",
            "X-Webhook-Signature": signature,
            "X-Webhook-Timestamp": sent_at,
        },
    }


def wordpress(doctor, start: datetime, **overrides) -> dict:
    payload = {
        "patient_name": "Sita Devi",
        "patient_email": "sita.devi@example.com",
        "patient_phone": "+919876543210",
        "doctor_id": doctor.id,
        "appointment_date": start.date().isoformat(),
        "appointment_time": start.strftime("%H:%M"),
        "notes": "Prefers morning",
    }
    payload.update(overrides)
    return payload


@pytest.fixture(autouse=True)
def webhook_secret(monkeypatch):
    monkeypatch.setattr(settings, "WEBHOOK_SECRET", SECRET)


@pytest.mark.asyncio
class TestSignature:
    async def test_bad_signature_rejected(self, client: AsyncClient, test_doctor):
        response = await client.post(f"{BASE}/wordpress", **signed(wordpress(test_doctor, slot()), secret="wrong"))

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid webhook signature"

    async def test_stale_timestamp_rejected(self, client: AsyncClient, test_doctor):
        stale = int(time.time()) - settings.WEBHOOK_TOLERANCE_SECONDS - 60

        response = await client.post(
            f"{BASE}/wordpress", **signed(wordpress(test_doctor, slot()), timestamp=stale)
        )

        assert response.status_code == 401

    async def test_missing_headers_rejected(self, client: AsyncClient, test_doctor):
        response = await client.post(f"{BASE}/wordpress", json=wordpress(test_doctor, slot()))

        assert response.status_code == 401
        assert response.json()["message"] == "Missing webhook signature"

    async def test_unconfigured_secret_refuses_everything(self, client: AsyncClient, test_doctor, monkeypatch):
        monkeypatch.setattr(settings, "WEBHOOK_SECRET", None)

        response = await client.post(f"{BASE}/wordpress", **signed(wordpress(test_doctor, slot())))

        assert response.status_code == 401
        assert response.json()["message"] == "Webhooks are not configured"

    async def test_body_changed_after_signing(self, client: AsyncClient, test_doctor):
        request = signed(wordpress(test_doctor, slot()))
        request["content"] = request["content"].replace(b"Sita", b"Gita")

        response = await client.post(f"{BASE}/wordpress", **request)

        assert response.status_code == 401


@pytest.mark.asyncio
class TestWordPress:
    async def test_books_and_registers_patient(self, client: AsyncClient, test_doctor, db_session):
        start = slot(minute=30)

        response = await client.post(f"{BASE}/wordpress", **signed(wordpress(test_doctor, start)))

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["patient_created"] is True
        appointment = data["appointment"]
        assert appointment["booking_source"] == "website"
        assert appointment["booking_metadata"]["platform"] == "wordpress"
        assert appointment["notes"] == "Prefers morning"
        assert appointment["appointment_datetime"].startswith(start.isoformat()[:16])

        patient = await PatientDAO(db_session).get_by_email("sita.devi@example.com")
        assert patient.first_name == "Sita"
        assert patient.last_name == "Devi"
        assert patient.gender == Gender.OTHER
        assert patient.date_of_birth == date(1990, 1, 1)
        assert patient.registration_source == RegistrationSource.WEBSITE
        assert patient.hashed_password is None

    async def test_existing_patient_reused(self, client: AsyncClient, test_doctor, db_session):
        patient = await PatientFactory.create(db_session, email="sita.devi@example.com")

        response = await client.post(
            f"{BASE}/wordpress", **signed(wordpress(test_doctor, slot(), patient_email="Sita.Devi@Example.com"))
        )

        data = response.json()["data"]
        assert data["patient_created"] is False
        assert data["appointment"]["patient_id"] == patient.id

    async def test_single_name_used_for_both_parts(self, client: AsyncClient, test_doctor, db_session):
        await client.post(f"{BASE}/wordpress", **signed(wordpress(test_doctor, slot(), patient_name="Lakshmi")))

        patient = await PatientDAO(db_session).get_by_email("sita.devi@example.com")
        assert (patient.first_name, patient.last_name) == ("Lakshmi", "Lakshmi")

    async def test_past_time_rejected_before_registering(self, client: AsyncClient, test_doctor, db_session):
        response = await client.post(
            f"{BASE}/wordpress", **signed(wordpress(test_doctor, slot(days=-2)))
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid booking data"
        assert response.json()["details"]["errors"][0]["message"] == "Appointment time must be in the future"
        assert await PatientDAO(db_session).get_by_email("sita.devi@example.com") is None

    async def test_bad_phone_rejected(self, client: AsyncClient, test_doctor):
        response = await client.post(
            f"{BASE}/wordpress", **signed(wordpress(test_doctor, slot(), patient_phone="12345"))
        )

        assert response.status_code == 400
        assert response.json()["details"]["errors"][0]["field"] == "patient.phone"

    async def test_taken_slot_conflicts(self, client: AsyncClient, test_doctor, test_patient, db_session):
        start = slot()
        await AppointmentFactory.create(db_session, test_doctor, test_patient, start=start)

        response = await client.post(f"{BASE}/wordpress", **signed(wordpress(test_doctor, start)))

        assert response.status_code == 409


@pytest.mark.asyncio
class TestMessagingChannels:
    async def test_whatsapp_booking(self, client: AsyncClient, test_doctor, db_session):
        message = {
            "Body": "confirm",
            "From": "whatsapp:+919812345678",
            "ProfileName": "Anil Mehta",
            "booking": {
                "email": "anil@example.com",
                "doctor_id": test_doctor.id,
                "appointment_datetime": slot().isoformat(),
            },
        }

        response = await client.post(f"{BASE}/whatsapp", **signed(message))

        assert response.status_code == 200
        assert response.json()["data"]["appointment"]["booking_source"] == "whatsapp"
        patient = await PatientDAO(db_session).get_by_email("anil@example.com")
        assert patient.phone == "+919812345678"
        assert patient.registration_source == RegistrationSource.WHATSAPP

    async def test_whatsapp_booking_link_reply(self, client: AsyncClient):
        message = {"Body": "Hi, I want to Book Appointment", "From": "whatsapp:+919812345678"}

        response = await client.post(f"{BASE}/whatsapp", **signed(message))

        data = response.json()["data"]
        assert data["booked"] is False
        assert settings.BOOKING_URL in data["reply"]

    async def test_sms_booking(self, client: AsyncClient, test_doctor, db_session):
        message = {
            "Body": "yes",
            "From": "9812345679",
            "ProfileName": "Neha Joshi",
            "booking": {
                "email": "neha@example.com",
                "doctor_id": test_doctor.id,
                "appointment_datetime": slot().isoformat(),
            },
        }

        response = await client.post(f"{BASE}/sms", **signed(message))

        assert response.json()["data"]["appointment"]["booking_source"] == "sms"
        patient = await PatientDAO(db_session).get_by_email("neha@example.com")
        assert patient.registration_source == RegistrationSource.PHONE_CALL

    async def test_sms_without_keyword_gets_no_reply(self, client: AsyncClient):
        response = await client.post(f"{BASE}/sms", **signed({"Body": "thanks", "From": "9812345679"}))

        assert response.status_code == 200
        assert response.json()["data"] == {"booked": False, "reply": None}

    async def test_email_booking_keeps_body_as_notes(self, client: AsyncClient, test_doctor):
        email = {
            "from_email": "priya@example.com",
            "subject": "Appointment",
            "body": "Tooth pain since Monday",
            "parsed_data": {
                "patient_name": "Priya Nair",
                "phone": "9876501234",
                "doctor_id": test_doctor.id,
                "preferred_date": slot().isoformat(),
            },
        }

        response = await client.post(f"{BASE}/email", **signed(email))

        appointment = response.json()["data"]["appointment"]
        assert appointment["booking_source"] == "email"
        assert appointment["notes"] == "Tooth pain since Monday"

    async def test_unstructured_email_acknowledged(self, client: AsyncClient, db_session):
        email = {"from_email": "priya@example.com", "subject": "Question", "body": "Do you open on Sunday?"}

        response = await client.post(f"{BASE}/email", **signed(email))

        assert response.json()["data"] == {"booked": False}
        assert await PatientDAO(db_session).get_by_email("priya@example.com") is None


@pytest.mark.asyncio
class TestPartners:
    async def test_practo_booking(self, client: AsyncClient, test_doctor, db_session):
        payload = {
            "patient": {
                "first_name": "Rahul",
                "last_name": "Verma",
                "email": "rahul@example.com",
                "phone": "9876512345",
            },
            "doctor": {"internal_id": test_doctor.id},
            "appointment_datetime": slot().isoformat(),
            "booking_id": "PR-1001",
        }

        response = await client.post(f"{BASE}/practo", **signed(payload))

        appointment = response.json()["data"]["appointment"]
        assert appointment["booking_source"] == "third-party"
        assert appointment["booking_metadata"]["platform"] == "practo"
        assert appointment["booking_metadata"]["external_booking_id"] == "PR-1001"
        patient = await PatientDAO(db_session).get_by_email("rahul@example.com")
        assert patient.registration_source == RegistrationSource.REFERRAL

    async def test_zocdoc_format(self, client: AsyncClient, test_doctor):
        payload = {
            "patient": {
                "first_name": "Maya",
                "last_name": "Iyer",
                "email": "maya@example.com",
                "phone": "9876523456",
            },
            "provider": {"internal_id": test_doctor.id},
            "appointment": {"start_time": slot().isoformat()},
        }

        response = await client.post(f"{BASE}/external/zocdoc", **signed(payload))

        appointment = response.json()["data"]["appointment"]
        assert appointment["booking_source"] == "third-party"
        assert appointment["booking_metadata"]["platform"] == "zocdoc"

    async def test_lybrate_format(self, client: AsyncClient, test_doctor, db_session):
        payload = {
            "user": {"name": "Kiran Rao", "email": "kiran@example.com", "mobile": "9876534567"},
            "doctor": {"mapped_id": test_doctor.id},
            "slot": {"datetime": slot().isoformat()},
        }

        response = await client.post(f"{BASE}/external/lybrate", **signed(payload))

        assert response.status_code == 200
        patient = await PatientDAO(db_session).get_by_email("kiran@example.com")
        assert patient.last_name == "Rao"

    async def test_generic_format(self, client: AsyncClient, test_doctor):
        payload = {
            "patient_name": "Dev Anand",
            "patient_email": "dev@example.com",
            "patient_phone": "9876545678",
            "doctorId": test_doctor.id,
            "appointmentDateTime": slot().isoformat(),
            "booking_id": "GEN-7",
        }

        response = await client.post(f"{BASE}/external/healthhub", **signed(payload))

        metadata = response.json()["data"]["appointment"]["booking_metadata"]
        assert metadata["platform"] == "healthhub"
        assert metadata["external_booking_id"] == "GEN-7"

    async def test_generic_missing_doctor(self, client: AsyncClient):
        payload = {"patient_name": "Dev Anand", "email": "dev@example.com", "phone": "9876545678"}

        response = await client.post(f"{BASE}/external/healthhub", **signed(payload))

        assert response.status_code == 400
        fields = {error["field"] for error in response.json()["details"]["errors"]}
        assert {"doctor_id", "appointment_datetime"} <= fields

    async def test_unknown_doctor(self, client: AsyncClient):
        payload = {
            "patient_name": "Dev Anand",
            "email": "dev@example.com",
            "phone": "9876545678",
            "doctor_id": 9999,
            "appointment_date": slot().isoformat(),
        }

        response = await client.post(f"{BASE}/external/healthhub", **signed(payload))

        assert response.status_code == 404
