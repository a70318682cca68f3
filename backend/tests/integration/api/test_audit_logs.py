"""
Integration tests for the audit log viewer and the failed-login lockout.

WHY: Administrators trace disputed changes through these endpoints, and
the lockout reads the same failed-login rows, so both are exercised
through real logins and updates.
"""

import pytest
from httpx import AsyncClient

from app.core.config import settings
from tests.factories import DEFAULT_PASSWORD, ServiceCategoryFactory


BASE = "/api/audit-logs"
ATTACKER = {"X-Forwarded-For": "203.0.113.7"}


@pytest.mark.asyncio
class TestAuditLogViewer:
    async def test_resource_history(self, client: AsyncClient, staff_headers, admin_headers, db_session):
        category = await ServiceCategoryFactory.create(db_session, name="Implants")
        await client.put(
            f"/api/service-categories/{category.id}", json={"position": 4}, headers=staff_headers
        )

        response = await client.get(f"{BASE}/resources/service_category/{category.id}", headers=admin_headers)

        assert response.status_code == 200
        logs = response.json()["data"]["logs"]
        assert [log["action"] for log in logs] == ["UPDATE"]
        assert logs[0]["changes"]["position"]["after"] == 4

    async def test_actor_trail(self, client: AsyncClient, test_staff, staff_headers, admin_headers, db_session):
        category = await ServiceCategoryFactory.create(db_session)
        await client.put(
            f"/api/service-categories/{category.id}", json={"color": "#abc"}, headers=staff_headers
        )

        mine = await client.get(f"{BASE}/actors/user/{test_staff.id}", headers=admin_headers)
        doctor = await client.get(f"{BASE}/actors/doctor/{test_staff.id}", headers=admin_headers)

        assert [log["resource_type"] for log in mine.json()["data"]["logs"]] == ["service_category"]
        assert doctor.json()["data"]["logs"] == []

    async def test_failed_logins_by_action_and_count(self, client: AsyncClient, test_staff, admin_headers):
        await client.post(
            "/api/users/login",
            json={"email": "staff@clinic.com", "password": "Wrong@1234"},
            headers=ATTACKER,
        )

        by_action = await client.get(f"{BASE}/actions/LOGIN_FAILURE", headers=admin_headers)
        count = await client.get(
            f"{BASE}/failed-logins", params={"ip_address": "203.0.113.7"}, headers=admin_headers
        )

        logs = by_action.json()["data"]["logs"]
        assert len(logs) == 1
        assert logs[0]["extra_data"]["attempted_email"] == "staff@clinic.com"
        assert logs[0]["ip_address"] == "203.0.113.7"
        assert count.json()["data"]["failed_logins"] == 1

    async def test_unknown_action_rejected(self, client: AsyncClient, admin_headers):
        response = await client.get(f"{BASE}/actions/EVERYTHING", headers=admin_headers)

        assert response.status_code == 400

    async def test_staff_forbidden(self, client: AsyncClient, staff_headers):
        response = await client.get(f"{BASE}/actions/UPDATE", headers=staff_headers)

        assert response.status_code == 403


@pytest.mark.asyncio
class TestLoginLockout:
    async def test_repeated_failures_lock_every_login(
        self, client: AsyncClient, test_staff, test_doctor, monkeypatch
    ):
        monkeypatch.setattr(settings, "LOGIN_LOCKOUT_ATTEMPTS", 3)
        for _ in range(3):
            failed = await client.post(
                "/api/users/login",
                json={"email": "staff@clinic.com", "password": "Wrong@1234"},
                headers=ATTACKER,
            )
            assert failed.status_code == 401

        staff = await client.post(
            "/api/users/login",
            json={"email": "staff@clinic.com", "password": DEFAULT_PASSWORD},
            headers=ATTACKER,
        )
        doctor = await client.post(
            "/api/doctors/login",
            json={"email": test_doctor.email, "password": DEFAULT_PASSWORD},
            headers=ATTACKER,
        )

        assert staff.status_code == 429
        assert staff.json()["error"] == "RateLimitExceeded"
        assert doctor.status_code == 429

    async def test_other_addresses_unaffected(self, client: AsyncClient, test_staff, monkeypatch):
        monkeypatch.setattr(settings, "LOGIN_LOCKOUT_ATTEMPTS", 1)
        await client.post(
            "/api/users/login",
            json={"email": "staff@clinic.com", "password": "Wrong@1234"},
            headers=ATTACKER,
        )

        response = await client.post(
            "/api/users/login",
            json={"email": "staff@clinic.com", "password": DEFAULT_PASSWORD},
            headers={"X-Forwarded-For": "198.51.100.20"},
        )

        assert response.status_code == 200
