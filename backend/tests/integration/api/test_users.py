"""
Integration tests for staff authentication and user management.

WHY: Staff accounts guard every administrative endpoint, so bootstrap,
login, logout and role checks are exercised end to end.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from app.models.audit_log import AuditAction, AuditLog
from app.models.user import UserRole
from tests.factories import DEFAULT_PASSWORD, UserFactory


SUPER_ADMIN = {
    "first_name": "Meera",
    "last_name": "Iyer",
    "email": "owner@smiles.test",
    "password": "Owner@2024",
}


@pytest.mark.asyncio
class TestBootstrap:
    async def test_register_super_admin_once(self, client: AsyncClient):
        check = await client.get("/api/users/check-super-admin")
        assert check.json()["data"]["exists"] is False

        response = await client.post("/api/users/register-super-admin", json=SUPER_ADMIN)

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["user"]["role"] == "super_admin"
        assert data["access_token"]
        assert "hashed_password" not in data["user"]

        again = await client.post(
            "/api/users/register-super-admin", json={**SUPER_ADMIN, "email": "second@smiles.test"}
        )
        assert again.status_code == 409

    async def test_weak_password_rejected(self, client: AsyncClient):
        response = await client.post(
            "/api/users/register-super-admin", json={**SUPER_ADMIN, "password": "password"}
        )

        assert response.status_code == 400
        assert response.json()["details"]["errors"][0]["field"] == "body.password"


@pytest.mark.asyncio
class TestLogin:
    async def test_login_and_profile(self, client: AsyncClient, test_staff):
        response = await client.post(
            "/api/users/login", json={"email": "staff@clinic.com", "password": DEFAULT_PASSWORD}
        )

        assert response.status_code == 200
        token = response.json()["data"]["access_token"]
        profile = await client.get("/api/users/profile", headers={"Authorization": f"Bearer {token}"})
        assert profile.json()["data"]["user"]["email"] == "staff@clinic.com"

    async def test_wrong_password_is_generic_and_audited(self, client: AsyncClient, test_staff, db_session):
        response = await client.post(
            "/api/users/login", json={"email": "staff@clinic.com", "password": "Wrong@1234"}
        )

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid email or password"
        failures = (
            await db_session.execute(select(AuditLog).where(AuditLog.action == AuditAction.LOGIN_FAILURE))
        ).scalars().all()
        assert len(failures) == 1

    async def test_unknown_email_same_message(self, client: AsyncClient):
        response = await client.post(
            "/api/users/login", json={"email": "ghost@clinic.com", "password": "Wrong@1234"}
        )

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid email or password"

    async def test_inactive_account_cannot_login(self, client: AsyncClient, db_session):
        await UserFactory.create(db_session, email="gone@clinic.com", is_active=False)

        response = await client.post(
            "/api/users/login", json={"email": "gone@clinic.com", "password": DEFAULT_PASSWORD}
        )

        assert response.status_code == 401

    async def test_logout_revokes_token(self, client: AsyncClient, staff_headers):
        response = await client.post("/api/users/logout", headers=staff_headers)
        assert response.status_code == 200

        after = await client.get("/api/users/profile", headers=staff_headers)
        assert after.status_code == 401
        assert after.json()["message"] == "Token has been revoked"

    async def test_doctor_token_rejected_on_staff_endpoint(self, client: AsyncClient, doctor_headers):
        response = await client.get("/api/users/profile", headers=doctor_headers)

        assert response.status_code == 401

    async def test_missing_token(self, client: AsyncClient):
        response = await client.get("/api/users/profile")

        assert response.status_code in (401, 403)


@pytest.mark.asyncio
class TestProfile:
    async def test_update_profile(self, client: AsyncClient, staff_headers):
        response = await client.put(
            "/api/users/profile", json={"first_name": "  Priya "}, headers=staff_headers
        )

        assert response.status_code == 200
        assert response.json()["data"]["user"]["first_name"] == "Priya"

    async def test_names_cannot_be_cleared(self, client: AsyncClient, staff_headers):
        cleared = await client.put("/api/users/profile", json={"first_name": None}, headers=staff_headers)
        blank = await client.put("/api/users/profile", json={"last_name": "   "}, headers=staff_headers)

        assert cleared.status_code == 400
        assert cleared.json()["details"]["errors"][0]["message"] == "first_name cannot be empty"
        assert blank.status_code == 400

    async def test_phone_can_be_cleared(self, client: AsyncClient, staff_headers):
        response = await client.put("/api/users/profile", json={"phone": None}, headers=staff_headers)

        assert response.status_code == 200
        assert response.json()["data"]["user"]["phone"] is None

    async def test_change_password(self, client: AsyncClient, staff_headers):
        wrong = await client.put(
            "/api/users/change-password",
            json={"current_password": "Nope@1234", "new_password": "Fresh@2024"},
            headers=staff_headers,
        )
        assert wrong.status_code == 400

        response = await client.put(
            "/api/users/change-password",
            json={"current_password": DEFAULT_PASSWORD, "new_password": "Fresh@2024"},
            headers=staff_headers,
        )
        assert response.status_code == 200

        login = await client.post(
            "/api/users/login", json={"email": "staff@clinic.com", "password": "Fresh@2024"}
        )
        assert login.status_code == 200


@pytest.mark.asyncio
class TestStaffAdministration:
    async def test_admin_creates_staff(self, client: AsyncClient, admin_headers):
        response = await client.post(
            "/api/users/create-staff",
            json={
                "first_name": "Nina",
                "last_name": "Das",
                "email": "nina@clinic.com",
                "password": "Nurse@2024",
                "role": "nurse",
            },
            headers=admin_headers,
        )

        assert response.status_code == 201
        assert response.json()["data"]["user"]["role"] == "nurse"

    async def test_admin_cannot_create_admin_through_staff_endpoint(self, client: AsyncClient, admin_headers):
        response = await client.post(
            "/api/users/create-staff",
            json={
                "first_name": "Sam",
                "last_name": "Roy",
                "email": "sam@clinic.com",
                "password": "Admin@2024",
                "role": "admin",
            },
            headers=admin_headers,
        )

        assert response.status_code == 400

    async def test_create_admin_requires_super_admin(self, client: AsyncClient, admin_headers, super_admin_headers):
        payload = {
            "first_name": "Ravi",
            "last_name": "Shah",
            "email": "ravi.admin@clinic.com",
            "password": "Admin@2024",
        }

        forbidden = await client.post("/api/users/create-admin", json=payload, headers=admin_headers)
        assert forbidden.status_code == 403

        created = await client.post("/api/users/create-admin", json=payload, headers=super_admin_headers)
        assert created.status_code == 201
        assert created.json()["data"]["user"]["role"] == "admin"

    async def test_duplicate_email(self, client: AsyncClient, admin_headers, test_staff):
        response = await client.post(
            "/api/users/create-staff",
            json={
                "first_name": "Dup",
                "last_name": "Licate",
                "email": "staff@clinic.com",
                "password": "Staff@2024",
            },
            headers=admin_headers,
        )

        assert response.status_code == 409

    async def test_list_users_paginated(self, client: AsyncClient, admin_headers, test_staff):
        response = await client.get("/api/users/all?limit=1", headers=admin_headers)

        body = response.json()
        assert response.status_code == 200
        assert len(body["data"]["users"]) == 1
        assert body["pagination"] == {"page": 1, "limit": 1, "total": 2, "pages": 2}

    async def test_staff_cannot_list_users(self, client: AsyncClient, staff_headers):
        response = await client.get("/api/users/all", headers=staff_headers)

        assert response.status_code == 403

    async def test_suspend_user(self, client: AsyncClient, admin_headers, test_staff):
        response = await client.put(
            f"/api/users/{test_staff.id}/status", json={"is_active": False}, headers=admin_headers
        )

        assert response.status_code == 200
        assert response.json()["message"] == "User deactivated successfully"

    async def test_cannot_change_own_status(self, client: AsyncClient, admin_headers, test_admin):
        response = await client.put(
            f"/api/users/{test_admin.id}/status", json={"is_active": False}, headers=admin_headers
        )

        assert response.status_code == 400

    async def test_super_admin_deletes_staff(self, client: AsyncClient, super_admin_headers, test_staff):
        response = await client.delete(f"/api/users/{test_staff.id}", headers=super_admin_headers)
        assert response.status_code == 200

        missing = await client.delete(f"/api/users/{test_staff.id}", headers=super_admin_headers)
        assert missing.status_code == 404

    async def test_super_admin_cannot_be_deleted(self, client: AsyncClient, super_admin_headers, db_session):
        other = await UserFactory.create(db_session, role=UserRole.SUPER_ADMIN)

        response = await client.delete(f"/api/users/{other.id}", headers=super_admin_headers)

        assert response.status_code == 403
