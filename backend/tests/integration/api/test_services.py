"""
Integration tests for clinic service endpoints.
"""

import pytest
from httpx import AsyncClient

from tests.factories import ClinicServiceFactory, ServiceCategoryFactory


@pytest.mark.asyncio
class TestClinicServices:
    async def test_create_bumps_category_count(self, client: AsyncClient, admin_headers, db_session):
        category = await ServiceCategoryFactory.create(db_session)

        response = await client.post(
            "/api/services",
            json={"name": "Teeth whitening", "category_id": category.id, "price": 4500, "duration_minutes": 60},
            headers=admin_headers,
        )

        assert response.status_code == 201
        await db_session.refresh(category)
        assert category.service_count == 1

    async def test_create_requires_admin(self, client: AsyncClient, staff_headers, db_session):
        category = await ServiceCategoryFactory.create(db_session)

        response = await client.post(
            "/api/services",
            json={"name": "Teeth whitening", "category_id": category.id, "price": 4500},
            headers=staff_headers,
        )

        assert response.status_code == 403

    async def test_unknown_category(self, client: AsyncClient, admin_headers):
        response = await client.post(
            "/api/services",
            json={"name": "Teeth whitening", "category_id": 999, "price": 4500},
            headers=admin_headers,
        )

        assert response.status_code == 404

    async def test_public_listing(self, client: AsyncClient, db_session):
        category = await ServiceCategoryFactory.create(db_session)
        await ClinicServiceFactory.create(db_session, category, name="Scaling")
        await ClinicServiceFactory.create(db_session, category, name="Retired", is_active=False)

        response = await client.get("/api/services", params={"category_id": category.id, "is_active": True})

        body = response.json()
        assert [s["name"] for s in body["data"]["services"]] == ["Scaling"]
        assert body["pagination"]["total"] == 1

    async def test_move_between_categories(self, client: AsyncClient, admin_headers, db_session):
        source = await ServiceCategoryFactory.create(db_session, service_count=1)
        target = await ServiceCategoryFactory.create(db_session)
        service = await ClinicServiceFactory.create(db_session, source)

        response = await client.put(
            f"/api/services/{service.id}", json={"category_id": target.id}, headers=admin_headers
        )

        assert response.status_code == 200
        await db_session.refresh(source)
        await db_session.refresh(target)
        assert source.service_count == 0
        assert target.service_count == 1

    async def test_delete_decrements_count(self, client: AsyncClient, admin_headers, db_session):
        category = await ServiceCategoryFactory.create(db_session, service_count=1)
        service = await ClinicServiceFactory.create(db_session, category)

        response = await client.delete(f"/api/services/{service.id}", headers=admin_headers)

        assert response.status_code == 200
        await db_session.refresh(category)
        assert category.service_count == 0
        assert (await client.get(f"/api/services/{service.id}")).status_code == 404

    async def test_update_rejects_blank_name(self, client: AsyncClient, admin_headers, db_session):
        category = await ServiceCategoryFactory.create(db_session)
        service = await ClinicServiceFactory.create(db_session, category, name="Scaling")

        blank = await client.put(
            f"/api/services/{service.id}", json={"name": "   ", "price": 5}, headers=admin_headers
        )
        cleared = await client.put(f"/api/services/{service.id}", json={"price": None}, headers=admin_headers)

        assert blank.status_code == 400
        assert cleared.status_code == 400
        fetched = await client.get(f"/api/services/{service.id}")
        assert fetched.json()["data"]["service"]["name"] == "Scaling"
