"""
Integration tests for service category endpoints.

WHY: Categories drive the public service menu. Names must stay unique
regardless of case, and a category that still groups services must not
disappear.
"""

import pytest
from httpx import AsyncClient

from tests.factories import ClinicServiceFactory, ServiceCategoryFactory


BASE = "/api/service-categories"
VALID = {"name": "Orthodontics", "description": "Braces, aligners and retainers"}


@pytest.mark.asyncio
class TestCreate:
    async def test_create(self, client: AsyncClient, staff_headers):
        response = await client.post(BASE, json={**VALID, "color": "#1E90FF"}, headers=staff_headers)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Service Category created successfully."
        assert body["data"]["category"]["name"] == "Orthodontics"
        assert body["data"]["category"]["service_count"] == 0

    @pytest.mark.parametrize(
        "payload,expected_status",
        [
            ({**VALID, "name": "A"}, 400),
            ({**VALID, "name": "AB"}, 201),
            ({**VALID, "name": "x" * 51}, 400),
            ({**VALID, "description": "Too short"}, 400),
            ({**VALID, "color": "blue"}, 400),
        ],
    )
    async def test_field_rules(self, client: AsyncClient, staff_headers, payload, expected_status):
        response = await client.post(BASE, json=payload, headers=staff_headers)

        assert response.status_code == expected_status

    async def test_duplicate_name_any_case(self, client: AsyncClient, staff_headers):
        await client.post(BASE, json=VALID, headers=staff_headers)

        response = await client.post(BASE, json={**VALID, "name": "ORTHODONTICS"}, headers=staff_headers)

        assert response.status_code == 409
        assert response.json()["error"] == "ResourceAlreadyExistsError"

    async def test_requires_staff(self, client: AsyncClient, patient_headers):
        assert (await client.post(BASE, json=VALID)).status_code in (401, 403)
        assert (await client.post(BASE, json=VALID, headers=patient_headers)).status_code == 401


@pytest.mark.asyncio
class TestPublicReads:
    async def test_active_in_menu_order(self, client: AsyncClient, db_session):
        await ServiceCategoryFactory.create(db_session, name="Implants", position=2)
        await ServiceCategoryFactory.create(db_session, name="Cleaning", position=1)
        await ServiceCategoryFactory.create(db_session, name="Hidden", is_active=False)

        response = await client.get(f"{BASE}/active")

        data = response.json()["data"]
        assert [c["name"] for c in data["categories"]] == ["Cleaning", "Implants"]
        assert data["count"] == 2

    async def test_search_requires_query(self, client: AsyncClient):
        response = await client.get(f"{BASE}/search")

        assert response.status_code == 400

    async def test_search_rejects_blank_query(self, client: AsyncClient, db_session):
        await ServiceCategoryFactory.create(db_session, name="Implants")

        response = await client.get(f"{BASE}/search", params={"q": "   "})

        assert response.status_code == 400
        assert response.json()["message"] == "Search query is required"

    async def test_search(self, client: AsyncClient, db_session):
        await ServiceCategoryFactory.create(db_session, name="Root Canal Treatment")

        response = await client.get(f"{BASE}/search", params={"q": "canal"})

        assert response.json()["data"]["count"] == 1


@pytest.mark.asyncio
class TestStaffReads:
    async def test_list_filters_and_paginates(self, client: AsyncClient, staff_headers, db_session):
        for index in range(3):
            await ServiceCategoryFactory.create(db_session, name=f"Category {index}")
        await ServiceCategoryFactory.create(db_session, name="Retired", is_active=False)

        response = await client.get(BASE, params={"status": "active", "limit": 2}, headers=staff_headers)

        body = response.json()
        assert len(body["data"]["categories"]) == 2
        assert body["pagination"]["total"] == 3
        assert body["pagination"]["pages"] == 2

    async def test_get_unknown(self, client: AsyncClient, staff_headers):
        response = await client.get(f"{BASE}/999", headers=staff_headers)

        assert response.status_code == 404

    async def test_statistics(self, client: AsyncClient, staff_headers, db_session):
        await ServiceCategoryFactory.create(db_session, service_count=2)

        response = await client.get(f"{BASE}/statistics", headers=staff_headers)

        assert response.json()["data"]["statistics"]["total_services"] == 2

    async def test_analytics_year_range(self, client: AsyncClient, staff_headers):
        response = await client.get(f"{BASE}/analytics", params={"year": 2019}, headers=staff_headers)

        assert response.status_code == 400

    async def test_analytics_by_month(self, client: AsyncClient, staff_headers, db_session):
        category = await ServiceCategoryFactory.create(db_session)

        response = await client.get(f"{BASE}/analytics", params={"period": "month"}, headers=staff_headers)

        analytics = response.json()["data"]["analytics"]
        assert analytics == [{"period": category.created_at.month, "count": 1}]

    async def test_with_counts_uses_rows(self, client: AsyncClient, staff_headers, db_session):
        category = await ServiceCategoryFactory.create(db_session)
        await ClinicServiceFactory.create(db_session, category)

        response = await client.get(f"{BASE}/with-counts", headers=staff_headers)

        assert response.json()["data"]["categories"][0]["service_count"] == 1

    async def test_export_csv(self, client: AsyncClient, staff_headers, db_session):
        await ServiceCategoryFactory.create(db_session, name="Pediatric")

        response = await client.get(f"{BASE}/export", params={"format": "csv"}, headers=staff_headers)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        lines = response.text.strip().splitlines()
        assert lines[0].startswith("id,name,description")
        assert "Pediatric" in lines[1]

    async def test_check_name(self, client: AsyncClient, staff_headers, db_session):
        category = await ServiceCategoryFactory.create(db_session, name="Whitening")

        taken = await client.post(f"{BASE}/check-name", json={"name": "whitening"}, headers=staff_headers)
        renaming = await client.post(
            f"{BASE}/check-name", json={"name": "Whitening", "exclude_id": category.id}, headers=staff_headers
        )

        assert taken.json()["data"]["available"] is False
        assert renaming.json()["data"]["available"] is True


@pytest.mark.asyncio
class TestMutations:
    async def test_update_and_rename_clash(self, client: AsyncClient, staff_headers, db_session):
        first = await ServiceCategoryFactory.create(db_session, name="Implants")
        await ServiceCategoryFactory.create(db_session, name="Crowns")

        ok = await client.put(f"{BASE}/{first.id}", json={"color": "#abc"}, headers=staff_headers)
        clash = await client.put(f"{BASE}/{first.id}", json={"name": "crowns"}, headers=staff_headers)
        empty = await client.put(f"{BASE}/{first.id}", json={}, headers=staff_headers)

        assert ok.status_code == 200
        assert ok.json()["data"]["category"]["color"] == "#abc"
        assert clash.status_code == 409
        assert empty.status_code == 400

    async def test_update_rejects_cleared_name(self, client: AsyncClient, staff_headers, db_session):
        category = await ServiceCategoryFactory.create(db_session, name="Implants", color="#123456")

        cleared = await client.put(
            f"{BASE}/{category.id}", json={"name": None, "color": "#fff"}, headers=staff_headers
        )
        uncolored = await client.put(f"{BASE}/{category.id}", json={"color": None}, headers=staff_headers)

        assert cleared.status_code == 400
        assert cleared.json()["details"]["errors"][0]["message"] == "name cannot be empty"
        assert uncolored.status_code == 200
        assert uncolored.json()["data"]["category"]["color"] is None

    async def test_status_toggle(self, client: AsyncClient, staff_headers, db_session):
        category = await ServiceCategoryFactory.create(db_session)

        response = await client.patch(
            f"{BASE}/{category.id}/status",
            json={"is_active": False, "reason": "Seasonal"},
            headers=staff_headers,
        )

        assert response.json()["message"] == "Service Category deactivated successfully."
        assert response.json()["data"]["category"]["is_active"] is False

    async def test_delete_blocked_while_in_use(self, client: AsyncClient, staff_headers, db_session):
        category = await ServiceCategoryFactory.create(db_session)
        await ClinicServiceFactory.create(db_session, category)

        response = await client.delete(f"{BASE}/{category.id}", headers=staff_headers)

        assert response.status_code == 400
        assert response.json()["message"] == "Cannot delete category with associated services"

    async def test_delete(self, client: AsyncClient, staff_headers, db_session):
        category = await ServiceCategoryFactory.create(db_session)

        response = await client.delete(f"{BASE}/{category.id}", headers=staff_headers)

        assert response.status_code == 200
        assert (await client.get(f"{BASE}/{category.id}", headers=staff_headers)).status_code == 404

    async def test_bulk_update_counts(self, client: AsyncClient, staff_headers, db_session):
        active = await ServiceCategoryFactory.create(db_session, is_active=True)
        inactive = await ServiceCategoryFactory.create(db_session, is_active=False)

        response = await client.post(
            f"{BASE}/bulk-update",
            json={"category_ids": [active.id, inactive.id], "update_data": {"is_active": False}},
            headers=staff_headers,
        )

        assert response.json()["data"] == {"matched_count": 2, "modified_count": 1}

    async def test_reorder(self, client: AsyncClient, staff_headers, db_session):
        first = await ServiceCategoryFactory.create(db_session, name="First")
        second = await ServiceCategoryFactory.create(db_session, name="Second")

        response = await client.post(
            f"{BASE}/reorder",
            json={"category_order": [{"category_id": second.id}, {"category_id": first.id}, {"category_id": 999}]},
            headers=staff_headers,
        )

        assert response.json()["data"] == {"updated_count": 2, "not_found": [999]}
        active = await client.get(f"{BASE}/active")
        assert [c["name"] for c in active.json()["data"]["categories"]] == ["Second", "First"]
