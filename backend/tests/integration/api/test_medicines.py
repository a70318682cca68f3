"""
Integration tests for the medicine formulary endpoints.
"""

import pytest
from httpx import AsyncClient

from app.models.medicine import DosageForm, MedicineCategory
from tests.factories import MedicineFactory


NEW_MEDICINE = {
    "medicine_name": "  Ibuprofen ",
    "category": "Pain Relief",
    "dental_use": "Root Canal",
    "dosage_form": "Tablet",
    "strength": "400",
    "dosage_instructions": "One tablet after meals when needed",
}


@pytest.mark.asyncio
class TestFormulary:
    async def test_admin_adds_medicine(self, client: AsyncClient, admin_headers):
        response = await client.post("/api/medicines", json=NEW_MEDICINE, headers=admin_headers)

        assert response.status_code == 201
        medicine = response.json()["data"]["medicine"]
        assert medicine["medicine_name"] == "Ibuprofen"
        assert medicine["unit"] == "mg"
        assert medicine["status"] == "active"

    async def test_staff_cannot_add(self, client: AsyncClient, staff_headers):
        response = await client.post("/api/medicines", json=NEW_MEDICINE, headers=staff_headers)

        assert response.status_code == 403

    async def test_same_name_strength_and_form(self, client: AsyncClient, admin_headers, db_session):
        await MedicineFactory.create(db_session, medicine_name="ibuprofen", strength="400", dosage_form=DosageForm.TABLET)

        response = await client.post("/api/medicines", json=NEW_MEDICINE, headers=admin_headers)

        assert response.status_code == 409

    async def test_other_strength_is_a_separate_medicine(self, client: AsyncClient, admin_headers, db_session):
        await MedicineFactory.create(db_session, medicine_name="Ibuprofen", strength="200", dosage_form=DosageForm.TABLET)

        response = await client.post("/api/medicines", json=NEW_MEDICINE, headers=admin_headers)

        assert response.status_code == 201

    @pytest.mark.parametrize(
        "override",
        [{"medicine_name": "I"}, {"dosage_instructions": "x"}, {"category": "Candy"}, {"unit": "kg"}],
    )
    async def test_rejects_bad_input(self, client: AsyncClient, admin_headers, override):
        response = await client.post("/api/medicines", json={**NEW_MEDICINE, **override}, headers=admin_headers)

        assert response.status_code == 400

    async def test_staff_can_browse(self, client: AsyncClient, staff_headers, db_session):
        await MedicineFactory.create(db_session, medicine_name="Amoxicillin")
        await MedicineFactory.create(
            db_session, medicine_name="Chlorhexidine", category=MedicineCategory.ANTISEPTIC, strength="0.2"
        )

        response = await client.get(
            "/api/medicines", params={"category": "Antiseptic"}, headers=staff_headers
        )

        body = response.json()
        assert [m["medicine_name"] for m in body["data"]["medicines"]] == ["Chlorhexidine"]
        assert body["pagination"]["total"] == 1

    async def test_browsing_needs_a_staff_token(self, client: AsyncClient, patient_headers):
        response = await client.get("/api/medicines", headers=patient_headers)

        assert response.status_code == 401

    async def test_update_into_duplicate(self, client: AsyncClient, admin_headers, db_session):
        await MedicineFactory.create(db_session, strength="500")
        other = await MedicineFactory.create(db_session, strength="250")

        response = await client.put(f"/api/medicines/{other.id}", json={"strength": "500"}, headers=admin_headers)

        assert response.status_code == 409

    async def test_update_needs_a_field(self, client: AsyncClient, admin_headers, db_session):
        medicine = await MedicineFactory.create(db_session)

        response = await client.put(f"/api/medicines/{medicine.id}", json={}, headers=admin_headers)

        assert response.status_code == 400

    async def test_update_clears_optional_text_only(self, client: AsyncClient, admin_headers, db_session):
        medicine = await MedicineFactory.create(db_session)

        blank = await client.put(
            f"/api/medicines/{medicine.id}", json={"medicine_name": "  "}, headers=admin_headers
        )
        cleared = await client.put(
            f"/api/medicines/{medicine.id}", json={"manufacturer": None}, headers=admin_headers
        )

        assert blank.status_code == 400
        assert cleared.status_code == 200
        assert cleared.json()["data"]["medicine"]["manufacturer"] is None

    async def test_discontinue(self, client: AsyncClient, admin_headers, db_session):
        medicine = await MedicineFactory.create(db_session)

        response = await client.patch(
            f"/api/medicines/{medicine.id}/status",
            json={"status": "discontinued", "is_active": False},
            headers=admin_headers,
        )

        data = response.json()["data"]["medicine"]
        assert data["status"] == "discontinued"
        assert data["is_active"] is False

    async def test_delete(self, client: AsyncClient, admin_headers, db_session):
        medicine = await MedicineFactory.create(db_session)

        deleted = await client.delete(f"/api/medicines/{medicine.id}", headers=admin_headers)
        fetched = await client.get(f"/api/medicines/{medicine.id}", headers=admin_headers)

        assert deleted.json()["message"] == "Medicine deleted successfully"
        assert fetched.status_code == 404
