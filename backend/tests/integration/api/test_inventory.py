"""
Integration tests for implant material inventory endpoints.

WHY: Total cost, stock status and the supplier balance are derived on the
server. These tests check that every write path keeps them consistent
and that only admins can change stock or payments.
"""

from datetime import date, timedelta

import pytest
from httpx import AsyncClient

from app.models.inventory import MaterialStatus, PaymentMode, SupplierPaymentStatus
from tests.factories import InventoryItemFactory


PURCHASE = {
    "item_name": "BLX Implant 4.0x10",
    "category": "Dental Implant",
    "type": "Straumann BLX",
    "implant_brand": "Straumann",
    "supplier": "The Dentist Shop",
    "quantity": 4,
    "unit_price": 12500,
    "received_date": (date.today() - timedelta(days=2)).isoformat(),
    "minimum_stock": 2,
}


@pytest.mark.asyncio
class TestPurchase:
    async def test_partial_payment_derives_balance(self, client: AsyncClient, admin_headers):
        response = await client.post(
            "/api/inventory",
            json={**PURCHASE, "payment_status": "partial", "payment_mode": "UPI", "amount_paid": 20000},
            headers=admin_headers,
        )

        assert response.status_code == 201
        item = response.json()["data"]["item"]
        assert item["total_cost"] == 50000.0
        assert item["amount_paid"] == 20000.0
        assert item["amount_pending"] == 30000.0
        assert item["status"] == "in-stock"
        assert item["full_item_name"] == "BLX Implant 4.0x10 (Straumann)"

    async def test_partial_payment_must_balance(self, client: AsyncClient, admin_headers):
        response = await client.post(
            "/api/inventory",
            json={
                **PURCHASE,
                "payment_status": "partial",
                "payment_mode": "Cash",
                "amount_paid": 20000,
                "amount_pending": 1000,
            },
            headers=admin_headers,
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Amount paid plus amount pending must equal the total cost"

    @pytest.mark.parametrize(
        "override",
        [
            {"payment_status": "paid"},
            {"received_date": (date.today() + timedelta(days=1)).isoformat()},
            {"expiry_date": (date.today() - timedelta(days=10)).isoformat()},
            {"quantity": -1},
            {"supplier": "Unknown Traders"},
        ],
    )
    async def test_rejects_bad_input(self, client: AsyncClient, admin_headers, override):
        response = await client.post("/api/inventory", json={**PURCHASE, **override}, headers=admin_headers)

        assert response.status_code == 400

    async def test_duplicate_batch(self, client: AsyncClient, admin_headers):
        payload = {**PURCHASE, "batch_number": "B-77"}
        await client.post("/api/inventory", json=payload, headers=admin_headers)

        response = await client.post("/api/inventory", json=payload, headers=admin_headers)

        assert response.status_code == 409

    async def test_low_stock_on_arrival(self, client: AsyncClient, admin_headers):
        response = await client.post(
            "/api/inventory", json={**PURCHASE, "quantity": 2}, headers=admin_headers
        )

        assert response.json()["data"]["item"]["status"] == "low-stock"

    async def test_staff_cannot_record_purchases(self, client: AsyncClient, staff_headers):
        response = await client.post("/api/inventory", json=PURCHASE, headers=staff_headers)

        assert response.status_code == 403


@pytest.mark.asyncio
class TestItemChanges:
    async def test_stock_subtraction_to_zero(self, client: AsyncClient, admin_headers, db_session):
        item = await InventoryItemFactory.create(db_session, quantity=3)

        response = await client.put(
            f"/api/inventory/{item.id}/stock",
            json={"quantity": 5, "operation": "subtract", "reason": "Used in surgery"},
            headers=admin_headers,
        )

        data = response.json()["data"]["item"]
        assert data["quantity"] == 0
        assert data["status"] == "out-of-stock"
        assert data["is_active"] is False

    async def test_stock_change_keeps_partial_balance(self, client: AsyncClient, admin_headers, db_session):
        item = await InventoryItemFactory.create(
            db_session,
            quantity=4,
            unit_price=12500,
            payment_status=SupplierPaymentStatus.PARTIAL,
            payment_mode=PaymentMode.UPI,
            amount_paid=40000.0,
            amount_pending=10000.0,
        )

        response = await client.put(
            f"/api/inventory/{item.id}/stock",
            json={"quantity": 3, "operation": "subtract"},
            headers=admin_headers,
        )

        assert response.status_code == 400
        assert response.json()["details"]["field"] == "amount_paid"

    async def test_update_clears_only_optional_details(self, client: AsyncClient, admin_headers, db_session):
        item = await InventoryItemFactory.create(db_session, batch_number="LOT-77")

        blank_name = await client.put(f"/api/inventory/{item.id}", json={"item_name": "   "}, headers=admin_headers)
        null_price = await client.put(f"/api/inventory/{item.id}", json={"unit_price": None}, headers=admin_headers)
        cleared = await client.put(f"/api/inventory/{item.id}", json={"batch_number": None}, headers=admin_headers)

        assert blank_name.status_code == 400
        assert null_price.status_code == 400
        assert cleared.status_code == 200
        assert cleared.json()["data"]["item"]["batch_number"] is None

    async def test_settle_payment(self, client: AsyncClient, admin_headers, db_session):
        item = await InventoryItemFactory.create(db_session, quantity=2, unit_price=1000)

        response = await client.put(
            f"/api/inventory/{item.id}/payment",
            json={"payment_status": "paid", "payment_mode": "Bank Transfer", "invoice_number": "INV-9"},
            headers=admin_headers,
        )

        data = response.json()["data"]["item"]
        assert data["amount_paid"] == 2000.0
        assert data["amount_pending"] == 0.0
        assert data["payment_mode"] == "Bank Transfer"

    async def test_payment_mode_needed_to_pay(self, client: AsyncClient, admin_headers, db_session):
        item = await InventoryItemFactory.create(db_session)

        response = await client.put(
            f"/api/inventory/{item.id}/payment", json={"payment_status": "paid"}, headers=admin_headers
        )

        assert response.status_code == 400

    async def test_price_change_recomputes_cost(self, client: AsyncClient, admin_headers, db_session):
        item = await InventoryItemFactory.create(db_session, quantity=10, unit_price=1000)

        response = await client.put(
            f"/api/inventory/{item.id}", json={"unit_price": 1200}, headers=admin_headers
        )

        data = response.json()["data"]["item"]
        assert data["total_cost"] == 12000.0
        assert data["amount_pending"] == 12000.0

    async def test_set_status(self, client: AsyncClient, admin_headers, db_session):
        item = await InventoryItemFactory.create(db_session)

        response = await client.put(
            f"/api/inventory/{item.id}/status",
            json={"status": "expired", "is_active": False},
            headers=admin_headers,
        )

        assert response.json()["data"]["item"]["status"] == "expired"

    async def test_unknown_item(self, client: AsyncClient, staff_headers):
        response = await client.get("/api/inventory/999", headers=staff_headers)

        assert response.status_code == 404
        assert response.json()["message"] == "Inventory item not found"


@pytest.mark.asyncio
class TestListingsAndReports:
    async def test_filters(self, client: AsyncClient, staff_headers, db_session):
        await InventoryItemFactory.create(db_session, item_name="Alpha", quantity=1)
        await InventoryItemFactory.create(db_session, item_name="Beta", quantity=20)

        low = await client.get("/api/inventory/low-stock", headers=staff_headers)
        listed = await client.get("/api/inventory", params={"status": "in-stock"}, headers=staff_headers)

        assert [i["item_name"] for i in low.json()["data"]["items"]] == ["Alpha"]
        assert [i["item_name"] for i in listed.json()["data"]["items"]] == ["Beta"]

    async def test_expired_listing(self, client: AsyncClient, staff_headers, db_session):
        await InventoryItemFactory.create(
            db_session,
            item_name="Old cement",
            received_date=date.today() - timedelta(days=400),
            expiry_date=date.today() - timedelta(days=1),
        )

        response = await client.get("/api/inventory/expired", headers=staff_headers)

        assert response.json()["data"]["count"] == 1

    async def test_payment_listings(self, client: AsyncClient, staff_headers, db_session):
        await InventoryItemFactory.create(db_session, quantity=2, unit_price=500)
        await InventoryItemFactory.create(
            db_session,
            quantity=4,
            unit_price=500,
            payment_status=SupplierPaymentStatus.PARTIAL,
            amount_paid=600,
            amount_pending=1400,
        )

        pending = await client.get("/api/inventory/pending-payments", headers=staff_headers)
        partial = await client.get("/api/inventory/partial-payments", headers=staff_headers)

        assert pending.json()["data"]["total_amount_pending"] == 1000.0
        assert partial.json()["data"]["total_amount_paid"] == 600.0
        assert partial.json()["data"]["total_amount_pending"] == 1400.0

    async def test_stats(self, client: AsyncClient, staff_headers, db_session):
        await InventoryItemFactory.create(db_session, quantity=10, unit_price=100)
        await InventoryItemFactory.create(db_session, quantity=1, unit_price=100)

        response = await client.get("/api/inventory/stats", headers=staff_headers)

        stats = response.json()["data"]["stats"]
        assert stats["total"] == 2
        assert stats["in_stock"] == 1
        assert stats["low_stock"] == 1
        assert stats["total_value"] == 1100.0

    async def test_reports_need_a_staff_token(self, client: AsyncClient):
        response = await client.get("/api/inventory/reports/summary")

        assert response.status_code in (401, 403)


@pytest.mark.asyncio
class TestBulk:
    async def test_deactivate(self, client: AsyncClient, admin_headers, db_session):
        first = await InventoryItemFactory.create(db_session)
        second = await InventoryItemFactory.create(db_session)

        response = await client.post(
            "/api/inventory/bulk",
            json={"item_ids": [first.id, second.id, 999], "operation": "deactivate"},
            headers=admin_headers,
        )

        assert response.json()["data"] == {"affected_count": 2}
        await db_session.refresh(first)
        assert first.is_active is False

    async def test_update_status_needs_status(self, client: AsyncClient, admin_headers, db_session):
        item = await InventoryItemFactory.create(db_session)

        response = await client.post(
            "/api/inventory/bulk",
            json={"item_ids": [item.id], "operation": "update_status"},
            headers=admin_headers,
        )

        assert response.status_code == 400

    async def test_update_status(self, client: AsyncClient, admin_headers, db_session):
        item = await InventoryItemFactory.create(db_session)

        await client.post(
            "/api/inventory/bulk",
            json={"item_ids": [item.id], "operation": "update_status", "data": {"status": "expired"}},
            headers=admin_headers,
        )

        await db_session.refresh(item)
        assert item.status == MaterialStatus.EXPIRED

    async def test_too_many_items(self, client: AsyncClient, admin_headers):
        response = await client.post(
            "/api/inventory/bulk",
            json={"item_ids": list(range(1, 52)), "operation": "delete"},
            headers=admin_headers,
        )

        assert response.status_code == 400
