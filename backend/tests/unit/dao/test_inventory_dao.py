"""
Inventory DAO tests: duplicate detection, stats and supplier reports.
"""

from datetime import date, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.dao.inventory import InventoryDAO
from app.models.inventory import (
    ItemCategory,
    PaymentMode,
    Supplier,
    SupplierPaymentStatus,
)
from tests.factories import InventoryItemFactory


@pytest.mark.asyncio
class TestFindDuplicate:
    async def test_matches_case_insensitive_name(self, db_session: AsyncSession):
        item = await InventoryItemFactory.create(db_session, item_name="Bone Graft", batch_number="BG-7")

        duplicate = await InventoryDAO(db_session).find_duplicate("bone graft", "Straumann", "BG-7")

        assert duplicate.id == item.id

    async def test_missing_batch_only_matches_missing_batch(self, db_session: AsyncSession):
        await InventoryItemFactory.create(db_session, item_name="Bone Graft", batch_number="BG-7")
        dao = InventoryDAO(db_session)

        assert await dao.find_duplicate("Bone Graft", "Straumann", None) is None

    async def test_inactive_items_do_not_clash(self, db_session: AsyncSession):
        await InventoryItemFactory.create(db_session, item_name="Bone Graft", is_active=False)

        assert await InventoryDAO(db_session).find_duplicate("Bone Graft", "Straumann", None) is None


@pytest.mark.asyncio
class TestReports:
    async def test_stats(self, db_session: AsyncSession):
        await InventoryItemFactory.create(db_session, quantity=10, unit_price=100)
        await InventoryItemFactory.create(db_session, quantity=1, unit_price=100, minimum_stock=2)
        await InventoryItemFactory.create(
            db_session,
            quantity=5,
            unit_price=100,
            payment_status=SupplierPaymentStatus.PARTIAL,
            payment_mode=PaymentMode.CASH,
            amount_paid=200.0,
            amount_pending=300.0,
        )

        stats = await InventoryDAO(db_session).get_stats()

        assert stats["total"] == 3
        assert stats["in_stock"] == 2
        assert stats["low_stock"] == 1
        assert stats["total_value"] == 1600.0
        assert stats["pending_payments"] == 2
        assert stats["partial_payments"] == 1
        assert stats["total_amount_pending"] == 1400.0

    async def test_supplier_report(self, db_session: AsyncSession):
        today = date.today()
        await InventoryItemFactory.create(
            db_session, supplier=Supplier.KUMAR_DENTAL, received_date=today - timedelta(days=20)
        )
        await InventoryItemFactory.create(
            db_session,
            supplier=Supplier.KUMAR_DENTAL,
            category=ItemCategory.CONSUMABLE,
            received_date=today - timedelta(days=2),
            payment_status=SupplierPaymentStatus.PAID,
            payment_mode=PaymentMode.UPI,
        )

        report = await InventoryDAO(db_session).get_supplier_report()

        assert len(report) == 1
        row = report[0]
        assert row["supplier"] == "Kumar Dental"
        assert row["total_items"] == 2
        assert row["total_value"] == 20000.0
        assert row["total_outstanding"] == 10000.0
        assert row["pending_payments"] == 1
        assert row["last_purchase_date"] == today - timedelta(days=2)
        assert sorted(row["categories"]) == ["Consumable", "Dental Implant"]

    async def test_category_report_zero_fills_statuses(self, db_session: AsyncSession):
        await InventoryItemFactory.create(db_session)

        report = await InventoryDAO(db_session).get_category_report()

        assert report[0]["total"] == 1
        assert report[0]["statuses"]["in-stock"] == 1
        assert report[0]["statuses"]["expired"] == 0
