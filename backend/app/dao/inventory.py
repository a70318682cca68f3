"""
Implant material inventory Data Access Object.

WHAT: Database operations for implant materials: listings, stock and
payment views, bulk operations and purchase reports.

WHY: Reports aggregate derived fields (status, total_cost, amount_pending)
that the model keeps in step on every save, so they can be summed directly.
"""

from datetime import date
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy import select, func, or_, delete, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.dao.base import LIKE_ESCAPE, BaseDAO, like_pattern
from app.models.inventory import (
    ImplantMaterial,
    ItemCategory,
    Supplier,
    MaterialStatus,
    SupplierPaymentStatus,
    PaymentMode,
)


class InventoryDAO(BaseDAO[ImplantMaterial]):
    """Data Access Object for implant materials."""

    def __init__(self, session: AsyncSession):
        super().__init__(ImplantMaterial, session)

    async def find_duplicate(
        self,
        item_name: str,
        implant_brand: str,
        batch_number: Optional[str],
        exclude_id: Optional[int] = None,
    ) -> Optional[ImplantMaterial]:
        """Find an active item with the same name (any case), brand and batch."""
        query = (
            select(ImplantMaterial)
            .where(func.lower(ImplantMaterial.item_name) == item_name.strip().lower())
            .where(ImplantMaterial.implant_brand == implant_brand.strip())
            .where(ImplantMaterial.is_active.is_(True))
        )
        if batch_number:
            query = query.where(ImplantMaterial.batch_number == batch_number.strip())
        else:
            query = query.where(ImplantMaterial.batch_number.is_(None))
        if exclude_id is not None:
            query = query.where(ImplantMaterial.id != exclude_id)
        result = await self.session.execute(query.limit(1))
        return result.scalar_one_or_none()

    async def list_items(
        self,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        category: Optional[ItemCategory] = None,
        supplier: Optional[Supplier] = None,
        status: Optional[MaterialStatus] = None,
        payment_status: Optional[SupplierPaymentStatus] = None,
        payment_mode: Optional[PaymentMode] = None,
        sort_by: str = "item_name",
        sort_order: str = "asc",
    ) -> Tuple[List[ImplantMaterial], int]:
        query = select(ImplantMaterial)
        if search:
            pattern = like_pattern(search)
            query = query.where(
                or_(
                    ImplantMaterial.item_name.ilike(pattern, escape=LIKE_ESCAPE),
                    ImplantMaterial.implant_brand.ilike(pattern, escape=LIKE_ESCAPE),
                    ImplantMaterial.batch_number.ilike(pattern, escape=LIKE_ESCAPE),
                    ImplantMaterial.description.ilike(pattern, escape=LIKE_ESCAPE),
                )
            )
        filters = {
            ImplantMaterial.category: category,
            ImplantMaterial.supplier: supplier,
            ImplantMaterial.status: status,
            ImplantMaterial.payment_status: payment_status,
            ImplantMaterial.payment_mode: payment_mode,
        }
        for column, value in filters.items():
            if value is not None:
                query = query.where(column == value)
        return await self.paginate(query, page, limit, sort_by=sort_by, sort_order=sort_order)

    async def get_by_status(self, status: MaterialStatus) -> List[ImplantMaterial]:
        result = await self.session.execute(
            select(ImplantMaterial)
            .where(ImplantMaterial.status == status)
            .order_by(ImplantMaterial.item_name.asc(), ImplantMaterial.id.asc())
        )
        return list(result.scalars().all())

    async def get_by_payment_status(self, payment_status: SupplierPaymentStatus) -> List[ImplantMaterial]:
        result = await self.session.execute(
            select(ImplantMaterial)
            .where(ImplantMaterial.payment_status == payment_status)
            .order_by(ImplantMaterial.received_date.desc(), ImplantMaterial.id.desc())
        )
        return list(result.scalars().all())

    async def get_refresh_candidates(self, today: date) -> List[ImplantMaterial]:
        """Items whose stored status may be stale: not yet expired but past expiry."""
        result = await self.session.execute(
            select(ImplantMaterial)
            .where(ImplantMaterial.expiry_date.is_not(None))
            .where(ImplantMaterial.expiry_date < today)
            .where(ImplantMaterial.status != MaterialStatus.EXPIRED)
        )
        return list(result.scalars().all())

    async def get_stats(self) -> Dict[str, Any]:
        result = await self.session.execute(
            select(
                ImplantMaterial.status,
                ImplantMaterial.payment_status,
                ImplantMaterial.total_cost,
                ImplantMaterial.amount_pending,
            )
        )
        stats = {
            "total": 0,
            "in_stock": 0,
            "low_stock": 0,
            "out_of_stock": 0,
            "expired": 0,
            "total_value": 0.0,
            "pending_payments": 0,
            "partial_payments": 0,
            "total_amount_pending": 0.0,
        }
        for status, payment_status, total_cost, amount_pending in result.all():
            stats["total"] += 1
            stats[status.value.replace("-", "_")] += 1
            stats["total_value"] += total_cost or 0
            stats["total_amount_pending"] += amount_pending or 0
            if payment_status == SupplierPaymentStatus.PENDING:
                stats["pending_payments"] += 1
            elif payment_status == SupplierPaymentStatus.PARTIAL:
                stats["partial_payments"] += 1
        stats["total_value"] = round(stats["total_value"], 2)
        stats["total_amount_pending"] = round(stats["total_amount_pending"], 2)
        return stats

    async def bulk_delete(self, item_ids: List[int]) -> int:
        result = await self.session.execute(
            delete(ImplantMaterial).where(ImplantMaterial.id.in_(item_ids))
        )
        return result.rowcount

    async def bulk_set(self, item_ids: List[int], user_id: Optional[int], **values: Any) -> int:
        """Set the same column values on many items; returns the matched count."""
        result = await self.session.execute(
            update(ImplantMaterial)
            .where(ImplantMaterial.id.in_(item_ids))
            .values(**values, last_updated_by_user_id=user_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def get_summary_report(self) -> List[Dict[str, Any]]:
        """Per-category item count, quantity, value, low-stock count and average price."""
        result = await self.session.execute(
            select(
                ImplantMaterial.category,
                func.count(ImplantMaterial.id),
                func.coalesce(func.sum(ImplantMaterial.quantity), 0),
                func.coalesce(func.sum(ImplantMaterial.total_cost), 0),
                func.avg(ImplantMaterial.unit_price),
            ).group_by(ImplantMaterial.category)
        )
        low_stock = dict(
            (
                await self.session.execute(
                    select(ImplantMaterial.category, func.count(ImplantMaterial.id))
                    .where(ImplantMaterial.status == MaterialStatus.LOW_STOCK)
                    .group_by(ImplantMaterial.category)
                )
            ).all()
        )
        report = [
            {
                "category": category.value,
                "total_items": items,
                "total_quantity": int(quantity),
                "total_value": round(float(value), 2),
                "low_stock_items": low_stock.get(category, 0),
                "average_unit_price": round(float(avg_price or 0), 2),
            }
            for category, items, quantity, value, avg_price in result.all()
        ]
        return sorted(report, key=lambda row: row["total_value"], reverse=True)

    async def get_category_report(self) -> List[Dict[str, Any]]:
        """Status breakdown per category."""
        result = await self.session.execute(
            select(ImplantMaterial.category, ImplantMaterial.status, func.count(ImplantMaterial.id))
            .group_by(ImplantMaterial.category, ImplantMaterial.status)
        )
        report: Dict[str, Dict[str, Any]] = {}
        for category, status, count in result.all():
            row = report.setdefault(
                category.value,
                {"category": category.value, "total": 0, "statuses": {s.value: 0 for s in MaterialStatus}},
            )
            row["statuses"][status.value] = count
            row["total"] += count
        return sorted(report.values(), key=lambda row: row["category"])

    async def get_supplier_report(self) -> List[Dict[str, Any]]:
        """Per-supplier purchase volume, outstanding balances and categories bought."""
        result = await self.session.execute(
            select(
                ImplantMaterial.supplier,
                ImplantMaterial.category,
                ImplantMaterial.payment_status,
                ImplantMaterial.total_cost,
                ImplantMaterial.amount_pending,
                ImplantMaterial.received_date,
            )
        )
        report: Dict[str, Dict[str, Any]] = {}
        for supplier, category, payment_status, total_cost, amount_pending, received_date in result.all():
            row = report.setdefault(
                supplier.value,
                {
                    "supplier": supplier.value,
                    "total_items": 0,
                    "total_value": 0.0,
                    "pending_payments": 0,
                    "partial_payments": 0,
                    "total_outstanding": 0.0,
                    "last_purchase_date": None,
                    "categories": [],
                },
            )
            row["total_items"] += 1
            row["total_value"] += total_cost or 0
            row["total_outstanding"] += amount_pending or 0
            if payment_status == SupplierPaymentStatus.PENDING:
                row["pending_payments"] += 1
            elif payment_status == SupplierPaymentStatus.PARTIAL:
                row["partial_payments"] += 1
            if row["last_purchase_date"] is None or received_date > row["last_purchase_date"]:
                row["last_purchase_date"] = received_date
            if category.value not in row["categories"]:
                row["categories"].append(category.value)

        for row in report.values():
            row["total_value"] = round(row["total_value"], 2)
            row["total_outstanding"] = round(row["total_outstanding"], 2)
        return sorted(report.values(), key=lambda row: row["total_value"], reverse=True)
