"""
Implant material inventory API endpoints.

WHAT: Stock, expiry and supplier payment tracking for implant materials
and consumables, plus purchase reports.

WHY: Implant cases are planned days ahead. Staff need to see what is
low, what has expired and which supplier invoices are still open;
admins record purchases, stock movements and payments.

HOW: Reads go straight to InventoryDAO. Writes go through
InventoryService so derived cost, status and payment amounts stay
consistent.
"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.deps import get_current_user, require_admin
from app.db.session import get_db
from app.dao.inventory import InventoryDAO
from app.models.inventory import (
    ItemCategory,
    MaterialStatus,
    PaymentMode,
    Supplier,
    SupplierPaymentStatus,
)
from app.models.user import User
from app.schemas.common import APIResponse, api_response
from app.schemas.inventory import (
    InventoryBulkRequest,
    InventoryItemCreate,
    InventoryItemResponse,
    InventoryItemUpdate,
    InventorySortField,
    InventoryStatusUpdate,
    PaymentUpdate,
    StockUpdate,
)
from app.schemas.service_category import SortOrder
from app.services.audit import AuditService, diff_changes
from app.services.inventory_service import InventoryService


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/inventory", tags=["inventory"])


def _items(items) -> list:
    return [InventoryItemResponse.model_validate(item) for item in items]


# ============================================================================
# Listings and reports (static paths before /{item_id})
# ============================================================================


@router.get("", response_model=APIResponse, summary="List inventory items")
async def list_items(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    search: Optional[str] = Query(default=None, max_length=100),
    category: Optional[ItemCategory] = Query(default=None),
    supplier: Optional[Supplier] = Query(default=None),
    status_filter: Optional[MaterialStatus] = Query(default=None, alias="status"),
    payment_status: Optional[SupplierPaymentStatus] = Query(default=None),
    payment_mode: Optional[PaymentMode] = Query(default=None),
    sort_by: InventorySortField = Query(default=InventorySortField.ITEM_NAME),
    sort_order: SortOrder = Query(default=SortOrder.ASC),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    items, total = await InventoryDAO(db).list_items(
        page=page,
        limit=limit,
        search=search,
        category=category,
        supplier=supplier,
        status=status_filter,
        payment_status=payment_status,
        payment_mode=payment_mode,
        sort_by=sort_by.value,
        sort_order=sort_order.value,
    )
    return api_response({"items": _items(items)}, page=page, limit=limit, total=total)


@router.get("/stats", response_model=APIResponse, summary="Inventory statistics")
async def inventory_stats(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    return api_response({"stats": await InventoryDAO(db).get_stats()})


@router.get("/low-stock", response_model=APIResponse, summary="Low stock items")
async def low_stock_items(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    items = await InventoryDAO(db).get_by_status(MaterialStatus.LOW_STOCK)
    return api_response({"items": _items(items), "count": len(items)})


@router.get("/expired", response_model=APIResponse, summary="Expired items")
async def expired_items(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    items = await InventoryDAO(db).get_by_status(MaterialStatus.EXPIRED)
    return api_response({"items": _items(items), "count": len(items)})


@router.get("/pending-payments", response_model=APIResponse, summary="Unpaid supplier invoices")
async def pending_payments(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    items = await InventoryDAO(db).get_by_payment_status(SupplierPaymentStatus.PENDING)
    return api_response(
        {
            "items": _items(items),
            "count": len(items),
            "total_amount_pending": round(sum(item.amount_pending or 0 for item in items), 2),
        }
    )


@router.get("/partial-payments", response_model=APIResponse, summary="Partly paid supplier invoices")
async def partial_payments(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    items = await InventoryDAO(db).get_by_payment_status(SupplierPaymentStatus.PARTIAL)
    return api_response(
        {
            "items": _items(items),
            "count": len(items),
            "total_amount_paid": round(sum(item.amount_paid or 0 for item in items), 2),
            "total_amount_pending": round(sum(item.amount_pending or 0 for item in items), 2),
        }
    )


@router.get("/reports/summary", response_model=APIResponse, summary="Per-category summary report")
async def summary_report(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    return api_response({"report": await InventoryDAO(db).get_summary_report()})


@router.get("/reports/category-wise", response_model=APIResponse, summary="Status breakdown per category")
async def category_report(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    return api_response({"report": await InventoryDAO(db).get_category_report()})


@router.get("/reports/supplier-wise", response_model=APIResponse, summary="Per-supplier purchase report")
async def supplier_report(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    return api_response({"report": await InventoryDAO(db).get_supplier_report()})


@router.post("/bulk", response_model=APIResponse, summary="Bulk operation")
async def bulk_operation(
    data: InventoryBulkRequest,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """
    Delete, activate, deactivate or re-status up to 50 items at once.

    Raises:
        ValidationError (400): If update_status is sent without data.status
    """
    affected = await InventoryService(db).bulk(data, current_user.id)
    await AuditService(db).log_bulk_operation(
        current_user, "inventory_item", data.operation.value, data.item_ids, affected
    )
    return api_response(
        {"affected_count": affected},
        message=f"Bulk {data.operation.value} completed for {affected} item(s)",
    )


# ============================================================================
# Single item
# ============================================================================


@router.post(
    "",
    response_model=APIResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add inventory item",
)
async def create_item(
    data: InventoryItemCreate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """
    Record a purchase.

    Raises:
        ResourceAlreadyExistsError (409): Same active name, brand and batch
        ValidationError (400): Payment amounts do not balance
    """
    item = await InventoryService(db).create(data, current_user.id)
    await AuditService(db).log_create(
        current_user,
        "inventory_item",
        item.id,
        {"item_name": item.item_name, "total_cost": item.total_cost},
    )
    return api_response({"item": InventoryItemResponse.model_validate(item)}, message="Inventory item created successfully")


@router.get("/{item_id}", response_model=APIResponse, summary="Get inventory item")
async def get_item(
    item_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    item = await InventoryService(db).get_or_404(item_id)
    return api_response({"item": InventoryItemResponse.model_validate(item)})


@router.put("/{item_id}", response_model=APIResponse, summary="Update inventory item")
async def update_item(
    item_id: int,
    data: InventoryItemUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    service = InventoryService(db)
    item = await service.get_or_404(item_id)
    values = data.model_dump(exclude_unset=True)
    changes = diff_changes(item, values)

    item = await service.update(item, values, current_user.id)
    if changes:
        await AuditService(db).log_update(current_user, "inventory_item", item.id, changes)
    return api_response({"item": InventoryItemResponse.model_validate(item)}, message="Inventory item updated successfully")


@router.put("/{item_id}/status", response_model=APIResponse, summary="Set item status")
async def update_item_status(
    item_id: int,
    data: InventoryStatusUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    service = InventoryService(db)
    item = await service.get_or_404(item_id)
    before = item.status

    item = await service.set_status(item, data.status, data.is_active, current_user.id)
    await AuditService(db).log_status_change(current_user, "inventory_item", item.id, before, item.status)
    return api_response({"item": InventoryItemResponse.model_validate(item)}, message="Inventory status updated successfully")


@router.put("/{item_id}/stock", response_model=APIResponse, summary="Adjust stock")
async def update_item_stock(
    item_id: int,
    data: StockUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    service = InventoryService(db)
    item = await service.get_or_404(item_id)
    previous = item.quantity

    item = await service.update_stock(item, data.quantity, data.operation, current_user.id, data.reason)
    await AuditService(db).log_update(
        current_user,
        "inventory_item",
        item.id,
        {"quantity": {"before": previous, "after": item.quantity}},
    )
    return api_response({"item": InventoryItemResponse.model_validate(item)}, message="Stock updated successfully")


@router.put("/{item_id}/payment", response_model=APIResponse, summary="Update supplier payment")
async def update_item_payment(
    item_id: int,
    data: PaymentUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """
    Raises:
        ValidationError (400): Payment amounts do not balance
    """
    service = InventoryService(db)
    item = await service.get_or_404(item_id)
    values = data.model_dump(exclude_unset=True)
    changes = diff_changes(item, values)

    item = await service.update_payment(item, values, current_user.id)
    if changes:
        await AuditService(db).log_update(current_user, "inventory_item", item.id, changes)
    return api_response({"item": InventoryItemResponse.model_validate(item)}, message="Payment updated successfully")


@router.delete("/{item_id}", response_model=APIResponse, summary="Delete inventory item")
async def delete_item(
    item_id: int,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    service = InventoryService(db)
    item = await service.get_or_404(item_id)
    name = item.item_name
    await service.dao.delete(item.id)

    await AuditService(db).log_delete(current_user, "inventory_item", item_id, {"item_name": name})
    logger.info("Inventory item deleted", extra={"item_id": item_id, "deleted_by": current_user.id})
    return api_response(None, message="Inventory item deleted successfully")
