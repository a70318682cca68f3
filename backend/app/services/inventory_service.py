"""
Implant material inventory service.

WHAT: Payment balance rules, stock movements and bulk operations for
implant materials.

WHY: total_cost, amount_paid and amount_pending depend on each other and
on the values already stored on an item. The rules are applied to the
merged values in one place so create, update, payment update and stock
changes cannot disagree.

HOW: resolve_payment() is a pure function over the merged values. The
InventoryService applies it, calls ImplantMaterial.recalculate() and
saves through the DAO.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    InventoryItemNotFoundError,
    ResourceAlreadyExistsError,
    ValidationError,
)
from app.dao.inventory import InventoryDAO
from app.models.inventory import (
    ImplantMaterial,
    MaterialStatus,
    SupplierPaymentStatus,
    round_money,
)
from app.schemas.inventory import (
    BulkOperation,
    InventoryBulkRequest,
    InventoryItemCreate,
    PAYMENT_MODE_REQUIRED,
    StockOperation,
)


logger = logging.getLogger(__name__)

PAYMENT_FIELDS = (
    "payment_status",
    "payment_mode",
    "payment_date",
    "invoice_number",
    "amount_paid",
    "amount_pending",
    "payment_notes",
)


def resolve_payment(
    total_cost: float,
    payment_status: SupplierPaymentStatus,
    amount_paid: Optional[float] = None,
    amount_pending: Optional[float] = None,
) -> Tuple[float, float]:
    """
    Work out amount_paid and amount_pending for a payment status.

    Rules:
    - partial: amount_paid is required and 0 < paid < total. A missing
      pending amount is derived; a given one must make the sum equal total.
    - paid: everything is paid. A given amount_paid must equal total.
    - pending: nothing is paid.

    Returns:
        (amount_paid, amount_pending)

    Raises:
        ValidationError: If the amounts do not balance (400)
    """
    total = round_money(total_cost)

    if payment_status == SupplierPaymentStatus.PARTIAL:
        if amount_paid is None:
            raise ValidationError(
                message="Amount paid is required for partial payments",
                field="amount_paid",
            )
        paid = round_money(amount_paid)
        if paid <= 0 or paid >= total:
            raise ValidationError(
                message="Amount paid for a partial payment must be greater than 0 and less than the total cost",
                field="amount_paid",
                total_cost=total,
            )
        if amount_pending is None:
            return paid, round_money(total - paid)
        pending = round_money(amount_pending)
        if round_money(paid + pending) != total:
            raise ValidationError(
                message="Amount paid plus amount pending must equal the total cost",
                field="amount_pending",
                total_cost=total,
            )
        return paid, pending

    if payment_status == SupplierPaymentStatus.PAID:
        if amount_paid is not None and round_money(amount_paid) != total:
            raise ValidationError(
                message="Amount paid must equal the total cost when payment status is paid",
                field="amount_paid",
                total_cost=total,
            )
        return total, 0.0

    return 0.0, total


class InventoryService:
    """Writes to implant materials that involve derived values."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.dao = InventoryDAO(session)

    async def get_or_404(self, item_id: int) -> ImplantMaterial:
        item = await self.dao.get_by_id(item_id)
        if item is None:
            raise InventoryItemNotFoundError(item_id=item_id)
        return item

    async def _ensure_unique(
        self,
        item_name: str,
        implant_brand: str,
        batch_number: Optional[str],
        exclude_id: Optional[int] = None,
    ) -> None:
        duplicate = await self.dao.find_duplicate(item_name, implant_brand, batch_number, exclude_id)
        if duplicate is not None:
            raise ResourceAlreadyExistsError(
                message="An item with the same name, brand and batch number already exists",
                resource_type="ImplantMaterial",
                existing_id=duplicate.id,
            )

    def _apply_payment(self, item: ImplantMaterial, amount_paid: Optional[float], amount_pending: Optional[float]) -> None:
        if item.payment_status in PAYMENT_MODE_REQUIRED and item.payment_mode is None:
            raise ValidationError(
                message="Payment mode is required when payment status is paid or partial",
                field="payment_mode",
            )
        item.total_cost = round_money((item.quantity or 0) * (item.unit_price or 0))
        item.amount_paid, item.amount_pending = resolve_payment(
            item.total_cost, item.payment_status, amount_paid, amount_pending
        )

    async def create(self, data: InventoryItemCreate, user_id: Optional[int]) -> ImplantMaterial:
        """
        Create an item with derived cost, status and payment amounts.

        Raises:
            ResourceAlreadyExistsError: Same active name, brand and batch (409)
            ValidationError: Payment amounts do not balance (400)
        """
        await self._ensure_unique(data.item_name, data.implant_brand, data.batch_number)

        values = data.model_dump(exclude={"amount_paid", "amount_pending"})
        item = ImplantMaterial(**values, created_by_user_id=user_id, last_updated_by_user_id=user_id)
        self._apply_payment(item, data.amount_paid, data.amount_pending)
        item.recalculate(keep_active_flag="is_active" in data.model_fields_set)

        item = await self.dao.save(item)
        logger.info(
            "Inventory item created",
            extra={"item_id": item.id, "item_name": item.item_name, "total_cost": item.total_cost},
        )
        return item

    async def update(self, item: ImplantMaterial, values: Dict[str, Any], user_id: Optional[int]) -> ImplantMaterial:
        """
        Apply a partial update and re-run the payment rules on the merged values.

        Raises:
            ResourceAlreadyExistsError: Clash with another active item (409)
            ValidationError: Dates or payment amounts are inconsistent (400)
        """
        if {"item_name", "implant_brand", "batch_number"} & values.keys():
            await self._ensure_unique(
                values.get("item_name", item.item_name),
                values.get("implant_brand", item.implant_brand),
                values.get("batch_number", item.batch_number),
                exclude_id=item.id,
            )

        received = values.get("received_date", item.received_date)
        expiry = values.get("expiry_date", item.expiry_date)
        if expiry is not None and received is not None and expiry < received:
            raise ValidationError(
                message="Expiry date must be on or after the received date",
                field="expiry_date",
            )

        amount_paid = values.pop("amount_paid", None)
        amount_pending = values.pop("amount_pending", None)
        was_partial = item.payment_status == SupplierPaymentStatus.PARTIAL
        for field, value in values.items():
            setattr(item, field, value)
        if amount_paid is None and was_partial and item.payment_status == SupplierPaymentStatus.PARTIAL:
            amount_paid = item.amount_paid
        item.last_updated_by_user_id = user_id

        self._apply_payment(item, amount_paid, amount_pending)
        item.recalculate(keep_active_flag="is_active" in values)
        return await self.dao.save(item)

    async def update_payment(self, item: ImplantMaterial, values: Dict[str, Any], user_id: Optional[int]) -> ImplantMaterial:
        """Update supplier payment fields only."""
        amount_paid = values.pop("amount_paid", None)
        amount_pending = values.pop("amount_pending", None)
        for field in PAYMENT_FIELDS:
            if field in values:
                setattr(item, field, values[field])
        item.last_updated_by_user_id = user_id

        self._apply_payment(item, amount_paid, amount_pending)
        item.recalculate()
        item = await self.dao.save(item)
        logger.info(
            "Inventory payment updated",
            extra={"item_id": item.id, "payment_status": item.payment_status.value},
        )
        return item

    async def update_stock(
        self,
        item: ImplantMaterial,
        quantity: int,
        operation: StockOperation,
        user_id: Optional[int],
        reason: Optional[str] = None,
    ) -> ImplantMaterial:
        """
        Add, subtract or set the stocked quantity.

        Subtracting below zero leaves the item at zero. A fully paid item
        stays fully paid for the new total; a partial one keeps what was
        paid and owes the rest.

        Raises:
            ValidationError: A partially paid item would drop to a total at or
                below the amount already paid (400)
        """
        previous = item.quantity
        if operation == StockOperation.ADD:
            item.quantity = previous + quantity
        elif operation == StockOperation.SUBTRACT:
            item.quantity = max(previous - quantity, 0)
        else:
            item.quantity = quantity
        item.last_updated_by_user_id = user_id

        item.recalculate()
        if item.payment_status == SupplierPaymentStatus.PARTIAL:
            item.amount_paid, item.amount_pending = resolve_payment(
                item.total_cost, item.payment_status, item.amount_paid
            )

        item = await self.dao.save(item)
        logger.info(
            "Inventory stock updated",
            extra={
                "item_id": item.id,
                "operation": operation.value,
                "previous_quantity": previous,
                "quantity": item.quantity,
                "reason": reason,
            },
        )
        return item

    async def set_status(self, item: ImplantMaterial, status: MaterialStatus, is_active: bool, user_id: Optional[int]) -> ImplantMaterial:
        item.status = status
        item.is_active = is_active
        item.last_updated_by_user_id = user_id
        return await self.dao.save(item)

    async def bulk(self, request: InventoryBulkRequest, user_id: Optional[int]) -> int:
        """
        Run a bulk operation.

        Returns:
            Number of items affected
        """
        ids: List[int] = request.item_ids
        if request.operation == BulkOperation.DELETE:
            affected = await self.dao.bulk_delete(ids)
        elif request.operation == BulkOperation.ACTIVATE:
            affected = await self.dao.bulk_set(ids, user_id, is_active=True)
        elif request.operation == BulkOperation.DEACTIVATE:
            affected = await self.dao.bulk_set(ids, user_id, is_active=False)
        else:
            affected = await self.dao.bulk_set(ids, user_id, status=request.data.status)

        logger.info(
            "Inventory bulk operation",
            extra={"operation": request.operation.value, "requested": len(ids), "affected": affected},
        )
        return affected
