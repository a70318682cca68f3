"""
Pydantic schemas for implant material inventory.

WHAT: Create, update, stock, payment, status and bulk schemas plus the
item response.

WHY: Structural rules (dates, required payment mode) are checked here.
Balance rules that need the item's total cost are applied by
app.services.inventory_service against the merged values.
"""

from datetime import date, datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator

from app.models.inventory import (
    ItemCategory,
    ItemType,
    Supplier,
    StockUnit,
    MaterialStatus,
    SupplierPaymentStatus,
    PaymentMode,
)
from app.schemas.common import PartialUpdate, strip_or_none


PAYMENT_MODE_REQUIRED = (SupplierPaymentStatus.PAID, SupplierPaymentStatus.PARTIAL)


class InventorySortField(str, Enum):
    ITEM_NAME = "item_name"
    CATEGORY = "category"
    QUANTITY = "quantity"
    UNIT_PRICE = "unit_price"
    TOTAL_COST = "total_cost"
    RECEIVED_DATE = "received_date"
    EXPIRY_DATE = "expiry_date"
    CREATED_AT = "created_at"


class StockOperation(str, Enum):
    ADD = "add"
    SUBTRACT = "subtract"
    SET = "set"


class BulkOperation(str, Enum):
    DELETE = "delete"
    ACTIVATE = "activate"
    DEACTIVATE = "deactivate"
    UPDATE_STATUS = "update_status"


def _received_not_future(value: Optional[date]) -> Optional[date]:
    if value is not None and value > date.today():
        raise ValueError("Received date cannot be in the future")
    return value


class PaymentFields(BaseModel):
    """Supplier payment fields shared by create, update and payment update."""

    payment_status: Optional[SupplierPaymentStatus] = None
    payment_mode: Optional[PaymentMode] = None
    payment_date: Optional[date] = None
    invoice_number: Optional[str] = Field(default=None, max_length=100)
    amount_paid: Optional[float] = Field(default=None, ge=0)
    amount_pending: Optional[float] = Field(default=None, ge=0)
    payment_notes: Optional[str] = Field(default=None, max_length=500)

    @model_validator(mode="after")
    def mode_required_when_paying(self):
        if self.payment_status in PAYMENT_MODE_REQUIRED and self.payment_mode is None:
            raise ValueError("Payment mode is required when payment status is paid or partial")
        return self


class InventoryItemCreate(PaymentFields):
    """
    Implant material creation request.

    WHY: total_cost and status are never accepted from the client; they
    are derived from quantity, unit price, expiry and minimum stock.
    """

    item_name: str = Field(..., min_length=2, max_length=200)
    category: ItemCategory
    type: ItemType
    implant_brand: str = Field(..., min_length=1, max_length=100)
    supplier: Supplier
    quantity: int = Field(..., ge=0)
    unit: StockUnit = StockUnit.PIECES
    unit_price: float = Field(..., ge=0)
    received_date: date
    expiry_date: Optional[date] = None
    batch_number: Optional[str] = Field(default=None, max_length=50)
    description: Optional[str] = Field(default=None, max_length=1000)
    specifications: Optional[str] = Field(default=None, max_length=1000)
    storage_conditions: Optional[str] = Field(default=None, max_length=500)
    minimum_stock: int = Field(default=0, ge=0)
    payment_status: SupplierPaymentStatus = SupplierPaymentStatus.PENDING
    is_active: bool = True

    @field_validator("batch_number", "invoice_number")
    @classmethod
    def strip_optional(cls, value: Optional[str]) -> Optional[str]:
        return strip_or_none(value)

    @field_validator("received_date")
    @classmethod
    def validate_received(cls, value: date) -> date:
        return _received_not_future(value)

    @model_validator(mode="after")
    def expiry_after_received(self) -> "InventoryItemCreate":
        if self.expiry_date is not None and self.expiry_date < self.received_date:
            raise ValueError("Expiry date must be on or after the received date")
        return self

    class Config:
        str_strip_whitespace = True
        json_schema_extra = {
            "example": {
                "item_name": "BLX Implant 4.0x10",
                "category": "Dental Implant",
                "type": "Straumann BLX",
                "implant_brand": "Straumann",
                "supplier": "The Dentist Shop",
                "quantity": 10,
                "unit": "pieces",
                "unit_price": 12500,
                "received_date": "2024-05-01",
                "minimum_stock": 2,
                "payment_status": "partial",
                "payment_mode": "UPI",
                "amount_paid": 50000,
            }
        }


class InventoryItemUpdate(PartialUpdate, PaymentFields):
    """
    Partial item update.

    WHY: Payment mode may already be stored on the item, so the mode and
    balance rules are checked against the merged values by the service.
    Optional details (expiry, batch, notes, payment references) may be
    cleared with null; everything else keeps its value unless replaced.
    """

    NULLABLE = frozenset({
        "expiry_date",
        "batch_number",
        "description",
        "specifications",
        "storage_conditions",
        "payment_mode",
        "payment_date",
        "invoice_number",
        "payment_notes",
    })

    item_name: Optional[str] = Field(default=None, min_length=2, max_length=200)
    category: Optional[ItemCategory] = None
    type: Optional[ItemType] = None
    implant_brand: Optional[str] = Field(default=None, min_length=1, max_length=100)
    supplier: Optional[Supplier] = None
    quantity: Optional[int] = Field(default=None, ge=0)
    unit: Optional[StockUnit] = None
    unit_price: Optional[float] = Field(default=None, ge=0)
    received_date: Optional[date] = None
    expiry_date: Optional[date] = None
    batch_number: Optional[str] = Field(default=None, max_length=50)
    description: Optional[str] = Field(default=None, max_length=1000)
    specifications: Optional[str] = Field(default=None, max_length=1000)
    storage_conditions: Optional[str] = Field(default=None, max_length=500)
    minimum_stock: Optional[int] = Field(default=None, ge=0)
    is_active: Optional[bool] = None

    @field_validator("received_date")
    @classmethod
    def validate_received(cls, value: Optional[date]) -> Optional[date]:
        return _received_not_future(value)

    @field_validator(
        "batch_number", "invoice_number", "description", "specifications", "storage_conditions", "payment_notes"
    )
    @classmethod
    def strip_optional(cls, value: Optional[str]) -> Optional[str]:
        return strip_or_none(value)

    @model_validator(mode="after")
    def mode_required_when_paying(self) -> "InventoryItemUpdate":
        """Checked by the service once the stored payment mode is known."""
        return self

    @model_validator(mode="after")
    def at_least_one_field(self) -> "InventoryItemUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update")
        return self


class PaymentUpdate(PartialUpdate, PaymentFields):
    NULLABLE = frozenset({"payment_mode", "payment_date", "invoice_number", "payment_notes"})

    payment_status: SupplierPaymentStatus


class StockUpdate(BaseModel):
    quantity: int = Field(..., ge=0)
    operation: StockOperation = StockOperation.SET
    reason: Optional[str] = Field(default=None, max_length=500)


class InventoryStatusUpdate(BaseModel):
    status: MaterialStatus
    is_active: bool


class BulkData(BaseModel):
    status: Optional[MaterialStatus] = None


class InventoryBulkRequest(BaseModel):
    item_ids: List[int] = Field(..., min_length=1, max_length=50)
    operation: BulkOperation
    data: Optional[BulkData] = None

    @model_validator(mode="after")
    def status_for_update(self) -> "InventoryBulkRequest":
        if self.operation == BulkOperation.UPDATE_STATUS and (self.data is None or self.data.status is None):
            raise ValueError("data.status is required for update_status")
        return self


class InventoryItemResponse(BaseModel):
    id: int
    item_name: str
    full_item_name: str
    category: ItemCategory
    type: ItemType
    implant_brand: str
    supplier: Supplier
    quantity: int
    unit: StockUnit
    unit_price: float
    total_cost: float
    received_date: date
    expiry_date: Optional[date] = None
    batch_number: Optional[str] = None
    is_active: bool
    status: MaterialStatus
    description: Optional[str] = None
    specifications: Optional[str] = None
    storage_conditions: Optional[str] = None
    minimum_stock: int
    payment_status: SupplierPaymentStatus
    payment_mode: Optional[PaymentMode] = None
    payment_date: Optional[date] = None
    invoice_number: Optional[str] = None
    amount_paid: float
    amount_pending: float
    payment_notes: Optional[str] = None
    created_by_user_id: Optional[int] = None
    last_updated_by_user_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
