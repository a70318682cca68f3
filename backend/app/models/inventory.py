"""
Implant material inventory model.

WHAT: SQLAlchemy model for implant materials, consumables and equipment
bought from suppliers and labs.

WHY: Implant work depends on having the right implant system and abutment
in stock, and suppliers are frequently paid in instalments. The model
tracks stock level, expiry and how much of each purchase is still owed.

HOW: total_cost, status and payment amounts are derived values. The DAO
calls recalculate() before every write so that they can never drift from
quantity, unit price, expiry date and payment status.
"""

import enum
from datetime import date
from typing import Optional
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    Float,
    Date,
    Enum,
    ForeignKey,
)

from app.models.base import Base, TimestampMixin, PrimaryKeyMixin


class ItemCategory(str, enum.Enum):
    IMPLANT = "Dental Implant"
    ABUTMENT = "Abutment"
    CROWN = "Crown"
    BRIDGE = "Bridge"
    MATERIAL = "Dental Material"
    INSTRUMENT = "Instrument"
    CONSUMABLE = "Consumable"
    EQUIPMENT = "Equipment"


class ItemType(str, enum.Enum):
    STRAUMANN_BLX = "Straumann BLX"
    SWISS = "Swiss"
    DENTIUM = "Dentium"
    DENTSPLY = "Dentsply"
    NOBEL = "Nobel"
    OSSTEM = "Osstem"
    MIS = "MIS"
    HEALING_ABUTMENT = "Healing Abutment"
    IMPRESSION_MATERIAL = "Impression Material"
    CEMENT = "Dental Cement"
    COMPOSITE = "Composite Resin"
    CROWN_MATERIAL = "Crown Material"
    SURGICAL_KIT = "Surgical Kit"
    GLOVES = "Gloves"
    OTHER = "Other"


class Supplier(str, enum.Enum):
    DENTIST_SHOP = "The Dentist Shop"
    INTERNATIONAL_DENTAL = "International Dental Systems"
    VINIT_ENTERPRISES = "Vinit Enterprises"
    KUMAR_DENTAL = "Kumar Dental"
    SACHDEVA_GLOVES = "Sachdeva Gloves"
    NEO_ENDO = "NEO ENDO"
    PRASHANT_LAB = "Prashant Lab"
    SHANKAR_LAB = "Shankar Lab"
    GOVIND_LAB = "Govind Lab"


class StockUnit(str, enum.Enum):
    PIECES = "pieces"
    BOXES = "boxes"
    KITS = "kits"
    BOTTLES = "bottles"
    TUBES = "tubes"
    SETS = "sets"


class MaterialStatus(str, enum.Enum):
    IN_STOCK = "in-stock"
    LOW_STOCK = "low-stock"
    OUT_OF_STOCK = "out-of-stock"
    EXPIRED = "expired"


class SupplierPaymentStatus(str, enum.Enum):
    PAID = "paid"
    PENDING = "pending"
    PARTIAL = "partial"


class PaymentMode(str, enum.Enum):
    CASH = "Cash"
    CARD = "Card"
    BANK_TRANSFER = "Bank Transfer"
    UPI = "UPI"
    CHEQUE = "Cheque"
    ONLINE = "Online"
    OTHER = "Other"


def round_money(value: Optional[float]) -> float:
    """Round a currency amount to paise/cents."""
    return round(float(value or 0), 2)


class ImplantMaterial(Base, PrimaryKeyMixin, TimestampMixin):
    """A stocked implant material or consumable."""

    __tablename__ = "implant_materials"

    item_name = Column(String(200), nullable=False, index=True)
    category = Column(Enum(ItemCategory), nullable=False, index=True)
    type = Column(Enum(ItemType), nullable=False, index=True)
    implant_brand = Column(String(100), nullable=False, index=True)
    supplier = Column(Enum(Supplier), nullable=False, index=True)

    quantity = Column(Integer, nullable=False, default=0)
    unit = Column(Enum(StockUnit), nullable=False, default=StockUnit.PIECES)
    unit_price = Column(Float, nullable=False, default=0.0)
    total_cost = Column(Float, nullable=False, default=0.0)

    received_date = Column(Date, nullable=False, index=True)
    expiry_date = Column(Date, nullable=True, index=True)
    batch_number = Column(String(50), nullable=True, index=True)

    is_active = Column(Boolean, nullable=False, default=True, index=True)
    status = Column(Enum(MaterialStatus), nullable=False, default=MaterialStatus.IN_STOCK, index=True)

    description = Column(Text, nullable=True)
    specifications = Column(Text, nullable=True)
    storage_conditions = Column(String(500), nullable=True)
    minimum_stock = Column(Integer, nullable=False, default=0)

    # Supplier payment
    payment_status = Column(
        Enum(SupplierPaymentStatus),
        nullable=False,
        default=SupplierPaymentStatus.PENDING,
        index=True,
    )
    payment_mode = Column(Enum(PaymentMode), nullable=True)
    payment_date = Column(Date, nullable=True)
    invoice_number = Column(String(100), nullable=True)
    amount_paid = Column(Float, nullable=False, default=0.0)
    amount_pending = Column(Float, nullable=False, default=0.0)
    payment_notes = Column(String(500), nullable=True)

    created_by_user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    last_updated_by_user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    @property
    def full_item_name(self) -> str:
        return f"{self.item_name} ({self.implant_brand})"

    def is_expired(self, today: Optional[date] = None) -> bool:
        if not self.expiry_date:
            return False
        return self.expiry_date < (today or date.today())

    def is_low_stock(self) -> bool:
        return 0 < self.quantity <= self.minimum_stock

    def compute_status(self, today: Optional[date] = None) -> MaterialStatus:
        """Expired wins over stock level; zero stock wins over low stock."""
        if self.is_expired(today):
            return MaterialStatus.EXPIRED
        if self.quantity == 0:
            return MaterialStatus.OUT_OF_STOCK
        if self.is_low_stock():
            return MaterialStatus.LOW_STOCK
        return MaterialStatus.IN_STOCK

    def recalculate(self, keep_active_flag: bool = False, today: Optional[date] = None) -> None:
        """
        Refresh derived fields from the stored inputs.

        Args:
            keep_active_flag: True when the caller set is_active explicitly in
                the same change, so the stock-driven deactivation must not override it
            today: Reference date for expiry (defaults to today)
        """
        self.total_cost = round_money((self.quantity or 0) * (self.unit_price or 0))

        if self.payment_status == SupplierPaymentStatus.PAID:
            self.amount_paid = self.total_cost
            self.amount_pending = 0.0
        elif self.payment_status == SupplierPaymentStatus.PENDING:
            self.amount_paid = 0.0
            self.amount_pending = self.total_cost

        previous_status = self.status
        self.status = self.compute_status(today)

        if (
            self.status in (MaterialStatus.OUT_OF_STOCK, MaterialStatus.EXPIRED)
            and self.status != previous_status
            and not keep_active_flag
        ):
            self.is_active = False

    def __repr__(self) -> str:
        return f"<ImplantMaterial(id={self.id}, item={self.item_name}, qty={self.quantity})>"
