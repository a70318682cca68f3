"""
Pydantic schemas for the medicine formulary.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, field_validator, model_validator

from app.models.medicine import MedicineCategory, DentalUse, DosageForm, MedicineUnit, MedicineStatus
from app.schemas.common import PartialUpdate, strip_or_none


class MedicineSortField(str, Enum):
    MEDICINE_NAME = "medicine_name"
    CATEGORY = "category"
    DENTAL_USE = "dental_use"
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"


class MedicineCreate(BaseModel):
    """
    Medicine creation request.

    WHY: Name, strength and dosage form together identify a medicine, so
    "Amoxicillin 500mg Capsule" and "Amoxicillin 250mg Capsule" can coexist.
    """

    medicine_name: str = Field(..., min_length=2, max_length=100)
    generic_name: Optional[str] = Field(default=None, max_length=100)
    brand_name: Optional[str] = Field(default=None, max_length=100)
    category: MedicineCategory
    dental_use: DentalUse
    dosage_form: DosageForm
    strength: str = Field(..., min_length=1, max_length=50)
    unit: MedicineUnit = MedicineUnit.MG
    manufacturer: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = Field(default=None, max_length=1000)
    dosage_instructions: str = Field(..., min_length=5, max_length=500)
    prescription_required: bool = True
    status: MedicineStatus = MedicineStatus.ACTIVE
    is_active: bool = True

    @field_validator("generic_name", "brand_name", "manufacturer", "description")
    @classmethod
    def strip_optional(cls, value: Optional[str]) -> Optional[str]:
        return strip_or_none(value)

    class Config:
        str_strip_whitespace = True
        json_schema_extra = {
            "example": {
                "medicine_name": "Amoxicillin",
                "generic_name": "Amoxicillin trihydrate",
                "category": "Antibiotic",
                "dental_use": "Tooth Extraction",
                "dosage_form": "Capsule",
                "strength": "500",
                "unit": "mg",
                "dosage_instructions": "One capsule three times a day after meals",
            }
        }


class MedicineUpdate(PartialUpdate):
    NULLABLE = frozenset({"generic_name", "brand_name", "manufacturer", "description"})

    medicine_name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    generic_name: Optional[str] = Field(default=None, max_length=100)
    brand_name: Optional[str] = Field(default=None, max_length=100)
    category: Optional[MedicineCategory] = None
    dental_use: Optional[DentalUse] = None
    dosage_form: Optional[DosageForm] = None
    strength: Optional[str] = Field(default=None, min_length=1, max_length=50)
    unit: Optional[MedicineUnit] = None
    manufacturer: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = Field(default=None, max_length=1000)
    dosage_instructions: Optional[str] = Field(default=None, min_length=5, max_length=500)
    prescription_required: Optional[bool] = None
    status: Optional[MedicineStatus] = None
    is_active: Optional[bool] = None

    @field_validator("generic_name", "brand_name", "manufacturer", "description")
    @classmethod
    def strip_optional(cls, value: Optional[str]) -> Optional[str]:
        return strip_or_none(value)

    @model_validator(mode="after")
    def at_least_one_field(self) -> "MedicineUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update")
        return self


class MedicineStatusUpdate(BaseModel):
    status: MedicineStatus
    is_active: bool


class MedicineResponse(BaseModel):
    id: int
    medicine_name: str
    generic_name: Optional[str] = None
    brand_name: Optional[str] = None
    display_name: str
    category: MedicineCategory
    dental_use: DentalUse
    dosage_form: DosageForm
    strength: str
    unit: MedicineUnit
    manufacturer: Optional[str] = None
    description: Optional[str] = None
    dosage_instructions: str
    prescription_required: bool
    status: MedicineStatus
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
