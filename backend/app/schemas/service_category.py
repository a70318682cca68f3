"""
Pydantic schemas for service categories and clinic services.

WHAT: Request validation for every category operation (create, update,
status, bulk update, reorder, name check) and the response shapes.

WHY: Category names appear on the public service menu, so they are
trimmed and length-checked before they can reach the uniqueness check.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator

from app.schemas.common import HEX_COLOR_PATTERN, PartialUpdate, strip_or_none


class CategoryStatusFilter(str, Enum):
    ALL = "all"
    ACTIVE = "active"
    INACTIVE = "inactive"


class CategorySortField(str, Enum):
    NAME = "name"
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"
    SERVICE_COUNT = "service_count"
    POSITION = "position"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class AnalyticsPeriod(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class ExportFormat(str, Enum):
    JSON = "json"
    CSV = "csv"


def _clean_name(value: Optional[str]) -> Optional[str]:
    """Trim, then enforce 2-50 characters on what remains."""
    if value is None:
        return None
    value = value.strip()
    if len(value) < 2:
        raise ValueError("Category name must be at least 2 characters long")
    if len(value) > 50:
        raise ValueError("Category name cannot exceed 50 characters")
    return value


def _clean_description(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    if len(value) < 10:
        raise ValueError("Description must be at least 10 characters long")
    if len(value) > 500:
        raise ValueError("Description cannot exceed 500 characters")
    return value


class ServiceCategoryCreate(BaseModel):
    """
    Service category creation request.

    WHY: name and description are validated after trimming, so "  a  "
    is rejected as a one-character name.
    """

    name: str = Field(..., description="Category name (2-50 characters, unique)")
    description: str = Field(..., description="Category description (10-500 characters)")
    color: Optional[str] = Field(default=None, pattern=HEX_COLOR_PATTERN, description="Hex display color")
    is_active: bool = Field(default=True, description="Whether the category is shown")
    position: int = Field(default=0, ge=0, description="Menu position")

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: Optional[str]) -> Optional[str]:
        return _clean_name(value)

    @field_validator("description")
    @classmethod
    def validate_description(cls, value: Optional[str]) -> Optional[str]:
        return _clean_description(value)

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Orthodontics",
                "description": "Braces, aligners and bite correction",
                "color": "#3B82F6",
                "is_active": True,
                "position": 1,
            }
        }


class ServiceCategoryUpdate(PartialUpdate):
    """Partial category update. At least one field is required; only color may be cleared."""

    NULLABLE = frozenset({"color"})

    name: Optional[str] = Field(default=None, description="Category name (2-50 characters)")
    description: Optional[str] = Field(default=None, description="Description (10-500 characters)")
    color: Optional[str] = Field(default=None, pattern=HEX_COLOR_PATTERN)
    is_active: Optional[bool] = None
    position: Optional[int] = Field(default=None, ge=0)

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: Optional[str]) -> Optional[str]:
        return _clean_name(value)

    @field_validator("description")
    @classmethod
    def validate_description(cls, value: Optional[str]) -> Optional[str]:
        return _clean_description(value)

    @model_validator(mode="after")
    def at_least_one_field(self) -> "ServiceCategoryUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update")
        return self


class ServiceCategoryStatusUpdate(BaseModel):
    is_active: bool = Field(..., description="New active state")
    reason: Optional[str] = Field(default=None, max_length=200, description="Reason for the change")


class CheckNameRequest(BaseModel):
    name: str = Field(..., description="Name to check")
    exclude_id: Optional[int] = Field(default=None, ge=1, description="Category being renamed")

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _clean_name(value)


class BulkUpdateData(BaseModel):
    is_active: Optional[bool] = None
    color: Optional[str] = Field(default=None, pattern=HEX_COLOR_PATTERN)

    @model_validator(mode="after")
    def at_least_one_field(self) -> "BulkUpdateData":
        if self.is_active is None and self.color is None:
            raise ValueError("update_data must contain is_active or color")
        return self


class BulkUpdateRequest(BaseModel):
    category_ids: List[int] = Field(..., min_length=1, max_length=50, description="Categories to update")
    update_data: BulkUpdateData


class ReorderItem(BaseModel):
    category_id: int = Field(..., ge=1)
    position: Optional[int] = Field(default=None, ge=1, description="New position (defaults to list index + 1)")


class ReorderRequest(BaseModel):
    category_order: List[ReorderItem] = Field(..., min_length=1, max_length=100)


class ServiceCategoryResponse(BaseModel):
    id: int
    name: str
    description: str
    color: Optional[str] = None
    is_active: bool
    position: int
    service_count: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# Clinic services


class ClinicServiceCreate(BaseModel):
    """A bookable treatment within a category."""

    name: str = Field(..., min_length=2, max_length=100, description="Service name")
    description: Optional[str] = Field(default=None, max_length=1000)
    category_id: int = Field(..., ge=1, description="Owning category")
    price: float = Field(..., ge=0, description="Price in clinic currency")
    duration_minutes: int = Field(default=30, ge=5, le=480, description="Typical chair time")
    is_active: bool = True

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if len(value) < 2:
            raise ValueError("Service name must be at least 2 characters long")
        return value


class ClinicServiceUpdate(PartialUpdate):
    NULLABLE = frozenset({"description"})

    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    description: Optional[str] = Field(default=None, max_length=1000)
    category_id: Optional[int] = Field(default=None, ge=1)
    price: Optional[float] = Field(default=None, ge=0)
    duration_minutes: Optional[int] = Field(default=None, ge=5, le=480)
    is_active: Optional[bool] = None

    @field_validator("description")
    @classmethod
    def strip_description(cls, value: Optional[str]) -> Optional[str]:
        return strip_or_none(value)

    @model_validator(mode="after")
    def at_least_one_field(self) -> "ClinicServiceUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update")
        return self


class ClinicServiceResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    category_id: int
    price: float
    duration_minutes: int
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
