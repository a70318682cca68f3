"""
Shared Pydantic schemas and validators.

WHAT: The response envelope used by every endpoint, pagination metadata
and the field validators reused across resources.

WHY: Clients rely on one response shape ({success, message, data,
pagination}) for every resource, and password, phone and time rules must
be identical wherever they appear.
"""

import math
import re
from typing import Any, ClassVar, FrozenSet, Optional
from pydantic import BaseModel, Field, model_validator


PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]{8,128}$")
TIME_PATTERN = r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$"
NAME_PATTERN = r"^[a-zA-Z\s]+$"
HEX_COLOR_PATTERN = r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$"
INTL_PHONE_PATTERN = r"^\+?[1-9]\d{0,15}$"
INDIAN_MOBILE_PATTERN = r"^(\+91[-\s]?)?[6-9]\d{9}$"

PASSWORD_RULES = (
    "Password must be 8-128 characters and contain at least one lowercase letter, "
    "one uppercase letter, one number and one special character (@$!%*?&)"
)


def check_password_strength(value: str) -> str:
    """Validator body shared by every schema that accepts a new password."""
    if not PASSWORD_PATTERN.match(value):
        raise ValueError(PASSWORD_RULES)
    return value


def time_to_minutes(value: str) -> int:
    """Convert "HH:MM" to minutes after midnight."""
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def strip_or_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class PartialUpdate(BaseModel):
    """
    Base for PUT/PATCH bodies where omitted fields are left untouched.

    WHY: Handlers apply model_dump(exclude_unset=True), so an explicit null
    would reach the row. Only the columns listed in NULLABLE may be cleared;
    any other field sent as null (or as text that trims to nothing) is a
    400, never an integrity error from the database.

    HOW: Strings are trimmed before length constraints run, so "   " fails
    min_length instead of slipping through as blank text.
    """

    NULLABLE: ClassVar[FrozenSet[str]] = frozenset()

    class Config:
        str_strip_whitespace = True

    @model_validator(mode="after")
    def reject_cleared_fields(self):
        cleared = sorted(
            name for name in self.model_fields_set
            if getattr(self, name) is None and name not in self.NULLABLE
        )
        if cleared:
            raise ValueError(f"{', '.join(cleared)} cannot be empty")
        return self


class Pagination(BaseModel):
    """Pagination metadata returned with every list."""

    page: int = Field(..., ge=1, description="Current page (1-based)")
    limit: int = Field(..., ge=1, description="Page size")
    total: int = Field(..., ge=0, description="Total matching records")
    pages: int = Field(..., ge=0, description="Total number of pages")

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(page=page, limit=limit, total=total, pages=math.ceil(total / limit) if limit else 0)


class APIResponse(BaseModel):
    """
    Uniform success envelope.

    WHY: data is typed as Any so each endpoint can nest its own schema
    objects ({"category": ...}, {"doctors": [...]}) without one response
    model per endpoint.
    """

    success: bool = Field(default=True, description="Always true for successful responses")
    message: Optional[str] = Field(default=None, description="Human-readable result message")
    data: Any = Field(default=None, description="Response payload")
    pagination: Optional[Pagination] = Field(default=None, description="Present on list responses")

    class Config:
        json_schema_extra = {
            "example": {
                "success": True,
                "message": "Service categories retrieved successfully",
                "data": {"categories": []},
                "pagination": {"page": 1, "limit": 20, "total": 0, "pages": 0},
            }
        }


def api_response(
    data: Any = None,
    message: Optional[str] = None,
    page: Optional[int] = None,
    limit: Optional[int] = None,
    total: Optional[int] = None,
) -> APIResponse:
    """
    Build a success envelope.

    Pass page, limit and total together to attach pagination.
    """
    pagination = None
    if page is not None and limit is not None and total is not None:
        pagination = Pagination.build(page, limit, total)
    return APIResponse(success=True, message=message, data=data, pagination=pagination)


class AvailabilityResponse(BaseModel):
    """Result of an "is this value still free?" check."""

    available: bool
    message: Optional[str] = None


class StatusReasonRequest(BaseModel):
    """Activate or deactivate a record, optionally saying why."""

    is_active: bool = Field(..., description="New active state")
    reason: Optional[str] = Field(default=None, max_length=200, description="Reason for the change")
