"""
Pydantic schemas for staff authentication and user management.

WHY: Schemas define request/response contracts, providing:
1. Automatic validation of request data
2. API documentation (OpenAPI/Swagger)
3. Clear separation between API and database models
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from app.models.user import UserRole, ADMIN_ROLES
from app.schemas.common import PartialUpdate, check_password_strength, strip_or_none


class LoginRequest(BaseModel):
    """
    Login request schema, shared by staff, doctor and patient logins.

    WHY: Password strength is not re-checked on login so that accounts
    created under older rules can still sign in.
    """

    email: EmailStr = Field(..., description="Account email address")
    password: str = Field(..., min_length=1, max_length=128, description="Account password")

    class Config:
        json_schema_extra = {
            "example": {
                "email": "admin@clinic.example",
                "password": "Secure@Pass1",
            }
        }


class StaffRegisterRequest(BaseModel):
    """Fields shared by every staff account creation request."""

    first_name: str = Field(..., min_length=1, max_length=50, description="First name")
    last_name: str = Field(..., min_length=1, max_length=50, description="Last name")
    email: EmailStr = Field(..., description="Email address (must be unique)")
    password: str = Field(..., description="Password (8-128 chars, mixed case, digit, special)")
    phone: Optional[str] = Field(default=None, max_length=20, description="Contact phone")

    @field_validator("first_name", "last_name")
    @classmethod
    def strip_names(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name cannot be blank")
        return value

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        return check_password_strength(value)


class CreateStaffRequest(StaffRegisterRequest):
    """Admin request to create a non-admin staff account."""

    role: UserRole = Field(default=UserRole.STAFF, description="Staff role")

    @field_validator("role")
    @classmethod
    def non_admin_role(cls, value: UserRole) -> UserRole:
        if value in ADMIN_ROLES:
            raise ValueError("Role must be one of staff, receptionist or nurse")
        return value


class ProfileUpdateRequest(PartialUpdate):
    """Editable profile fields of a staff user. Names cannot be cleared, phone can."""

    NULLABLE = frozenset({"phone"})

    first_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    phone: Optional[str] = Field(default=None, max_length=20)

    @field_validator("phone")
    @classmethod
    def strip_phone(cls, value: Optional[str]) -> Optional[str]:
        return strip_or_none(value)

    @model_validator(mode="after")
    def at_least_one_field(self) -> "ProfileUpdateRequest":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update")
        return self


class ChangePasswordRequest(BaseModel):
    """
    Password change request, shared by staff, doctors and patients.

    WHY: Requiring the current password stops someone with a borrowed
    session from locking the owner out.
    """

    current_password: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., description="New password")

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, value: str) -> str:
        return check_password_strength(value)


class UserStatusUpdate(BaseModel):
    is_active: bool = Field(..., description="Activate or suspend the account")


class UserResponse(BaseModel):
    """Staff user without credentials."""

    id: int
    first_name: str
    last_name: str
    full_name: str
    email: str
    phone: Optional[str] = None
    role: UserRole
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TokenPayload(BaseModel):
    """Bearer token handed out by every login endpoint."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Token lifetime in seconds")
