"""
Staff authentication and user management API endpoints.

WHY: Clinic staff (admins, receptionists, nurses) administer categories,
doctors, patients, appointments and inventory. These endpoints provide:
1. First-run bootstrap of the super admin
2. Login / logout with JWT bearer tokens
3. Profile and password management
4. Staff account administration by admins

Security:
- All authentication events are audit logged (OWASP A09)
- Rate limiting applied via RateLimitMiddleware on login and bootstrap
- Generic error messages prevent user enumeration attacks
"""

from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import (
    ACTOR_USER,
    blacklist_token,
    create_actor_token,
    hash_password,
    verify_password,
)
from app.core.config import settings
from app.core.deps import get_current_user, require_admin, require_super_admin, security
from app.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ResourceAlreadyExistsError,
    UserNotFoundError,
    ValidationError,
)
from app.db.session import get_db
from app.dao.user import UserDAO
from app.models.audit_log import AuditActorType
from app.models.user import User, UserRole
from app.schemas.common import APIResponse, api_response
from app.schemas.user import (
    ChangePasswordRequest,
    CreateStaffRequest,
    LoginRequest,
    ProfileUpdateRequest,
    StaffRegisterRequest,
    TokenPayload,
    UserResponse,
    UserStatusUpdate,
)
from app.services.audit import AuditService, diff_changes


router = APIRouter(prefix="/users", tags=["users"])


def _user_payload(user: User) -> dict:
    return {"user": UserResponse.model_validate(user)}


def _token_for(user: User) -> TokenPayload:
    return TokenPayload(
        access_token=create_actor_token(ACTOR_USER, user.id, role=user.role.value),
        expires_in=settings.JWT_EXPIRATION_MINUTES * 60,
    )


@router.get(
    "/check-super-admin",
    response_model=APIResponse,
    summary="Check whether a super admin exists",
)
async def check_super_admin(db: AsyncSession = Depends(get_db)) -> APIResponse:
    """
    Report whether the clinic has been bootstrapped.

    WHY: The admin UI shows the first-run registration form only while no
    super admin exists.
    """
    exists = await UserDAO(User, db).super_admin_exists()
    return api_response({"exists": exists})


@router.post(
    "/register-super-admin",
    response_model=APIResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register the first super admin",
)
async def register_super_admin(
    data: StaffRegisterRequest,
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """
    Create the clinic's first super admin account.

    Raises:
        ResourceAlreadyExistsError (409): If a super admin already exists
            or the email is taken
    """
    user_dao = UserDAO(User, db)
    if await user_dao.super_admin_exists():
        raise ResourceAlreadyExistsError(
            message="Super admin already exists",
            resource_type="User",
        )

    user = await user_dao.create_user(
        email=data.email,
        hashed_password=hash_password(data.password),
        first_name=data.first_name,
        last_name=data.last_name,
        phone=data.phone,
        role=UserRole.SUPER_ADMIN,
    )
    await AuditService(db).log_account_created(user, "user", user.id, {"role": user.role.value})

    return api_response(
        {**_user_payload(user), **_token_for(user).model_dump()},
        message="Super admin registered successfully",
    )


@router.post(
    "/login",
    response_model=APIResponse,
    summary="Staff login",
)
async def login(
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """
    Authenticate a staff user and return a JWT access token.

    Security:
    - Passwords are compared using constant-time comparison (bcrypt)
    - The same message is returned for every failure
    - All login attempts (success/failure) are audit logged

    Raises:
        AuthenticationError (401): If credentials are invalid or the
            account is inactive
        RateLimitExceeded (429): Too many recent failed logins from this address
    """
    audit = AuditService(db)
    await audit.ensure_login_allowed()
    user_dao = UserDAO(User, db)
    user = await user_dao.get_by_email(credentials.email)

    if not user:
        await audit.log_login_failure(credentials.email, AuditActorType.USER, reason="User not found")
        raise AuthenticationError(message="Invalid email or password")

    if not verify_password(credentials.password, user.hashed_password):
        await audit.log_login_failure(credentials.email, AuditActorType.USER, user.id, reason="Invalid password")
        raise AuthenticationError(message="Invalid email or password")

    if not user.is_active:
        await audit.log_login_failure(credentials.email, AuditActorType.USER, user.id, reason="Account inactive")
        raise AuthenticationError(message="Invalid email or password")

    user.last_login = datetime.utcnow()
    user = await user_dao.save(user)
    await audit.log_login_success(user)

    return api_response(
        {**_user_payload(user), **_token_for(user).model_dump()},
        message="Login successful",
    )


@router.post(
    "/logout",
    response_model=APIResponse,
    summary="Staff logout",
)
async def logout(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """Blacklist the presented token until it would have expired."""
    await blacklist_token(credentials.credentials, current_user.id)
    await AuditService(db).log_logout(current_user)
    return api_response(message="Logged out successfully")


@router.get("/profile", response_model=APIResponse, summary="Get own profile")
async def get_profile(current_user: User = Depends(get_current_user)) -> APIResponse:
    return api_response(_user_payload(current_user))


@router.put("/profile", response_model=APIResponse, summary="Update own profile")
async def update_profile(
    data: ProfileUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    values = data.model_dump(exclude_unset=True)
    changes = diff_changes(current_user, values)
    for field, value in values.items():
        setattr(current_user, field, value)
    user = await UserDAO(User, db).save(current_user)

    if changes:
        await AuditService(db).log_update(user, "user", user.id, changes)
    return api_response(_user_payload(user), message="Profile updated successfully")


@router.put("/change-password", response_model=APIResponse, summary="Change own password")
async def change_password(
    data: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """
    Change the current user's password.

    Raises:
        ValidationError (400): If the current password is wrong or the new
            password equals the current one
    """
    if not verify_password(data.current_password, current_user.hashed_password):
        raise ValidationError(message="Current password is incorrect", field="current_password")
    if data.current_password == data.new_password:
        raise ValidationError(
            message="New password must be different from the current password",
            field="new_password",
        )

    current_user.hashed_password = hash_password(data.new_password)
    await UserDAO(User, db).save(current_user)
    await AuditService(db).log_password_change(current_user)
    return api_response(message="Password changed successfully")


async def _create_account(
    data: StaffRegisterRequest,
    role: UserRole,
    creator: User,
    db: AsyncSession,
) -> User:
    user = await UserDAO(User, db).create_user(
        email=data.email,
        hashed_password=hash_password(data.password),
        first_name=data.first_name,
        last_name=data.last_name,
        phone=data.phone,
        role=role,
    )
    await AuditService(db).log_account_created(creator, "user", user.id, {"role": role.value})
    return user


@router.post(
    "/create-admin",
    response_model=APIResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an admin (super admin only)",
)
async def create_admin(
    data: StaffRegisterRequest,
    current_user: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    user = await _create_account(data, UserRole.ADMIN, current_user, db)
    return api_response(_user_payload(user), message="Admin created successfully")


@router.post(
    "/create-staff",
    response_model=APIResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a staff account (admin only)",
)
async def create_staff(
    data: CreateStaffRequest,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    user = await _create_account(data, data.role, current_user, db)
    return api_response(_user_payload(user), message="Staff member created successfully")


@router.get("/all", response_model=APIResponse, summary="List staff users (admin only)")
async def list_users(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    role: Optional[UserRole] = Query(default=None),
    is_active: Optional[bool] = Query(default=None),
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    users, total = await UserDAO(User, db).list_users(page, limit, role=role, is_active=is_active)
    return api_response(
        {"users": [UserResponse.model_validate(u) for u in users]},
        page=page,
        limit=limit,
        total=total,
    )


@router.put("/{user_id}/status", response_model=APIResponse, summary="Activate or suspend a staff user")
async def update_user_status(
    user_id: int,
    data: UserStatusUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """
    Activate or suspend a staff account.

    Raises:
        ValidationError (400): When changing one's own status
        UserNotFoundError (404): If the user does not exist
    """
    if user_id == current_user.id:
        raise ValidationError(message="You cannot change your own status")

    user_dao = UserDAO(User, db)
    user = await user_dao.get_by_id(user_id)
    if not user:
        raise UserNotFoundError(user_id=user_id)

    before = user.is_active
    user.is_active = data.is_active
    user = await user_dao.save(user)
    await AuditService(db).log_status_change(current_user, "user", user.id, before, user.is_active)

    state = "activated" if user.is_active else "deactivated"
    return api_response(_user_payload(user), message=f"User {state} successfully")


@router.delete("/{user_id}", response_model=APIResponse, summary="Delete a staff user (super admin only)")
async def delete_user(
    user_id: int,
    current_user: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """
    Delete a staff account.

    Raises:
        ValidationError (400): When deleting oneself
        AuthorizationError (403): When the target is a super admin
        UserNotFoundError (404): If the user does not exist
    """
    if user_id == current_user.id:
        raise ValidationError(message="You cannot delete your own account")

    user_dao = UserDAO(User, db)
    user = await user_dao.get_by_id(user_id)
    if not user:
        raise UserNotFoundError(user_id=user_id)
    if user.role == UserRole.SUPER_ADMIN:
        raise AuthorizationError(message="Super admin accounts cannot be deleted")

    await user_dao.delete(user.id)
    await AuditService(db).log_delete(current_user, "user", user_id, {"email": user.email})
    return api_response(message="User deleted successfully")
