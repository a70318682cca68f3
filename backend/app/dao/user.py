"""
User Data Access Object.

WHY: UserDAO provides database operations for staff users, following
the DAO pattern for separation of concerns and testability.
"""

from typing import List, Optional, Tuple
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.dao.base import BaseDAO
from app.models.user import User, UserRole
from app.core.exceptions import ResourceAlreadyExistsError


class UserDAO(BaseDAO[User]):
    """Data Access Object for staff users."""

    def __init__(self, model: type[User], session: AsyncSession):
        """Initialize UserDAO with model and session."""
        super().__init__(model, session)

    async def get_by_email(self, email: str) -> Optional[User]:
        """
        Retrieve user by email address.

        WHY: Case-insensitive comparison prevents duplicate accounts with
        different casing (user@example.com vs USER@EXAMPLE.COM).
        """
        result = await self.session.execute(
            select(User).where(func.lower(User.email) == email.lower())
        )
        return result.scalar_one_or_none()

    async def email_exists(self, email: str) -> bool:
        """Check if email already exists in database."""
        result = await self.session.execute(
            select(User.id).where(func.lower(User.email) == email.lower()).limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def super_admin_exists(self) -> bool:
        """Check whether the clinic has been bootstrapped with a super admin."""
        return await self.exists(role=UserRole.SUPER_ADMIN)

    async def create_user(
        self,
        email: str,
        hashed_password: str,
        first_name: str,
        last_name: str,
        role: UserRole = UserRole.STAFF,
        phone: Optional[str] = None,
    ) -> User:
        """
        Create a new staff user.

        Raises:
            ResourceAlreadyExistsError: If email already exists
        """
        if await self.email_exists(email):
            raise ResourceAlreadyExistsError(
                message="User with this email already exists",
                resource_type="User",
                email=email,
            )

        return await self.create(
            email=email.lower(),
            hashed_password=hashed_password,
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            role=role,
            is_active=True,
        )

    async def list_users(
        self,
        page: int = 1,
        limit: int = 20,
        role: Optional[UserRole] = None,
        is_active: Optional[bool] = None,
    ) -> Tuple[List[User], int]:
        """List staff users, newest first."""
        query = select(User)
        if role is not None:
            query = query.where(User.role == role)
        if is_active is not None:
            query = query.where(User.is_active == is_active)
        return await self.paginate(query, page, limit, sort_by="created_at", sort_order="desc")
