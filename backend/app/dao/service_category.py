"""
Service category and clinic service Data Access Objects.

WHAT: Database operations for the clinic's service menu.

WHY: Category queries (search, statistics, analytics, bulk updates) are
shared between the admin API and the public menu, so they live here
rather than in route handlers.
"""

from collections import OrderedDict
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy import select, func, or_, update, case
from sqlalchemy.ext.asyncio import AsyncSession

from app.dao.base import LIKE_ESCAPE, BaseDAO, like_pattern
from app.models.service_category import ServiceCategory, ClinicService


class ServiceCategoryDAO(BaseDAO[ServiceCategory]):
    """Data Access Object for service categories."""

    def __init__(self, session: AsyncSession):
        super().__init__(ServiceCategory, session)

    async def get_by_name(
        self, name: str, exclude_id: Optional[int] = None
    ) -> Optional[ServiceCategory]:
        """
        Find a category by name, ignoring case.

        Args:
            name: Category name (surrounding whitespace ignored)
            exclude_id: Category to ignore, used when renaming
        """
        query = select(ServiceCategory).where(
            func.lower(ServiceCategory.name) == name.strip().lower()
        )
        if exclude_id is not None:
            query = query.where(ServiceCategory.id != exclude_id)
        result = await self.session.execute(query.limit(1))
        return result.scalar_one_or_none()

    async def list_categories(
        self,
        page: int = 1,
        limit: int = 20,
        search: Optional[str] = None,
        status: str = "all",
        include_inactive: bool = True,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> Tuple[List[ServiceCategory], int]:
        """Admin listing with search, status filter and sorting."""
        query = select(ServiceCategory)
        if search:
            pattern = like_pattern(search)
            query = query.where(
                or_(
                    ServiceCategory.name.ilike(pattern, escape=LIKE_ESCAPE),
                    ServiceCategory.description.ilike(pattern, escape=LIKE_ESCAPE),
                )
            )
        if status == "active" or not include_inactive:
            query = query.where(ServiceCategory.is_active.is_(True))
        elif status == "inactive":
            query = query.where(ServiceCategory.is_active.is_(False))
        return await self.paginate(query, page, limit, sort_by=sort_by, sort_order=sort_order)

    async def get_active(self) -> List[ServiceCategory]:
        """Active categories in menu order."""
        result = await self.session.execute(
            select(ServiceCategory)
            .where(ServiceCategory.is_active.is_(True))
            .order_by(ServiceCategory.position.asc(), ServiceCategory.name.asc())
        )
        return list(result.scalars().all())

    async def search(self, q: str, limit: int = 10, active_only: bool = True) -> List[ServiceCategory]:
        """Case-insensitive match against name or description."""
        pattern = like_pattern(q)
        query = select(ServiceCategory).where(
            or_(
                ServiceCategory.name.ilike(pattern, escape=LIKE_ESCAPE),
                ServiceCategory.description.ilike(pattern, escape=LIKE_ESCAPE),
            )
        )
        if active_only:
            query = query.where(ServiceCategory.is_active.is_(True))
        query = query.order_by(ServiceCategory.position.asc(), ServiceCategory.name.asc()).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_all_for_export(self, include_inactive: bool = False) -> List[ServiceCategory]:
        query = select(ServiceCategory)
        if not include_inactive:
            query = query.where(ServiceCategory.is_active.is_(True))
        result = await self.session.execute(
            query.order_by(ServiceCategory.position.asc(), ServiceCategory.name.asc())
        )
        return list(result.scalars().all())

    async def has_services(self, category: ServiceCategory) -> bool:
        """True if the category still groups any service."""
        if (category.service_count or 0) > 0:
            return True
        result = await self.session.execute(
            select(ClinicService.id).where(ClinicService.category_id == category.id).limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def get_statistics(self) -> Dict[str, int]:
        """Totals used by the admin dashboard."""
        row = (
            await self.session.execute(
                select(
                    func.count(ServiceCategory.id),
                    func.coalesce(func.sum(case((ServiceCategory.is_active.is_(True), 1), else_=0)), 0),
                    func.coalesce(func.sum(case((ServiceCategory.service_count > 0, 1), else_=0)), 0),
                    func.coalesce(func.sum(ServiceCategory.service_count), 0),
                )
            )
        ).one()
        total, active, with_services, total_services = (int(value) for value in row)
        return {
            "total": total,
            "active": active,
            "inactive": total - active,
            "with_services": with_services,
            "without_services": total - with_services,
            "total_services": total_services,
        }

    async def get_creation_analytics(self, period: str, year: int) -> List[Dict[str, Any]]:
        """
        Count categories created in a year, bucketed by day, ISO week or month.

        WHY: Bucketing happens in Python because date-part functions differ
        between PostgreSQL and SQLite.

        Returns:
            [{"period": <bucket>, "count": n}] in chronological order
        """
        start = datetime(year, 1, 1)
        end = datetime(year + 1, 1, 1)
        result = await self.session.execute(
            select(ServiceCategory.created_at)
            .where(ServiceCategory.created_at >= start)
            .where(ServiceCategory.created_at < end)
            .order_by(ServiceCategory.created_at.asc())
        )

        buckets: "OrderedDict[Any, int]" = OrderedDict()
        for (created_at,) in result.all():
            if period == "day":
                key = created_at.date().isoformat()
            elif period == "week":
                key = created_at.isocalendar()[1]
            else:
                key = created_at.month
            buckets[key] = buckets.get(key, 0) + 1

        return [{"period": key, "count": count} for key, count in buckets.items()]

    async def get_with_live_counts(self) -> List[Tuple[ServiceCategory, int]]:
        """Categories paired with the number of service rows that reference them."""
        live_count = func.count(ClinicService.id).label("live_count")
        result = await self.session.execute(
            select(ServiceCategory, live_count)
            .outerjoin(ClinicService, ClinicService.category_id == ServiceCategory.id)
            .group_by(ServiceCategory.id)
            .order_by(ServiceCategory.position.asc(), ServiceCategory.name.asc())
        )
        return [(category, count) for category, count in result.all()]

    async def bulk_update(self, category_ids: List[int], values: Dict[str, Any]) -> Tuple[int, int]:
        """
        Apply the same values to many categories.

        Returns:
            (matched_count, modified_count). Rows that already hold the
            requested values count as matched but not modified.
        """
        matched = (
            await self.session.execute(
                select(func.count(ServiceCategory.id)).where(ServiceCategory.id.in_(category_ids))
            )
        ).scalar_one()

        differs = [getattr(ServiceCategory, field).is_distinct_from(value) for field, value in values.items()]
        result = await self.session.execute(
            update(ServiceCategory)
            .where(ServiceCategory.id.in_(category_ids))
            .where(or_(*differs))
            .values(**values, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        return matched, result.rowcount

    async def set_position(self, category_id: int, position: int) -> bool:
        """Move one category; False if it does not exist."""
        result = await self.session.execute(
            update(ServiceCategory)
            .where(ServiceCategory.id == category_id)
            .values(position=position, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def adjust_service_count(self, category_id: int, delta: int) -> None:
        """Shift the denormalized service_count, never below zero."""
        category = await self.get_by_id(category_id)
        if category is None:
            return
        category.service_count = max(0, (category.service_count or 0) + delta)
        await self.save(category)


class ClinicServiceDAO(BaseDAO[ClinicService]):
    """Data Access Object for clinic services."""

    def __init__(self, session: AsyncSession):
        super().__init__(ClinicService, session)

    async def list_services(
        self,
        page: int = 1,
        limit: int = 20,
        category_id: Optional[int] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
    ) -> Tuple[List[ClinicService], int]:
        query = select(ClinicService)
        if category_id is not None:
            query = query.where(ClinicService.category_id == category_id)
        if is_active is not None:
            query = query.where(ClinicService.is_active.is_(is_active))
        if search:
            pattern = like_pattern(search)
            query = query.where(
                or_(
                    ClinicService.name.ilike(pattern, escape=LIKE_ESCAPE),
                    ClinicService.description.ilike(pattern, escape=LIKE_ESCAPE),
                )
            )
        return await self.paginate(query, page, limit, sort_by="name", sort_order="asc")
