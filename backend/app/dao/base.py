"""
Base Data Access Object (DAO) class.

WHY: The DAO pattern separates database operations from business logic,
making the codebase more testable, maintainable, and allowing easier
database technology changes in the future.
"""

from typing import Generic, TypeVar, Type, Optional, List, Any, Tuple
from sqlalchemy import select, delete, func, asc, desc
from sqlalchemy.sql import Select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import Base

# Type variable for model class
ModelType = TypeVar("ModelType", bound=Base)

LIKE_ESCAPE = "\\"


def like_pattern(term: str) -> str:
    """
    Build a case-insensitive substring pattern from user input.

    Wildcards typed by the user are escaped, so "%" or "_" only ever match
    themselves. Pair with ilike(pattern, escape=LIKE_ESCAPE).
    """
    escaped = (
        term.strip()
        .replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"


class BaseDAO(Generic[ModelType]):
    """
    Base Data Access Object providing CRUD operations for all models.

    WHY: Centralizing database operations in DAOs separates data access
    concerns from business logic. Using generics allows type-safe reuse
    across different models.

    Type Parameters:
        ModelType: The SQLAlchemy model class this DAO manages
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        """
        Initialize DAO with model class and database session.

        Args:
            model: The SQLAlchemy model class
            session: Async database session
        """
        self.model = model
        self.session = session

    async def create(self, **kwargs: Any) -> ModelType:
        """
        Create a new record.

        Args:
            **kwargs: Field values for the new record

        Returns:
            The created model instance with database-generated fields populated
        """
        instance = self.model(**kwargs)
        self.session.add(instance)
        await self.session.flush()  # Flush to get auto-generated fields
        await self.session.refresh(instance)
        return instance

    async def save(self, instance: ModelType) -> ModelType:
        """
        Flush changes made to an already loaded instance.

        WHY: Some updates depend on the current values (derived totals,
        counters), so handlers mutate the loaded object and persist it
        instead of issuing a blind UPDATE.
        """
        self.session.add(instance)
        await self.session.flush()
        await self.session.refresh(instance)
        return instance

    async def get_by_id(self, id: int) -> Optional[ModelType]:
        """
        Retrieve a single record by primary key.

        Args:
            id: Primary key value

        Returns:
            The model instance if found, None otherwise
        """
        result = await self.session.execute(select(self.model).where(self.model.id == id))
        return result.scalar_one_or_none()

    async def delete(self, id: int) -> bool:
        """
        Delete a record by primary key.

        Returns:
            True if a record was deleted, False if not found
        """
        result = await self.session.execute(delete(self.model).where(self.model.id == id))
        return result.rowcount > 0

    async def exists(self, **filters: Any) -> bool:
        """
        Check if any records matching filters exist.

        Returns:
            True if at least one matching record exists
        """
        query = self._apply_filters(select(self.model.id), filters).limit(1)
        result = await self.session.execute(query)
        return result.scalar_one_or_none() is not None

    async def paginate(
        self,
        query: Select,
        page: int = 1,
        limit: int = 20,
        sort_by: Optional[str] = None,
        sort_order: str = "desc",
    ) -> Tuple[List[ModelType], int]:
        """
        Run a list query one page at a time.

        WHY: Every list endpoint returns the same {page, limit, total, pages}
        pagination block, so counting and slicing live in one place.

        Args:
            query: A select() over this DAO's model with filters applied
            page: 1-based page number
            limit: Page size
            sort_by: Column name to order by (ignored if unknown)
            sort_order: "asc" or "desc"

        Returns:
            Tuple of (items on the page, total matching rows)
        """
        count_query = select(func.count()).select_from(query.order_by(None).subquery())
        total = (await self.session.execute(count_query)).scalar_one()

        if sort_by and hasattr(self.model, sort_by):
            column = getattr(self.model, sort_by)
            direction = asc if sort_order == "asc" else desc
            # Secondary key keeps page boundaries stable when values tie
            query = query.order_by(direction(column), direction(self.model.id))

        query = query.offset((page - 1) * limit).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all()), total

    def _apply_filters(self, query: Select, filters: dict) -> Select:
        for field, value in filters.items():
            if hasattr(self.model, field):
                query = query.where(getattr(self.model, field) == value)
        return query
