"""
Medicine Data Access Object.

WHY: A medicine is identified by name, strength and dosage form, so the
duplicate check and the formulary listing share this DAO.
"""

from typing import List, Optional, Tuple
from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.dao.base import LIKE_ESCAPE, BaseDAO, like_pattern
from app.models.medicine import Medicine, MedicineCategory, DentalUse, DosageForm, MedicineStatus


class MedicineDAO(BaseDAO[Medicine]):
    """Data Access Object for the medicine formulary."""

    def __init__(self, session: AsyncSession):
        super().__init__(Medicine, session)

    async def find_duplicate(
        self,
        medicine_name: str,
        strength: str,
        dosage_form: DosageForm,
        exclude_id: Optional[int] = None,
    ) -> Optional[Medicine]:
        """Find a medicine with the same name (any case), strength and dosage form."""
        query = (
            select(Medicine)
            .where(func.lower(Medicine.medicine_name) == medicine_name.strip().lower())
            .where(Medicine.strength == strength.strip())
            .where(Medicine.dosage_form == dosage_form)
        )
        if exclude_id is not None:
            query = query.where(Medicine.id != exclude_id)
        result = await self.session.execute(query.limit(1))
        return result.scalar_one_or_none()

    async def list_medicines(
        self,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        category: Optional[MedicineCategory] = None,
        dental_use: Optional[DentalUse] = None,
        status: Optional[MedicineStatus] = None,
        sort_by: str = "medicine_name",
        sort_order: str = "asc",
    ) -> Tuple[List[Medicine], int]:
        query = select(Medicine)
        if search:
            pattern = like_pattern(search)
            query = query.where(
                or_(
                    Medicine.medicine_name.ilike(pattern, escape=LIKE_ESCAPE),
                    Medicine.generic_name.ilike(pattern, escape=LIKE_ESCAPE),
                    Medicine.brand_name.ilike(pattern, escape=LIKE_ESCAPE),
                    Medicine.description.ilike(pattern, escape=LIKE_ESCAPE),
                )
            )
        if category is not None:
            query = query.where(Medicine.category == category)
        if dental_use is not None:
            query = query.where(Medicine.dental_use == dental_use)
        if status is not None:
            query = query.where(Medicine.status == status)
        return await self.paginate(query, page, limit, sort_by=sort_by, sort_order=sort_order)
