"""
Medicine formulary API endpoints.

WHAT: Staff can browse the formulary; admins maintain it.

WHY: Doctors prescribe from a shared list after procedures. A medicine
is identified by name, strength and dosage form, so the same drug may be
listed once per strength.
"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.deps import get_current_user, require_admin
from app.core.exceptions import MedicineNotFoundError, ResourceAlreadyExistsError
from app.db.session import get_db
from app.dao.medicine import MedicineDAO
from app.models.medicine import DentalUse, Medicine, MedicineCategory, MedicineStatus
from app.models.user import User
from app.schemas.common import APIResponse, api_response
from app.schemas.medicine import (
    MedicineCreate,
    MedicineResponse,
    MedicineSortField,
    MedicineStatusUpdate,
    MedicineUpdate,
)
from app.schemas.service_category import SortOrder
from app.services.audit import AuditService, diff_changes


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/medicines", tags=["medicines"])


async def _get_or_404(dao: MedicineDAO, medicine_id: int) -> Medicine:
    medicine = await dao.get_by_id(medicine_id)
    if not medicine:
        raise MedicineNotFoundError(message="Medicine not found", medicine_id=medicine_id)
    return medicine


async def _ensure_unique(dao: MedicineDAO, name: str, strength: str, dosage_form, exclude_id: Optional[int] = None) -> None:
    duplicate = await dao.find_duplicate(name, strength, dosage_form, exclude_id=exclude_id)
    if duplicate:
        raise ResourceAlreadyExistsError(
            message="Medicine with this name, strength and dosage form already exists",
            resource_type="Medicine",
            existing_id=duplicate.id,
        )


@router.get("", response_model=APIResponse, summary="List medicines")
async def list_medicines(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    search: Optional[str] = Query(default=None, max_length=100),
    category: Optional[MedicineCategory] = Query(default=None),
    dental_use: Optional[DentalUse] = Query(default=None),
    status_filter: Optional[MedicineStatus] = Query(default=None, alias="status"),
    sort_by: MedicineSortField = Query(default=MedicineSortField.MEDICINE_NAME),
    sort_order: SortOrder = Query(default=SortOrder.ASC),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    medicines, total = await MedicineDAO(db).list_medicines(
        page=page,
        limit=limit,
        search=search,
        category=category,
        dental_use=dental_use,
        status=status_filter,
        sort_by=sort_by.value,
        sort_order=sort_order.value,
    )
    return api_response(
        {"medicines": [MedicineResponse.model_validate(m) for m in medicines]},
        page=page,
        limit=limit,
        total=total,
    )


@router.get("/{medicine_id}", response_model=APIResponse, summary="Get medicine")
async def get_medicine(
    medicine_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    medicine = await _get_or_404(MedicineDAO(db), medicine_id)
    return api_response({"medicine": MedicineResponse.model_validate(medicine)})


@router.post(
    "",
    response_model=APIResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add medicine",
)
async def create_medicine(
    data: MedicineCreate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """
    Add a medicine to the formulary (admin only).

    Raises:
        ResourceAlreadyExistsError (409): Same name, strength and dosage form
    """
    dao = MedicineDAO(db)
    await _ensure_unique(dao, data.medicine_name, data.strength, data.dosage_form)

    medicine = await dao.create(**data.model_dump())
    await AuditService(db).log_create(
        current_user, "medicine", medicine.id, {"medicine_name": medicine.medicine_name}
    )
    logger.info("Medicine created", extra={"medicine_id": medicine.id, "created_by": current_user.id})
    return api_response({"medicine": MedicineResponse.model_validate(medicine)}, message="Medicine created successfully")


@router.put("/{medicine_id}", response_model=APIResponse, summary="Update medicine")
async def update_medicine(
    medicine_id: int,
    data: MedicineUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    dao = MedicineDAO(db)
    medicine = await _get_or_404(dao, medicine_id)
    values = data.model_dump(exclude_unset=True)

    if {"medicine_name", "strength", "dosage_form"} & values.keys():
        await _ensure_unique(
            dao,
            values.get("medicine_name", medicine.medicine_name),
            values.get("strength", medicine.strength),
            values.get("dosage_form", medicine.dosage_form),
            exclude_id=medicine.id,
        )

    changes = diff_changes(medicine, values)
    for field, value in values.items():
        setattr(medicine, field, value)
    medicine = await dao.save(medicine)

    if changes:
        await AuditService(db).log_update(current_user, "medicine", medicine.id, changes)
    return api_response({"medicine": MedicineResponse.model_validate(medicine)}, message="Medicine updated successfully")


@router.patch("/{medicine_id}/status", response_model=APIResponse, summary="Change medicine status")
async def update_medicine_status(
    medicine_id: int,
    data: MedicineStatusUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    dao = MedicineDAO(db)
    medicine = await _get_or_404(dao, medicine_id)
    before = medicine.status

    medicine.status = data.status
    medicine.is_active = data.is_active
    medicine = await dao.save(medicine)

    await AuditService(db).log_status_change(current_user, "medicine", medicine.id, before, medicine.status)
    return api_response(
        {"medicine": MedicineResponse.model_validate(medicine)},
        message="Medicine status updated successfully",
    )


@router.delete("/{medicine_id}", response_model=APIResponse, summary="Delete medicine")
async def delete_medicine(
    medicine_id: int,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    dao = MedicineDAO(db)
    medicine = await _get_or_404(dao, medicine_id)
    name = medicine.medicine_name
    await dao.delete(medicine.id)

    await AuditService(db).log_delete(current_user, "medicine", medicine_id, {"medicine_name": name})
    logger.info("Medicine deleted", extra={"medicine_id": medicine_id, "deleted_by": current_user.id})
    return api_response(None, message="Medicine deleted successfully")
