"""
Clinic service API endpoints.

WHAT: The individual treatments the clinic offers (scaling, root canal,
implant placement), each belonging to a service category.

WHY: Categories show how many services they group. Creating, moving and
deleting services keeps that denormalized service_count in step.
"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.deps import require_admin
from app.core.exceptions import ClinicServiceNotFoundError, ServiceCategoryNotFoundError
from app.db.session import get_db
from app.dao.service_category import ClinicServiceDAO, ServiceCategoryDAO
from app.models.service_category import ClinicService
from app.models.user import User
from app.schemas.common import APIResponse, api_response
from app.schemas.service_category import (
    ClinicServiceCreate,
    ClinicServiceResponse,
    ClinicServiceUpdate,
)
from app.services.audit import AuditService, diff_changes


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/services", tags=["services"])


async def _get_or_404(dao: ClinicServiceDAO, service_id: int) -> ClinicService:
    service = await dao.get_by_id(service_id)
    if not service:
        raise ClinicServiceNotFoundError(message="Service not found", service_id=service_id)
    return service


async def _require_category(db: AsyncSession, category_id: int) -> None:
    if not await ServiceCategoryDAO(db).get_by_id(category_id):
        raise ServiceCategoryNotFoundError(message="Service category not found", category_id=category_id)


@router.get("", response_model=APIResponse, summary="List services")
async def list_services(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    category_id: Optional[int] = Query(default=None, ge=1),
    is_active: Optional[bool] = Query(default=None),
    search: Optional[str] = Query(default=None, max_length=100),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    services, total = await ClinicServiceDAO(db).list_services(
        page=page,
        limit=limit,
        category_id=category_id,
        is_active=is_active,
        search=search.strip() if search else None,
    )
    return api_response(
        {"services": [ClinicServiceResponse.model_validate(s) for s in services]},
        page=page,
        limit=limit,
        total=total,
    )


@router.get("/{service_id}", response_model=APIResponse, summary="Get service")
async def get_service(service_id: int, db: AsyncSession = Depends(get_db)) -> APIResponse:
    service = await _get_or_404(ClinicServiceDAO(db), service_id)
    return api_response({"service": ClinicServiceResponse.model_validate(service)})


@router.post(
    "",
    response_model=APIResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create service",
)
async def create_service(
    data: ClinicServiceCreate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """
    Create a service and bump its category's service_count.

    Raises:
        ServiceCategoryNotFoundError (404): If the category does not exist
    """
    await _require_category(db, data.category_id)

    service = await ClinicServiceDAO(db).create(**data.model_dump())
    await ServiceCategoryDAO(db).adjust_service_count(service.category_id, 1)

    await AuditService(db).log_create(
        current_user, "clinic_service", service.id, {"name": service.name, "category_id": service.category_id}
    )
    logger.info("Clinic service created", extra={"service_id": service.id, "category_id": service.category_id})
    return api_response({"service": ClinicServiceResponse.model_validate(service)}, message="Service created successfully")


@router.put("/{service_id}", response_model=APIResponse, summary="Update service")
async def update_service(
    service_id: int,
    data: ClinicServiceUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """Update a service; moving it to another category moves the count too."""
    dao = ClinicServiceDAO(db)
    service = await _get_or_404(dao, service_id)

    values = data.model_dump(exclude_unset=True)
    previous_category_id = service.category_id
    if "category_id" in values and values["category_id"] != previous_category_id:
        await _require_category(db, values["category_id"])

    changes = diff_changes(service, values)
    for field, value in values.items():
        setattr(service, field, value)
    service = await dao.save(service)

    if service.category_id != previous_category_id:
        category_dao = ServiceCategoryDAO(db)
        await category_dao.adjust_service_count(previous_category_id, -1)
        await category_dao.adjust_service_count(service.category_id, 1)

    if changes:
        await AuditService(db).log_update(current_user, "clinic_service", service.id, changes)
    return api_response({"service": ClinicServiceResponse.model_validate(service)}, message="Service updated successfully")


@router.delete("/{service_id}", response_model=APIResponse, summary="Delete service")
async def delete_service(
    service_id: int,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    dao = ClinicServiceDAO(db)
    service = await _get_or_404(dao, service_id)

    await dao.delete(service.id)
    await ServiceCategoryDAO(db).adjust_service_count(service.category_id, -1)

    await AuditService(db).log_delete(current_user, "clinic_service", service_id, {"name": service.name})
    return api_response(message="Service deleted successfully")
