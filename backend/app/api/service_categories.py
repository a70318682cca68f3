"""
Service category API endpoints.

WHAT: RESTful API for the categories that group clinic services
(e.g. "Orthodontics", "Implants").

WHY: The public website lists active categories and lets visitors search
them; staff manage names, colors, ordering and visibility.

HOW: FastAPI router with:
- Public read endpoints (/active, /search)
- Staff-only management endpoints
- Audit logging for all mutations
"""

import csv
import io
import logging
from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.deps import get_current_user, search_term
from app.core.exceptions import (
    ResourceAlreadyExistsError,
    ResourceInUseError,
    ServiceCategoryNotFoundError,
    ValidationError,
)
from app.db.session import get_db
from app.dao.service_category import ServiceCategoryDAO
from app.models.service_category import ServiceCategory
from app.models.user import User
from app.schemas.common import APIResponse, api_response
from app.schemas.service_category import (
    AnalyticsPeriod,
    BulkUpdateRequest,
    CategorySortField,
    CategoryStatusFilter,
    CheckNameRequest,
    ExportFormat,
    ReorderRequest,
    ServiceCategoryCreate,
    ServiceCategoryResponse,
    ServiceCategoryStatusUpdate,
    ServiceCategoryUpdate,
    SortOrder,
)
from app.services.audit import AuditService, diff_changes


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/service-categories", tags=["service-categories"])

EXPORT_COLUMNS = ["id", "name", "description", "color", "is_active", "position", "service_count", "created_at", "updated_at"]


def _category(category: ServiceCategory) -> ServiceCategoryResponse:
    return ServiceCategoryResponse.model_validate(category)


async def _get_or_404(dao: ServiceCategoryDAO, category_id: int) -> ServiceCategory:
    category = await dao.get_by_id(category_id)
    if not category:
        raise ServiceCategoryNotFoundError(message="Service category not found", category_id=category_id)
    return category


# ============================================================================
# Public endpoints
# ============================================================================


@router.get("/active", response_model=APIResponse, summary="List active categories")
async def list_active_categories(db: AsyncSession = Depends(get_db)) -> APIResponse:
    """Active categories in menu order (position, then name)."""
    categories = await ServiceCategoryDAO(db).get_active()
    return api_response({"categories": [_category(c) for c in categories], "count": len(categories)})


@router.get("/search", response_model=APIResponse, summary="Search categories")
async def search_categories(
    q: str = Depends(search_term),
    limit: int = Query(default=10, ge=1, le=50),
    active_only: bool = Query(default=True),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    categories = await ServiceCategoryDAO(db).search(q, limit=limit, active_only=active_only)
    return api_response({"categories": [_category(c) for c in categories], "count": len(categories)})


# ============================================================================
# Staff endpoints (static paths before /{category_id})
# ============================================================================


@router.get("/statistics", response_model=APIResponse, summary="Category statistics")
async def get_statistics(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    stats = await ServiceCategoryDAO(db).get_statistics()
    return api_response({"statistics": stats})


@router.get("/analytics", response_model=APIResponse, summary="Category creation analytics")
async def get_analytics(
    period: AnalyticsPeriod = Query(default=AnalyticsPeriod.MONTH),
    year: Optional[int] = Query(default=None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """
    Count categories created per day, week or month of a year.

    Raises:
        ValidationError (400): If year is before 2020 or after next year
    """
    current_year = date.today().year
    year = year or current_year
    if year < 2020 or year > current_year + 1:
        raise ValidationError(
            message=f"Year must be between 2020 and {current_year + 1}",
            field="year",
        )
    analytics = await ServiceCategoryDAO(db).get_creation_analytics(period.value, year)
    return api_response({"period": period.value, "year": year, "analytics": analytics})


@router.get("/with-counts", response_model=APIResponse, summary="Categories with live service counts")
async def list_with_counts(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    rows = await ServiceCategoryDAO(db).get_with_live_counts()
    categories = [
        {**_category(category).model_dump(), "service_count": count}
        for category, count in rows
    ]
    return api_response({"categories": categories})


@router.get("/export", summary="Export categories as JSON or CSV")
async def export_categories(
    format: ExportFormat = Query(default=ExportFormat.JSON),
    include_inactive: bool = Query(default=False),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    categories = await ServiceCategoryDAO(db).get_all_for_export(include_inactive)
    rows = [_category(c).model_dump(mode="json") for c in categories]

    if format == ExportFormat.CSV:
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=EXPORT_COLUMNS, extrasaction="ignore")
        writer.writeheader()
        writer.writerows(rows)
        return Response(
            content=buffer.getvalue(),
            media_type="text/csv",
            headers={"Content-Disposition": 'attachment; filename="service-categories.csv"'},
        )

    return api_response({"categories": rows, "count": len(rows)})


@router.post("/check-name", response_model=APIResponse, summary="Check category name availability")
async def check_name(
    data: CheckNameRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    existing = await ServiceCategoryDAO(db).get_by_name(data.name, exclude_id=data.exclude_id)
    available = existing is None
    return api_response(
        {"available": available},
        message="Name is available" if available else "Name is already taken",
    )


@router.post("/bulk-update", response_model=APIResponse, summary="Update many categories")
async def bulk_update(
    data: BulkUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """
    Apply is_active and/or color to several categories at once.

    Returns matched_count (ids that exist) and modified_count (rows whose
    values actually changed).
    """
    values = data.update_data.model_dump(exclude_none=True)
    matched, modified = await ServiceCategoryDAO(db).bulk_update(data.category_ids, values)

    await AuditService(db).log_bulk_operation(
        current_user, "service_category", "bulk_update", data.category_ids, modified
    )
    logger.info(
        "Service categories bulk updated",
        extra={"matched_count": matched, "modified_count": modified, "fields": list(values)},
    )
    return api_response(
        {"matched_count": matched, "modified_count": modified},
        message=f"{modified} categories updated successfully",
    )


@router.post("/reorder", response_model=APIResponse, summary="Reorder categories")
async def reorder_categories(
    data: ReorderRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    dao = ServiceCategoryDAO(db)
    updated = 0
    not_found = []
    for index, item in enumerate(data.category_order):
        position = item.position if item.position is not None else index + 1
        if await dao.set_position(item.category_id, position):
            updated += 1
        else:
            not_found.append(item.category_id)

    await AuditService(db).log_bulk_operation(
        current_user,
        "service_category",
        "reorder",
        [item.category_id for item in data.category_order],
        updated,
    )
    return api_response(
        {"updated_count": updated, "not_found": not_found},
        message="Categories reordered successfully",
    )


@router.get("", response_model=APIResponse, summary="List categories")
async def list_categories(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    search: Optional[str] = Query(default=None, max_length=100),
    status_filter: CategoryStatusFilter = Query(default=CategoryStatusFilter.ALL, alias="status"),
    sort_by: CategorySortField = Query(default=CategorySortField.CREATED_AT),
    sort_order: SortOrder = Query(default=SortOrder.DESC),
    include_inactive: bool = Query(default=True),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    categories, total = await ServiceCategoryDAO(db).list_categories(
        page=page,
        limit=limit,
        search=search.strip() if search else None,
        status=status_filter.value,
        include_inactive=include_inactive,
        sort_by=sort_by.value,
        sort_order=sort_order.value,
    )
    return api_response(
        {"categories": [_category(c) for c in categories]},
        page=page,
        limit=limit,
        total=total,
    )


@router.post(
    "",
    response_model=APIResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create category",
)
async def create_category(
    data: ServiceCategoryCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """
    Create a service category.

    Raises:
        ResourceAlreadyExistsError (409): If the name is taken (any case)
    """
    dao = ServiceCategoryDAO(db)
    if await dao.get_by_name(data.name):
        raise ResourceAlreadyExistsError(
            message="Service category with this name already exists",
            resource_type="ServiceCategory",
            name=data.name,
        )

    category = await dao.create(**data.model_dump())
    await AuditService(db).log_create(current_user, "service_category", category.id, {"name": category.name})
    logger.info("Service category created", extra={"category_id": category.id, "category_name": category.name})

    return api_response({"category": _category(category)}, message="Service Category created successfully.")


@router.get("/{category_id}", response_model=APIResponse, summary="Get category")
async def get_category(
    category_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    category = await _get_or_404(ServiceCategoryDAO(db), category_id)
    return api_response({"category": _category(category)})


@router.put("/{category_id}", response_model=APIResponse, summary="Update category")
async def update_category(
    category_id: int,
    data: ServiceCategoryUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """
    Update a service category.

    Raises:
        ServiceCategoryNotFoundError (404): If the category does not exist
        ResourceAlreadyExistsError (409): If the new name clashes
    """
    dao = ServiceCategoryDAO(db)
    category = await _get_or_404(dao, category_id)

    values = data.model_dump(exclude_unset=True)
    if "name" in values and await dao.get_by_name(values["name"], exclude_id=category.id):
        raise ResourceAlreadyExistsError(
            message="Service category with this name already exists",
            resource_type="ServiceCategory",
            name=values["name"],
        )

    changes = diff_changes(category, values)
    for field, value in values.items():
        setattr(category, field, value)
    category = await dao.save(category)

    if changes:
        await AuditService(db).log_update(current_user, "service_category", category.id, changes)
    return api_response({"category": _category(category)}, message="Service Category updated successfully.")


@router.patch("/{category_id}/status", response_model=APIResponse, summary="Activate or deactivate category")
async def update_category_status(
    category_id: int,
    data: ServiceCategoryStatusUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    dao = ServiceCategoryDAO(db)
    category = await _get_or_404(dao, category_id)

    before = category.is_active
    category.is_active = data.is_active
    category = await dao.save(category)
    await AuditService(db).log_status_change(
        current_user, "service_category", category.id, before, category.is_active, data.reason
    )

    state = "activated" if category.is_active else "deactivated"
    return api_response({"category": _category(category)}, message=f"Service Category {state} successfully.")


@router.delete("/{category_id}", response_model=APIResponse, summary="Delete category")
async def delete_category(
    category_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """
    Delete a service category.

    Raises:
        ResourceInUseError (400): If services still belong to the category
    """
    dao = ServiceCategoryDAO(db)
    category = await _get_or_404(dao, category_id)

    if await dao.has_services(category):
        raise ResourceInUseError(
            message="Cannot delete category with associated services",
            category_id=category.id,
            service_count=category.service_count,
        )

    await dao.delete(category.id)
    await AuditService(db).log_delete(current_user, "service_category", category_id, {"name": category.name})
    logger.info("Service category deleted", extra={"category_id": category_id})
    return api_response(message="Service Category deleted successfully.")
