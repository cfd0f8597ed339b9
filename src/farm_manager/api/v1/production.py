"""Milk production endpoints.

Staff record and correct milkings; managers and administrators verify or
delete them.  Reports are open to every signed-in user.
"""

import math
import uuid
from datetime import date
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from farm_manager.core.dependencies import get_async_session, get_current_user, require_role
from farm_manager.core.errors import RecordNotFoundError
from farm_manager.models.production import MilkingSession, Production, ProductionStatus
from farm_manager.models.user import User, UserRole
from farm_manager.schemas.common import ErrorResponse, PaginationMeta, PaginationParams
from farm_manager.schemas.production import (
    BulkProductionRequest,
    BulkProductionResponse,
    BulkRecordError,
    DailySummary,
    ProductionCreateRequest,
    ProductionListResponse,
    ProductionResponse,
    ProductionSortField,
    ProductionStatistics,
    ProductionUpdateRequest,
    VerifyProductionRequest,
)
from farm_manager.services import production_service

production_router = APIRouter(prefix="/production", tags=["production"])

_require_manager = require_role(UserRole.ADMIN, UserRole.MANAGER)
_require_staff = require_role(UserRole.ADMIN, UserRole.MANAGER, UserRole.WORKER)

_NOT_FOUND = {404: {"model": ErrorResponse}}


async def _get_production_or_404(session: AsyncSession, production_id: uuid.UUID) -> Production:
    production = await production_service.get_production(session, production_id)
    if production is None:
        raise RecordNotFoundError("Production record not found")
    return production


@production_router.post(
    "",
    response_model=ProductionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={**_NOT_FOUND, 400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def record_production(
    request: ProductionCreateRequest,
    current_user: Annotated[User, Depends(_require_staff)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> Production:
    """Record one milking."""
    return await production_service.record_production(session, data=request.model_dump(), recorded_by=current_user)


@production_router.post(
    "/bulk",
    response_model=BulkProductionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
async def bulk_record_production(
    request: BulkProductionRequest,
    current_user: Annotated[User, Depends(_require_staff)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> BulkProductionResponse:
    """Record up to 100 milkings; invalid entries are reported and skipped."""
    created, errors = await production_service.bulk_record_production(
        session, records=[r.model_dump() for r in request.records], recorded_by=current_user
    )
    return BulkProductionResponse(
        created=[ProductionResponse.model_validate(p) for p in created],
        errors=[BulkRecordError(index=index, detail=detail) for index, detail in errors],
    )


@production_router.get("", response_model=ProductionListResponse)
async def list_productions(
    _current_user: Annotated[User, Depends(get_current_user)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    pagination: Annotated[PaginationParams, Depends()],
    milking_session: Annotated[MilkingSession | None, Query(alias="session")] = None,
    status_filter: Annotated[ProductionStatus | None, Query(alias="status")] = None,
    cattle_id: Annotated[uuid.UUID | None, Query(alias="cattleId")] = None,
    on_date: Annotated[date | None, Query(alias="date")] = None,
    date_from: Annotated[date | None, Query(alias="fromDate")] = None,
    date_to: Annotated[date | None, Query(alias="toDate")] = None,
    min_quantity: Annotated[float | None, Query(alias="minQuantity", ge=0)] = None,
    max_quantity: Annotated[float | None, Query(alias="maxQuantity", ge=0)] = None,
    search: str | None = None,
    sort_by: Annotated[ProductionSortField, Query(alias="sortBy")] = "production_date",
    sort_order: Annotated[Literal["asc", "desc"], Query(alias="sortOrder")] = "desc",
) -> ProductionListResponse:
    """List production records with filters, sorting and pagination."""
    productions, total = await production_service.list_productions(
        session,
        milking_session=milking_session,
        status=status_filter,
        cattle_id=cattle_id,
        on_date=on_date,
        date_from=date_from,
        date_to=date_to,
        min_quantity=min_quantity,
        max_quantity=max_quantity,
        search=search,
        sort_by=sort_by,
        descending=sort_order == "desc",
        page=pagination.page,
        page_size=pagination.page_size,
    )
    return ProductionListResponse(
        items=[ProductionResponse.model_validate(p) for p in productions],
        pagination=PaginationMeta(
            total=total,
            page=pagination.page,
            page_size=pagination.page_size,
            total_pages=max(1, math.ceil(total / pagination.page_size)),
        ),
    )


@production_router.get("/statistics", response_model=ProductionStatistics)
async def production_statistics(
    _current_user: Annotated[User, Depends(get_current_user)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    date_from: Annotated[date | None, Query(alias="fromDate")] = None,
    date_to: Annotated[date | None, Query(alias="toDate")] = None,
) -> ProductionStatistics:
    stats = await production_service.production_statistics(session, date_from=date_from, date_to=date_to)
    return ProductionStatistics.model_validate(stats)


@production_router.get("/daily-summary/{day}", response_model=DailySummary)
async def daily_summary(
    day: date,
    _current_user: Annotated[User, Depends(get_current_user)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> DailySummary:
    return DailySummary.model_validate(await production_service.daily_summary(session, day))


@production_router.get(
    "/monthly-report/{year}/{month}", response_model=list[DailySummary], responses={400: {"model": ErrorResponse}}
)
async def monthly_report(
    year: Annotated[int, Path(ge=1900, le=9999)],
    month: int,
    _current_user: Annotated[User, Depends(get_current_user)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> list[DailySummary]:
    """Daily summaries for every day of a month."""
    report = await production_service.monthly_report(session, year, month)
    return [DailySummary.model_validate(day) for day in report]


@production_router.get(
    "/cattle/{cattle_id}/history", response_model=list[ProductionResponse], responses=_NOT_FOUND
)
async def cattle_history(
    cattle_id: uuid.UUID,
    _current_user: Annotated[User, Depends(get_current_user)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    date_from: Annotated[date | None, Query(alias="fromDate")] = None,
    date_to: Annotated[date | None, Query(alias="toDate")] = None,
) -> list[Production]:
    return await production_service.cattle_history(session, cattle_id, date_from=date_from, date_to=date_to)


@production_router.get("/{production_id}", response_model=ProductionResponse, responses=_NOT_FOUND)
async def get_production(
    production_id: uuid.UUID,
    _current_user: Annotated[User, Depends(get_current_user)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> Production:
    return await _get_production_or_404(session, production_id)


@production_router.patch(
    "/{production_id}",
    response_model=ProductionResponse,
    responses={**_NOT_FOUND, 400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def update_production(
    production_id: uuid.UUID,
    request: ProductionUpdateRequest,
    _current_user: Annotated[User, Depends(_require_staff)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> Production:
    """Correct a record that has not been verified yet."""
    production = await _get_production_or_404(session, production_id)
    return await production_service.update_production(session, production, request.model_dump(exclude_unset=True))


@production_router.patch(
    "/{production_id}/verify",
    response_model=ProductionResponse,
    responses={**_NOT_FOUND, 400: {"model": ErrorResponse}},
)
async def verify_production(
    production_id: uuid.UUID,
    request: VerifyProductionRequest,
    current_user: Annotated[User, Depends(_require_manager)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> Production:
    """Verify or reject a recorded milking."""
    production = await _get_production_or_404(session, production_id)
    return await production_service.verify_production(
        session, production, status=ProductionStatus(request.status), verifier=current_user, notes=request.notes
    )


@production_router.delete(
    "/{production_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={**_NOT_FOUND, 400: {"model": ErrorResponse}},
)
async def delete_production(
    production_id: uuid.UUID,
    _current_user: Annotated[User, Depends(_require_manager)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> None:
    production = await _get_production_or_404(session, production_id)
    await production_service.soft_delete_production(session, production)
