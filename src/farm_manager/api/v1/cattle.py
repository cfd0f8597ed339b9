"""Cattle registry endpoints.

Reads are open to every signed-in user; registration, edits and deletion
need a manager or administrator, while workers may also change an
animal's status.
"""

import math
import uuid
from datetime import date
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from farm_manager.core.dependencies import get_async_session, get_current_user, require_role
from farm_manager.core.errors import RecordNotFoundError
from farm_manager.models.cattle import Cattle, CattleStatus, Gender
from farm_manager.models.user import User, UserRole
from farm_manager.schemas.cattle import (
    CattleCreateRequest,
    CattleListResponse,
    CattleResponse,
    CattleSortField,
    CattleStatistics,
    CattleStatusRequest,
    CattleUpdateRequest,
    TagCheckResponse,
)
from farm_manager.schemas.common import ErrorResponse, PaginationMeta, PaginationParams
from farm_manager.services import cattle_service

cattle_router = APIRouter(prefix="/cattle", tags=["cattle"])

_require_manager = require_role(UserRole.ADMIN, UserRole.MANAGER)
_require_staff = require_role(UserRole.ADMIN, UserRole.MANAGER, UserRole.WORKER)

_NOT_FOUND = {404: {"model": ErrorResponse}}


async def _get_cattle_or_404(session: AsyncSession, cattle_id: uuid.UUID) -> Cattle:
    cattle = await cattle_service.get_cattle(session, cattle_id)
    if cattle is None:
        raise RecordNotFoundError("Cattle not found")
    return cattle


@cattle_router.post(
    "",
    response_model=CattleResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def create_cattle(
    request: CattleCreateRequest,
    _current_user: Annotated[User, Depends(_require_manager)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> Cattle:
    """Register an animal."""
    return await cattle_service.create_cattle(session, data=request.model_dump())


@cattle_router.get("", response_model=CattleListResponse)
async def list_cattle(
    _current_user: Annotated[User, Depends(get_current_user)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    pagination: Annotated[PaginationParams, Depends()],
    status_filter: Annotated[CattleStatus | None, Query(alias="status")] = None,
    gender: Gender | None = None,
    breed: str | None = None,
    search: str | None = None,
    born_after: Annotated[date | None, Query(alias="bornAfter")] = None,
    born_before: Annotated[date | None, Query(alias="bornBefore")] = None,
    min_age: Annotated[int | None, Query(alias="minAge", ge=0)] = None,
    max_age: Annotated[int | None, Query(alias="maxAge", ge=0)] = None,
    sort_by: Annotated[CattleSortField, Query(alias="sortBy")] = "created_at",
    sort_order: Annotated[Literal["asc", "desc"], Query(alias="sortOrder")] = "desc",
) -> CattleListResponse:
    """List cattle with filters, sorting and pagination."""
    cattle, total = await cattle_service.list_cattle(
        session,
        status=status_filter,
        gender=gender,
        breed=breed,
        search=search,
        born_after=born_after,
        born_before=born_before,
        min_age=min_age,
        max_age=max_age,
        sort_by=sort_by,
        descending=sort_order == "desc",
        page=pagination.page,
        page_size=pagination.page_size,
    )
    return CattleListResponse(
        items=[CattleResponse.model_validate(c) for c in cattle],
        pagination=PaginationMeta(
            total=total,
            page=pagination.page,
            page_size=pagination.page_size,
            total_pages=max(1, math.ceil(total / pagination.page_size)),
        ),
    )


@cattle_router.get("/statistics", response_model=CattleStatistics)
async def cattle_statistics(
    _current_user: Annotated[User, Depends(get_current_user)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> CattleStatistics:
    return CattleStatistics.model_validate(await cattle_service.cattle_statistics(session))


@cattle_router.get("/milking-cows", response_model=list[CattleResponse])
async def list_milking_cows(
    _current_user: Annotated[User, Depends(get_current_user)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> list[Cattle]:
    """Cows that can be milked today."""
    return await cattle_service.list_milking_cows(session)


@cattle_router.get("/check-tag/{tag_number}", response_model=TagCheckResponse)
async def check_tag(
    tag_number: str,
    _current_user: Annotated[User, Depends(get_current_user)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> TagCheckResponse:
    return TagCheckResponse(exists=await cattle_service.tag_exists(session, tag_number))


@cattle_router.get("/tag/{tag_number}", response_model=CattleResponse, responses=_NOT_FOUND)
async def get_cattle_by_tag(
    tag_number: str,
    _current_user: Annotated[User, Depends(get_current_user)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> Cattle:
    cattle = await cattle_service.get_cattle_by_tag(session, tag_number)
    if cattle is None:
        raise RecordNotFoundError(f"Cattle with tag number {tag_number} not found")
    return cattle


@cattle_router.get("/{cattle_id}", response_model=CattleResponse, responses=_NOT_FOUND)
async def get_cattle(
    cattle_id: uuid.UUID,
    _current_user: Annotated[User, Depends(get_current_user)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> Cattle:
    return await _get_cattle_or_404(session, cattle_id)


@cattle_router.get("/{cattle_id}/offspring", response_model=list[CattleResponse], responses=_NOT_FOUND)
async def list_offspring(
    cattle_id: uuid.UUID,
    _current_user: Annotated[User, Depends(get_current_user)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> list[Cattle]:
    parent = await _get_cattle_or_404(session, cattle_id)
    return await cattle_service.list_offspring(session, parent)


@cattle_router.patch(
    "/{cattle_id}",
    response_model=CattleResponse,
    responses={**_NOT_FOUND, 400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def update_cattle(
    cattle_id: uuid.UUID,
    request: CattleUpdateRequest,
    _current_user: Annotated[User, Depends(_require_manager)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> Cattle:
    """Partially update an animal."""
    cattle = await _get_cattle_or_404(session, cattle_id)
    return await cattle_service.update_cattle(session, cattle, request.model_dump(exclude_unset=True))


@cattle_router.patch("/{cattle_id}/status", response_model=CattleResponse, responses=_NOT_FOUND)
async def update_cattle_status(
    cattle_id: uuid.UUID,
    request: CattleStatusRequest,
    _current_user: Annotated[User, Depends(_require_staff)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> Cattle:
    cattle = await _get_cattle_or_404(session, cattle_id)
    return await cattle_service.update_cattle_status(session, cattle, request.status)


@cattle_router.delete("/{cattle_id}", status_code=status.HTTP_204_NO_CONTENT, responses=_NOT_FOUND)
async def delete_cattle(
    cattle_id: uuid.UUID,
    _current_user: Annotated[User, Depends(_require_manager)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> None:
    """Soft-delete an animal."""
    cattle = await _get_cattle_or_404(session, cattle_id)
    await cattle_service.soft_delete_cattle(session, cattle)
