"""User administration endpoints (admin only).

GET /users, PATCH /users/{user_id}, DELETE /users/{user_id}.
"""

import math
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from farm_manager.core.dependencies import get_async_session, require_role
from farm_manager.models.user import User, UserRole
from farm_manager.schemas.common import PaginationMeta, PaginationParams
from farm_manager.schemas.user import UserListResponse, UserResponse, UserUpdateRequest
from farm_manager.services import user_service

users_router = APIRouter(prefix="/users", tags=["users"])

_require_admin = require_role(UserRole.ADMIN)


async def _get_user_or_404(session: AsyncSession, user_id: uuid.UUID) -> User:
    user = await user_service.get_user(session, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@users_router.get("", response_model=UserListResponse)
async def list_users(
    _current_user: Annotated[User, Depends(_require_admin)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    pagination: Annotated[PaginationParams, Depends()],
) -> UserListResponse:
    """List users that have not been deleted."""
    users, total = await user_service.list_users(session, pagination.page, pagination.page_size)
    return UserListResponse(
        items=[UserResponse.model_validate(u) for u in users],
        pagination=PaginationMeta(
            total=total,
            page=pagination.page,
            page_size=pagination.page_size,
            total_pages=max(1, math.ceil(total / pagination.page_size)),
        ),
    )


@users_router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: uuid.UUID,
    request: UserUpdateRequest,
    current_user: Annotated[User, Depends(_require_admin)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> User:
    """Change a user's role, active flag or names."""
    user = await _get_user_or_404(session, user_id)
    updates = request.model_dump(exclude_unset=True)
    new_role = updates.get("role")
    if user.id == current_user.id and (
        updates.get("is_active") is False or (new_role is not None and new_role != UserRole.ADMIN)
    ):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Administrators cannot demote or deactivate themselves",
        )
    return await user_service.update_user(session, user, updates)


@users_router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: uuid.UUID,
    current_user: Annotated[User, Depends(_require_admin)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> None:
    """Soft-delete a user."""
    if user_id == current_user.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot delete your own account")
    user = await _get_user_or_404(session, user_id)
    await user_service.soft_delete_user(session, user)
