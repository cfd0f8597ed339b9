"""Administrative user management schemas."""

from datetime import datetime

from pydantic import Field

from farm_manager.models.user import UserRole
from farm_manager.schemas.auth import UserProfile
from farm_manager.schemas.common import CamelModel, PaginationMeta


class UserResponse(UserProfile):
    """User as seen by an administrator."""

    created_at: datetime
    updated_at: datetime | None = None


class UserUpdateRequest(CamelModel):
    """Request to partially update an existing user (all fields optional)."""

    role: UserRole | None = None
    is_active: bool | None = None
    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)


class UserListResponse(CamelModel):
    items: list[UserResponse]
    pagination: PaginationMeta
