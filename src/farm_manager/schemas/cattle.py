"""Cattle registry request and response schemas."""

from datetime import date, datetime
from typing import Literal
from uuid import UUID

from pydantic import Field

from farm_manager.models.cattle import CattleStatus, Gender
from farm_manager.schemas.common import CamelModel, PaginationMeta

CattleSortField = Literal["name", "tag_number", "birth_date", "status", "created_at"]


class CattleCreateRequest(CamelModel):
    """Register a new animal."""

    tag_number: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=100)
    breed: str | None = Field(default=None, max_length=50)
    birth_date: date | None = None
    gender: Gender
    status: CattleStatus = CattleStatus.ACTIVE
    weight: float | None = Field(default=None, gt=0, le=9999.99)
    photo_url: str | None = Field(default=None, max_length=500)
    notes: str | None = None
    extra: dict | None = None
    parent_bull_id: UUID | None = None
    parent_cow_id: UUID | None = None


class CattleUpdateRequest(CamelModel):
    """Partial update; omitted fields keep their value."""

    tag_number: str | None = Field(default=None, min_length=1, max_length=50)
    name: str | None = Field(default=None, min_length=1, max_length=100)
    breed: str | None = Field(default=None, max_length=50)
    birth_date: date | None = None
    gender: Gender | None = None
    status: CattleStatus | None = None
    weight: float | None = Field(default=None, gt=0, le=9999.99)
    photo_url: str | None = Field(default=None, max_length=500)
    notes: str | None = None
    extra: dict | None = None
    parent_bull_id: UUID | None = None
    parent_cow_id: UUID | None = None


class CattleStatusRequest(CamelModel):
    status: CattleStatus


class CattleResponse(CamelModel):
    """An animal with its derived age and milking eligibility."""

    id: UUID
    tag_number: str
    name: str
    breed: str | None = None
    birth_date: date | None = None
    gender: Gender
    status: CattleStatus
    weight: float | None = None
    photo_url: str | None = None
    notes: str | None = None
    extra: dict | None = None
    parent_bull_id: UUID | None = None
    parent_cow_id: UUID | None = None
    age: int | None = None
    age_in_months: int | None = None
    is_adult: bool
    can_milk: bool
    created_at: datetime
    updated_at: datetime | None = None


class CattleListResponse(CamelModel):
    items: list[CattleResponse]
    pagination: PaginationMeta


class TagCheckResponse(CamelModel):
    exists: bool


class GenderCounts(CamelModel):
    male: int = 0
    female: int = 0


class CattleStatistics(CamelModel):
    """Herd composition."""

    total: int
    by_status: dict[str, int]
    by_gender: GenderCounts
    average_age: float = Field(description="Mean age in years of animals with a known birth date")
