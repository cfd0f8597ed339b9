"""Milk production request and response schemas."""

from datetime import date, datetime
from typing import Literal
from uuid import UUID

from pydantic import Field

from farm_manager.models.production import MilkingSession, ProductionStatus, QualityGrade
from farm_manager.schemas.common import CamelModel, PaginationMeta

ProductionSortField = Literal[
    "production_date", "session", "quantity", "fat_content", "protein_content", "status", "created_at"
]


class ProductionCreateRequest(CamelModel):
    """One milking of one cow."""

    cattle_id: UUID
    production_date: date
    session: MilkingSession
    quantity: float = Field(gt=0, le=100, description="Litres")
    fat_content: float | None = Field(default=None, ge=0, le=10)
    protein_content: float | None = Field(default=None, ge=0, le=8)
    temperature: float | None = Field(default=None, ge=0, le=50)
    notes: str | None = None
    quality_metrics: dict | None = None


class BulkProductionRequest(CamelModel):
    records: list[ProductionCreateRequest] = Field(min_length=1, max_length=100)


class ProductionUpdateRequest(CamelModel):
    """Correction of a record that has not been verified yet; the cow cannot change."""

    production_date: date | None = None
    session: MilkingSession | None = None
    quantity: float | None = Field(default=None, gt=0, le=100)
    fat_content: float | None = Field(default=None, ge=0, le=10)
    protein_content: float | None = Field(default=None, ge=0, le=8)
    temperature: float | None = Field(default=None, ge=0, le=50)
    notes: str | None = None
    quality_metrics: dict | None = None


class VerifyProductionRequest(CamelModel):
    status: Literal["verified", "rejected"]
    notes: str | None = Field(default=None, max_length=1000)


class ProductionResponse(CamelModel):
    id: UUID
    cattle_id: UUID
    production_date: date
    session: MilkingSession
    quantity: float
    fat_content: float | None = None
    protein_content: float | None = None
    temperature: float | None = None
    status: ProductionStatus
    notes: str | None = None
    quality_metrics: dict | None = None
    quality_grade: QualityGrade | None = None
    is_high_quality: bool
    milk_value: float
    recorded_by: UUID
    verified_by: UUID | None = None
    verified_at: datetime | None = None
    created_at: datetime
    updated_at: datetime | None = None


class ProductionListResponse(CamelModel):
    items: list[ProductionResponse]
    pagination: PaginationMeta


class BulkRecordError(CamelModel):
    """A rejected entry of a bulk upload, by its position in the request."""

    index: int
    detail: str


class BulkProductionResponse(CamelModel):
    created: list[ProductionResponse]
    errors: list[BulkRecordError]


class DailySummary(CamelModel):
    """Litres per session for one day."""

    date: date
    morning: float
    evening: float
    total: float
    cattle_count: int
    average_per_cow: float


class QualityDistribution(CamelModel):
    grade_a: int = 0
    grade_b: int = 0
    grade_c: int = 0
    ungraded: int = 0


class StatusDistribution(CamelModel):
    recorded: int = 0
    verified: int = 0
    rejected: int = 0


class ProductionStatistics(CamelModel):
    """Totals over a date range; every figure is zero when nothing was recorded."""

    total_production: float = 0
    average_daily: float = 0
    average_per_cow: float = 0
    highest_daily: float = 0
    lowest_daily: float = 0
    total_cattle: int = 0
    active_cattle: int = 0
    quality_distribution: QualityDistribution = Field(default_factory=QualityDistribution)
    status_distribution: StatusDistribution = Field(default_factory=StatusDistribution)
