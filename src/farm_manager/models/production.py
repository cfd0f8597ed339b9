"""Milk production record: one cow, one day, one milking session."""

import uuid
from datetime import date, datetime
from enum import StrEnum

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from farm_manager.models.base import Base, SoftDeleteMixin, TimestampMixin, UUIDMixin

BASE_MILK_PRICE = 0.50  # per litre
REFERENCE_FAT = 3.5
REFERENCE_PROTEIN = 3.2


class MilkingSession(StrEnum):
    MORNING = "morning"
    EVENING = "evening"


class ProductionStatus(StrEnum):
    """Verification workflow: recorded -> verified | rejected."""

    RECORDED = "recorded"
    VERIFIED = "verified"
    REJECTED = "rejected"


class QualityGrade(StrEnum):
    A = "A"
    B = "B"
    C = "C"


class Production(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin):
    """Milk yield of one cow for one milking session.

    Only ``recorded`` entries may be edited or deleted; verification is a
    one-way step taken by a manager or administrator.

    Attributes:
        cattle_id: The milked cow.
        production_date: Calendar day of the milking.
        session: Morning or evening milking.
        quantity: Litres.
        fat_content: Fat percentage.
        protein_content: Protein percentage.
        temperature: Milk temperature in degrees Celsius.
        quality_metrics: Lab values such as somatic cell count.
        recorded_by: User who entered the record.
        verified_by: User who verified or rejected it.
    """

    __tablename__ = "productions"

    cattle_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("cattle.id"), nullable=False)
    production_date: Mapped[date] = mapped_column(Date, nullable=False)
    session: Mapped[str] = mapped_column(String(10), nullable=False)
    quantity: Mapped[float] = mapped_column(Numeric(6, 2, asdecimal=False), nullable=False)
    fat_content: Mapped[float | None] = mapped_column(Numeric(4, 2, asdecimal=False), nullable=True)
    protein_content: Mapped[float | None] = mapped_column(Numeric(4, 2, asdecimal=False), nullable=True)
    temperature: Mapped[float | None] = mapped_column(Numeric(4, 1, asdecimal=False), nullable=True)
    status: Mapped[str] = mapped_column(String(10), nullable=False, default=ProductionStatus.RECORDED.value)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    quality_metrics: Mapped[dict | None] = mapped_column(JSON().with_variant(JSONB, "postgresql"), nullable=True)
    recorded_by: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    verified_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id"), nullable=True)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("session IN ('morning', 'evening')", name="ck_productions_session"),
        CheckConstraint("status IN ('recorded', 'verified', 'rejected')", name="ck_productions_status"),
        Index("ix_productions_date_session", "production_date", "session"),
        Index("ix_productions_cattle_date", "cattle_id", "production_date"),
        # One live record per cow and milking; deleted rows free the slot
        Index(
            "uq_productions_cattle_date_session",
            "cattle_id",
            "production_date",
            "session",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
            sqlite_where=text("deleted_at IS NULL"),
        ),
    )

    @property
    def quality_grade(self) -> QualityGrade | None:
        """Grade from fat and protein content; None unless both were measured."""
        if not self.fat_content or not self.protein_content:
            return None
        fat_score = 2 if self.fat_content >= 3.5 else 1 if self.fat_content >= 3.0 else 0
        protein_score = 2 if self.protein_content >= 3.2 else 1 if self.protein_content >= 2.8 else 0
        total = fat_score + protein_score
        if total >= 3:
            return QualityGrade.A
        if total >= 2:
            return QualityGrade.B
        return QualityGrade.C

    @property
    def is_high_quality(self) -> bool:
        return self.quality_grade is QualityGrade.A

    @property
    def milk_value(self) -> float:
        """Estimated value with bonuses for fat and protein above the reference levels."""
        fat_bonus = (self.fat_content - REFERENCE_FAT) * 0.02 if self.fat_content else 0.0
        protein_bonus = (self.protein_content - REFERENCE_PROTEIN) * 0.03 if self.protein_content else 0.0
        return round(self.quantity * (BASE_MILK_PRICE + fat_bonus + protein_bonus), 2)
