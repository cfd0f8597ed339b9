"""Cattle registry model with self-referencing parentage."""

import uuid
from datetime import UTC, date, datetime
from enum import StrEnum

from sqlalchemy import JSON, CheckConstraint, Date, ForeignKey, Index, Numeric, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from farm_manager.models.base import Base, SoftDeleteMixin, TimestampMixin, UUIDMixin

# Cows are milked from two years of age
ADULT_AGE_MONTHS = 24


class Gender(StrEnum):
    MALE = "male"
    FEMALE = "female"


class CattleStatus(StrEnum):
    """Herd status of an animal."""

    ACTIVE = "active"
    PREGNANT = "pregnant"
    DRY = "dry"
    SICK = "sick"
    SOLD = "sold"
    DECEASED = "deceased"
    QUARANTINE = "quarantine"


def _today() -> date:
    return datetime.now(UTC).date()


def years_between(born: date, on: date) -> int:
    """Whole years from ``born`` to ``on``."""
    years = on.year - born.year
    if (on.month, on.day) < (born.month, born.day):
        years -= 1
    return years


def months_between(born: date, on: date) -> int:
    """Calendar months from ``born`` to ``on``, ignoring the day of month."""
    return (on.year - born.year) * 12 + (on.month - born.month)


class Cattle(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin):
    """One animal in the herd.

    Attributes:
        tag_number: Unique ear tag; soft-deleted animals keep theirs.
        name: Herd name.
        breed: Free-text breed, e.g. Holstein.
        birth_date: Date of birth, when known.
        gender: One of :class:`Gender`.
        status: One of :class:`CattleStatus`.
        weight: Live weight in kg.
        photo_url: Link to a photo stored elsewhere.
        extra: Free-form attributes such as RFID or secondary tags.
        parent_bull_id: Sire, must be male.
        parent_cow_id: Dam, must be female.
    """

    __tablename__ = "cattle"

    tag_number: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    breed: Mapped[str | None] = mapped_column(String(50), nullable=True)
    birth_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    gender: Mapped[str] = mapped_column(String(10), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=CattleStatus.ACTIVE.value)
    weight: Mapped[float | None] = mapped_column(Numeric(6, 2, asdecimal=False), nullable=True)
    photo_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    extra: Mapped[dict | None] = mapped_column(JSON().with_variant(JSONB, "postgresql"), nullable=True)
    parent_bull_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("cattle.id"), nullable=True)
    parent_cow_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("cattle.id"), nullable=True)

    __table_args__ = (
        CheckConstraint("gender IN ('male', 'female')", name="ck_cattle_gender"),
        CheckConstraint(
            "status IN ('active', 'pregnant', 'dry', 'sick', 'sold', 'deceased', 'quarantine')",
            name="ck_cattle_status",
        ),
        Index("ix_cattle_tag_number", "tag_number", unique=True),
        Index("ix_cattle_status", "status"),
        Index("ix_cattle_breed", "breed"),
    )

    def age_on(self, on: date | None = None) -> int | None:
        if self.birth_date is None:
            return None
        return years_between(self.birth_date, on or _today())

    def age_in_months_on(self, on: date | None = None) -> int | None:
        if self.birth_date is None:
            return None
        return months_between(self.birth_date, on or _today())

    def is_adult_on(self, on: date | None = None) -> bool:
        months = self.age_in_months_on(on)
        return months is not None and months >= ADULT_AGE_MONTHS

    def can_milk_on(self, on: date | None = None) -> bool:
        """Adult, female and in active status."""
        return self.gender == Gender.FEMALE and self.status == CattleStatus.ACTIVE and self.is_adult_on(on)

    @property
    def age(self) -> int | None:
        return self.age_on()

    @property
    def age_in_months(self) -> int | None:
        return self.age_in_months_on()

    @property
    def is_adult(self) -> bool:
        return self.is_adult_on()

    @property
    def can_milk(self) -> bool:
        return self.can_milk_on()
