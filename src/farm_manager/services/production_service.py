"""Milk production log with a recorded -> verified/rejected workflow and reports."""

import calendar
import uuid
from collections import defaultdict
from collections.abc import Sequence
from datetime import UTC, date, datetime

from loguru import logger
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from farm_manager.core.errors import DuplicateRecordError, FarmManagerError, InvalidRecordError, RecordNotFoundError
from farm_manager.models.cattle import Cattle, CattleStatus
from farm_manager.models.production import MilkingSession, Production, ProductionStatus, QualityGrade
from farm_manager.models.user import User
from farm_manager.services import cattle_service

_CREATE_FIELDS: frozenset[str] = frozenset(
    {
        "cattle_id",
        "production_date",
        "session",
        "quantity",
        "fat_content",
        "protein_content",
        "temperature",
        "notes",
        "quality_metrics",
    }
)

# The cow of a record is fixed once entered
_UPDATABLE_FIELDS: frozenset[str] = _CREATE_FIELDS - {"cattle_id"}

_REQUIRED_FIELDS: frozenset[str] = frozenset({"production_date", "session", "quantity"})

_SORT_COLUMNS = {
    "production_date": Production.production_date,
    "session": Production.session,
    "quantity": Production.quantity,
    "fat_content": Production.fat_content,
    "protein_content": Production.protein_content,
    "status": Production.status,
    "created_at": Production.created_at,
}


def _today() -> date:
    return datetime.now(UTC).date()


async def _get_cattle_or_error(session: AsyncSession, cattle_id: uuid.UUID) -> Cattle:
    cattle = await cattle_service.get_cattle(session, cattle_id)
    if cattle is None:
        raise RecordNotFoundError("Cattle not found")
    return cattle


async def _check_duplicate(
    session: AsyncSession,
    cattle: Cattle,
    production_date: date,
    milking_session: str,
    exclude_id: uuid.UUID | None = None,
) -> None:
    """Raise when a live record already covers this cow, day and session."""
    query = select(func.count(Production.id)).where(
        Production.cattle_id == cattle.id,
        Production.production_date == production_date,
        Production.session == milking_session,
        Production.deleted_at.is_(None),
    )
    if exclude_id is not None:
        query = query.where(Production.id != exclude_id)
    if (await session.execute(query)).scalar_one() > 0:
        raise DuplicateRecordError(
            f"Production record already exists for {cattle.name} on {production_date} {milking_session} session"
        )


async def _build_record(session: AsyncSession, data: dict, recorded_by: User, today: date) -> Production:
    """Validate one new entry and return it unsaved.

    Raises:
        RecordNotFoundError: The cow does not exist.
        InvalidRecordError: The cow cannot be milked.
        DuplicateRecordError: The cow already has a record for that session.
    """
    cattle = await _get_cattle_or_error(session, data["cattle_id"])
    if not cattle.can_milk_on(today):
        raise InvalidRecordError(f"Cattle {cattle.name} ({cattle.tag_number}) is not eligible for milk production")
    milking_session = MilkingSession(data["session"]).value
    await _check_duplicate(session, cattle, data["production_date"], milking_session)

    fields = {field: value for field, value in data.items() if field in _CREATE_FIELDS}
    fields["session"] = milking_session
    return Production(**fields, status=ProductionStatus.RECORDED.value, recorded_by=recorded_by.id)


# ---------------------------------------------------------------------------
# Write operations
# ---------------------------------------------------------------------------


async def record_production(
    session: AsyncSession, *, data: dict, recorded_by: User, today: date | None = None
) -> Production:
    """Record one milking.

    Args:
        session: Database session.
        data: Production field values.
        recorded_by: The user entering the record.
        today: Reference day for the milking eligibility check.

    Returns:
        The created Production.
    """
    production = await _build_record(session, data, recorded_by, today or _today())
    session.add(production)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise DuplicateRecordError("Production record already exists for this session") from None
    await session.refresh(production)
    logger.info(
        f"Recorded production {production.id} ({production.quantity} L, cattle={production.cattle_id}, "
        f"by={recorded_by.username})"
    )
    return production


async def bulk_record_production(
    session: AsyncSession, *, records: Sequence[dict], recorded_by: User, today: date | None = None
) -> tuple[list[Production], list[tuple[int, str]]]:
    """Record several milkings, keeping the valid ones.

    Each entry is validated on its own; entries that fail are reported by
    index and the rest are committed together.

    Returns:
        Tuple of (created records, (index, detail) pairs for rejected entries).

    Raises:
        InvalidRecordError: Every entry was rejected.
    """
    today = today or _today()
    created: list[Production] = []
    errors: list[tuple[int, str]] = []

    for index, data in enumerate(records):
        try:
            production = await _build_record(session, data, recorded_by, today)
        except FarmManagerError as e:
            errors.append((index, e.detail))
            continue
        session.add(production)
        await session.flush()
        created.append(production)

    if not created:
        raise InvalidRecordError("All records failed: " + "; ".join(detail for _, detail in errors))

    await session.commit()
    for production in created:
        await session.refresh(production)
    logger.info(f"Bulk recorded {len(created)} productions, {len(errors)} rejected (by={recorded_by.username})")
    return created, errors


async def update_production(session: AsyncSession, production: Production, updates: dict) -> Production:
    """Correct a record that is still awaiting verification.

    Raises:
        InvalidRecordError: The record was already verified or rejected.
        DuplicateRecordError: The new day or session collides with another record.
    """
    if production.status != ProductionStatus.RECORDED:
        raise InvalidRecordError(f"Cannot update production record with status: {production.status}")

    updates = {
        field: value
        for field, value in updates.items()
        if field in _UPDATABLE_FIELDS and not (value is None and field in _REQUIRED_FIELDS)
    }
    if "session" in updates:
        updates["session"] = MilkingSession(updates["session"]).value

    new_date = updates.get("production_date", production.production_date)
    new_session = updates.get("session", production.session)
    if (new_date, new_session) != (production.production_date, production.session):
        cattle = await session.get(Cattle, production.cattle_id)
        await _check_duplicate(session, cattle, new_date, new_session, exclude_id=production.id)

    for field, value in updates.items():
        setattr(production, field, value)

    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise DuplicateRecordError("Production record already exists for this session") from None
    await session.refresh(production)
    logger.info(f"Updated production {production.id}: {sorted(updates)}")
    return production


async def verify_production(
    session: AsyncSession,
    production: Production,
    *,
    status: ProductionStatus,
    verifier: User,
    notes: str | None = None,
    now: datetime | None = None,
) -> Production:
    """Mark a recorded entry as verified or rejected.

    Verification notes are appended to any existing notes.

    Raises:
        InvalidRecordError: The target status is not a verdict, or the record
            already has one.
    """
    status = ProductionStatus(status)
    if status == ProductionStatus.RECORDED:
        raise InvalidRecordError("Verification status must be verified or rejected")
    if production.status != ProductionStatus.RECORDED:
        raise InvalidRecordError(f"Production record is already {production.status}")

    production.status = status.value
    production.verified_by = verifier.id
    production.verified_at = now or datetime.now(UTC)
    if notes:
        production.notes = (
            f"{production.notes}\n\nVerification: {notes}" if production.notes else f"Verification: {notes}"
        )

    await session.commit()
    await session.refresh(production)
    logger.info(f"Production {production.id} {status.value} by {verifier.username}")
    return production


async def soft_delete_production(session: AsyncSession, production: Production) -> None:
    """Delete a record that has not been verified yet.

    Raises:
        InvalidRecordError: The record was already verified or rejected.
    """
    if production.status != ProductionStatus.RECORDED:
        raise InvalidRecordError(f"Cannot delete production record with status: {production.status}")
    production.deleted_at = datetime.now(UTC)
    await session.commit()
    logger.info(f"Soft-deleted production {production.id}")


# ---------------------------------------------------------------------------
# Read operations
# ---------------------------------------------------------------------------


async def get_production(session: AsyncSession, production_id: uuid.UUID) -> Production | None:
    result = await session.execute(
        select(Production).where(Production.id == production_id, Production.deleted_at.is_(None))
    )
    return result.scalar_one_or_none()


async def list_productions(
    session: AsyncSession,
    *,
    milking_session: str | None = None,
    status: str | None = None,
    cattle_id: uuid.UUID | None = None,
    on_date: date | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    min_quantity: float | None = None,
    max_quantity: float | None = None,
    search: str | None = None,
    sort_by: str = "production_date",
    descending: bool = True,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[Production], int]:
    """List non-deleted production records with optional filters.

    Args:
        session: Database session.
        milking_session: Morning or evening.
        status: Workflow status.
        cattle_id: Records of one cow.
        on_date: Records of a single day.
        date_from: Start of date range (inclusive).
        date_to: End of date range (inclusive).
        min_quantity: Minimum litres.
        max_quantity: Maximum litres.
        search: Case-insensitive substring of the cow's name or tag number.
        sort_by: Column to sort by.
        descending: Sort direction.
        page: Page number (1-based).
        page_size: Items per page.

    Returns:
        Tuple of (records, total count).
    """
    base_filter = Production.deleted_at.is_(None)

    query = select(Production).where(base_filter)
    count_query = select(func.count(Production.id)).where(base_filter)

    filters = []
    if milking_session is not None:
        filters.append(Production.session == milking_session)
    if status is not None:
        filters.append(Production.status == status)
    if cattle_id is not None:
        filters.append(Production.cattle_id == cattle_id)
    if on_date is not None:
        filters.append(Production.production_date == on_date)
    if date_from is not None:
        filters.append(Production.production_date >= date_from)
    if date_to is not None:
        filters.append(Production.production_date <= date_to)
    if min_quantity is not None:
        filters.append(Production.quantity >= min_quantity)
    if max_quantity is not None:
        filters.append(Production.quantity <= max_quantity)
    if search:
        pattern = f"%{search}%"
        matching_cattle = select(Cattle.id).where(or_(Cattle.name.ilike(pattern), Cattle.tag_number.ilike(pattern)))
        filters.append(Production.cattle_id.in_(matching_cattle))

    for condition in filters:
        query = query.where(condition)
        count_query = count_query.where(condition)

    total = (await session.execute(count_query)).scalar_one()

    column = _SORT_COLUMNS.get(sort_by, Production.production_date)
    order = column.desc() if descending else column.asc()
    offset = (page - 1) * page_size
    result = await session.execute(
        query.order_by(order, Production.session, Production.created_at).offset(offset).limit(page_size)
    )
    productions = list(result.scalars().all())

    logger.info(f"Listed {len(productions)} productions (total={total}, page={page})")
    return productions, total


async def cattle_history(
    session: AsyncSession,
    cattle_id: uuid.UUID,
    *,
    date_from: date | None = None,
    date_to: date | None = None,
) -> list[Production]:
    """All records of one cow, newest day first and morning before evening.

    Raises:
        RecordNotFoundError: The cow does not exist.
    """
    await _get_cattle_or_error(session, cattle_id)
    query = select(Production).where(Production.cattle_id == cattle_id, Production.deleted_at.is_(None))
    if date_from is not None:
        query = query.where(Production.production_date >= date_from)
    if date_to is not None:
        query = query.where(Production.production_date <= date_to)
    result = await session.execute(query.order_by(Production.production_date.desc(), Production.session.asc()))
    return list(result.scalars().all())


def _summarize_day(day: date, records: Sequence[Production]) -> dict:
    morning = sum(p.quantity for p in records if p.session == MilkingSession.MORNING)
    evening = sum(p.quantity for p in records if p.session == MilkingSession.EVENING)
    total = morning + evening
    cattle_count = len({p.cattle_id for p in records})
    return {
        "date": day,
        "morning": round(morning, 2),
        "evening": round(evening, 2),
        "total": round(total, 2),
        "cattle_count": cattle_count,
        "average_per_cow": round(total / cattle_count, 2) if cattle_count else 0.0,
    }


async def _records_between(session: AsyncSession, date_from: date | None, date_to: date | None) -> list[Production]:
    query = select(Production).where(Production.deleted_at.is_(None))
    if date_from is not None:
        query = query.where(Production.production_date >= date_from)
    if date_to is not None:
        query = query.where(Production.production_date <= date_to)
    return list((await session.execute(query)).scalars().all())


async def daily_summary(session: AsyncSession, day: date) -> dict:
    """Morning, evening and total litres for ``day`` with the per-cow average."""
    return _summarize_day(day, await _records_between(session, day, day))


async def monthly_report(session: AsyncSession, year: int, month: int) -> list[dict]:
    """One daily summary for every day of the month, including days without milkings.

    Raises:
        InvalidRecordError: ``month`` is not 1-12.
    """
    if not 1 <= month <= 12:
        raise InvalidRecordError(f"Invalid month: {month}")
    days_in_month = calendar.monthrange(year, month)[1]
    first, last = date(year, month, 1), date(year, month, days_in_month)

    by_day: dict[date, list[Production]] = defaultdict(list)
    for production in await _records_between(session, first, last):
        by_day[production.production_date].append(production)

    return [_summarize_day(date(year, month, d), by_day[date(year, month, d)]) for d in range(1, days_in_month + 1)]


async def production_statistics(
    session: AsyncSession, *, date_from: date | None = None, date_to: date | None = None
) -> dict:
    """Totals, daily extremes and quality/status distributions over a date range.

    Days without any record do not count towards the daily average or the
    lowest day.  ``active_cattle`` counts the milked cows that are still in
    active status.
    """
    records = await _records_between(session, date_from, date_to)
    if not records:
        return {
            "total_production": 0.0,
            "average_daily": 0.0,
            "average_per_cow": 0.0,
            "highest_daily": 0.0,
            "lowest_daily": 0.0,
            "total_cattle": 0,
            "active_cattle": 0,
            "quality_distribution": {"grade_a": 0, "grade_b": 0, "grade_c": 0, "ungraded": 0},
            "status_distribution": {status.value: 0 for status in ProductionStatus},
        }

    total = sum(p.quantity for p in records)
    daily_totals: dict[date, float] = defaultdict(float)
    for production in records:
        daily_totals[production.production_date] += production.quantity
    cattle_ids = {p.cattle_id for p in records}

    active = (
        await session.execute(
            select(func.count(Cattle.id)).where(
                Cattle.id.in_(cattle_ids),
                Cattle.status == CattleStatus.ACTIVE.value,
                Cattle.deleted_at.is_(None),
            )
        )
    ).scalar_one()

    grades = [p.quality_grade for p in records]
    quality = {
        "grade_a": grades.count(QualityGrade.A),
        "grade_b": grades.count(QualityGrade.B),
        "grade_c": grades.count(QualityGrade.C),
        "ungraded": grades.count(None),
    }
    statuses = {status.value: 0 for status in ProductionStatus}
    for production in records:
        statuses[production.status] += 1

    return {
        "total_production": round(total, 2),
        "average_daily": round(total / len(daily_totals), 2),
        "average_per_cow": round(total / len(cattle_ids), 2),
        "highest_daily": round(max(daily_totals.values()), 2),
        "lowest_daily": round(min(daily_totals.values()), 2),
        "total_cattle": len(cattle_ids),
        "active_cattle": active,
        "quality_distribution": quality,
        "status_distribution": statuses,
    }
