"""Cattle registry: registration, lookup, parentage and herd statistics."""

import uuid
from datetime import UTC, date, datetime

from loguru import logger
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from farm_manager.core.errors import DuplicateRecordError, InvalidRecordError
from farm_manager.models.cattle import Cattle, CattleStatus, Gender, years_between

_UPDATABLE_FIELDS: frozenset[str] = frozenset(
    {
        "tag_number",
        "name",
        "breed",
        "birth_date",
        "gender",
        "status",
        "weight",
        "photo_url",
        "notes",
        "extra",
        "parent_bull_id",
        "parent_cow_id",
    }
)

_REQUIRED_FIELDS: frozenset[str] = frozenset({"tag_number", "name", "gender", "status"})

_SORT_COLUMNS = {
    "name": Cattle.name,
    "tag_number": Cattle.tag_number,
    "birth_date": Cattle.birth_date,
    "status": Cattle.status,
    "created_at": Cattle.created_at,
}


def _today() -> date:
    return datetime.now(UTC).date()


def years_before(day: date, years: int) -> date:
    """The same calendar day ``years`` earlier; 29 February falls back to the 28th."""
    try:
        return day.replace(year=day.year - years)
    except ValueError:
        return day.replace(year=day.year - years, day=28)


def _duplicate_tag(tag_number: str) -> DuplicateRecordError:
    return DuplicateRecordError(f"Cattle with tag number {tag_number} already exists")


# ---------------------------------------------------------------------------
# Read operations
# ---------------------------------------------------------------------------


async def get_cattle(session: AsyncSession, cattle_id: uuid.UUID) -> Cattle | None:
    """Get a non-deleted animal by ID."""
    result = await session.execute(select(Cattle).where(Cattle.id == cattle_id, Cattle.deleted_at.is_(None)))
    return result.scalar_one_or_none()


async def get_cattle_by_tag(session: AsyncSession, tag_number: str) -> Cattle | None:
    result = await session.execute(
        select(Cattle).where(Cattle.tag_number == tag_number, Cattle.deleted_at.is_(None))
    )
    return result.scalar_one_or_none()


async def tag_exists(session: AsyncSession, tag_number: str) -> bool:
    """Whether a tag number is taken; soft-deleted animals keep their tags."""
    result = await session.execute(select(func.count(Cattle.id)).where(Cattle.tag_number == tag_number))
    return result.scalar_one() > 0


async def list_cattle(
    session: AsyncSession,
    *,
    status: str | None = None,
    gender: str | None = None,
    breed: str | None = None,
    search: str | None = None,
    born_after: date | None = None,
    born_before: date | None = None,
    min_age: int | None = None,
    max_age: int | None = None,
    sort_by: str = "created_at",
    descending: bool = True,
    page: int = 1,
    page_size: int = 20,
    today: date | None = None,
) -> tuple[list[Cattle], int]:
    """List non-deleted cattle with optional filters.

    Args:
        session: Database session.
        status: Exact herd status.
        gender: Exact gender.
        breed: Case-insensitive substring of the breed.
        search: Case-insensitive substring of the name or tag number.
        born_after: Earliest birth date (inclusive).
        born_before: Latest birth date (inclusive).
        min_age: Minimum age in whole years.
        max_age: Maximum age in whole years.
        sort_by: One of name, tag_number, birth_date, status, created_at.
        descending: Sort direction.
        page: Page number (1-based).
        page_size: Items per page.
        today: Reference day for the age filters.

    Returns:
        Tuple of (cattle, total count).
    """
    today = today or _today()
    base_filter = Cattle.deleted_at.is_(None)

    query = select(Cattle).where(base_filter)
    count_query = select(func.count(Cattle.id)).where(base_filter)

    filters = []
    if status is not None:
        filters.append(Cattle.status == status)
    if gender is not None:
        filters.append(Cattle.gender == gender)
    if breed:
        filters.append(Cattle.breed.ilike(f"%{breed}%"))
    if search:
        pattern = f"%{search}%"
        filters.append(or_(Cattle.name.ilike(pattern), Cattle.tag_number.ilike(pattern)))
    if born_after is not None:
        filters.append(Cattle.birth_date >= born_after)
    if born_before is not None:
        filters.append(Cattle.birth_date <= born_before)
    if min_age is not None:
        filters.append(Cattle.birth_date <= years_before(today, min_age))
    if max_age is not None:
        filters.append(Cattle.birth_date > years_before(today, max_age + 1))

    for condition in filters:
        query = query.where(condition)
        count_query = count_query.where(condition)

    total = (await session.execute(count_query)).scalar_one()

    column = _SORT_COLUMNS.get(sort_by, Cattle.created_at)
    order = column.desc() if descending else column.asc()
    offset = (page - 1) * page_size
    result = await session.execute(query.order_by(order, Cattle.tag_number).offset(offset).limit(page_size))
    cattle = list(result.scalars().all())

    logger.info(f"Listed {len(cattle)} cattle (total={total}, page={page})")
    return cattle, total


async def list_offspring(session: AsyncSession, parent: Cattle) -> list[Cattle]:
    """Calves sired or borne by ``parent``, oldest first."""
    result = await session.execute(
        select(Cattle)
        .where(
            or_(Cattle.parent_bull_id == parent.id, Cattle.parent_cow_id == parent.id),
            Cattle.deleted_at.is_(None),
        )
        .order_by(Cattle.birth_date, Cattle.tag_number)
    )
    return list(result.scalars().all())


async def list_milking_cows(session: AsyncSession, today: date | None = None) -> list[Cattle]:
    """Active adult cows that can be milked on ``today``, ordered by name."""
    today = today or _today()
    result = await session.execute(
        select(Cattle)
        .where(
            Cattle.gender == Gender.FEMALE.value,
            Cattle.status == CattleStatus.ACTIVE.value,
            Cattle.birth_date.is_not(None),
            Cattle.deleted_at.is_(None),
        )
        .order_by(Cattle.name, Cattle.tag_number)
    )
    return [cow for cow in result.scalars().all() if cow.can_milk_on(today)]


async def cattle_statistics(session: AsyncSession, today: date | None = None) -> dict:
    """Herd size by status and gender plus the mean age in years.

    Returns:
        Dict with ``total``, ``by_status``, ``by_gender`` and ``average_age``.
    """
    today = today or _today()
    base_filter = Cattle.deleted_at.is_(None)

    total = (await session.execute(select(func.count(Cattle.id)).where(base_filter))).scalar_one()

    status_rows = await session.execute(
        select(Cattle.status, func.count(Cattle.id)).where(base_filter).group_by(Cattle.status)
    )
    by_status = {status: count for status, count in status_rows.all()}

    gender_rows = await session.execute(
        select(Cattle.gender, func.count(Cattle.id)).where(base_filter).group_by(Cattle.gender)
    )
    by_gender = {gender.value: 0 for gender in Gender}
    by_gender.update({gender: count for gender, count in gender_rows.all()})

    birth_rows = await session.execute(
        select(Cattle.birth_date).where(base_filter, Cattle.birth_date.is_not(None))
    )
    ages = [years_between(born, today) for born in birth_rows.scalars().all()]
    average_age = round(sum(ages) / len(ages), 2) if ages else 0.0

    return {"total": total, "by_status": by_status, "by_gender": by_gender, "average_age": average_age}


# ---------------------------------------------------------------------------
# Write operations
# ---------------------------------------------------------------------------


async def _validate_parent(
    session: AsyncSession, parent_id: uuid.UUID, *, role: str, gender: Gender, child_id: uuid.UUID | None = None
) -> None:
    """Check that a referenced parent exists and has the right gender.

    Raises:
        InvalidRecordError: The parent is missing, the animal itself, or of the wrong gender.
    """
    if child_id is not None and parent_id == child_id:
        raise InvalidRecordError("Cattle cannot be its own parent")
    parent = await get_cattle(session, parent_id)
    if parent is None:
        raise InvalidRecordError(f"Parent {role} not found")
    if parent.gender != gender:
        raise InvalidRecordError(f"Parent {role} must be {gender.value}")


async def _validate_parents(session: AsyncSession, data: dict, child_id: uuid.UUID | None = None) -> None:
    if data.get("parent_bull_id") is not None:
        await _validate_parent(session, data["parent_bull_id"], role="bull", gender=Gender.MALE, child_id=child_id)
    if data.get("parent_cow_id") is not None:
        await _validate_parent(session, data["parent_cow_id"], role="cow", gender=Gender.FEMALE, child_id=child_id)


async def create_cattle(session: AsyncSession, *, data: dict) -> Cattle:
    """Register an animal.

    Args:
        session: Database session.
        data: Cattle field values.

    Returns:
        The created Cattle.

    Raises:
        DuplicateRecordError: The tag number is taken.
        InvalidRecordError: A referenced parent is missing or of the wrong gender.
    """
    if await tag_exists(session, data["tag_number"]):
        raise _duplicate_tag(data["tag_number"])
    await _validate_parents(session, data)

    cattle = Cattle(**{field: value for field, value in data.items() if field in _UPDATABLE_FIELDS})
    if cattle.status is None:
        cattle.status = CattleStatus.ACTIVE.value
    session.add(cattle)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise _duplicate_tag(data["tag_number"]) from None
    await session.refresh(cattle)
    logger.info(f"Registered cattle {cattle.id} ({cattle.tag_number})")
    return cattle


async def update_cattle(session: AsyncSession, cattle: Cattle, updates: dict) -> Cattle:
    """Apply a partial update to an animal.

    Raises:
        DuplicateRecordError: The new tag number is taken.
        InvalidRecordError: A new parent is missing, of the wrong gender, or the animal itself.
    """
    updates = {
        field: value
        for field, value in updates.items()
        if field in _UPDATABLE_FIELDS and not (value is None and field in _REQUIRED_FIELDS)
    }
    new_tag = updates.get("tag_number")
    if new_tag and new_tag != cattle.tag_number and await tag_exists(session, new_tag):
        raise _duplicate_tag(new_tag)
    await _validate_parents(session, updates, child_id=cattle.id)

    for field, value in updates.items():
        setattr(cattle, field, value)

    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise _duplicate_tag(new_tag or cattle.tag_number) from None
    await session.refresh(cattle)
    logger.info(f"Updated cattle {cattle.id}: {sorted(updates)}")
    return cattle


async def update_cattle_status(session: AsyncSession, cattle: Cattle, status: CattleStatus) -> Cattle:
    previous = cattle.status
    cattle.status = CattleStatus(status).value
    await session.commit()
    await session.refresh(cattle)
    logger.info(f"Cattle {cattle.id} status {previous} -> {cattle.status}")
    return cattle


async def soft_delete_cattle(session: AsyncSession, cattle: Cattle) -> None:
    """Hide an animal from every lookup; its tag number stays reserved."""
    cattle.deleted_at = datetime.now(UTC)
    await session.commit()
    logger.info(f"Soft-deleted cattle {cattle.id}")
