"""User account persistence: creation, lookup, administration and soft delete."""

import uuid
from datetime import UTC, datetime

from loguru import logger
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from farm_manager.core.errors import DuplicateEmailError, DuplicateUsernameError, FarmManagerError
from farm_manager.core.security import hash_password
from farm_manager.models.user import User, UserRole

_UPDATABLE_USER_FIELDS: frozenset[str] = frozenset({"role", "is_active", "first_name", "last_name"})


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def find_conflict(session: AsyncSession, email: str, username: str) -> FarmManagerError | None:
    """Return the error describing which identity is already taken, if any.

    Soft-deleted users still hold their e-mail and username.  E-mail
    conflicts take precedence over username conflicts.
    """
    result = await session.execute(
        select(User.email, User.username).where(or_(User.email == email, User.username == username))
    )
    rows = result.all()
    if any(row.email == email for row in rows):
        return DuplicateEmailError()
    if any(row.username == username for row in rows):
        return DuplicateUsernameError()
    return None


async def conflict_after_integrity_error(session: AsyncSession, email: str, username: str) -> FarmManagerError:
    """Classify a unique-constraint violation after the transaction was rolled back.

    The losing side of a concurrent registration lands here; when the
    winner's row is not visible yet the e-mail constraint is assumed.
    """
    conflict = await find_conflict(session, email, username)
    return conflict or DuplicateEmailError()


async def add_user(
    session: AsyncSession,
    *,
    email: str,
    username: str,
    password: str,
    first_name: str,
    last_name: str,
    role: UserRole = UserRole.WORKER,
) -> User:
    """Insert a user and flush it; the caller owns the commit.

    Args:
        session: The database session.
        email: Login e-mail (normalized to lower case).
        username: Login handle.
        password: Plaintext password, hashed before storage.
        first_name: Given name.
        last_name: Family name.
        role: Initial role.

    Returns:
        The flushed User with its id assigned.

    Raises:
        DuplicateEmailError: The e-mail is already registered.
        DuplicateUsernameError: The username is already registered.
    """
    email = normalize_email(email)
    conflict = await find_conflict(session, email, username)
    if conflict is not None:
        raise conflict

    user = User(
        email=email,
        username=username,
        hashed_password=hash_password(password),
        first_name=first_name,
        last_name=last_name,
        role=UserRole(role).value,
        is_active=True,
    )
    session.add(user)
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        error = await conflict_after_integrity_error(session, email, username)
        raise error from None
    return user


async def create_user(
    session: AsyncSession,
    *,
    email: str,
    username: str,
    password: str,
    first_name: str,
    last_name: str,
    role: UserRole = UserRole.WORKER,
) -> User:
    """Create and commit a user (administrative path, no tokens issued)."""
    user = await add_user(
        session,
        email=email,
        username=username,
        password=password,
        first_name=first_name,
        last_name=last_name,
        role=role,
    )
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        error = await conflict_after_integrity_error(session, normalize_email(email), username)
        raise error from None
    await session.refresh(user)
    logger.info(f"Created user {user.id} ({user.username}, role={user.role})")
    return user


async def get_user(session: AsyncSession, user_id: uuid.UUID) -> User | None:
    """Get a non-deleted user by ID.

    Args:
        session: The database session.
        user_id: The UUID of the user to retrieve.

    Returns:
        The User if found, None otherwise.
    """
    result = await session.execute(select(User).where(User.id == user_id, User.deleted_at.is_(None)))
    return result.scalar_one_or_none()


async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    result = await session.execute(
        select(User).where(User.email == normalize_email(email), User.deleted_at.is_(None))
    )
    return result.scalar_one_or_none()


async def get_user_by_login(session: AsyncSession, email_or_username: str) -> User | None:
    """Look up a non-deleted user by e-mail when the identifier contains ``@``, else by username."""
    identifier = email_or_username.strip()
    if "@" in identifier:
        return await get_user_by_email(session, identifier)
    result = await session.execute(select(User).where(User.username == identifier, User.deleted_at.is_(None)))
    return result.scalar_one_or_none()


async def list_users(session: AsyncSession, page: int = 1, page_size: int = 20) -> tuple[list[User], int]:
    """List non-deleted users with pagination.

    Args:
        session: The database session.
        page: Page number (1-based).
        page_size: Items per page.

    Returns:
        Tuple of (users list, total count).
    """
    count_result = await session.execute(select(func.count(User.id)).where(User.deleted_at.is_(None)))
    total = count_result.scalar_one()

    offset = (page - 1) * page_size
    result = await session.execute(
        select(User)
        .where(User.deleted_at.is_(None))
        .order_by(User.created_at, User.username)
        .offset(offset)
        .limit(page_size)
    )
    return list(result.scalars().all()), total


async def update_user(session: AsyncSession, user: User, updates: dict) -> User:
    """Apply administrative updates to a user.

    Only role, active flag and names are writable; identity fields are
    ignored.  Deactivating a user also revokes their refresh token.

    Args:
        session: The database session.
        user: The User to update.
        updates: Dictionary of field names to new values.

    Returns:
        The updated User.
    """
    for field, value in updates.items():
        if field not in _UPDATABLE_USER_FIELDS or value is None:
            continue
        if field == "role":
            value = UserRole(value).value
        setattr(user, field, value)

    if not user.is_active:
        user.refresh_token_hash = None

    await session.commit()
    await session.refresh(user)
    logger.info(f"Updated user {user.id}: {sorted(k for k in updates if k in _UPDATABLE_USER_FIELDS)}")
    return user


async def soft_delete_user(session: AsyncSession, user: User) -> None:
    """Hide a user from every lookup without removing the row.

    Args:
        session: The database session.
        user: The User to delete.
    """
    user.deleted_at = datetime.now(UTC)
    user.refresh_token_hash = None
    await session.commit()
    logger.info(f"Soft-deleted user {user.id}")
