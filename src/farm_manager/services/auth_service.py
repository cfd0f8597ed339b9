"""Authentication service.

Handles login, self-registration, token refresh and rotation, logout and
password reset.  Each operation commits at most once so a failure leaves
the credential store untouched.
"""

import hmac
import uuid
from datetime import UTC, datetime, timedelta

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from farm_manager.core.config import Settings
from farm_manager.core.errors import (
    AccountInactiveError,
    InvalidCredentialsError,
    InvalidResetTokenError,
    TokenExpiredError,
    TokenMalformedError,
    UnauthorizedError,
)
from farm_manager.core.security import (
    TokenType,
    generate_reset_token,
    hash_opaque_token,
    hash_password,
    issue_tokens,
    verify_password,
    verify_token,
)
from farm_manager.models.user import User, UserRole
from farm_manager.schemas.auth import AuthResponse, RegisterRequest, UserProfile
from farm_manager.services import user_service

INVALID_REFRESH_TOKEN = "Invalid refresh token"
FORGOT_PASSWORD_MESSAGE = "If an account exists with this email, a password reset link has been sent"


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def _start_session(user: User, settings: Settings, now: datetime) -> AuthResponse:
    """Issue a token pair and remember the refresh digest on the user (not committed)."""
    tokens = issue_tokens(user, settings, now=now)
    user.refresh_token_hash = hash_opaque_token(tokens.refresh_token)
    return AuthResponse(
        user=UserProfile.model_validate(user),
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        expires_in=tokens.expires_in,
    )


async def login(
    session: AsyncSession,
    email_or_username: str,
    password: str,
    settings: Settings,
    *,
    now: datetime | None = None,
) -> AuthResponse:
    """Authenticate a user and open a session.

    Args:
        session: The database session.
        email_or_username: E-mail when it contains ``@``, otherwise the username.
        password: The plaintext password.
        settings: Application settings.
        now: Login time; defaults to the current UTC time.

    Returns:
        The public profile plus a fresh access/refresh token pair.

    Raises:
        InvalidCredentialsError: Unknown identifier or wrong password.
        AccountInactiveError: Correct password for a deactivated account.
    """
    user = await user_service.get_user_by_login(session, email_or_username)
    if user is None or not verify_password(password, user.hashed_password):
        logger.info("Rejected login with invalid credentials")
        raise InvalidCredentialsError
    if not user.can_authenticate:
        logger.info(f"Rejected login for inactive user {user.id}")
        raise AccountInactiveError

    now = now or datetime.now(UTC)
    user.last_login_at = now
    response = _start_session(user, settings, now)
    await session.commit()
    logger.info(f"User {user.id} logged in")
    return response


async def register(
    session: AsyncSession,
    request: RegisterRequest,
    settings: Settings,
    *,
    now: datetime | None = None,
) -> AuthResponse:
    """Create a worker account and open a session for it.

    The insert, token issuance and commit form one transaction: any failure
    rolls back and no partial user remains.

    Args:
        session: The database session.
        request: Registration data.
        settings: Application settings.
        now: Registration time; defaults to the current UTC time.

    Returns:
        The new user's profile and token pair.

    Raises:
        DuplicateEmailError: The e-mail is already registered.
        DuplicateUsernameError: The username is already registered.
    """
    now = now or datetime.now(UTC)
    email = user_service.normalize_email(str(request.email))
    user = await user_service.add_user(
        session,
        email=email,
        username=request.username,
        password=request.password,
        first_name=request.first_name,
        last_name=request.last_name,
        role=UserRole.WORKER,
    )
    try:
        user.last_login_at = now
        response = _start_session(user, settings, now)
        await session.commit()
    except IntegrityError:
        await session.rollback()
        error = await user_service.conflict_after_integrity_error(session, email, request.username)
        logger.info(f"Registration lost a uniqueness race: {error.code}")
        raise error from None
    except Exception:
        await session.rollback()
        raise
    logger.info(f"Registered user {user.id} ({user.username})")
    return response


async def refresh_session(
    session: AsyncSession,
    refresh_token: str,
    settings: Settings,
    *,
    now: datetime | None = None,
) -> AuthResponse:
    """Exchange a valid refresh token for a new token pair.

    The presented token must be the most recently issued one for its user;
    both tokens are rotated.

    Raises:
        UnauthorizedError: For any invalid, expired, rotated-out or revoked token.
    """
    try:
        claims = verify_token(refresh_token, settings, expected_type=TokenType.REFRESH)
        user_id = uuid.UUID(claims.subject)
    except (TokenExpiredError, TokenMalformedError, ValueError):
        raise UnauthorizedError(INVALID_REFRESH_TOKEN) from None

    user = await user_service.get_user(session, user_id)
    if user is None or not user.can_authenticate or user.refresh_token_hash is None:
        raise UnauthorizedError(INVALID_REFRESH_TOKEN)
    if not hmac.compare_digest(user.refresh_token_hash, hash_opaque_token(refresh_token)):
        logger.warning(f"Rejected rotated-out refresh token for user {user.id}")
        raise UnauthorizedError(INVALID_REFRESH_TOKEN)

    response = _start_session(user, settings, now or datetime.now(UTC))
    await session.commit()
    logger.debug(f"Rotated tokens for user {user.id}")
    return response


async def logout(session: AsyncSession, user: User) -> None:
    """Revoke the user's refresh token; outstanding access tokens expire on their own."""
    user.refresh_token_hash = None
    await session.commit()
    logger.info(f"User {user.id} logged out")


async def request_password_reset(
    session: AsyncSession,
    email: str,
    settings: Settings,
    *,
    now: datetime | None = None,
) -> str | None:
    """Create a one-time password reset token for the account, if it exists.

    Only the token's digest is stored.  Delivering the raw token is the
    caller's job; the HTTP layer never reveals whether the account exists.

    Args:
        session: The database session.
        email: Account e-mail.
        settings: Application settings.
        now: Request time; defaults to the current UTC time.

    Returns:
        The raw reset token, or None when no active account matches.
    """
    user = await user_service.get_user_by_email(session, email)
    if user is None or not user.can_authenticate:
        logger.info("Password reset requested for unknown or inactive account")
        return None

    token = generate_reset_token()
    user.reset_password_token_hash = hash_opaque_token(token)
    user.reset_password_expires_at = (now or datetime.now(UTC)) + timedelta(
        minutes=settings.password_reset_expire_minutes
    )
    await session.commit()
    logger.info(f"Issued password reset token for user {user.id}")
    return token


async def reset_password(
    session: AsyncSession,
    token: str,
    new_password: str,
    *,
    now: datetime | None = None,
) -> None:
    """Set a new password using a reset token.

    Clears the reset token and revokes the refresh token, so other devices
    must log in again once their access tokens expire.

    Raises:
        InvalidResetTokenError: The token is unknown or has expired.
    """
    result = await session.execute(
        select(User).where(
            User.reset_password_token_hash == hash_opaque_token(token),
            User.deleted_at.is_(None),
        )
    )
    user = result.scalar_one_or_none()
    now = now or datetime.now(UTC)
    if user is None or user.reset_password_expires_at is None or _as_utc(user.reset_password_expires_at) <= now:
        raise InvalidResetTokenError

    user.hashed_password = hash_password(new_password)
    user.reset_password_token_hash = None
    user.reset_password_expires_at = None
    user.refresh_token_hash = None
    await session.commit()
    logger.info(f"Password reset for user {user.id}")
