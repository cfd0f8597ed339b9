"""FastAPI dependency injection for database sessions, auth, and access control.

Provides get_async_session, get_current_user (the API guard) and the
role-based access control factory.
"""

import uuid
from collections.abc import AsyncGenerator, Callable
from typing import Annotated, Any

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from farm_manager.core.config import Settings, get_settings
from farm_manager.core.database import get_session_factory
from farm_manager.core.errors import TokenMalformedError, UnauthorizedError
from farm_manager.core.security import TokenType, verify_token
from farm_manager.models.user import User
from farm_manager.services.user_service import get_user

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/v1/auth/login", auto_error=False)


async def get_async_session() -> AsyncGenerator[AsyncSession]:
    """Yield an async database session with per-request lifecycle."""
    factory = get_session_factory()
    async with factory() as session:
        yield session


async def get_current_user(
    token: Annotated[str | None, Depends(oauth2_scheme)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> User:
    """Verify the bearer access token and return the authenticated user.

    Only tokens signed with the access secret and typed ``access`` pass;
    refresh tokens are rejected.  The user must still exist, be active and
    not be soft-deleted.

    Args:
        token: The JWT bearer token, if the header was sent.
        session: The database session.
        settings: Application settings.

    Returns:
        The authenticated User model instance.

    Raises:
        UnauthorizedError: Missing header or unknown/inactive user.
        TokenExpiredError: The access token is past its expiry.
        TokenMalformedError: The token fails verification for any other reason.
    """
    if not token:
        raise UnauthorizedError("Not authenticated")

    claims = verify_token(token, settings, expected_type=TokenType.ACCESS)
    try:
        user_id = uuid.UUID(claims.subject)
    except ValueError:
        raise TokenMalformedError from None

    user = await get_user(session, user_id)
    if user is None or not user.can_authenticate:
        raise UnauthorizedError("Could not validate credentials")
    return user


def require_role(*roles: str) -> Callable[..., Any]:
    """Factory that creates a dependency requiring specific user roles.

    Args:
        *roles: Allowed role names (e.g., "admin", "manager").

    Returns:
        A FastAPI dependency function that validates the user's role.
    """

    async def role_checker(
        current_user: Annotated[User, Depends(get_current_user)],
    ) -> User:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role '{current_user.role}' does not have access to this resource",
            )
        return current_user

    return role_checker
