"""Authentication API endpoints.

POST /auth/login, POST /auth/register, POST /auth/refresh, POST /auth/logout,
GET /auth/me, POST /auth/forgot-password, POST /auth/reset-password.

Domain errors raised by the service layer are turned into responses by the
application-wide exception handlers.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from farm_manager.core.config import Settings, get_settings
from farm_manager.core.dependencies import get_async_session, get_current_user
from farm_manager.models.user import User
from farm_manager.schemas.auth import (
    AuthResponse,
    ForgotPasswordRequest,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
    UserProfile,
)
from farm_manager.schemas.common import ErrorResponse, MessageResponse
from farm_manager.services import auth_service

auth_router = APIRouter(prefix="/auth", tags=["auth"])

_UNAUTHORIZED = {401: {"model": ErrorResponse}}


@auth_router.post(
    "/login",
    response_model=AuthResponse,
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
async def login(
    request: LoginRequest,
    session: Annotated[AsyncSession, Depends(get_async_session)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> AuthResponse:
    """Authenticate with e-mail or username and return a token pair."""
    return await auth_service.login(session, request.email_or_username, request.password, settings)


@auth_router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}},
)
async def register(
    request: RegisterRequest,
    session: Annotated[AsyncSession, Depends(get_async_session)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> AuthResponse:
    """Create a worker account and log it in."""
    return await auth_service.register(session, request, settings)


@auth_router.post("/refresh", response_model=AuthResponse, responses=_UNAUTHORIZED)
async def refresh(
    request: RefreshRequest,
    session: Annotated[AsyncSession, Depends(get_async_session)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> AuthResponse:
    """Rotate the token pair using the current refresh token."""
    return await auth_service.refresh_session(session, request.refresh_token, settings)


@auth_router.post("/logout", response_model=MessageResponse, responses=_UNAUTHORIZED)
async def logout(
    current_user: Annotated[User, Depends(get_current_user)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> MessageResponse:
    """Revoke the caller's refresh token."""
    await auth_service.logout(session, current_user)
    return MessageResponse(message="Logged out successfully")


@auth_router.get("/me", response_model=UserProfile, responses=_UNAUTHORIZED)
async def get_me(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Get the currently authenticated user's profile."""
    return current_user


@auth_router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    request: ForgotPasswordRequest,
    session: Annotated[AsyncSession, Depends(get_async_session)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> MessageResponse:
    """Start a password reset; the reply never reveals whether the account exists."""
    await auth_service.request_password_reset(session, str(request.email), settings)
    return MessageResponse(message=auth_service.FORGOT_PASSWORD_MESSAGE)


@auth_router.post(
    "/reset-password",
    response_model=MessageResponse,
    responses={400: {"model": ErrorResponse}},
)
async def reset_password(
    request: ResetPasswordRequest,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> MessageResponse:
    """Set a new password with a reset token."""
    await auth_service.reset_password(session, request.token, request.new_password)
    return MessageResponse(message="Password has been reset successfully")
