"""Authentication Pydantic v2 schemas.

Request and response bodies for login, registration, token refresh and
password reset.  Wire names are camelCase (``emailOrUsername``,
``accessToken``...) to match the web client.
"""

import re
from datetime import datetime
from uuid import UUID

from pydantic import EmailStr, Field, field_validator

from farm_manager.models.user import UserRole
from farm_manager.schemas.common import CamelModel

_STRONG_PASSWORD = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]")


class LoginRequest(CamelModel):
    """Login with either an e-mail address or a username."""

    email_or_username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=128)


class RegisterRequest(CamelModel):
    """Self-service sign-up."""

    email: EmailStr
    username: str = Field(min_length=3, max_length=100, pattern=r"^[A-Za-z0-9_.-]+$")
    password: str = Field(min_length=8, max_length=128)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)


class RefreshRequest(CamelModel):
    """Token refresh request."""

    refresh_token: str = Field(min_length=1)


class ForgotPasswordRequest(CamelModel):
    email: EmailStr


class ResetPasswordRequest(CamelModel):
    """Password reset with the token delivered out of band."""

    token: str = Field(min_length=1)
    new_password: str = Field(min_length=8, max_length=128)

    @field_validator("new_password")
    @classmethod
    def validate_strength(cls, v: str) -> str:
        if not _STRONG_PASSWORD.match(v):
            msg = (
                "Password must contain at least one uppercase letter, one lowercase letter, "
                "one number, and one special character"
            )
            raise ValueError(msg)
        return v


class UserProfile(CamelModel):
    """Public user fields; never includes credential material."""

    id: UUID
    email: str
    username: str
    first_name: str
    last_name: str
    role: UserRole
    is_active: bool = True
    last_login_at: datetime | None = None


class AuthResponse(CamelModel):
    """Profile plus a freshly issued token pair."""

    user: UserProfile
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = Field(description="Access token expiration in seconds")
