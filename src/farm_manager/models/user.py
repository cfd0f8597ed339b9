"""User model for authentication and role-based access control."""

from datetime import datetime
from enum import StrEnum

from sqlalchemy import Boolean, CheckConstraint, DateTime, String, true
from sqlalchemy.orm import Mapped, mapped_column

from farm_manager.models.base import Base, SoftDeleteMixin, TimestampMixin, UUIDMixin


class UserRole(StrEnum):
    """Farm staff roles, from most to least privileged."""

    ADMIN = "admin"
    MANAGER = "manager"
    WORKER = "worker"
    VIEWER = "viewer"


# Ranking for role comparison (higher = more privileged)
ROLE_RANK: dict[UserRole, int] = {
    UserRole.ADMIN: 4,
    UserRole.MANAGER: 3,
    UserRole.WORKER: 2,
    UserRole.VIEWER: 1,
}

_ROLE_VALUES = ", ".join(f"'{role.value}'" for role in UserRole)


class User(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin):
    """Farm staff account.

    Attributes:
        email: Unique login e-mail address.
        username: Unique login handle.
        hashed_password: bcrypt hash; the plaintext is never stored.
        role: One of :class:`UserRole`; changed by administrators only.
        is_active: Inactive accounts cannot log in or refresh.
        refresh_token_hash: SHA-256 digest of the currently valid refresh token.
        reset_password_token_hash: SHA-256 digest of a pending password reset token.
        reset_password_expires_at: Expiry of the pending reset token.
    """

    __tablename__ = "users"
    __table_args__ = (CheckConstraint(f"role IN ({_ROLE_VALUES})", name="ck_users_role"),)

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=UserRole.WORKER.value)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    refresh_token_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    reset_password_token_hash: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    reset_password_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def can_authenticate(self) -> bool:
        """Active and not soft-deleted."""
        return self.is_active and self.deleted_at is None
