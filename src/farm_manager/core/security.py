"""Token issuance/verification and password hashing.

Uses PyJWT for JWT operations and passlib with bcrypt for password hashing.
Access and refresh tokens are signed with different secrets and carry a
``type`` claim, so a refresh token can never pass as an access token.
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import TYPE_CHECKING

import jwt
from loguru import logger
from passlib.context import CryptContext

from farm_manager.core.errors import TokenExpiredError, TokenMalformedError

if TYPE_CHECKING:
    from farm_manager.core.config import Settings
    from farm_manager.models.user import User

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

_REQUIRED_CLAIMS = ["sub", "exp", "iat", "type"]


class TokenType(StrEnum):
    ACCESS = "access"
    REFRESH = "refresh"


@dataclass(frozen=True)
class TokenClaims:
    """Verified contents of a JWT."""

    subject: str
    token_type: TokenType
    issued_at: datetime
    expires_at: datetime
    email: str | None = None
    username: str | None = None
    role: str | None = None


@dataclass(frozen=True)
class IssuedTokens:
    """Access/refresh pair minted for one user at one instant."""

    access_token: str
    refresh_token: str
    expires_in: int


def hash_password(password: str) -> str:
    """Hash a plaintext password using bcrypt.

    Args:
        password: The plaintext password to hash.

    Returns:
        The bcrypt-hashed password string.
    """
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plaintext password against a bcrypt hash.

    Malformed hashes verify as False rather than raising.

    Args:
        plain_password: The plaintext password to verify.
        hashed_password: The bcrypt hash to verify against.

    Returns:
        True if the password matches, False otherwise.
    """
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        return False


def hash_opaque_token(token: str) -> str:
    """SHA-256 hex digest used to store refresh and reset tokens at rest."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def generate_reset_token() -> str:
    """Return a random 64-character hex token for password resets."""
    return secrets.token_hex(32)


def create_access_token(
    subject: str,
    role: str,
    secret_key: str,
    algorithm: str = "HS256",
    expires_minutes: int = 30,
    *,
    email: str | None = None,
    username: str | None = None,
    now: datetime | None = None,
) -> str:
    """Create a JWT access token.

    Args:
        subject: The token subject (the user id).
        role: The user's role.
        secret_key: Secret key for signing.
        algorithm: JWT signing algorithm.
        expires_minutes: Token expiration in minutes.
        email: Optional e-mail claim.
        username: Optional username claim.
        now: Issue time; defaults to the current UTC time.

    Returns:
        The encoded JWT string.
    """
    issued_at = now or datetime.now(UTC)
    payload: dict[str, object] = {
        "sub": subject,
        "role": role,
        "iat": issued_at,
        "exp": issued_at + timedelta(minutes=expires_minutes),
        "type": TokenType.ACCESS.value,
    }
    if email is not None:
        payload["email"] = email
    if username is not None:
        payload["username"] = username
    return jwt.encode(payload, secret_key, algorithm=algorithm)


def create_refresh_token(
    subject: str,
    secret_key: str,
    algorithm: str = "HS256",
    expires_days: int = 30,
    *,
    now: datetime | None = None,
    token_id: str | None = None,
) -> str:
    """Create a JWT refresh token.

    Args:
        subject: The token subject (the user id).
        secret_key: Secret key for signing; must not be the access-token secret.
        algorithm: JWT signing algorithm.
        expires_days: Token expiration in days.
        now: Issue time; defaults to the current UTC time.
        token_id: Optional ``jti`` claim.

    Returns:
        The encoded JWT string.
    """
    issued_at = now or datetime.now(UTC)
    payload: dict[str, object] = {
        "sub": subject,
        "iat": issued_at,
        "exp": issued_at + timedelta(days=expires_days),
        "type": TokenType.REFRESH.value,
    }
    if token_id is not None:
        payload["jti"] = token_id
    return jwt.encode(payload, secret_key, algorithm=algorithm)


def refresh_token_id(user: "User", issued_at: datetime) -> str:
    """Derive the ``jti`` of the next refresh token for ``user``.

    Chains the digest of the currently stored refresh token with the issue
    time at microsecond precision, so every rotation yields a new token even
    within the same second while issuance stays a pure function of its inputs.
    """
    previous = user.refresh_token_hash or ""
    return hash_opaque_token(f"{user.id}:{previous}:{issued_at.isoformat()}")[:32]


def decode_token(
    token: str,
    secret_key: str,
    algorithm: str = "HS256",
) -> dict:
    """Decode and validate a JWT token with no expiry leeway.

    Args:
        token: The JWT string to decode.
        secret_key: Secret key used for signing.
        algorithm: JWT signing algorithm.

    Returns:
        The decoded token payload.

    Raises:
        jwt.ExpiredSignatureError: If the token has expired.
        jwt.InvalidTokenError: If the token is invalid.
    """
    return jwt.decode(
        token,
        secret_key,
        algorithms=[algorithm],
        leeway=0,
        options={"require": _REQUIRED_CLAIMS},
    )


def issue_tokens(user: "User", settings: "Settings", now: datetime | None = None) -> IssuedTokens:
    """Mint an access/refresh pair for an already authenticated user.

    Pure function of the user's identity, ``now`` and configuration.

    Args:
        user: The authenticated user.
        settings: Application settings (secrets and lifetimes).
        now: Issue time; defaults to the current UTC time.

    Returns:
        The issued token pair and the access lifetime in seconds.
    """
    issued_at = now or datetime.now(UTC)
    subject = str(user.id)
    access_token = create_access_token(
        subject=subject,
        role=user.role,
        secret_key=settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
        expires_minutes=settings.jwt_access_token_expire_minutes,
        email=user.email,
        username=user.username,
        now=issued_at,
    )
    refresh_token = create_refresh_token(
        subject=subject,
        secret_key=settings.jwt_refresh_secret_key,
        algorithm=settings.jwt_algorithm,
        expires_days=settings.jwt_refresh_token_expire_days,
        now=issued_at,
        token_id=refresh_token_id(user, issued_at),
    )
    return IssuedTokens(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=settings.jwt_access_token_expire_minutes * 60,
    )


def verify_token(
    token: str,
    settings: "Settings",
    expected_type: TokenType = TokenType.ACCESS,
) -> TokenClaims:
    """Verify a token's signature, expiry and type.

    Args:
        token: The encoded JWT.
        settings: Application settings.
        expected_type: Which kind of token the caller requires.

    Returns:
        The verified claims.

    Raises:
        TokenExpiredError: The token is well signed but past its expiry.
        TokenMalformedError: Anything else: bad signature, garbage input,
            missing claims or the wrong token type.
    """
    secret = settings.jwt_secret_key if expected_type is TokenType.ACCESS else settings.jwt_refresh_secret_key
    try:
        payload = decode_token(token, secret, settings.jwt_algorithm)
    except jwt.ExpiredSignatureError as e:
        logger.info(f"Rejected expired {expected_type} token")
        raise TokenExpiredError from e
    except jwt.InvalidTokenError as e:
        logger.warning(f"Rejected malformed {expected_type} token: {type(e).__name__}")
        raise TokenMalformedError from e

    if payload.get("type") != expected_type.value or not payload.get("sub"):
        logger.warning(f"Rejected token with type {payload.get('type')!r}, expected {expected_type}")
        raise TokenMalformedError

    return TokenClaims(
        subject=str(payload["sub"]),
        token_type=expected_type,
        issued_at=datetime.fromtimestamp(payload["iat"], tz=UTC),
        expires_at=datetime.fromtimestamp(payload["exp"], tz=UTC),
        email=payload.get("email"),
        username=payload.get("username"),
        role=payload.get("role"),
    )
