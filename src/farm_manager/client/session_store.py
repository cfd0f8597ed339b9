"""Persisted client session.

One record per device, stored under ``auth-storage`` as::

    {"state": {"user": {...}, "token": "...", "refreshToken": "...",
               "isAuthenticated": true}, "version": 0}

A record that is not valid JSON or does not match this shape is treated as
absent.
"""

import json

from loguru import logger
from pydantic import Field, ValidationError

from farm_manager.client.storage import Storage
from farm_manager.schemas.auth import AuthResponse, UserProfile
from farm_manager.schemas.common import CamelModel

STORAGE_KEY = "auth-storage"
STORAGE_VERSION = 0


class Session(CamelModel):
    """Client-side session state."""

    user: UserProfile | None = None
    token: str | None = None
    refresh_token: str | None = None
    is_authenticated: bool = False

    @classmethod
    def from_auth_response(cls, response: AuthResponse) -> "Session":
        return cls(
            user=response.user,
            token=response.access_token,
            refresh_token=response.refresh_token,
            is_authenticated=True,
        )


class _Envelope(CamelModel):
    state: Session
    version: int = Field(default=STORAGE_VERSION)


class SessionStore:
    """Read and write the device's session record.

    Args:
        storage: Backend holding the record.
        key: Storage key; defaults to ``auth-storage``.
    """

    def __init__(self, storage: Storage, key: str = STORAGE_KEY) -> None:
        self.storage = storage
        self.key = key

    def save(self, session: Session | AuthResponse) -> Session:
        """Overwrite the stored record with ``session``."""
        if isinstance(session, AuthResponse):
            session = Session.from_auth_response(session)
        envelope = _Envelope(state=session)
        self.storage.set_item(self.key, envelope.model_dump_json(by_alias=True))
        return session

    def load(self) -> Session | None:
        """Return the stored session, or None when absent or unreadable."""
        raw = self.storage.get_item(self.key)
        if raw is None:
            return None
        try:
            envelope = _Envelope.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Discarding malformed session record: {type(e).__name__}")
            return None
        if envelope.version != STORAGE_VERSION:
            logger.warning(f"Discarding session record with unsupported version {envelope.version}")
            return None
        return envelope.state

    def clear(self) -> None:
        """Remove the record entirely."""
        self.storage.remove_item(self.key)

    def update_tokens(self, access_token: str, refresh_token: str) -> Session | None:
        """Replace the token pair of the stored session, keeping the user."""
        session = self.load()
        if session is None:
            return None
        session = session.model_copy(
            update={"token": access_token, "refresh_token": refresh_token, "is_authenticated": True}
        )
        return self.save(session)
