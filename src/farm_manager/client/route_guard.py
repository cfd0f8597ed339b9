"""Client-side route protection.

``RouteGuard`` decides, for every navigation, whether a path renders or the
user is sent to the login page.  The persisted session is re-checked on
each visit to a protected path, so a tampered, expired or cleared record
takes effect immediately.

The client never holds the signing secret; a token counts as locally valid
when it decodes as a JWT, is typed ``access`` and has not reached ``exp``.
The server remains the authority and answers 401 for anything else, which
the API client reports back through :meth:`RouteGuard.handle_unauthorized`.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum

import jwt
from loguru import logger

from farm_manager.client.session_store import Session, SessionStore
from farm_manager.models.user import ROLE_RANK, UserRole
from farm_manager.schemas.auth import AuthResponse

LOGIN_PATH = "/login"
HOME_PATH = "/"


class GuardState(StrEnum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    REDIRECTING = "redirecting"


class TokenStatus(StrEnum):
    VALID = "valid"
    EXPIRED = "expired"
    MALFORMED = "malformed"
    MISSING = "missing"


def inspect_token(token: str | None, now: datetime | None = None) -> TokenStatus:
    """Check a token's structure and expiry without verifying its signature.

    Args:
        token: The stored access token.
        now: Reference time; defaults to the current UTC time.

    Returns:
        The token's local status.
    """
    if not token:
        return TokenStatus.MISSING
    try:
        payload = jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError:
        return TokenStatus.MALFORMED

    exp = payload.get("exp")
    if payload.get("type") != "access" or not payload.get("sub") or not isinstance(exp, int | float):
        return TokenStatus.MALFORMED
    current = (now or datetime.now(UTC)).timestamp()
    if current >= exp:
        return TokenStatus.EXPIRED
    return TokenStatus.VALID


@dataclass(frozen=True)
class Route:
    """A route table entry.

    ``pattern`` segments starting with ``:`` match any single segment and
    ``*`` matches every path.
    """

    pattern: str
    protected: bool = True
    min_role: UserRole | None = None

    def matches(self, path: str) -> bool:
        if self.pattern == "*":
            return True
        expected = _segments(self.pattern)
        actual = _segments(path)
        if len(expected) != len(actual):
            return False
        return all(e.startswith(":") or e == a for e, a in zip(expected, actual, strict=True))


@dataclass(frozen=True)
class Navigation:
    """Outcome of a navigation: where the app ends up and whether it was redirected."""

    path: str
    redirected: bool = False
    requested: str | None = None


def _segments(path: str) -> list[str]:
    path = path.split("?", 1)[0].split("#", 1)[0]
    return [s for s in path.split("/") if s]


DEFAULT_ROUTES: tuple[Route, ...] = (
    Route(LOGIN_PATH, protected=False),
    Route("/register", protected=False),
    Route(HOME_PATH),
    Route("/cattle"),
    Route("/cattle/add"),
    Route("/cattle/:id"),
    Route("/cattle/:id/edit"),
    Route("/production"),
    Route("*", protected=False),
)


class RouteGuard:
    """Session-aware navigation state machine.

    Args:
        store: The device's session store.
        routes: Route table, matched first to last.
        clock: Returns the current time; used for local token expiry checks.
    """

    def __init__(
        self,
        store: SessionStore,
        routes: tuple[Route, ...] = DEFAULT_ROUTES,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.routes = routes
        self._clock = clock or (lambda: datetime.now(UTC))
        self.remembered_path: str | None = None
        self.current_path: str | None = None
        self.state = GuardState.AUTHENTICATED if self._valid_session() else GuardState.UNAUTHENTICATED

    def route_for(self, path: str) -> Route:
        for route in self.routes:
            if route.matches(path):
                return route
        return Route(path, protected=False)

    def _valid_session(self) -> Session | None:
        """Return the persisted session if it is usable; clear it if it is present but not."""
        session = self.store.load()
        if session is None:
            # Unreadable records are cleared as well
            self.store.clear()
            return None
        problem = None
        if not session.is_authenticated:
            problem = "not authenticated"
        elif session.user is None:
            problem = "no user"
        else:
            status = inspect_token(session.token, self._clock())
            if status is not TokenStatus.VALID:
                problem = f"token {status}"
        if problem is not None:
            logger.info(f"Clearing persisted session: {problem}")
            self.store.clear()
            return None
        return session

    def _redirect_to_login(self, requested: str | None) -> Navigation:
        self.state = GuardState.REDIRECTING
        if requested is not None:
            self.remembered_path = requested
        self.current_path = LOGIN_PATH
        return Navigation(LOGIN_PATH, redirected=True, requested=requested)

    def navigate(self, path: str) -> Navigation:
        """Visit ``path``, redirecting to the login page when a protected path lacks a valid session."""
        route = self.route_for(path)
        if not route.protected:
            self.current_path = path
            return Navigation(path)

        session = self._valid_session()
        if session is None:
            return self._redirect_to_login(path)

        self.state = GuardState.AUTHENTICATED
        if route.min_role is not None and ROLE_RANK[session.user.role] < ROLE_RANK[route.min_role]:
            logger.info(f"Role {session.user.role} below {route.min_role} for {path}")
            self.current_path = HOME_PATH
            return Navigation(HOME_PATH, redirected=True, requested=path)

        self.current_path = path
        return Navigation(path)

    def complete_login(self, response: AuthResponse | Session) -> Navigation:
        """Persist a fresh session and continue to the remembered path, or home."""
        self.store.save(response)
        self.state = GuardState.AUTHENTICATED
        target = self.remembered_path or HOME_PATH
        self.remembered_path = None
        return self.navigate(target)

    def handle_unauthorized(self) -> Navigation:
        """React to a 401 from the API: drop the session and go to the login page.

        The page the user was on is remembered when it is protected.
        """
        self.store.clear()
        requested = None
        if self.current_path is not None and self.route_for(self.current_path).protected:
            requested = self.current_path
            self.remembered_path = requested
        self.state = GuardState.UNAUTHENTICATED
        self.current_path = LOGIN_PATH
        return Navigation(LOGIN_PATH, redirected=True, requested=requested)

    def logout(self) -> Navigation:
        """Clear the session and go to the login page."""
        self.store.clear()
        self.state = GuardState.UNAUTHENTICATED
        self.remembered_path = None
        self.current_path = LOGIN_PATH
        return Navigation(LOGIN_PATH)
