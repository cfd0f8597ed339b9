"""Async HTTP client for the Farm Manager API.

Attaches the stored access token to authenticated calls and translates
error responses into the shared error taxonomy.  A 401 on an authenticated
call is reported to ``on_unauthorized`` (normally
:meth:`RouteGuard.handle_unauthorized`) and raised; the client never
refreshes or retries on its own.
"""

import uuid
from collections.abc import Callable
from datetime import date
from typing import Any

import httpx
from loguru import logger

from farm_manager.client.session_store import SessionStore
from farm_manager.core.errors import (
    ERRORS_BY_CODE,
    ApiError,
    FarmManagerError,
    ServiceUnavailableError,
    UnauthorizedError,
)
from farm_manager.schemas.auth import AuthResponse, UserProfile
from farm_manager.schemas.cattle import CattleCreateRequest, CattleListResponse, CattleResponse
from farm_manager.schemas.production import DailySummary, ProductionCreateRequest, ProductionResponse

DEFAULT_BASE_URL = "http://localhost:3000/api/v1"
DEFAULT_TIMEOUT = 10.0

SERVER_ERROR_MESSAGE = "Server error - please try again later"
NETWORK_ERROR_MESSAGE = "Network error - please check your connection"


def _error_body(response: httpx.Response) -> tuple[str | None, str | None]:
    """Extract ``(detail, code)`` from an error response, tolerating non-JSON bodies."""
    try:
        body = response.json()
    except ValueError:
        return None, None
    if not isinstance(body, dict):
        return None, None
    detail = body.get("detail")
    if isinstance(detail, list) and detail:
        # FastAPI validation errors: report the first problem
        first = detail[0]
        detail = first.get("msg") if isinstance(first, dict) else str(first)
    code = body.get("code")
    return (detail if isinstance(detail, str) else None), (code if isinstance(code, str) else None)


class FarmApiClient:
    """Client for the authentication, cattle and production endpoints.

    Args:
        store: Session store holding the bearer token.
        base_url: API root including the version prefix.
        on_unauthorized: Called once for every 401 on an authenticated call.
        timeout: Request timeout in seconds.
        transport: Optional httpx transport (e.g. ``httpx.ASGITransport`` in tests).
    """

    def __init__(
        self,
        store: SessionStore,
        base_url: str = DEFAULT_BASE_URL,
        on_unauthorized: Callable[[], object] | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.store = store
        self.on_unauthorized = on_unauthorized
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def __aenter__(self) -> "FarmApiClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _auth_headers(self) -> dict[str, str]:
        session = self.store.load()
        if session is None or not session.token:
            return {}
        return {"Authorization": f"Bearer {session.token}"}

    def _raise_for_status(self, response: httpx.Response, *, authenticated: bool) -> None:
        status = response.status_code
        if status < 400:
            return
        detail, code = _error_body(response)

        if status >= 500:
            logger.warning(f"API {response.request.method} {response.request.url.path} failed with {status}")
            raise ServiceUnavailableError(SERVER_ERROR_MESSAGE)

        if status == 401:
            error_cls = ERRORS_BY_CODE.get(code or "", UnauthorizedError)
            error: FarmManagerError = error_cls(detail)
            if authenticated:
                logger.info(f"Session rejected by API on {response.request.url.path}")
                if self.on_unauthorized is not None:
                    self.on_unauthorized()
                if not isinstance(error, UnauthorizedError):
                    error = UnauthorizedError(detail)
            raise error

        mapped_cls = ERRORS_BY_CODE.get(code or "")
        if mapped_cls is not None and mapped_cls.status_code == status:
            raise mapped_cls(detail)
        raise ApiError(status, detail, code)

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        authenticated: bool = True,
    ) -> Any:
        """Send a request and return the decoded JSON body (None for empty responses).

        Raises:
            UnauthorizedError: 401 response.
            ServiceUnavailableError: 5xx response or transport failure.
            ApiError: Any other 4xx response whose code has no dedicated error class.
        """
        headers = self._auth_headers() if authenticated else {}
        try:
            response = await self._client.request(method, path, json=json, params=params, headers=headers)
        except httpx.TransportError as e:
            logger.warning(f"API {method} {path} transport error: {type(e).__name__}")
            raise ServiceUnavailableError(NETWORK_ERROR_MESSAGE) from e

        self._raise_for_status(response, authenticated=authenticated)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def login(self, email_or_username: str, password: str) -> AuthResponse:
        data = await self.request(
            "POST",
            "/auth/login",
            json={"emailOrUsername": email_or_username, "password": password},
            authenticated=False,
        )
        return AuthResponse.model_validate(data)

    async def register(
        self,
        *,
        email: str,
        username: str,
        password: str,
        first_name: str,
        last_name: str,
    ) -> AuthResponse:
        data = await self.request(
            "POST",
            "/auth/register",
            json={
                "email": email,
                "username": username,
                "password": password,
                "firstName": first_name,
                "lastName": last_name,
            },
            authenticated=False,
        )
        return AuthResponse.model_validate(data)

    async def refresh(self, refresh_token: str | None = None) -> AuthResponse:
        """Rotate tokens with the given (or stored) refresh token and persist the new pair."""
        if refresh_token is None:
            session = self.store.load()
            refresh_token = session.refresh_token if session is not None else None
        if not refresh_token:
            raise UnauthorizedError("Invalid refresh token")
        data = await self.request(
            "POST",
            "/auth/refresh",
            json={"refreshToken": refresh_token},
            authenticated=False,
        )
        response = AuthResponse.model_validate(data)
        self.store.update_tokens(response.access_token, response.refresh_token)
        return response

    async def get_profile(self) -> UserProfile:
        return UserProfile.model_validate(await self.request("GET", "/auth/me"))

    async def logout(self) -> None:
        await self.request("POST", "/auth/logout")

    async def forgot_password(self, email: str) -> str:
        data = await self.request("POST", "/auth/forgot-password", json={"email": email}, authenticated=False)
        return data["message"]

    async def reset_password(self, token: str, new_password: str) -> str:
        data = await self.request(
            "POST",
            "/auth/reset-password",
            json={"token": token, "newPassword": new_password},
            authenticated=False,
        )
        return data["message"]

    async def list_cattle(self, **filters: Any) -> CattleListResponse:
        """List cattle; ``filters`` are passed as query parameters (``status``, ``search``, ``page``...)."""
        params = {key: value for key, value in filters.items() if value is not None}
        return CattleListResponse.model_validate(await self.request("GET", "/cattle", params=params))

    async def get_cattle(self, cattle_id: uuid.UUID) -> CattleResponse:
        return CattleResponse.model_validate(await self.request("GET", f"/cattle/{cattle_id}"))

    async def create_cattle(self, cattle: CattleCreateRequest) -> CattleResponse:
        data = await self.request("POST", "/cattle", json=cattle.model_dump(mode="json", by_alias=True))
        return CattleResponse.model_validate(data)

    async def update_cattle_status(self, cattle_id: uuid.UUID, status: str) -> CattleResponse:
        data = await self.request("PATCH", f"/cattle/{cattle_id}/status", json={"status": status})
        return CattleResponse.model_validate(data)

    async def record_production(self, record: ProductionCreateRequest) -> ProductionResponse:
        data = await self.request("POST", "/production", json=record.model_dump(mode="json", by_alias=True))
        return ProductionResponse.model_validate(data)

    async def daily_summary(self, day: date) -> DailySummary:
        return DailySummary.model_validate(await self.request("GET", f"/production/daily-summary/{day.isoformat()}"))
