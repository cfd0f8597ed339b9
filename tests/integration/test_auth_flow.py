"""End-to-end session flow: API client, session store and route guard against the real app."""

from collections.abc import AsyncGenerator

import pytest
from fastapi import FastAPI
from httpx import ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession

from farm_manager.client import FarmApiClient, GuardState, MemoryStorage, Navigation, RouteGuard, SessionStore
from farm_manager.core.errors import InvalidCredentialsError, UnauthorizedError
from farm_manager.models.user import User
from farm_manager.services.user_service import soft_delete_user
from tests.conftest import TEST_PASSWORD

pytestmark = pytest.mark.integration


@pytest.fixture
def store() -> SessionStore:
    return SessionStore(MemoryStorage())


@pytest.fixture
def guard(store: SessionStore) -> RouteGuard:
    return RouteGuard(store)


@pytest.fixture
async def api(app: FastAPI, store: SessionStore, guard: RouteGuard) -> AsyncGenerator[FarmApiClient]:
    async with FarmApiClient(
        store,
        base_url="http://test/api/v1",
        on_unauthorized=guard.handle_unauthorized,
        transport=ASGITransport(app=app),
    ) as client:
        yield client


class TestSessionFlow:
    """Login, protected navigation, server-side revocation and logout."""

    @pytest.mark.asyncio
    async def test_deep_link_survives_login(self, api: FarmApiClient, guard: RouteGuard, sample_user: User) -> None:
        assert guard.navigate("/cattle/7/edit") == Navigation("/login", redirected=True, requested="/cattle/7/edit")

        response = await api.login("alice", TEST_PASSWORD)

        assert guard.complete_login(response) == Navigation("/cattle/7/edit")
        assert guard.state is GuardState.AUTHENTICATED
        profile = await api.get_profile()
        assert profile.id == sample_user.id

    @pytest.mark.asyncio
    async def test_failed_login_keeps_guard_unauthenticated(
        self, api: FarmApiClient, guard: RouteGuard, store: SessionStore, sample_user: User
    ) -> None:
        with pytest.raises(InvalidCredentialsError):
            await api.login("alice", "Wrong!Pass1")
        assert store.load() is None
        assert guard.navigate("/").path == "/login"

    @pytest.mark.asyncio
    async def test_server_rejection_clears_session(
        self,
        api: FarmApiClient,
        guard: RouteGuard,
        store: SessionStore,
        sample_user: User,
        async_session: AsyncSession,
    ) -> None:
        guard.complete_login(await api.login("alice", TEST_PASSWORD))
        guard.navigate("/production")

        await soft_delete_user(async_session, sample_user)

        with pytest.raises(UnauthorizedError):
            await api.get_profile()
        assert store.load() is None
        assert guard.state is GuardState.UNAUTHENTICATED
        assert guard.remembered_path == "/production"

    @pytest.mark.asyncio
    async def test_refresh_keeps_session_usable(
        self,
        api: FarmApiClient,
        store: SessionStore,
        sample_user: User,
    ) -> None:
        store.save(await api.login("alice", TEST_PASSWORD))

        await api.refresh()

        session = store.load()
        assert session is not None
        assert session.is_authenticated is True
        assert (await api.get_profile()).username == "alice"

    @pytest.mark.asyncio
    async def test_logout_ends_session_everywhere(
        self, api: FarmApiClient, guard: RouteGuard, store: SessionStore, sample_user: User
    ) -> None:
        response = await api.login("alice", TEST_PASSWORD)
        guard.complete_login(response)

        await api.logout()
        assert guard.logout() == Navigation("/login")

        assert store.load() is None
        with pytest.raises(UnauthorizedError):
            await api.refresh()
        with pytest.raises(UnauthorizedError, match="Invalid refresh token"):
            await api.refresh(response.refresh_token)
