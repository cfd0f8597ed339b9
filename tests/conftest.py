"""Shared test fixtures for async database, sessions, HTTP client, and auth tokens."""

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import date

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from farm_manager.core.config import Settings
from farm_manager.core.dependencies import get_async_session
from farm_manager.core.security import issue_tokens
from farm_manager.main import create_app
from farm_manager.models.base import Base
from farm_manager.models.cattle import Cattle, Gender
from farm_manager.models.user import User, UserRole
from farm_manager.services.cattle_service import create_cattle
from farm_manager.services.user_service import create_user

TEST_PASSWORD = "Str0ng!Pass"

UserFactory = Callable[..., Awaitable[User]]
CattleFactory = Callable[..., Awaitable[Cattle]]

# Adult on any reference day used by the tests
ADULT_BIRTH_DATE = date(2020, 3, 1)


@pytest.fixture
def settings() -> Settings:
    """Test application settings."""
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        database_url="sqlite+aiosqlite:///:memory:",
        jwt_secret_key="test-access-secret-key-not-for-production",
        jwt_refresh_secret_key="test-refresh-secret-key-not-for-production",
        jwt_algorithm="HS256",
        rate_limit_max_requests=10_000,
    )


@pytest.fixture
async def async_engine() -> AsyncGenerator[AsyncEngine]:
    """Create an in-memory async SQLite engine shared by every session in a test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, expire_on_commit=False)


@pytest.fixture
async def async_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession]:
    """Create a per-test async session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def user_factory(async_session: AsyncSession) -> UserFactory:
    """Create committed users with sensible defaults."""

    async def _create(
        username: str = "alice",
        email: str | None = None,
        role: UserRole = UserRole.WORKER,
        password: str = TEST_PASSWORD,
        **fields: object,
    ) -> User:
        user = await create_user(
            async_session,
            email=email or f"{username}@example.com",
            username=username,
            password=password,
            first_name=username.capitalize(),
            last_name="Tester",
            role=role,
        )
        if fields:
            for key, value in fields.items():
                setattr(user, key, value)
            await async_session.commit()
        return user

    return _create


@pytest.fixture
async def sample_user(user_factory: UserFactory) -> User:
    """A regular worker account."""
    return await user_factory("alice")


@pytest.fixture
async def admin_user(user_factory: UserFactory) -> User:
    """An administrator account."""
    return await user_factory("boss", role=UserRole.ADMIN)


@pytest.fixture
def cattle_factory(async_session: AsyncSession) -> CattleFactory:
    """Register committed cattle; defaults describe an adult, active cow."""

    async def _create(
        tag_number: str = "C-001",
        name: str = "Bessie",
        gender: Gender = Gender.FEMALE,
        birth_date: date | None = ADULT_BIRTH_DATE,
        **fields: object,
    ) -> Cattle:
        return await create_cattle(
            async_session,
            data={"tag_number": tag_number, "name": name, "gender": gender, "birth_date": birth_date, **fields},
        )

    return _create


@pytest.fixture
def worker_token(sample_user: User, settings: Settings) -> str:
    """Access token for the sample worker."""
    return issue_tokens(sample_user, settings).access_token


@pytest.fixture
def admin_token(admin_user: User, settings: Settings) -> str:
    """Access token for the administrator."""
    return issue_tokens(admin_user, settings).access_token


@pytest.fixture
def app(settings: Settings, session_factory: async_sessionmaker[AsyncSession]) -> FastAPI:
    """Application wired to the in-memory test database."""
    application = create_app(settings)

    async def _override_session() -> AsyncGenerator[AsyncSession]:
        async with session_factory() as session:
            yield session

    application.dependency_overrides[get_async_session] = _override_session
    return application


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """HTTP client speaking to the app in-process."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http_client:
        yield http_client
