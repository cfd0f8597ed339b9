"""Tests for the FastAPI application factory module."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from farm_manager.core.config import Settings
from farm_manager.core.errors import DuplicateEmailError, FarmManagerError, TokenExpiredError
from farm_manager.main import create_app, lifespan


class TestCreateApp:
    """Tests for create_app."""

    @pytest.fixture
    def app(self, settings: Settings) -> FastAPI:
        return create_app(settings)

    def test_app_is_created(self, app: FastAPI, settings: Settings) -> None:
        assert app.title == "Daily Farm Manager API"
        assert app.state.settings is settings

    def test_app_has_openapi_schema(self, app: FastAPI) -> None:
        client = TestClient(app, raise_server_exceptions=False)
        response = client.get("/openapi.json")
        assert response.status_code == 200
        paths = response.json()["paths"]
        assert "/api/v1/auth/login" in paths
        assert "/api/v1/users" in paths

    def test_settings_from_environment_when_omitted(self, settings: Settings) -> None:
        with patch("farm_manager.main.get_settings", return_value=settings) as mock_get_settings:
            app = create_app()
        mock_get_settings.assert_called_once()
        assert app.state.settings is settings

    def test_domain_error_handler_registered(self, app: FastAPI) -> None:
        assert FarmManagerError in app.exception_handlers
        assert OperationalError in app.exception_handlers


class TestExceptionHandlers:
    """Domain and store errors become JSON responses."""

    @pytest.fixture
    def client(self, settings: Settings) -> TestClient:
        app = create_app(settings)

        @app.get("/boom/duplicate")
        async def duplicate() -> None:
            raise DuplicateEmailError

        @app.get("/boom/expired")
        async def expired() -> None:
            raise TokenExpiredError

        @app.get("/boom/store")
        async def store_down() -> None:
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))

        @app.get("/boom/network")
        async def network_down() -> None:
            raise ConnectionRefusedError("connection refused")

        return TestClient(app, raise_server_exceptions=False)

    def test_conflict(self, client: TestClient) -> None:
        response = client.get("/boom/duplicate")
        assert response.status_code == 409
        assert response.json() == {"detail": "Email already exists", "code": "duplicate_email"}

    def test_unauthorized_carries_bearer_challenge(self, client: TestClient) -> None:
        response = client.get("/boom/expired")
        assert response.status_code == 401
        assert response.json()["code"] == "token_expired"
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_store_failure_is_503(self, client: TestClient) -> None:
        response = client.get("/boom/store")
        assert response.status_code == 503
        assert response.json() == {"detail": "Service temporarily unavailable", "code": "service_unavailable"}

    def test_connection_failure_is_503(self, client: TestClient) -> None:
        response = client.get("/boom/network")
        assert response.status_code == 503
        assert "connection refused" not in response.text


class TestAppLifespan:
    """Tests for lifespan management."""

    @pytest.mark.asyncio
    async def test_lifespan_init_and_dispose(self, settings: Settings) -> None:
        """Lifespan context manager initializes and disposes engine."""
        app = SimpleNamespace(state=SimpleNamespace(settings=settings))

        with (
            patch("farm_manager.main.setup_logging") as mock_setup_logging,
            patch("farm_manager.main.init_engine") as mock_init_engine,
            patch("farm_manager.main.dispose_engine", new_callable=AsyncMock) as mock_dispose,
        ):
            async with lifespan(app):
                mock_setup_logging.assert_called_once_with(settings.log_level, settings.log_dir)
                mock_init_engine.assert_called_once_with(settings.database_url, echo=False, schema=None)
                mock_dispose.assert_not_awaited()

            mock_dispose.assert_awaited_once()
