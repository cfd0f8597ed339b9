"""FastAPI application factory.

Creates the FastAPI app with lifespan management, exception handlers,
and OpenAPI metadata.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy.exc import InterfaceError, OperationalError

from farm_manager import __version__
from farm_manager.core.config import Settings, get_settings
from farm_manager.core.database import dispose_engine, init_engine
from farm_manager.core.errors import FarmManagerError, ServiceUnavailableError
from farm_manager.core.logging import setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifecycle: init engine on startup, dispose on shutdown."""
    settings: Settings = app.state.settings
    setup_logging(settings.log_level, settings.log_dir)
    init_engine(settings.database_url, echo=False, schema=settings.database_schema)
    logger.info(f"Farm Manager API {__version__} starting ({settings.environment})")

    yield

    await dispose_engine()
    logger.info("Farm Manager API stopped")


def _error_response(exc: FarmManagerError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": exc.code},
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Map domain and store errors onto HTTP responses.

    Args:
        app: The FastAPI application.
    """

    @app.exception_handler(FarmManagerError)
    async def farm_manager_error_handler(request: Request, exc: FarmManagerError) -> JSONResponse:
        return _error_response(exc)

    @app.exception_handler(OperationalError)
    @app.exception_handler(InterfaceError)
    async def store_unavailable_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Credential store unavailable during {request.method} {request.url.path}")
        return _error_response(ServiceUnavailableError())

    @app.exception_handler(ConnectionError)
    async def connection_error_handler(request: Request, exc: ConnectionError) -> JSONResponse:
        logger.exception(f"Connection failure during {request.method} {request.url.path}")
        return _error_response(ServiceUnavailableError())


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use; loaded from the environment when omitted.

    Returns:
        Configured FastAPI application instance.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Daily Farm Manager API",
        description="Authentication and session service for the Daily Farm Manager PWA",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.dependency_overrides[get_settings] = lambda: settings

    register_exception_handlers(app)

    from farm_manager.api.router import create_router, setup_middleware

    setup_middleware(app, settings)
    app.include_router(create_router(settings))

    return app
