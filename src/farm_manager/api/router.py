"""Root API router with /api/v1 prefix and middleware registration."""

from fastapi import APIRouter, FastAPI

from farm_manager.api.middleware import RateLimitMiddleware, SecurityHeadersMiddleware, setup_cors
from farm_manager.core.config import Settings


def create_router(settings: Settings) -> APIRouter:
    """Create the root API router with all sub-routers included.

    Args:
        settings: Application settings.

    Returns:
        Configured API router.
    """
    from farm_manager.api.v1.auth import auth_router
    from farm_manager.api.v1.cattle import cattle_router
    from farm_manager.api.v1.health import health_router
    from farm_manager.api.v1.production import production_router
    from farm_manager.api.v1.users import users_router

    root_router = APIRouter(prefix=settings.api_v1_prefix)
    root_router.include_router(health_router)
    root_router.include_router(auth_router)
    root_router.include_router(users_router)
    root_router.include_router(cattle_router)
    root_router.include_router(production_router)

    return root_router


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register all middleware on the FastAPI app.

    Args:
        app: The FastAPI application.
        settings: Application settings.
    """
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_seconds,
        trusted_proxy_headers=settings.trusted_proxy_header_list,
    )
    app.add_middleware(SecurityHeadersMiddleware)
    # Added last so it is outermost and answers preflight requests itself
    setup_cors(app, settings)
