"""Liveness, readiness and build information endpoints (no authentication)."""

import subprocess
from pathlib import Path
from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from farm_manager import __version__
from farm_manager.core.config import Settings, get_settings
from farm_manager.core.database import check_database
from farm_manager.core.dependencies import get_async_session


def _get_git_commit() -> str:
    """Resolve the current git short SHA once at import time."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],  # noqa: S603, S607
            capture_output=True,
            text=True,
            timeout=5,
            cwd=Path(__file__).resolve().parent,
        )
    except (OSError, subprocess.SubprocessError):
        return "unknown"
    return result.stdout.strip() if result.returncode == 0 else "unknown"


_GIT_COMMIT = _get_git_commit()

health_router = APIRouter(tags=["health"])


@health_router.get("/health", status_code=200)
async def health_check() -> dict:
    """Liveness check."""
    return {"status": "healthy"}


@health_router.get("/health/ready", status_code=200, response_model=None)
async def readiness_check(
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> dict | JSONResponse:
    """Readiness check: 503 while the credential store is unreachable."""
    if not await check_database(session):
        return JSONResponse(status_code=503, content={"status": "unavailable", "database": "down"})
    return {"status": "ready", "database": "up"}


@health_router.get("/info", status_code=200)
async def info(
    settings: Annotated[Settings, Depends(get_settings)],
) -> dict:
    """Return application version, git commit, and environment."""
    return {
        "version": __version__,
        "git_commit": _GIT_COMMIT,
        "environment": settings.environment,
    }
