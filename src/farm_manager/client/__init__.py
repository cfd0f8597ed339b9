"""Client-side session handling for the Farm Manager PWA and scripts."""

from farm_manager.client.api_client import FarmApiClient
from farm_manager.client.route_guard import (
    DEFAULT_ROUTES,
    GuardState,
    Navigation,
    Route,
    RouteGuard,
    TokenStatus,
    inspect_token,
)
from farm_manager.client.session_store import Session, SessionStore
from farm_manager.client.storage import JsonFileStorage, MemoryStorage, Storage

__all__ = [
    "DEFAULT_ROUTES",
    "FarmApiClient",
    "GuardState",
    "JsonFileStorage",
    "MemoryStorage",
    "Navigation",
    "Route",
    "RouteGuard",
    "Session",
    "SessionStore",
    "Storage",
    "TokenStatus",
    "inspect_token",
]
