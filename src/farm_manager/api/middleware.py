"""CORS, rate limiting, and security headers middleware."""

import time
from collections import defaultdict
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from farm_manager.core.config import Settings

_DEFAULT_TRUSTED_HEADERS = ["CF-Connecting-IP", "X-Forwarded-For", "X-Real-IP"]


def get_client_ip(request: Request, trusted_headers: list[str] | None = None) -> str:
    """Extract the real client IP from proxy headers or direct connection.

    Checks headers in priority order. For X-Forwarded-For, uses the
    leftmost (client-supplied) IP. Falls back to request.client.host.

    Args:
        request: The incoming Starlette request.
        trusted_headers: Ordered list of header names to check.
            Defaults to ["CF-Connecting-IP", "X-Forwarded-For", "X-Real-IP"].

    Returns:
        The client IP address string, or "unknown" if not determinable.
    """
    headers = trusted_headers if trusted_headers is not None else _DEFAULT_TRUSTED_HEADERS

    for header in headers:
        value = request.headers.get(header, "").strip()
        if not value:
            continue
        # X-Forwarded-For can contain multiple IPs: "client, proxy1, proxy2"
        if header.lower() == "x-forwarded-for":
            return value.split(",")[0].strip()
        return value

    if request.client:
        return request.client.host
    return "unknown"


def setup_cors(app: FastAPI, settings: Settings) -> None:
    """Configure CORS middleware on the FastAPI app.

    Args:
        app: The FastAPI application.
        settings: Application settings.
    """
    kwargs: dict[str, Any] = {
        "allow_credentials": True,
        "allow_methods": ["*"],
        "allow_headers": ["*"],
    }
    if settings.cors_origin_list:
        kwargs["allow_origins"] = settings.cors_origin_list
    if settings.cors_origin_regex.strip():
        kwargs["allow_origin_regex"] = settings.cors_origin_regex.strip()
    app.add_middleware(CORSMiddleware, **kwargs)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses.

    Responses under ``/auth/`` carry tokens or profile data and are also
    marked non-cacheable.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        if "/auth/" in request.url.path:
            response.headers["Cache-Control"] = "no-store"
            response.headers["Pragma"] = "no-cache"
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """In-memory sliding-window rate limiter keyed on client IP.

    Uses proxy headers to identify real client IPs behind reverse proxies.
    Paths ending in one of ``exempt_suffixes`` (health checks) are never
    counted.

    Args:
        app: The wrapped ASGI app.
        max_requests: Requests allowed per window per IP.
        window_seconds: Window length in seconds.
        trusted_proxy_headers: Ordered header names for client IP lookup.
        exempt_suffixes: Path suffixes that bypass the limiter.
    """

    def __init__(
        self,
        app: ASGIApp,
        max_requests: int = 10,
        window_seconds: float = 60.0,
        trusted_proxy_headers: list[str] | None = None,
        exempt_suffixes: tuple[str, ...] = ("/health", "/health/ready"),
    ) -> None:
        super().__init__(app)
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.trusted_proxy_headers = trusted_proxy_headers
        self.exempt_suffixes = exempt_suffixes
        self._request_counts: dict[str, list[float]] = defaultdict(list)
        self._last_sweep = 0.0

    def _sweep(self, now: float) -> None:
        """Forget clients with no request inside the window; runs at most once per window."""
        if now - self._last_sweep < self.window_seconds:
            return
        window_start = now - self.window_seconds
        stale = [ip for ip, times in self._request_counts.items() if not times or times[-1] <= window_start]
        for ip in stale:
            del self._request_counts[ip]
        self._last_sweep = now

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Check rate limit and process request.

        Args:
            request: The incoming request.
            call_next: The next middleware/handler.

        Returns:
            Response, or 429 if rate limited.
        """
        if request.url.path.endswith(self.exempt_suffixes):
            return await call_next(request)

        client_ip = get_client_ip(request, self.trusted_proxy_headers)
        now = time.time()
        window_start = now - self.window_seconds
        self._sweep(now)

        self._request_counts[client_ip] = [t for t in self._request_counts[client_ip] if t > window_start]

        if len(self._request_counts[client_ip]) >= self.max_requests:
            logger.warning(f"Rate limit exceeded for {client_ip} on {request.url.path}")
            return Response(
                content='{"detail":"Rate limit exceeded"}',
                status_code=429,
                media_type="application/json",
                headers={"Retry-After": str(int(self.window_seconds))},
            )

        self._request_counts[client_ip].append(now)
        return await call_next(request)
