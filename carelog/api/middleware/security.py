"""Security middleware for Carelog.

Provides:
- Request ID middleware (X-Request-ID header)
- Rate limiting middleware (in-memory, per principal)
- Security headers middleware (X-Content-Type-Options, etc.)
"""

from __future__ import annotations

import logging
import time
import uuid
from collections import deque

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from carelog.api.version import API_VERSION
from carelog.core.auth import decode_token
from carelog.core.config import Settings, get_settings
from carelog.core.errors import UnauthorizedError

logger = logging.getLogger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Echo the client's X-Request-ID or mint a UUID4, and expose it on request.state."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Care logs hold health data: never cache, never frame."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        settings = get_settings()
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["Cache-Control"] = "no-store"
        response.headers["X-API-Version"] = API_VERSION
        if not settings.is_development:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


def rate_limit_key(request: Request, settings: Settings) -> str:
    """Bucket for a request: the verified token principal, else the socket peer.

    Caregivers on PIN sessions often share one care-home network, so a
    valid bearer token gets its own budget. Unverifiable tokens count
    against the IP.
    """
    scheme, _, token = request.headers.get("authorization", "").partition(" ")
    if scheme.lower() == "bearer" and token:
        try:
            claims = decode_token(token, settings)
        except UnauthorizedError:
            claims = {}
        if claims.get("sub") and claims.get("type"):
            return f"{claims['type']}:{claims['sub']}"
    # Forwarded headers are spoofable
    return f"ip:{request.client.host if request.client else 'unknown'}"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Sliding-log limiter keyed by ``rate_limit_key``, answering 429 with Retry-After.

    State is per process, so N workers admit up to N * max_requests.
    """

    max_tracked_keys = 10_000

    def __init__(
        self,
        app: ASGIApp,
        max_requests: int = 100,
        window_seconds: int = 60,
        settings: Settings | None = None,
    ) -> None:
        super().__init__(app)
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._settings = settings
        self._hits: dict[str, deque[float]] = {}

    def _recent(self, key: str, now: float) -> deque[float]:
        hits = self._hits.setdefault(key, deque())
        while hits and now - hits[0] >= self.window_seconds:
            hits.popleft()
        return hits

    def _forget_idle(self, now: float) -> None:
        idle = [key for key, hits in self._hits.items() if not hits or now - hits[-1] >= self.window_seconds]
        for key in idle:
            del self._hits[key]

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        key = rate_limit_key(request, self._settings or get_settings())
        now = time.monotonic()

        if len(self._hits) > self.max_tracked_keys:
            self._forget_idle(now)

        hits = self._recent(key, now)
        if len(hits) >= self.max_requests:
            retry_after = max(int(self.window_seconds - (now - hits[0])), 1)
            logger.warning("Rate limit exceeded for %s", key)
            return Response(
                content='{"detail":"Rate limit exceeded"}',
                status_code=429,
                media_type="application/json",
                headers={"Retry-After": str(retry_after)},
            )
        hits.append(now)

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.max_requests)
        response.headers["X-RateLimit-Remaining"] = str(self.max_requests - len(hits))
        return response
