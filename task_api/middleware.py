"""
Global middleware: request logging, security headers, CORS and rate limiting.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict, Tuple

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings

logger = logging.getLogger(__name__)

AUTH_LIMITED_PATHS = ("/api/auth/login", "/api/auth/register")

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "Content-Security-Policy": (
        "default-src 'self'; style-src 'self' 'unsafe-inline'; "
        "script-src 'self' 'unsafe-inline'; img-src 'self' data: https:"
    ),
}

# Expired windows are dropped once this many clients are tracked
_PRUNE_THRESHOLD = 10_000


@dataclass
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_after: float

    def headers(self) -> Dict[str, str]:
        return {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(math.ceil(self.reset_after)),
        }


class FixedWindowRateLimiter:
    """Counts requests per key inside fixed windows of ``window_seconds``."""

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: Dict[str, Tuple[float, int]] = {}
        self._lock = Lock()

    def hit(self, key: str) -> RateLimitResult:
        """Record one request for ``key`` and report whether it is allowed."""
        now = self._clock()
        with self._lock:
            if len(self._windows) > _PRUNE_THRESHOLD:
                self._prune(now)

            started, count = self._windows.get(key, (now, 0))
            if now - started >= self.window_seconds:
                started, count = now, 0

            count += 1
            self._windows[key] = (started, count)

        return RateLimitResult(
            allowed=count <= self.max_requests,
            limit=self.max_requests,
            remaining=max(self.max_requests - count, 0),
            reset_after=max(started + self.window_seconds - now, 0.0),
        )

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()

    def _prune(self, now: float) -> None:
        expired = [
            key for key, (started, _) in self._windows.items()
            if now - started >= self.window_seconds
        ]
        for key in expired:
            del self._windows[key]


def client_key(request: Request) -> str:
    """Rate limit key: the client's address."""
    return request.client.host if request.client else "unknown"


def _rate_limited_response(result: RateLimitResult, message: str, error_code: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={"success": False, "message": message, "error": error_code},
        headers=result.headers(),
    )


def register_middleware(app: FastAPI, settings: Settings) -> None:
    """Attach app-level middleware.

    Starlette runs the most recently added middleware first, so the
    effective order is: request logging, security headers, CORS, rate limit.
    """
    if settings.rate_limit_enabled:
        general_limiter = FixedWindowRateLimiter(
            settings.rate_limit_max_requests, settings.rate_limit_window_seconds
        )
        auth_limiter = FixedWindowRateLimiter(
            settings.auth_rate_limit_max_requests, settings.rate_limit_window_seconds
        )
        app.state.rate_limiters = {"general": general_limiter, "auth": auth_limiter}

        @app.middleware("http")
        async def rate_limit(request: Request, call_next):
            key = client_key(request)

            result = general_limiter.hit(key)
            if not result.allowed:
                logger.warning(f"Rate limit exceeded for {key} on {request.url.path}")
                return _rate_limited_response(
                    result,
                    "Too many requests from this IP, please try again later.",
                    "RATE_LIMIT_EXCEEDED",
                )

            if request.url.path in AUTH_LIMITED_PATHS:
                result = auth_limiter.hit(key)
                if not result.allowed:
                    logger.warning(f"Auth rate limit exceeded for {key} on {request.url.path}")
                    return _rate_limited_response(
                        result,
                        "Too many authentication attempts, please try again later.",
                        "AUTH_RATE_LIMIT_EXCEEDED",
                    )

            response = await call_next(request)
            response.headers.update(result.headers())
            return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        return response

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all HTTP requests."""
        start = time.perf_counter()
        client = client_key(request)
        logger.info(f"Request: {request.method} {request.url.path} from {client}")

        response = await call_next(request)

        elapsed = time.perf_counter() - start
        response.headers["X-Process-Time"] = f"{elapsed:.4f}"
        logger.info(
            f"Response: {response.status_code} for {request.method} {request.url.path} "
            f"in {elapsed:.3f}s"
        )
        return response
