"""Rate limiting for the enhancement service.

Uses Upstash's serverless Redis when it is configured, so limits hold across
replicas. Without Upstash credentials (development, test, single-process
deployments) an in-process sliding window enforces the same limits.

Two scopes exist: ``enhance`` guards the provider-backed endpoint with the
tighter RATE_LIMIT_REQUESTS budget, ``global`` applies a more lenient budget to
every route except health checks.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from functools import lru_cache
from typing import Annotated, Literal, Protocol

from fastapi import Depends, HTTPException, Request, status

from core.config import Settings, get_settings


logger = logging.getLogger(__name__)

Scope = Literal["enhance", "global"]

# Paths that bypass rate limiting (health checks, etc.)
RATE_LIMIT_BYPASS_PATHS: set[str] = {
    "/health",
    "/health/",
}


class LimitResponse(Protocol):
    allowed: bool
    remaining: int
    reset: float  # epoch milliseconds


class Limiter(Protocol):
    def limit(self, identifier: str) -> LimitResponse: ...


@dataclass(frozen=True)
class LocalLimitResponse:
    allowed: bool
    limit: int
    remaining: int
    reset: float


class SlidingWindowRateLimiter:
    """In-process sliding window limiter with the Upstash ``limit()`` shape.

    Identifiers whose last hit has left the window are swept at most once per
    window, so memory tracks recent clients only.
    """

    def __init__(self, max_requests: int, window_seconds: int) -> None:
        self.max_requests = max_requests
        self.window_ms = window_seconds * 1000
        self._hits: dict[str, deque[float]] = {}
        self._last_sweep_ms = 0.0
        self._lock = threading.Lock()

    def _sweep(self, now_ms: float) -> None:
        cutoff = now_ms - self.window_ms
        expired = [
            key for key, hits in self._hits.items() if not hits or hits[-1] <= cutoff
        ]
        for key in expired:
            del self._hits[key]
        self._last_sweep_ms = now_ms
        if expired:
            logger.debug("Dropped %d idle rate limit buckets", len(expired))

    def limit(self, identifier: str) -> LocalLimitResponse:
        now_ms = time.time() * 1000
        with self._lock:
            if now_ms - self._last_sweep_ms >= self.window_ms:
                self._sweep(now_ms)
            hits = self._hits.setdefault(identifier, deque())
            while hits and hits[0] <= now_ms - self.window_ms:
                hits.popleft()

            if len(hits) >= self.max_requests:
                return LocalLimitResponse(
                    allowed=False,
                    limit=self.max_requests,
                    remaining=0,
                    reset=hits[0] + self.window_ms,
                )

            hits.append(now_ms)
            return LocalLimitResponse(
                allowed=True,
                limit=self.max_requests,
                remaining=self.max_requests - len(hits),
                reset=hits[0] + self.window_ms,
            )

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
            self._last_sweep_ms = 0.0


def _max_requests(settings: Settings, scope: Scope) -> int:
    if scope == "enhance":
        return settings.RATE_LIMIT_REQUESTS
    return settings.GLOBAL_RATE_LIMIT_REQUESTS


@lru_cache
def get_ratelimiter(scope: Scope = "enhance") -> Limiter:
    """Create and cache the rate limiter instance for ``scope``."""
    settings = get_settings()
    max_requests = _max_requests(settings, scope)

    if not settings.UPSTASH_REDIS_REST_URL or not settings.UPSTASH_REDIS_REST_TOKEN:
        logger.info(
            "Upstash Redis not configured; using in-process %s rate limit "
            "(%d requests per %d seconds)",
            scope,
            max_requests,
            settings.RATE_LIMIT_WINDOW_SECONDS,
        )
        return SlidingWindowRateLimiter(
            max_requests, settings.RATE_LIMIT_WINDOW_SECONDS
        )

    # Import here so the in-process path never needs the Upstash clients
    from upstash_ratelimit import Ratelimit, SlidingWindow
    from upstash_redis import Redis

    redis = Redis(
        url=settings.UPSTASH_REDIS_REST_URL,
        token=settings.UPSTASH_REDIS_REST_TOKEN,
    )
    ratelimit = Ratelimit(
        redis=redis,
        limiter=SlidingWindow(
            max_requests=max_requests,
            window=settings.RATE_LIMIT_WINDOW_SECONDS,
        ),
        prefix=f"promptenhance:ratelimit:{scope}",
    )
    logger.info(
        "Distributed %s rate limiting enabled: %d requests per %d seconds",
        scope,
        max_requests,
        settings.RATE_LIMIT_WINDOW_SECONDS,
    )
    return ratelimit


def _get_client_identifier(request: Request) -> str:
    """Extract client identifier from request for rate limiting.

    Uses X-Forwarded-For header if present (for reverse proxy setups),
    otherwise falls back to the direct client IP.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # Take the first IP in the chain (original client)
        return forwarded_for.split(",")[0].strip()

    if request.client and request.client.host:
        return request.client.host

    # Unidentifiable clients share one bucket
    return "unknown"


async def _enforce(request: Request, settings: Settings, scope: Scope) -> None:
    path = request.url.path
    if path in RATE_LIMIT_BYPASS_PATHS:
        return

    ratelimiter = get_ratelimiter(scope)
    identifier = _get_client_identifier(request)

    try:
        response = ratelimiter.limit(identifier)
    except Exception as e:
        # Log but don't block requests if the limiter backend fails
        logger.error("Rate limit check failed: %s", e)
        return

    if response.allowed:
        return

    current_time_ms = int(time.time() * 1000)
    reset_in_seconds = max(1, int(response.reset - current_time_ms) // 1000)
    logger.warning(
        "Rate limit exceeded for %s on %s (%s). Reset in %d seconds.",
        identifier,
        path,
        scope,
        reset_in_seconds,
    )
    message = (
        "Too many requests. Please try again later."
        if scope == "enhance"
        else "Too many requests from this IP. Please try again later."
    )
    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail=message,
        headers={
            "Retry-After": str(reset_in_seconds),
            "X-RateLimit-Limit": str(_max_requests(settings, scope)),
            "X-RateLimit-Remaining": str(response.remaining),
        },
    )


async def check_rate_limit(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
) -> None:
    """FastAPI dependency enforcing the per-client limit on ``POST /enhance``.

    Usage:
        @router.post("/enhance", dependencies=[Depends(check_rate_limit)])
        async def enhance(...): ...
    """
    await _enforce(request, settings, "enhance")


async def check_global_rate_limit(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
) -> None:
    """FastAPI dependency enforcing the lenient limit shared by all routes."""
    await _enforce(request, settings, "global")
