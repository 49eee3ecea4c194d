"""Per-caller rate limiting middleware using a Redis sliding window."""

import hashlib
import logging
import time
from typing import Callable

import redis.asyncio as redis
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from inboxsnap.config import Settings

logger = logging.getLogger(__name__)

EXEMPT_PATHS = ("/health", "/health/ready", "/metrics")


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Sliding window rate limiter keyed by bearer token hash, or client IP."""

    def __init__(self, app, settings: Settings) -> None:
        super().__init__(app)
        self._max_requests = settings.rate_limit_per_minute
        self._window_seconds = 60
        self._redis: redis.Redis | None = None
        self._redis_url = settings.redis_url

    async def _get_redis(self) -> redis.Redis:
        if self._redis is None:
            self._redis = redis.from_url(self._redis_url, decode_responses=True)
        return self._redis

    def _caller_key(self, request: Request) -> str | None:
        auth = request.headers.get("authorization", "")
        if auth.startswith("Bearer "):
            return hashlib.sha256(auth[7:].encode()).hexdigest()[:16]
        if request.client:
            return f"ip:{request.client.host}"
        return None

    async def _count_request(self, identifier: str) -> int:
        """Record this request and return how many preceded it in the window."""
        r = await self._get_redis()
        key = f"ratelimit:{identifier}"
        now = time.time()

        pipe = r.pipeline()
        pipe.zremrangebyscore(key, 0, now - self._window_seconds)
        pipe.zcard(key)
        pipe.zadd(key, {str(now): now})
        pipe.expire(key, self._window_seconds)
        results = await pipe.execute()
        return results[1]

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        identifier = self._caller_key(request)
        if not identifier:
            return await call_next(request)

        try:
            request_count = await self._count_request(identifier)
        except Exception as e:
            # Redis down: fail open
            logger.warning("Rate limit Redis error: %s", e)
            return await call_next(request)

        if request_count >= self._max_requests:
            return JSONResponse(
                status_code=429,
                content={"detail": "Rate limit exceeded. Try again later."},
                headers={
                    "Retry-After": str(self._window_seconds),
                    "X-RateLimit-Limit": str(self._max_requests),
                    "X-RateLimit-Remaining": "0",
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self._max_requests)
        response.headers["X-RateLimit-Remaining"] = str(max(0, self._max_requests - request_count - 1))
        return response
