"""Rate limiting middleware.

Requests are keyed by user id (from the bearer token) or client IP and
counted in a sliding window. Counter state lives behind
`RateLimitBackend`; production uses `RedisRateLimitBackend`, tests pass
their own backend.
"""

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from agrohub.auth.jwt import decode_token
from agrohub.utils.redis import get_redis

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    reset_at: float  # epoch seconds


class RateLimitBackend(Protocol):
    async def hit(self, key: str, limit: int, window: int) -> RateLimitDecision: ...


class RedisRateLimitBackend:
    """Sliding window over a Redis sorted set of request timestamps."""

    def __init__(self, prefix: str = "ratelimit"):
        self.prefix = prefix

    async def hit(self, key: str, limit: int, window: int) -> RateLimitDecision:
        redis_client = await get_redis()
        current_time = time.time()
        window_start = current_time - window
        redis_key = f"{self.prefix}:{key}"

        # Remove old entries outside the window
        await redis_client.zremrangebyscore(redis_key, 0, window_start)
        count = await redis_client.zcard(redis_key)

        if count >= limit:
            oldest = await redis_client.zrange(redis_key, 0, 0, withscores=True)
            if oldest:
                reset_at = oldest[0][1] + window
            else:
                reset_at = current_time + window
            return RateLimitDecision(False, 0, reset_at)

        await redis_client.zadd(redis_key, {str(current_time): current_time})
        await redis_client.expire(redis_key, window)

        return RateLimitDecision(True, limit - count - 1, current_time + window)


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app,
        backend: RateLimitBackend | None = None,
        default_limit: int = 100,  # requests
        default_window: int = 60,  # seconds
        exempt_paths: Optional[list[str]] = None,
        enabled: bool = True,
    ):
        super().__init__(app)
        self.backend = backend or RedisRateLimitBackend()
        self.default_limit = default_limit
        self.default_window = default_window
        self.exempt_paths = exempt_paths or ["/health", "/docs", "/openapi.json"]
        self.enabled = enabled

        # Stricter limits for credential endpoints
        self.custom_limits = {
            "/api/auth/login": (5, 900),  # 5 attempts per 15 minutes
            "/api/auth/register": (5, 900),
        }

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not self.enabled or any(
            request.url.path.startswith(path) for path in self.exempt_paths
        ):
            return await call_next(request)

        limit, window = self._get_limit_for_path(request.url.path)
        key = self._get_rate_limit_key(request)

        try:
            decision = await self.backend.hit(key, limit, window)
        except Exception as e:
            # Counter store down: let the request through
            logger.error(f"Rate limit check failed: {type(e).__name__}")
            return await call_next(request)

        if not decision.allowed:
            retry_after = max(1, math.ceil(decision.reset_at - time.time()))
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={
                    "error": "Muitas requisições",
                    "message": (
                        f"Limite de {limit} requisições por {window} segundos excedido. "
                        f"Tente novamente em {retry_after} segundos."
                    ),
                    "retryAfter": retry_after,
                },
                headers={
                    "X-RateLimit-Limit": str(limit),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Reset": str(int(decision.reset_at)),
                    "Retry-After": str(retry_after),
                },
            )

        response = await call_next(request)

        response.headers["X-RateLimit-Limit"] = str(limit)
        response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
        response.headers["X-RateLimit-Reset"] = str(int(decision.reset_at))

        return response

    def _get_limit_for_path(self, path: str) -> tuple[int, int]:
        for pattern, (limit, window) in self.custom_limits.items():
            if path.startswith(pattern):
                return limit, window
        return self.default_limit, self.default_window

    def _get_rate_limit_key(self, request: Request) -> str:
        """User id from the bearer token, else client IP."""
        auth_header = request.headers.get("authorization", "")
        if auth_header.startswith("Bearer "):
            user_id = decode_token(auth_header[7:]).get("sub")
            if user_id:
                return f"user:{user_id}"

        # X-Forwarded-For when behind a load balancer
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            ip = forwarded.split(",")[0].strip()
        else:
            ip = request.client.host if request.client else "unknown"

        return f"ip:{ip}"
