"""Fixed-window API rate limiting backed by Redis counters."""

import time
from collections.abc import Callable
from dataclasses import dataclass

import redis.asyncio as redis
import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from comment_system.core.context import get_request_id
from comment_system.core.middleware import get_client_ip
from comment_system.core.redis import get_redis, rate_limit_key


logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RateLimitConfig:
    """Requests allowed per client within one window."""

    requests: int = 100
    window_seconds: int = 15 * 60
    path_prefix: str = "/v1/"
    trust_forwarded: bool = False


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Counts requests per client IP in fixed windows (INCR + EXPIRE).

    The limiter is a no-op while Redis is unavailable and fails open on Redis
    errors, so an outage of the cache never takes the API down with it.
    """

    def __init__(
        self,
        app: ASGIApp,
        config: RateLimitConfig | None = None,
        enabled: bool = True,
        redis_getter: Callable[[], redis.Redis | None] = get_redis,
    ) -> None:
        super().__init__(app)
        self.config = config or RateLimitConfig()
        self.enabled = enabled
        self._redis_getter = redis_getter

    def _applies_to(self, request: Request) -> bool:
        return self.enabled and request.url.path.startswith(self.config.path_prefix)

    async def _hit(self, client: redis.Redis, identifier: str) -> tuple[int, int]:
        """Register a request; returns (count in window, seconds until reset)."""
        now = int(time.time())
        window = now // self.config.window_seconds
        key = rate_limit_key(identifier, window)

        pipe = client.pipeline()
        pipe.incr(key)
        pipe.expire(key, self.config.window_seconds)
        count, _ = await pipe.execute()

        reset_in = (window + 1) * self.config.window_seconds - now
        return int(count), reset_in

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        client = self._redis_getter()
        if client is None or not self._applies_to(request):
            return await call_next(request)

        identifier = get_client_ip(request, self.config.trust_forwarded) or "unknown"
        try:
            count, reset_in = await self._hit(client, identifier)
        except redis.RedisError as e:
            logger.warning("rate_limit_check_failed", error=str(e))
            return await call_next(request)

        remaining = max(self.config.requests - count, 0)
        headers = {
            "X-RateLimit-Limit": str(self.config.requests),
            "X-RateLimit-Remaining": str(remaining),
            "X-RateLimit-Reset": str(reset_in),
        }

        if count > self.config.requests:
            logger.warning("rate_limit_exceeded", client_ip=identifier, count=count)
            return JSONResponse(
                status_code=429,
                content={
                    "error": True,
                    "message": "Too many requests from this IP, please try again later.",
                    "status_code": 429,
                    "request_id": get_request_id(),
                    "retry_after": reset_in,
                },
                headers={**headers, "Retry-After": str(reset_in)},
            )

        response = await call_next(request)
        response.headers.update(headers)
        return response
