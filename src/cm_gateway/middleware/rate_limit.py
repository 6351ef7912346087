"""Fixed-window rate limiting backed by Redis.

Rules (per client IP, 60 second window):
  - webhook:  POST /api/v1/webhooks/*          RATE_LIMIT_WEBHOOK
  - issue:    POST /api/v1/mint/payment-requests RATE_LIMIT_ISSUE
  - status:   GET  /api/v1/mint/*, /api/v1/pools/* RATE_LIMIT_STATUS
Anything else (health, admin) is not limited.

Key pattern: "ratelimit:{group}:{client_ip}:{window}". Counting uses
INCR + EXPIRE. If Redis is unreachable the request is let through:
the limiter guards capacity, it is not a correctness mechanism.
"""

import logging
import time
from collections.abc import Awaitable, Callable

import redis.asyncio as aioredis
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from config.settings import settings
from src.cm_common.errors import RateLimitError
from src.cm_common.redis_client import get_redis
from src.cm_common.response import error_response

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60


def classify(method: str, path: str) -> str | None:
    """Map a request onto its rate-limit group, or None if unlimited."""
    if path.startswith("/api/v1/webhooks/"):
        return "webhook"
    if method == "POST" and path == "/api/v1/mint/payment-requests":
        return "issue"
    if method == "GET" and path.startswith(("/api/v1/mint/", "/api/v1/pools/")):
        return "status"
    return None


def client_ip(request: Request) -> str:
    """First X-Forwarded-For hop when behind a proxy, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app: ASGIApp,
        limits: dict[str, int] | None = None,
        redis_getter: Callable[[], Awaitable[aioredis.Redis]] = get_redis,
        enabled: bool | None = None,
    ) -> None:
        super().__init__(app)
        self._limits = limits or {
            "webhook": settings.RATE_LIMIT_WEBHOOK,
            "issue": settings.RATE_LIMIT_ISSUE,
            "status": settings.RATE_LIMIT_STATUS,
        }
        self._redis_getter = redis_getter
        self._enabled = settings.RATE_LIMIT_ENABLED if enabled is None else enabled

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        group = classify(request.method, request.url.path)
        if not self._enabled or group is None:
            return await call_next(request)

        window = int(time.time()) // WINDOW_SECONDS
        key = f"ratelimit:{group}:{client_ip(request)}:{window}"
        try:
            redis = await self._redis_getter()
            count = await redis.incr(key)
            if count == 1:
                await redis.expire(key, WINDOW_SECONDS)
        except (RedisError, OSError):
            logger.warning("Rate limiter unavailable, allowing %s", request.url.path)
            return await call_next(request)

        if count > self._limits[group]:
            err = RateLimitError()
            retry_after = WINDOW_SECONDS - int(time.time()) % WINDOW_SECONDS
            return JSONResponse(
                status_code=err.http_status,
                content=error_response(err.code, err.message).model_dump(),
                headers={"Retry-After": str(retry_after)},
            )
        return await call_next(request)
