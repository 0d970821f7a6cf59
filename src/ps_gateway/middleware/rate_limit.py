"""Fixed-window rate limiting per client IP, counted in Redis.

    count = INCR ratelimit:{ip}
    if count == 1: EXPIRE ratelimit:{ip} window
    if count > limit: 429 + Retry-After (seconds left in the window)

If Redis is unreachable the request is let through and the failure logged;
availability of the parking API matters more than the limit.
"""

import logging
from collections.abc import Awaitable, Callable

import redis.asyncio as aioredis
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from src.ps_common.errors import RateLimitError
from src.ps_common.response import error_response
from src.ps_gateway.middleware.client_ip import client_ip

logger = logging.getLogger(__name__)

RedisProvider = Callable[[], Awaitable[aioredis.Redis]]

_EXEMPT_PATHS = frozenset({"/health"})


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app: ASGIApp,
        redis_provider: RedisProvider,
        max_requests: int = 100,
        window_seconds: int = 900,
    ) -> None:
        super().__init__(app)
        self._redis_provider = redis_provider
        self._max_requests = max_requests
        self._window = window_seconds

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in _EXEMPT_PATHS:
            return await call_next(request)

        key = f"ratelimit:{client_ip(request)}"
        try:
            redis = await self._redis_provider()
            count = await redis.incr(key)
            if count == 1:
                await redis.expire(key, self._window)
            if count > self._max_requests:
                ttl = await redis.ttl(key)
                return self._reject(ttl if ttl > 0 else self._window)
        except RedisError as exc:
            logger.warning("Rate limiter unavailable, letting request through: %s", exc)
        return await call_next(request)

    def _reject(self, retry_after: int) -> JSONResponse:
        err = RateLimitError()
        resp = error_response(err.code, err.message)
        return JSONResponse(
            status_code=err.http_status,
            content=resp.model_dump(),
            headers={"Retry-After": str(retry_after)},
        )
