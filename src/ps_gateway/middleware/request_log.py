"""Request logging middleware.

Every request gets a short ID, stored on request.state (handlers echo it in
the ApiResponse envelope) and returned in the X-Request-ID header. Health
checks are logged at DEBUG so they do not drown the access log.

Log format:
    INFO [POST] /api/v1/parking/sessions → 201 (23ms) ip=10.0.0.7 req_a1b2c3d4e5f6
"""

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from src.ps_gateway.middleware.client_ip import client_ip

logger = logging.getLogger("ps.request")

_QUIET_PATHS = frozenset({"/health"})


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = f"req_{uuid.uuid4().hex[:12]}"
        request.state.request_id = request_id

        start = time.perf_counter()
        response: Response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-ID"] = request_id

        level = logging.DEBUG if request.url.path in _QUIET_PATHS else logging.INFO
        logger.log(
            level,
            "[%s] %s → %d (%.0fms) ip=%s %s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            client_ip(request),
            request_id,
        )
        return response
