"""Request logging middleware.

Logs every HTTP request with method, path, acting party, status code,
latency and a short request ID. The request_id is injected into
request.state so handlers can put it into ApiResponse.

Log format:
    INFO [POST] /api/v1/listings/listing-.../buy actor=ab12cd34 → 200 (23ms) req_a1b2c3d4e5f6
"""

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("am.request")

ACTOR_HEADER = "X-Actor-Address"


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request.state.request_id = f"req_{uuid.uuid4().hex[:12]}"
        actor = request.headers.get(ACTOR_HEADER, "-")

        start = time.perf_counter()
        response: Response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        logger.info(
            "[%s] %s actor=%s → %d (%.0fms) %s",
            request.method,
            request.url.path,
            actor[:8],
            response.status_code,
            elapsed_ms,
            request.state.request_id,
        )
        return response
