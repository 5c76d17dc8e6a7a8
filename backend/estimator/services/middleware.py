"""Request timing and tracing middleware for the estimate costing service."""
import re
import time
import uuid
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("estimator-api.middleware")

SKIP_LOG_PATHS = {"/health"}

_ESTIMATE_PATH = re.compile(r"^/api/estimates/([^/]+)")


class RequestTimingMiddleware(BaseHTTPMiddleware):
    """
    Tags every request with an X-Request-ID (the caller's, if it sent one),
    reports its duration in X-Process-Time and logs one line per request.
    Requests under /api/estimates/<id> are logged with that estimate id.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        start_time = time.perf_counter()

        request.state.request_id = request_id

        response: Response = await call_next(request)

        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = str(duration_ms)

        path = request.url.path
        if path not in SKIP_LOG_PATHS:
            extra = {
                "http_method": request.method,
                "http_path": path,
                "http_status": response.status_code,
                "request_id": request_id,
                "duration_ms": duration_ms,
            }
            match = _ESTIMATE_PATH.match(path)
            if match:
                extra["estimate_id"] = match.group(1)
            logger.info("request completed", extra=extra)

        return response
