"""Access log and HTTP error accounting."""

import logging
import os
import random
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from ..obs import capture_exception
from ..routes_metrics import http_errors_total
from ..utils.responses import err

LOG_SAMPLE_2XX = float(os.getenv("LOG_SAMPLE_2XX", "0.1"))

logger = logging.getLogger("api.access")


def _route_template(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log one line per request and count error responses by status.

    Successful responses are sampled with ``LOG_SAMPLE_2XX``. An exception
    escaping every handler becomes a 500 envelope whose ``error_id`` is also
    sent to the error sink.
    """

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        error_id = None
        try:
            response = await call_next(request)
        except Exception as exc:
            error_id = uuid.uuid4().hex
            capture_exception(exc, error_id=error_id)
            payload = err("INTERNAL", "Internal Server Error")
            payload["error_id"] = error_id
            response = JSONResponse(payload, status_code=500)

        status = response.status_code
        if status >= 400:
            http_errors_total.labels(status=str(status)).inc()

        extra = {
            "method": request.method,
            "route": _route_template(request),
            "status": status,
            "latency_ms": int((time.perf_counter() - start) * 1000),
        }
        if error_id:
            extra["error_id"] = error_id
        if status >= 500:
            logger.error("%s %s -> %d", request.method, extra["route"], status, extra=extra)
        elif status >= 400 or random.random() < LOG_SAMPLE_2XX:
            logger.info("%s %s -> %d", request.method, extra["route"], status, extra=extra)
        return response
