"""Per-request context: request id and the restaurant being served."""

from __future__ import annotations

import re
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from ..obs.context import request_id_ctx, restaurant_ctx

_INBOUND_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,64}$")
_OUTLET_PATH_RE = re.compile(r"^/api/outlet/([^/]+)/")


def _request_id(request: Request) -> str:
    inbound = request.headers.get("X-Request-ID", "")
    if _INBOUND_ID_RE.match(inbound):
        return inbound
    return uuid.uuid4().hex


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tag every request with an id and, for outlet routes, its restaurant.

    A well formed ``X-Request-ID`` from the caller is reused so that POS
    terminals can correlate retries; anything else is replaced.
    """

    async def dispatch(self, request: Request, call_next):
        req_id = _request_id(request)
        match = _OUTLET_PATH_RE.match(request.url.path)
        id_token = request_id_ctx.set(req_id)
        rid_token = restaurant_ctx.set(match.group(1) if match else None)
        request.state.request_id = req_id
        try:
            response = await call_next(request)
        finally:
            restaurant_ctx.reset(rid_token)
            request_id_ctx.reset(id_token)
        response.headers["X-Request-ID"] = req_id
        return response
