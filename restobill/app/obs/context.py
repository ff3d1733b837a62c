"""Context variables describing the request being served."""

from contextvars import ContextVar

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)
restaurant_ctx: ContextVar[str | None] = ContextVar("restaurant", default=None)
