"""Logging, error reporting and SQL timing."""

from .context import request_id_ctx, restaurant_ctx
from .errors import capture_exception, init_sentry
from .queries import add_query_logger

__all__ = [
    "request_id_ctx",
    "restaurant_ctx",
    "capture_exception",
    "init_sentry",
    "add_query_logger",
]
