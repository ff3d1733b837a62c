from .logging import LoggingMiddleware
from .request_id import RequestIdMiddleware, request_id_ctx, restaurant_ctx

__all__ = [
    "RequestIdMiddleware",
    "LoggingMiddleware",
    "request_id_ctx",
    "restaurant_ctx",
]
