"""Shared FastAPI dependencies for the order and invoice stores."""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException, Request


def get_redis(request: Request) -> Any:
    """Return the Redis client attached to the application state."""
    redis = getattr(request.app.state, "redis", None)
    if redis is None:
        raise HTTPException(status_code=503, detail="redis unavailable")
    return redis
