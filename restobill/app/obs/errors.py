"""Error sink backed by Sentry, falling back to the log."""

from __future__ import annotations

import logging
from typing import Any, Optional

import sentry_sdk

from .context import request_id_ctx, restaurant_ctx

logger = logging.getLogger("obs")


def init_sentry(
    dsn: Optional[str] = None,
    env: Optional[str] = None,
    traces_sample_rate: float = 0.0,
) -> bool:
    """Initialise Sentry when ``dsn`` is set; return whether it was enabled."""
    if not dsn:
        logger.info("ERROR_DSN not set; exceptions are only logged")
        return False
    # Guest phone numbers and e-mails travel in order payloads.
    sentry_sdk.init(
        dsn=dsn,
        environment=env,
        send_default_pii=False,
        traces_sample_rate=traces_sample_rate,
    )
    return True


def capture_exception(exc: BaseException, **tags: Any) -> None:
    """Report ``exc`` tagged with the request context and ``tags``."""
    context = {
        "request_id": request_id_ctx.get(None),
        "restaurant": restaurant_ctx.get(None),
        **tags,
    }
    if not sentry_sdk.is_initialized():
        logger.error("unhandled exception %s", context, exc_info=exc)
        return
    with sentry_sdk.new_scope() as scope:
        for key, value in context.items():
            if value is not None:
                scope.set_tag(key, str(value))
        sentry_sdk.capture_exception(exc)
