"""JSON log lines carrying request, restaurant and settlement context."""

import json
import logging
import re
from datetime import datetime, timezone
from typing import Any

from .context import request_id_ctx, restaurant_ctx

EMAIL_RE = re.compile(r"[\w.+-]+@[\w-]+\.[\w.-]+", re.I)
# guest WhatsApp / phone numbers
PHONE_RE = re.compile(r"\b\d{10}\b")

# Optional attributes copied from ``extra=`` into the JSON document.
CONTEXT_FIELDS = (
    "restaurant",
    "table",
    "invoice",
    "category",
    "method",
    "route",
    "status",
    "latency_ms",
    "error_id",
)


def _redact_pii(text: str) -> str:
    return PHONE_RE.sub("***", EMAIL_RE.sub("***", text))


class RequestContextFilter(logging.Filter):
    """Stamp records with the current request id and restaurant."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.req_id = request_id_ctx.get(None)
        if getattr(record, "restaurant", None) is None:
            record.restaurant = restaurant_ctx.get(None)
        return True


class JsonFormatter(logging.Formatter):
    """Render a record as one JSON object per line.

    Context fields that were not supplied are emitted as ``null`` so that
    every line has the same shape.
    """

    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "req_id": getattr(record, "req_id", None),
        }
        for name in CONTEXT_FIELDS:
            data[name] = getattr(record, name, None)
        data["msg"] = _redact_pii(record.getMessage())
        if record.exc_info:
            data["exc"] = _redact_pii(self.formatException(record.exc_info))
        return json.dumps(data, default=str)


def configure_logging(level: int | str = logging.INFO) -> None:
    """Send JSON lines for every logger to stderr at ``level``."""

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    handler.addFilter(RequestContextFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
