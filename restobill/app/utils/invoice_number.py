"""Utilities for building invoice numbers."""

import re
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

INVOICE_NUMBER_RE = re.compile(r"^INV-\d{14}$")


def build_invoice_number(now: datetime | None = None, tz: str = "UTC") -> str:
    """Return ``INV-DDMMYYYYHHmmss`` for ``now`` rendered in ``tz``.

    Naive datetimes are taken to be UTC. Numbers have second resolution, so two
    settlements finishing within the same second share a number; the archive
    does not treat the number as a key.
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local = now.astimezone(ZoneInfo(tz))
    return f"INV-{local:%d%m%Y%H%M%S}"
