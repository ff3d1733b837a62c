"""SQL timing for the order and invoice stores."""

from __future__ import annotations

import logging
import os
import time

from prometheus_client import Histogram
from sqlalchemy import event
from sqlalchemy.engine import Engine

SLOW_QUERY_MS = int(os.getenv("DB_SLOW_QUERY_MS", "200"))

db_query_seconds = Histogram(
    "db_query_seconds",
    "SQL statement latency by store and verb",
    ["store", "verb"],
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

logger = logging.getLogger("obs.sql")


def _verb(statement: str) -> str:
    head = statement.lstrip().split(None, 1)
    return head[0].lower() if head else "unknown"


def add_query_logger(engine: Engine, store: str) -> None:
    """Time every statement on ``engine`` and warn about slow ones.

    Parameters are never logged; they carry guest phone numbers.
    """
    target = engine.sync_engine if hasattr(engine, "sync_engine") else engine

    @event.listens_for(target, "before_cursor_execute")
    def _start(conn, cursor, statement, parameters, context, executemany):  # type: ignore[no-untyped-def]
        context.query_started = time.perf_counter()

    @event.listens_for(target, "after_cursor_execute")
    def _stop(conn, cursor, statement, parameters, context, executemany):  # type: ignore[no-untyped-def]
        elapsed = time.perf_counter() - context.query_started
        verb = _verb(statement)
        db_query_seconds.labels(store=store, verb=verb).observe(elapsed)
        if elapsed * 1000 > SLOW_QUERY_MS:
            sql = " ".join(statement.split())
            logger.warning(
                "slow %s on %s: %dms %s",
                verb,
                store,
                int(elapsed * 1000),
                sql[:197] + "..." if len(sql) > 200 else sql,
            )
