# routes_metrics.py

"""Prometheus metrics and /metrics endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, generate_latest

# Counters
orders_created_total = Counter("orders_created_total", "Total orders created")
orders_created_total.inc(0)

invoices_generated_total = Counter(
    "invoices_generated_total", "Total invoices generated"
)
invoices_generated_total.inc(0)

settlements_total = Counter(
    "settlements_total", "Settlement attempts by outcome", ["outcome"]
)
settlements_total.labels(outcome="ok").inc(0)

settlement_lock_conflicts_total = Counter(
    "settlement_lock_conflicts_total",
    "Settlements rejected because the table lease was held",
)
settlement_lock_conflicts_total.inc(0)

unresolved_line_items_total = Counter(
    "unresolved_line_items_total",
    "Line items billed with sentinel name and zero price",
)
unresolved_line_items_total.inc(0)

reconciliation_tasks_total = Counter(
    "reconciliation_tasks_total",
    "Settlements queued for reconciliation after a failed order delete",
)
reconciliation_tasks_total.inc(0)

http_errors_total = Counter("http_errors_total", "Total HTTP errors", ["status"])
http_errors_total.labels(status="0").inc(0)

router = APIRouter()


@router.get("/metrics")
async def metrics_endpoint() -> Response:
    """Expose Prometheus metrics."""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
