"""Routes for finishing settlements whose order clean-up failed."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from .db import get_db
from .models import ReconciliationTask
from .repos_sqlalchemy import invoices_repo_sql
from .utils.responses import ok

router = APIRouter()


def serialize_task(task: ReconciliationTask) -> dict:
    return {
        "id": task.id,
        "restaurantId": task.restaurant_id,
        "tableIdentifier": task.table_identifier,
        "invoiceNumber": task.invoice_number,
        "orderIds": task.order_ids,
        "error": task.error,
        "status": task.status,
        "createdAt": task.created_at.isoformat() if task.created_at else None,
        "resolvedAt": task.resolved_at.isoformat() if task.resolved_at else None,
    }


@router.get("/api/outlet/{restaurant_id}/reconciliation")
async def list_tasks(
    restaurant_id: str, session: AsyncSession = Depends(get_db)
) -> dict:
    """List settlements still waiting for their orders to be cleared."""

    tasks = await invoices_repo_sql.list_reconciliation(session, restaurant_id)
    return ok([serialize_task(t) for t in tasks])


@router.post("/api/outlet/{restaurant_id}/reconciliation/{task_id}/resolve")
async def resolve_task(
    restaurant_id: str, task_id: int, session: AsyncSession = Depends(get_db)
) -> dict:
    """Delete the orders recorded on the task and mark it resolved."""

    outcome = await invoices_repo_sql.resolve_reconciliation(
        session, restaurant_id, task_id
    )
    if outcome is None:
        raise HTTPException(status_code=404, detail="task not found")
    task, deleted = outcome
    data = serialize_task(task)
    data["deleted"] = deleted
    return ok(data)
