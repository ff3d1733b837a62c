"""SQLAlchemy implementation for the invoice archive.

Invoices are append-only: this module inserts and reads them but never
updates or deletes one. Settlements whose order clean-up failed are recorded
in ``settlement_reconciliation`` so that staff can finish them later.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, List

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Invoice, ReconciliationTask
from ..repos.invoices_repo import InvoicesRepo, ReconciliationRepo
from . import orders_repo_sql

if TYPE_CHECKING:  # pragma: no cover
    from ..services.billing_service import InvoiceDraft


async def save_invoice(session: AsyncSession, draft: "InvoiceDraft") -> Invoice:
    """Insert ``draft`` as an immutable invoice and return the stored row."""

    invoice = Invoice(
        restaurant_id=draft.restaurant_id,
        table_identifier=draft.table_identifier,
        invoice_number=draft.invoice_number,
        order_items=draft.order_items(),
        sub_total=draft.sub_total,
        tax_rate=draft.tax_rate,
        tax_amount=draft.tax_amount,
        discount_rate=draft.discount_rate,
        discount_amount=draft.discount_amount,
        additional_charges=draft.additional_charges,
        final_total=draft.final_total,
        total_amount=draft.total_amount,
        payment_method=draft.payment_method,
        timestamp=draft.timestamp,
    )
    session.add(invoice)
    try:
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        raise
    return invoice


async def list_invoices(
    session: AsyncSession, restaurant_id: str, limit: int | None = None
) -> List[Invoice]:
    """Return invoices of ``restaurant_id``, newest first."""

    stmt = (
        select(Invoice)
        .where(Invoice.restaurant_id == restaurant_id)
        .order_by(Invoice.timestamp.desc(), Invoice.id.desc())
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars())


async def get_invoice(
    session: AsyncSession, restaurant_id: str, invoice_number: str
) -> Invoice | None:
    """Return the newest invoice of ``restaurant_id`` numbered ``invoice_number``."""

    return await session.scalar(
        select(Invoice)
        .where(
            Invoice.restaurant_id == restaurant_id,
            Invoice.invoice_number == invoice_number,
        )
        .order_by(Invoice.id.desc())
        .limit(1)
    )


async def enqueue_reconciliation(
    session: AsyncSession,
    restaurant_id: str,
    table_identifier: str | None,
    invoice_number: str,
    order_ids: list[int],
    error: str,
) -> int:
    """Record a settlement that left ``order_ids`` behind."""

    # an interrupted clean-up may leave uncommitted deletes on the session
    if session.in_transaction():
        await session.rollback()
    task = ReconciliationTask(
        restaurant_id=restaurant_id,
        table_identifier=table_identifier,
        invoice_number=invoice_number,
        order_ids=list(order_ids),
        error=error[:500],
    )
    session.add(task)
    try:
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        raise
    return task.id


async def list_reconciliation(
    session: AsyncSession, restaurant_id: str, status: str = "queued"
) -> List[ReconciliationTask]:
    result = await session.execute(
        select(ReconciliationTask)
        .where(
            ReconciliationTask.restaurant_id == restaurant_id,
            ReconciliationTask.status == status,
        )
        .order_by(ReconciliationTask.id)
    )
    return list(result.scalars())


async def resolve_reconciliation(
    session: AsyncSession, restaurant_id: str, task_id: int
) -> tuple[ReconciliationTask, int] | None:
    """Delete the orders left behind by a settlement and close the task.

    Only the order ids captured at settlement time are removed, so orders
    placed for the same table after the invoice was issued stay open. Returns
    ``None`` if the task does not exist for ``restaurant_id``.
    """

    task = await session.scalar(
        select(ReconciliationTask).where(
            ReconciliationTask.id == task_id,
            ReconciliationTask.restaurant_id == restaurant_id,
        )
    )
    if task is None:
        return None
    if task.status == "resolved":
        return task, 0
    deleted = await orders_repo_sql.delete_orders(
        session, restaurant_id, task.order_ids
    )
    task.status = "resolved"
    task.resolved_at = datetime.now(timezone.utc)
    await session.commit()
    return task, deleted


class SqlInvoicesRepo(InvoicesRepo):
    """:class:`InvoicesRepo` bound to an ``AsyncSession``."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def save_invoice(self, draft: "InvoiceDraft") -> Invoice:
        return await save_invoice(self.session, draft)


class SqlReconciliationRepo(ReconciliationRepo):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def enqueue(
        self,
        restaurant_id: str,
        table_identifier: str | None,
        invoice_number: str,
        order_ids: list[int],
        error: str,
    ) -> int:
        return await enqueue_reconciliation(
            self.session,
            restaurant_id,
            table_identifier,
            invoice_number,
            order_ids,
            error,
        )
