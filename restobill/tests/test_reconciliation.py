import pytest
from sqlalchemy import func, select, text
from sqlalchemy.exc import OperationalError

from restobill.app.domain import normalize
from restobill.app.models import Order
from restobill.app.repos_sqlalchemy import (
    invoices_repo_sql,
    menu_repo_sql,
    orders_repo_sql,
)


@pytest.mark.anyio
async def test_resolve_deletes_only_recorded_orders(session):
    item = await menu_repo_sql.create_item(session, "r1", "Tea", 20)
    stale = await orders_repo_sql.create_order(
        session, "r1", "3", [{"item_id": item.id, "qty": 1}]
    )
    task_id = await invoices_repo_sql.enqueue_reconciliation(
        session, "r1", "3", "INV-01052024123000", [stale.id], "database is locked"
    )
    fresh = await orders_repo_sql.create_order(
        session, "r1", "3", [{"item_id": item.id, "qty": 2}]
    )

    queued = await invoices_repo_sql.list_reconciliation(session, "r1")
    assert [t.id for t in queued] == [task_id]

    task, deleted = await invoices_repo_sql.resolve_reconciliation(
        session, "r1", task_id
    )
    assert deleted == 1
    assert task.status == "resolved"
    assert task.resolved_at is not None

    remaining = (await session.execute(select(Order.id))).scalars().all()
    assert remaining == [fresh.id]
    assert await invoices_repo_sql.list_reconciliation(session, "r1") == []

    # resolving twice is a no-op
    _, deleted = await invoices_repo_sql.resolve_reconciliation(session, "r1", task_id)
    assert deleted == 0


@pytest.mark.anyio
async def test_resolve_unknown_task_returns_none(session):
    assert await invoices_repo_sql.resolve_reconciliation(session, "r1", 42) is None


@pytest.mark.anyio
async def test_resolve_is_scoped_to_restaurant(session):
    task_id = await invoices_repo_sql.enqueue_reconciliation(
        session, "r1", None, "INV-01052024123000", [], "x" * 900
    )
    assert await invoices_repo_sql.resolve_reconciliation(session, "r2", task_id) is None
    (task,) = await invoices_repo_sql.list_reconciliation(session, "r1")
    assert len(task.error) == 500


@pytest.mark.anyio
async def test_delete_open_orders_reapplies_predicate(session):
    item = await menu_repo_sql.create_item(session, "r1", "Tea", 20)
    for table in ("Patio", " patio", "PATIO 2"):
        await orders_repo_sql.create_order(
            session, "r1", table, [{"item_id": item.id, "qty": 1}]
        )
    deleted = await orders_repo_sql.delete_open_orders(session, "r1", normalize("PATIO"))
    assert deleted == 2
    left = await orders_repo_sql.get_open_orders(session, "r1", normalize("patio 2"))
    assert [o.table_identifier for o in left] == ["PATIO 2"]


@pytest.mark.anyio
async def test_delete_open_orders_rolls_back_failed_lookup(session, monkeypatch):
    item = await menu_repo_sql.create_item(session, "r1", "Tea", 20)
    await orders_repo_sql.create_order(
        session, "r1", "Patio", [{"item_id": item.id, "qty": 1}]
    )
    monkeypatch.setattr(
        orders_repo_sql, "_table_clause", lambda predicate: text("no_such_column = 1")
    )
    rollbacks = []
    real_rollback = session.rollback

    async def _rollback():
        rollbacks.append(True)
        await real_rollback()

    monkeypatch.setattr(session, "rollback", _rollback)

    with pytest.raises(OperationalError):
        await orders_repo_sql.delete_open_orders(session, "r1", normalize("patio"))

    assert rollbacks
    assert await session.scalar(select(func.count()).select_from(Order)) == 1
