"""Settlement saga against SQLite and fakeredis."""

import asyncio
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from config import Settings
from restobill.app.domain import (
    NotFound,
    PersistenceFailure,
    SettlementInProgress,
    normalize,
)
from restobill.app.models import Invoice, Order, OrderItem, ReconciliationTask
from restobill.app.repos_sqlalchemy import menu_repo_sql, orders_repo_sql
from restobill.app.services.settlement import SettlementService
from restobill.app.services.table_lease import lease_key

NOW = datetime(2024, 5, 1, 12, 30, 0, tzinfo=timezone.utc)
SETTINGS = Settings(invoice_timezone="UTC", settle_timeout_secs=5)


async def _seed(session, restaurant="r1"):
    burger = await menu_repo_sql.create_item(session, restaurant, "Burger", "150")
    fries = await menu_repo_sql.create_item(session, restaurant, "Fries", "80")
    a = await orders_repo_sql.create_order(
        session, restaurant, "5", [{"item_id": burger.id, "qty": 2}]
    )
    b = await orders_repo_sql.create_order(
        session, restaurant, " 05", [{"item_id": fries.id, "qty": 1}]
    )
    await orders_repo_sql.update_status(session, restaurant, b.id, "cancelled")
    other = await orders_repo_sql.create_order(
        session, restaurant, "6", [{"item_id": fries.id, "qty": 1}]
    )
    return a, b, other


async def _count(session, model):
    return await session.scalar(select(func.count()).select_from(model))


@pytest.mark.anyio
async def test_settle_writes_one_invoice_and_clears_table(session, redis):
    a, b, other = await _seed(session)
    service = SettlementService.for_session(session, redis, "r1", SETTINGS)

    result = await service.settle_table(
        "r1",
        "5",
        {"taxRate": 5, "discountRate": 0, "additionalCharges": 20},
        now=NOW,
    )

    assert result.final_total == Decimal("335.00")
    assert result.as_response() == {
        "invoiceNumber": "INV-01052024123000",
        "finalTotal": 335.0,
    }
    assert sorted(result.order_ids) == sorted([a.id, b.id])
    assert result.deleted == 2

    invoices = (await session.execute(select(Invoice))).scalars().all()
    assert len(invoices) == 1
    invoice = invoices[0]
    assert invoice.table_identifier == "5"
    assert Decimal(str(invoice.sub_total)) == Decimal("300")
    assert Decimal(str(invoice.total_amount)) == Decimal("335")
    assert invoice.order_items[1]["excluded"] is True

    remaining = (await session.execute(select(Order.id))).scalars().all()
    assert remaining == [other.id]
    assert await _count(session, OrderItem) == 1
    assert await redis.get(lease_key("r1", normalize("5"))) is None


@pytest.mark.anyio
async def test_second_settle_finds_nothing(session, redis):
    await _seed(session)
    service = SettlementService.for_session(session, redis, "r1", SETTINGS)
    await service.settle_table("r1", "5")

    with pytest.raises(NotFound):
        await service.settle_table("r1", "5")
    assert await _count(session, Invoice) == 1


@pytest.mark.anyio
async def test_not_found_leaves_stores_untouched(session, redis):
    await _seed(session)
    service = SettlementService.for_session(session, redis, "r1", SETTINGS)

    with pytest.raises(NotFound):
        await service.settle_table("r1", "Table 9")
    with pytest.raises(NotFound):
        await service.settle_table("r2", "5")

    assert await _count(session, Invoice) == 0
    assert await _count(session, Order) == 3


@pytest.mark.anyio
async def test_invoice_write_failure_deletes_nothing(session, redis, monkeypatch):
    await _seed(session)
    service = SettlementService.for_session(session, redis, "r1", SETTINGS)

    async def _fail(draft):
        raise OperationalError("INSERT", {}, Exception("disk full"))

    monkeypatch.setattr(service.invoices, "save_invoice", _fail)

    with pytest.raises(PersistenceFailure) as excinfo:
        await service.settle_table("r1", "5")
    assert excinfo.value.details["stage"] == "save_invoice"
    assert await _count(session, Order) == 3
    assert await _count(session, ReconciliationTask) == 0
    assert await redis.get(lease_key("r1", normalize("5"))) is None


@pytest.mark.anyio
async def test_delete_failure_queues_reconciliation(session, redis, monkeypatch):
    a, b, _ = await _seed(session)
    service = SettlementService.for_session(session, redis, "r1", SETTINGS)

    async def _fail(restaurant_id, predicate):
        raise OperationalError("DELETE", {}, Exception("database is locked"))

    monkeypatch.setattr(service.orders, "delete_open_orders", _fail)

    with pytest.raises(PersistenceFailure) as excinfo:
        await service.settle_table("r1", "5", now=NOW)

    details = excinfo.value.details
    assert details["stage"] == "delete_orders"
    assert details["invoiceNumber"] == "INV-01052024123000"
    assert excinfo.value.hint

    assert await _count(session, Invoice) == 1
    assert await _count(session, Order) == 3
    task = await session.get(ReconciliationTask, details["reconciliationId"])
    assert task.status == "queued"
    assert sorted(task.order_ids) == sorted([a.id, b.id])
    assert "database is locked" in task.error


@pytest.mark.anyio
async def test_held_lease_rejects_concurrent_settlement(session, redis):
    await _seed(session)
    await redis.set(lease_key("r1", normalize("5")), "someone-else")
    service = SettlementService.for_session(session, redis, "r1", SETTINGS)

    with pytest.raises(SettlementInProgress):
        await service.settle_table("r1", " 5 ")

    assert await _count(session, Invoice) == 0
    assert await redis.get(lease_key("r1", normalize("5"))) == "someone-else"


@pytest.mark.anyio
async def test_missing_table_settles_unassigned_orders(session, redis):
    item = await menu_repo_sql.create_item(session, "r1", "Tea", "20")
    for table in (None, "null", ""):
        await orders_repo_sql.create_order(
            session, "r1", table, [{"item_id": item.id, "qty": 1}]
        )
    await orders_repo_sql.create_order(
        session, "r1", "2", [{"item_id": item.id, "qty": 1}]
    )
    service = SettlementService.for_session(session, redis, "r1", SETTINGS)

    result = await service.settle_table("r1", "N/A")

    assert result.final_total == Decimal("60.00")
    assert result.deleted == 3
    invoice = (await session.execute(select(Invoice))).scalar_one()
    assert invoice.table_identifier is None
    assert await _count(session, Order) == 1


@pytest.mark.anyio
async def test_timeout_surfaces_as_persistence_failure(session, redis, monkeypatch):
    await _seed(session)
    service = SettlementService.for_session(
        session, redis, "r1", Settings(invoice_timezone="UTC", settle_timeout_secs=0.05)
    )

    async def _slow(restaurant_id, predicate):
        await asyncio.sleep(1)
        return []

    monkeypatch.setattr(service.orders, "get_open_orders", _slow)

    with pytest.raises(PersistenceFailure) as excinfo:
        await service.settle_table("r1", "5")
    assert excinfo.value.details["stage"] == "timeout"
    assert await _count(session, Invoice) == 0
    assert await redis.get(lease_key("r1", normalize("5"))) is None


@pytest.mark.anyio
async def test_hung_clean_up_after_invoice_queues_reconciliation(
    session, redis, monkeypatch
):
    a, b, _ = await _seed(session)
    order_ids = sorted([a.id, b.id])
    service = SettlementService.for_session(
        session, redis, "r1", Settings(invoice_timezone="UTC", settle_timeout_secs=0.05)
    )

    async def _hang(restaurant_id, predicate):
        await asyncio.sleep(5)
        return 0

    monkeypatch.setattr(service.orders, "delete_open_orders", _hang)

    with pytest.raises(PersistenceFailure) as excinfo:
        await service.settle_table("r1", "5", now=NOW)

    details = excinfo.value.details
    assert details["stage"] == "delete_orders"
    assert details["invoiceNumber"] == "INV-01052024123000"
    assert details["reconciliationId"] is not None

    assert await _count(session, Invoice) == 1
    assert await _count(session, Order) == 3
    assert await _count(session, ReconciliationTask) == 1
    task = await session.get(ReconciliationTask, details["reconciliationId"])
    assert task.status == "queued"
    assert sorted(task.order_ids) == order_ids
    assert "TimeoutError" in task.error
    assert await redis.get(lease_key("r1", normalize("5"))) is None


@pytest.mark.anyio
async def test_cancel_after_invoice_still_queues_reconciliation(
    session, redis, monkeypatch
):
    await _seed(session)
    service = SettlementService.for_session(session, redis, "r1", SETTINGS)
    deleting = asyncio.Event()

    async def _hang(restaurant_id, predicate):
        deleting.set()
        await asyncio.sleep(5)
        return 0

    monkeypatch.setattr(service.orders, "delete_open_orders", _hang)

    settling = asyncio.ensure_future(service.settle_table("r1", "5", now=NOW))
    await deleting.wait()
    settling.cancel()
    with pytest.raises(asyncio.CancelledError):
        await settling

    assert await _count(session, Invoice) == 1
    assert await _count(session, Order) == 3
    assert await _count(session, ReconciliationTask) == 1
    assert await redis.get(lease_key("r1", normalize("5"))) is None
