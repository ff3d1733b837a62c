"""SQLAlchemy-backed repository helpers for open orders.

Placement snapshots the current menu name and price of every line so that
historical prices are retained even if the menu changes before the table is
settled. Table matching always goes through
:class:`~restobill.app.domain.MatchPredicate`: SQL narrows the candidates
where it safely can and the predicate makes the final decision, so reads and
deletes select exactly the same orders.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Sequence

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain import MatchPredicate, OrderStatus, can_transition
from ..models import MenuItem, Order, OrderItem
from ..repos.orders_repo import OpenOrder, OpenOrderLine, OrdersRepo


def _table_clause(predicate: MatchPredicate):
    column = Order.table_identifier
    if predicate.is_missing:
        clauses = [column.is_(None), func.trim(column) == ""]
        if predicate.sentinels:
            clauses.append(func.trim(column).in_(sorted(predicate.sentinels)))
        return or_(*clauses)
    if predicate.numeric is None:
        return func.lower(func.trim(column)) == predicate.canonical
    # "5", "05" and "5.0" are all table five; let the predicate decide.
    return column.is_not(None)


def _candidates(restaurant_id: str, predicate: MatchPredicate):
    return (
        select(Order)
        .where(Order.restaurant_id == restaurant_id, _table_clause(predicate))
        .order_by(Order.created_at, Order.id)
    )


def _to_open_order(order: Order) -> OpenOrder:
    return OpenOrder(
        id=order.id,
        restaurant_id=order.restaurant_id,
        table_identifier=order.table_identifier,
        status=order.status,
        created_at=order.created_at,
        lines=tuple(
            OpenOrderLine(
                item_ref=item.item_id,
                quantity=item.qty,
                unit_price=(
                    Decimal(str(item.price_snapshot))
                    if item.price_snapshot is not None
                    else None
                ),
                name=item.name_snapshot,
            )
            for item in order.items
        ),
    )


async def create_order(
    session: AsyncSession,
    restaurant_id: str,
    table_identifier: str | None,
    lines: List[dict],
    wpno: str | None = None,
) -> Order:
    """Create a new order for ``table_identifier`` with ``lines``.

    Each entry in ``lines`` must contain ``item_id`` and ``qty``. The current
    menu name and price for each item are snapshotted into ``order_items``.
    Raises ``ValueError`` when an item is unknown or out of stock.
    """

    ids: list[int] = []
    for line in lines:
        try:
            ids.append(int(line["item_id"]))
        except (TypeError, ValueError) as exc:
            raise ValueError(f"menu item {line['item_id']!r} not found") from exc

    result = await session.execute(
        select(MenuItem).where(
            MenuItem.id.in_(ids), MenuItem.restaurant_id == restaurant_id
        )
    )
    items = {item.id: item for item in result.scalars()}

    order = Order(
        restaurant_id=restaurant_id,
        table_identifier=None if table_identifier is None else str(table_identifier),
        wpno=wpno,
        status=OrderStatus.PENDING.value,
    )
    total = Decimal("0")
    for item_id, line in zip(ids, lines):
        item = items.get(item_id)
        if item is None:
            raise ValueError(f"menu item {line['item_id']!r} not found")
        if not item.in_stock:
            raise ValueError("OUT_OF_STOCK")
        price = Decimal(str(item.price))
        total += price * line["qty"]
        order.items.append(
            OrderItem(
                item_id=str(item.id),
                name_snapshot=item.name,
                price_snapshot=price,
                qty=line["qty"],
            )
        )
    order.total = total

    session.add(order)
    await session.commit()
    return order


async def list_table_orders(
    session: AsyncSession,
    restaurant_id: str,
    predicate: MatchPredicate,
    since: datetime | None = None,
) -> List[Order]:
    """Return open orders for a table, newest first.

    ``since`` limits the result to orders created at or after that instant.
    """

    stmt = _candidates(restaurant_id, predicate)
    if since is not None:
        stmt = stmt.where(Order.created_at >= since)
    result = await session.execute(stmt)
    orders = [o for o in result.scalars() if predicate.matches(o.table_identifier)]
    orders.reverse()
    return orders


async def get_open_orders(
    session: AsyncSession, restaurant_id: str, predicate: MatchPredicate
) -> List[OpenOrder]:
    """Return every open order of ``restaurant_id`` selected by ``predicate``."""

    result = await session.execute(_candidates(restaurant_id, predicate))
    return [
        _to_open_order(order)
        for order in result.scalars()
        if predicate.matches(order.table_identifier)
    ]


async def delete_orders(
    session: AsyncSession, restaurant_id: str, order_ids: Iterable[int]
) -> int:
    """Delete ``order_ids`` belonging to ``restaurant_id`` with their items."""

    ids = list(order_ids)
    if not ids:
        return 0
    scoped = select(Order.id).where(
        Order.id.in_(ids), Order.restaurant_id == restaurant_id
    )
    try:
        await session.execute(
            delete(OrderItem)
            .where(OrderItem.order_id.in_(scoped))
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(
            delete(Order)
            .where(Order.id.in_(ids), Order.restaurant_id == restaurant_id)
            .execution_options(synchronize_session=False)
        )
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        raise
    return result.rowcount or 0


async def delete_open_orders(
    session: AsyncSession, restaurant_id: str, predicate: MatchPredicate
) -> int:
    """Delete open orders selected by ``predicate`` at the time of the call."""

    try:
        result = await session.execute(
            select(Order.id, Order.table_identifier).where(
                Order.restaurant_id == restaurant_id, _table_clause(predicate)
            )
        )
        ids = [row.id for row in result if predicate.matches(row.table_identifier)]
    except SQLAlchemyError:
        await session.rollback()
        raise
    return await delete_orders(session, restaurant_id, ids)


async def update_status(
    session: AsyncSession, restaurant_id: str, order_id: int, new_status: str
) -> Order | None:
    """Persist ``new_status`` for ``order_id``.

    Returns ``None`` when the order does not exist for ``restaurant_id`` and
    raises ``ValueError("INVALID_TRANSITION")`` when the state machine forbids
    the move. Orders carrying a legacy status not known to
    :class:`OrderStatus` may move anywhere.
    """

    dst = OrderStatus(new_status)
    order = await session.scalar(
        select(Order).where(Order.id == order_id, Order.restaurant_id == restaurant_id)
    )
    if order is None:
        return None
    try:
        src = OrderStatus(order.status)
    except ValueError:
        src = None
    if src is not None and src != dst and not can_transition(src, dst):
        raise ValueError("INVALID_TRANSITION")
    order.status = dst.value
    await session.commit()
    return order


class SqlOrdersRepo(OrdersRepo):
    """:class:`OrdersRepo` bound to an ``AsyncSession``."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_open_orders(
        self, restaurant_id: str, predicate: MatchPredicate
    ) -> list[OpenOrder]:
        return await get_open_orders(self.session, restaurant_id, predicate)

    async def delete_open_orders(
        self, restaurant_id: str, predicate: MatchPredicate
    ) -> int:
        return await delete_open_orders(self.session, restaurant_id, predicate)

    async def delete_orders(self, restaurant_id: str, order_ids: Sequence[int]) -> int:
        return await delete_orders(self.session, restaurant_id, order_ids)
