"""SQLAlchemy implementation for menu catalog persistence."""

from __future__ import annotations

from decimal import Decimal
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import MenuItem
from ..repos.menu_repo import CatalogEntry, MenuRepo


async def create_item(
    session: AsyncSession,
    restaurant_id: str,
    name: str,
    price: Decimal | float,
    category: str = "General",
    in_stock: bool = True,
) -> MenuItem:
    """Add a menu item for ``restaurant_id`` and return it."""

    item = MenuItem(
        restaurant_id=restaurant_id,
        name=name,
        price=Decimal(str(price)),
        category=category,
        in_stock=in_stock,
    )
    session.add(item)
    await session.commit()
    return item


async def list_items(session: AsyncSession, restaurant_id: str) -> List[MenuItem]:
    """Return the menu of ``restaurant_id`` ordered by category and name."""

    result = await session.execute(
        select(MenuItem)
        .where(MenuItem.restaurant_id == restaurant_id)
        .order_by(MenuItem.category, MenuItem.name)
    )
    return list(result.scalars())


async def lookup_item(
    session: AsyncSession, item_ref: str | None, restaurant_id: str | None = None
) -> CatalogEntry | None:
    """Return name and live price for ``item_ref``.

    References that are not integers cannot exist in the catalog and resolve
    to ``None`` without a query.
    """

    try:
        item_id = int(str(item_ref))
    except (TypeError, ValueError):
        return None
    stmt = select(MenuItem.name, MenuItem.price).where(MenuItem.id == item_id)
    if restaurant_id is not None:
        stmt = stmt.where(MenuItem.restaurant_id == restaurant_id)
    row = (await session.execute(stmt)).one_or_none()
    if row is None:
        return None
    return CatalogEntry(name=row.name, price=Decimal(str(row.price)))


class SqlMenuRepo(MenuRepo):
    """:class:`MenuRepo` bound to a session and optionally a restaurant."""

    def __init__(self, session: AsyncSession, restaurant_id: str | None = None) -> None:
        self.session = session
        self.restaurant_id = restaurant_id

    async def lookup_item(self, item_ref: str | None) -> CatalogEntry | None:
        return await lookup_item(self.session, item_ref, self.restaurant_id)
