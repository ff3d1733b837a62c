"""Repository interface for open order operations."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Sequence

from ..domain import MatchPredicate


@dataclass(frozen=True)
class OpenOrderLine:
    """Line item as captured when the order was placed."""

    item_ref: str | None
    quantity: int
    unit_price: Decimal | None = None
    name: str | None = None


@dataclass(frozen=True)
class OpenOrder:
    """Read-only view of an order awaiting settlement."""

    id: int
    restaurant_id: str
    table_identifier: str | None
    status: str
    created_at: datetime | None = None
    lines: Sequence[OpenOrderLine] = field(default_factory=tuple)


class OrdersRepo(ABC):
    """Contract for reading and clearing open orders."""

    @abstractmethod
    async def get_open_orders(
        self, restaurant_id: str, predicate: MatchPredicate
    ) -> list[OpenOrder]:
        """Return open orders of ``restaurant_id`` selected by ``predicate``."""
        raise NotImplementedError

    @abstractmethod
    async def delete_open_orders(
        self, restaurant_id: str, predicate: MatchPredicate
    ) -> int:
        """Delete open orders selected by ``predicate`` and return the count."""
        raise NotImplementedError

    @abstractmethod
    async def delete_orders(self, restaurant_id: str, order_ids: Sequence[int]) -> int:
        """Delete the given orders of ``restaurant_id`` and return the count."""
        raise NotImplementedError
