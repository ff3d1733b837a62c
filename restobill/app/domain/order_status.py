"""Order status enumeration and allowed transitions."""

from __future__ import annotations

from enum import Enum


class OrderStatus(str, Enum):
    """Enumerate the lifecycle states for an open order."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


TRANSITIONS: dict[OrderStatus, list[OrderStatus]] = {
    OrderStatus.PENDING: [
        OrderStatus.CONFIRMED,
        OrderStatus.REJECTED,
        OrderStatus.CANCELLED,
    ],
    OrderStatus.CONFIRMED: [
        OrderStatus.PREPARING,
        OrderStatus.OUT_FOR_DELIVERY,
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
    ],
    OrderStatus.PREPARING: [
        OrderStatus.OUT_FOR_DELIVERY,
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
    ],
    OrderStatus.OUT_FOR_DELIVERY: [OrderStatus.DELIVERED, OrderStatus.CANCELLED],
    OrderStatus.DELIVERED: [],
    OrderStatus.CANCELLED: [],
    OrderStatus.REJECTED: [],
}

# Orders in these states are cleared on settlement but never billed.
VOIDED: frozenset[OrderStatus] = frozenset(
    {OrderStatus.CANCELLED, OrderStatus.REJECTED}
)


def can_transition(src: OrderStatus, dst: OrderStatus) -> bool:
    """Return ``True`` if an order can move from ``src`` to ``dst``."""

    return dst in TRANSITIONS.get(src, [])


def is_billable(status: str | OrderStatus) -> bool:
    """Return ``False`` for cancelled or rejected orders.

    Unknown status strings are treated as billable so that a typo in an
    upstream system never silently zeroes a bill.
    """

    try:
        return OrderStatus(status) not in VOIDED
    except ValueError:
        return True
