"""Database models for open orders, the menu catalog and the invoice archive.

These models are kept isolated from any application wiring so that they can
be used in tests or migrations independently. Every row is scoped by
``restaurant_id``; the store is shared between restaurants.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    func,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MenuItem(Base):
    """Restaurant menu items used to price orders."""

    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True)
    restaurant_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    category = Column(String, nullable=False, default="General")
    in_stock = Column(Boolean, nullable=False, default=True)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class Order(Base):
    """Open orders placed from a table and not yet settled."""

    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    restaurant_id = Column(String, nullable=False, index=True)
    table_identifier = Column(String, nullable=True)
    wpno = Column(String, nullable=True)
    status = Column(String, nullable=False, default="pending")
    total = Column(Numeric(12, 2), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    items = relationship(
        "OrderItem",
        order_by="OrderItem.id",
        lazy="selectin",
        cascade="all, delete-orphan",
    )


class OrderItem(Base):
    """Line items belonging to an order.

    ``price_snapshot`` and ``name_snapshot`` are captured when the order is
    placed; either may be missing on orders imported from older clients.
    """

    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(
        Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False
    )
    item_id = Column(String, nullable=True)
    name_snapshot = Column(String, nullable=True)
    price_snapshot = Column(Numeric(10, 2), nullable=True)
    qty = Column(Integer, nullable=False)


class Invoice(Base):
    """Immutable settlement records, one per cleared table."""

    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True)
    restaurant_id = Column(String, nullable=False, index=True)
    table_identifier = Column(String, nullable=True)
    invoice_number = Column(String, nullable=False, index=True)
    order_items = Column(JSON, nullable=False)
    sub_total = Column(Numeric(12, 2), nullable=False)
    tax_rate = Column(Numeric(6, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(12, 2), nullable=False, default=0)
    discount_rate = Column(Numeric(6, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    additional_charges = Column(Numeric(12, 2), nullable=False, default=0)
    final_total = Column(Numeric(12, 2), nullable=False)
    # Mirror of final_total kept for older dashboards.
    total_amount = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(String, nullable=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class ReconciliationTask(Base):
    """Settlements whose invoice was stored but whose orders were not cleared."""

    __tablename__ = "settlement_reconciliation"

    id = Column(Integer, primary_key=True)
    restaurant_id = Column(String, nullable=False, index=True)
    table_identifier = Column(String, nullable=True)
    invoice_number = Column(String, nullable=False)
    order_ids = Column(JSON, nullable=False)
    error = Column(String, nullable=False)
    status = Column(String, nullable=False, default="queued")
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    resolved_at = Column(DateTime(timezone=True), nullable=True)


__all__ = [
    "Base",
    "MenuItem",
    "Order",
    "OrderItem",
    "Invoice",
    "ReconciliationTask",
]
