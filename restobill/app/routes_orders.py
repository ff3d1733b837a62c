"""Routes for placing orders and inspecting a table's open orders."""

from __future__ import annotations

from datetime import datetime, time, timezone
from typing import List
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import AliasChoices, BaseModel, Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from config import get_settings

from .db import get_db
from .domain import OrderStatus, normalize
from .models import Order
from .repos_sqlalchemy import orders_repo_sql
from .routes_metrics import orders_created_total
from .utils.responses import ok

router = APIRouter()


class OrderLine(BaseModel):
    """Single line item for an order."""

    item_id: int | str = Field(validation_alias=AliasChoices("itemId", "item_id"))
    qty: int = Field(validation_alias=AliasChoices("quantity", "qty"))

    @field_validator("qty")
    @classmethod
    def _validate_qty(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("qty must be greater than 0")
        return v


class PlaceOrderRequest(BaseModel):
    restaurant_id: str = Field(
        min_length=1, validation_alias=AliasChoices("restaurantId", "restaurant_id")
    )
    table_identifier: str | int | None = Field(
        None,
        validation_alias=AliasChoices(
            "tableNumber", "tableIdentifier", "table_identifier"
        ),
    )
    wpno: str | None = None
    items: List[OrderLine] = Field(min_length=1)


class StatusUpdate(BaseModel):
    status: OrderStatus


def serialize_order(order: Order) -> dict:
    return {
        "id": order.id,
        "restaurantId": order.restaurant_id,
        "tableIdentifier": order.table_identifier,
        "wpno": order.wpno,
        "status": order.status,
        "total": float(order.total) if order.total is not None else None,
        "createdAt": order.created_at.isoformat() if order.created_at else None,
        "items": [
            {
                "itemId": item.item_id,
                "name": item.name_snapshot,
                "quantity": item.qty,
                "price": (
                    float(item.price_snapshot)
                    if item.price_snapshot is not None
                    else None
                ),
            }
            for item in order.items
        ],
    }


def _start_of_today(tz: str) -> datetime:
    zone = ZoneInfo(tz)
    today = datetime.now(zone).date()
    return datetime.combine(today, time.min, zone).astimezone(timezone.utc)


@router.post("/api/order", status_code=201)
async def place_order(
    payload: PlaceOrderRequest, session: AsyncSession = Depends(get_db)
) -> dict:
    """Place an order, snapshotting current menu prices for every line."""

    lines = [{"item_id": line.item_id, "qty": line.qty} for line in payload.items]
    try:
        order = await orders_repo_sql.create_order(
            session,
            payload.restaurant_id,
            payload.table_identifier,
            lines,
            wpno=payload.wpno,
        )
    except ValueError as exc:
        status = 409 if str(exc) == "OUT_OF_STOCK" else 400
        raise HTTPException(status_code=status, detail=str(exc)) from exc
    orders_created_total.inc()
    return ok(serialize_order(order))


@router.get("/api/outlet/{restaurant_id}/tables/{table_identifier}/orders")
async def table_orders(
    restaurant_id: str,
    table_identifier: str,
    today_only: bool = Query(True),
    session: AsyncSession = Depends(get_db),
) -> dict:
    """List a table's open orders, newest first."""

    settings = get_settings()
    predicate = normalize(table_identifier, settings.missing_table_sentinels)
    since = _start_of_today(settings.invoice_timezone) if today_only else None
    orders = await orders_repo_sql.list_table_orders(
        session, restaurant_id, predicate, since=since
    )
    return ok([serialize_order(o) for o in orders])


@router.put("/api/outlet/{restaurant_id}/orders/{order_id}/status")
async def update_order_status(
    restaurant_id: str,
    order_id: int,
    payload: StatusUpdate,
    session: AsyncSession = Depends(get_db),
) -> dict:
    """Move an order to a new status following the order state machine."""

    try:
        order = await orders_repo_sql.update_status(
            session, restaurant_id, order_id, payload.status.value
        )
    except ValueError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    if order is None:
        raise HTTPException(status_code=404, detail="order not found")
    return ok(serialize_order(order))
