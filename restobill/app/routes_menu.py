"""Minimal menu catalog routes used to seed prices for ordering."""

from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import AliasChoices, BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from .db import get_db
from .models import MenuItem
from .repos_sqlalchemy import menu_repo_sql
from .utils.responses import ok

router = APIRouter()


class MenuItemCreate(BaseModel):
    name: str = Field(min_length=1)
    price: Decimal = Field(ge=0)
    category: str = "General"
    in_stock: bool = Field(True, validation_alias=AliasChoices("inStock", "in_stock"))


def serialize_item(item: MenuItem) -> dict:
    return {
        "id": item.id,
        "restaurantId": item.restaurant_id,
        "name": item.name,
        "price": float(item.price),
        "category": item.category,
        "inStock": item.in_stock,
    }


@router.post("/api/outlet/{restaurant_id}/menu", status_code=201)
async def add_menu_item(
    restaurant_id: str,
    payload: MenuItemCreate,
    session: AsyncSession = Depends(get_db),
) -> dict:
    item = await menu_repo_sql.create_item(
        session,
        restaurant_id,
        payload.name,
        payload.price,
        category=payload.category,
        in_stock=payload.in_stock,
    )
    return ok(serialize_item(item))


@router.get("/api/outlet/{restaurant_id}/menu")
async def list_menu(
    restaurant_id: str, session: AsyncSession = Depends(get_db)
) -> dict:
    items = await menu_repo_sql.list_items(session, restaurant_id)
    return ok([serialize_item(item) for item in items])
