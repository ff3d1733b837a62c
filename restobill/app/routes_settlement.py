"""Routes for clearing a table into a single invoice."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from .db import get_db
from .deps.store import get_redis
from .services.settlement import SettlementService
from .utils.responses import ok

router = APIRouter()


class SettleRequest(BaseModel):
    """Optional charge overrides.

    Values are accepted as sent; anything that is not a non-negative number
    is treated as ``0`` by the billing engine.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    tax_rate: Any = Field(None, alias="taxRate")
    discount_rate: Any = Field(None, alias="discountRate")
    additional_charges: Any = Field(None, alias="additionalCharges")
    payment_method: str | None = Field(None, alias="paymentMethod")


class ClearTableRequest(SettleRequest):
    restaurant_id: str | None = Field(None, alias="restaurantId")


def _charges(payload: SettleRequest | None) -> dict:
    if payload is None:
        return {}
    return payload.model_dump(
        by_alias=True, exclude_none=True, exclude={"restaurant_id"}
    )


@router.post("/api/outlet/{restaurant_id}/tables/{table_identifier}/settle")
async def settle_table(
    restaurant_id: str,
    table_identifier: str,
    payload: SettleRequest | None = None,
    session: AsyncSession = Depends(get_db),
    redis: Any = Depends(get_redis),
) -> dict:
    """Archive one invoice for the table and clear its open orders.

    Responds with ``invoiceNumber`` and ``finalTotal``. Failures are rendered
    by the settlement error handler registered in :mod:`.main`.
    """

    service = SettlementService.for_session(session, redis, restaurant_id)
    result = await service.settle_table(restaurant_id, table_identifier, _charges(payload))
    return ok(result.as_response())


@router.post("/api/clearTable/{table_identifier}")
async def clear_table(
    table_identifier: str,
    payload: ClearTableRequest,
    session: AsyncSession = Depends(get_db),
    redis: Any = Depends(get_redis),
) -> dict:
    """Legacy form of :func:`settle_table` taking ``restaurantId`` in the body."""

    service = SettlementService.for_session(session, redis, payload.restaurant_id)
    result = await service.settle_table(
        payload.restaurant_id, table_identifier, _charges(payload)
    )
    return ok(result.as_response())
