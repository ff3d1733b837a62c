"""Bill consolidation for table settlement.

:func:`consolidate` gathers every open order selected by a
:class:`~restobill.app.domain.MatchPredicate`, prices each line and produces
an :class:`InvoiceDraft` together with the ids of all matched orders. Nothing
is persisted here; see :mod:`.settlement` for that.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any, Mapping, Sequence

from ..domain import (
    InvalidInput,
    MatchPredicate,
    NotFound,
    PartialResolutionWarning,
    is_billable,
)
from ..repos.menu_repo import CatalogEntry, MenuRepo
from ..repos.orders_repo import OpenOrder, OpenOrderLine, OrdersRepo
from ..routes_metrics import unresolved_line_items_total
from ..utils.invoice_number import build_invoice_number

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0")
UNKNOWN_ITEM = "Unknown Item"


def round2(value: Decimal) -> Decimal:
    """Quantize ``value`` to two places rounding half up."""

    return value.quantize(CENT, rounding=ROUND_HALF_UP)


class PriceResolution(str, Enum):
    """Where the unit price of a consolidated line came from."""

    RESOLVED = "resolved"
    FALLBACK_TO_CATALOG = "fallback_to_catalog"
    UNRESOLVED = "unresolved"


def _coerce_amount(value: Any, name: str) -> Decimal:
    """Return ``value`` as a non-negative ``Decimal``; anything else is zero."""

    if value is None or value == "":
        return ZERO
    if isinstance(value, bool):
        logger.warning("ignoring boolean %s=%r", name, value)
        return ZERO
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        logger.warning("ignoring non-numeric %s=%r", name, value)
        return ZERO
    if not amount.is_finite() or amount < 0:
        logger.warning("ignoring out of range %s=%r", name, value)
        return ZERO
    return amount


@dataclass(frozen=True)
class ChargeParams:
    """Tax, discount and surcharge applied on top of the item subtotal.

    Rates are percentages. Construct with :meth:`coerce` to apply the lenient
    input policy: missing, negative or non-numeric values become ``0``.
    """

    tax_rate: Decimal = ZERO
    discount_rate: Decimal = ZERO
    additional_charges: Decimal = ZERO
    payment_method: str = "cash"

    @classmethod
    def coerce(
        cls, raw: Mapping[str, Any] | None, default_payment_method: str = "cash"
    ) -> "ChargeParams":
        raw = raw or {}

        def pick(camel: str, snake: str) -> Any:
            return raw.get(camel, raw.get(snake))

        method = pick("paymentMethod", "payment_method")
        # rates are archived with two places, so price with what gets stored
        return cls(
            tax_rate=round2(_coerce_amount(pick("taxRate", "tax_rate"), "taxRate")),
            discount_rate=round2(
                _coerce_amount(pick("discountRate", "discount_rate"), "discountRate")
            ),
            additional_charges=_coerce_amount(
                pick("additionalCharges", "additional_charges"), "additionalCharges"
            ),
            payment_method=str(method).strip() if method else default_payment_method,
        )


@dataclass(frozen=True)
class Breakdown:
    sub_total: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    additional_charges: Decimal
    final_total: Decimal


def compute_breakdown(sub_total: Decimal, charges: ChargeParams) -> Breakdown:
    """Compute tax, discount and final total for ``sub_total``.

    Tax and discount are rounded first, then the final total is rounded, so
    that ``final_total == sub_total + tax_amount + additional_charges -
    discount_amount`` holds exactly on the stored values.

    >>> b = compute_breakdown(Decimal("300"), ChargeParams(Decimal("5"), ZERO, Decimal("20")))
    >>> b.tax_amount, b.final_total
    (Decimal('15.00'), Decimal('335.00'))
    """

    sub_total = round2(sub_total)
    tax_amount = round2(sub_total * charges.tax_rate / Decimal("100"))
    discount_amount = round2(sub_total * charges.discount_rate / Decimal("100"))
    additional = round2(charges.additional_charges)
    final_total = round2(sub_total + tax_amount + additional - discount_amount)
    return Breakdown(
        sub_total=sub_total,
        tax_amount=tax_amount,
        discount_amount=discount_amount,
        additional_charges=additional,
        final_total=final_total,
    )


@dataclass(frozen=True)
class ConsolidatedLine:
    """A priced line of the consolidated bill."""

    order_id: int
    item_ref: str | None
    name: str
    quantity: int
    unit_price: Decimal
    resolution: PriceResolution
    excluded: bool = False

    @property
    def line_total(self) -> Decimal:
        if self.excluded:
            return ZERO
        return self.unit_price * self.quantity

    def as_record(self) -> dict:
        record = {
            "name": self.name,
            "quantity": self.quantity,
            "price": float(round2(self.unit_price)),
        }
        if self.excluded:
            record["excluded"] = True
        return record


@dataclass
class InvoiceDraft:
    """Fully computed invoice that has not been persisted yet."""

    restaurant_id: str
    table_identifier: str | None
    invoice_number: str
    lines: list[ConsolidatedLine]
    sub_total: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    discount_rate: Decimal
    discount_amount: Decimal
    additional_charges: Decimal
    final_total: Decimal
    payment_method: str
    timestamp: datetime

    @property
    def total_amount(self) -> Decimal:
        return self.final_total

    def order_items(self) -> list[dict]:
        return [line.as_record() for line in self.lines]


@dataclass
class Consolidation:
    """Result of :func:`consolidate`."""

    draft: InvoiceDraft
    order_ids: list[int]
    billed_order_ids: list[int] = field(default_factory=list)

    @property
    def unresolved(self) -> list[ConsolidatedLine]:
        return [
            line
            for line in self.draft.lines
            if line.resolution is PriceResolution.UNRESOLVED and not line.excluded
        ]


class _CatalogCache:
    """Memoise catalog lookups for the duration of one consolidation."""

    def __init__(self, menu: MenuRepo) -> None:
        self.menu = menu
        self._seen: dict[str | None, CatalogEntry | None] = {}

    async def get(self, item_ref: str | None) -> CatalogEntry | None:
        if item_ref not in self._seen:
            self._seen[item_ref] = await self.menu.lookup_item(item_ref)
        return self._seen[item_ref]


async def price_line(
    order: OpenOrder, line: OpenOrderLine, catalog: _CatalogCache
) -> ConsolidatedLine:
    """Resolve name and unit price for ``line``.

    The price captured on the order wins. A missing or zero snapshot falls
    back to the live catalog; when that fails too the line is billed at zero
    under the name ``"Unknown Item"``. Lines of cancelled or rejected orders
    are listed as captured, without catalog lookups or warnings.
    """

    excluded = not is_billable(order.status)
    entry: CatalogEntry | None = None
    if excluded:
        price = line.unit_price if line.unit_price is not None else ZERO
        resolution = (
            PriceResolution.RESOLVED if price > 0 else PriceResolution.UNRESOLVED
        )
        return ConsolidatedLine(
            order_id=order.id,
            item_ref=line.item_ref,
            name=line.name or UNKNOWN_ITEM,
            quantity=line.quantity,
            unit_price=price,
            resolution=resolution,
            excluded=True,
        )
    if line.unit_price is not None and line.unit_price > 0:
        price = line.unit_price
        resolution = PriceResolution.RESOLVED
        if not line.name:
            entry = await catalog.get(line.item_ref)
    else:
        entry = await catalog.get(line.item_ref)
        if entry is not None:
            price = entry.price
            resolution = PriceResolution.FALLBACK_TO_CATALOG
        else:
            price = ZERO
            resolution = PriceResolution.UNRESOLVED

    name = line.name or (entry.name if entry is not None else None) or UNKNOWN_ITEM
    if resolution is PriceResolution.UNRESOLVED or name == UNKNOWN_ITEM:
        unresolved_line_items_total.inc()
        logger.warning(
            "unresolved line item %r on order %s",
            line.item_ref,
            order.id,
            extra={
                "restaurant": order.restaurant_id,
                "table": order.table_identifier,
                "category": PartialResolutionWarning.__name__,
            },
        )

    return ConsolidatedLine(
        order_id=order.id,
        item_ref=line.item_ref,
        name=name,
        quantity=line.quantity,
        unit_price=price,
        resolution=resolution,
        excluded=excluded,
    )


async def consolidate_orders(
    restaurant_id: str,
    predicate: MatchPredicate,
    orders: Sequence[OpenOrder],
    charges: ChargeParams,
    menu: MenuRepo,
    *,
    now: datetime | None = None,
    tz: str = "UTC",
) -> Consolidation:
    """Price ``orders`` and build the invoice draft.

    Cancelled and rejected orders contribute nothing to the subtotal but their
    lines are still listed (flagged ``excluded``) and their ids are returned so
    that settlement clears them from the active view.
    """

    if not orders:
        raise NotFound(
            "no open orders for this table",
            details={"restaurantId": restaurant_id, "table": predicate.raw},
        )

    now = now or datetime.now(timezone.utc)
    catalog = _CatalogCache(menu)
    lines: list[ConsolidatedLine] = []
    billed: list[int] = []
    sub_total = ZERO
    for order in orders:
        if is_billable(order.status):
            billed.append(order.id)
        for line in order.lines:
            priced = await price_line(order, line, catalog)
            sub_total += priced.line_total
            lines.append(priced)

    breakdown = compute_breakdown(sub_total, charges)
    draft = InvoiceDraft(
        restaurant_id=restaurant_id,
        table_identifier=predicate.display_identifier(
            o.table_identifier for o in orders
        ),
        invoice_number=build_invoice_number(now, tz),
        lines=lines,
        sub_total=breakdown.sub_total,
        tax_rate=charges.tax_rate,
        tax_amount=breakdown.tax_amount,
        discount_rate=charges.discount_rate,
        discount_amount=breakdown.discount_amount,
        additional_charges=breakdown.additional_charges,
        final_total=breakdown.final_total,
        payment_method=charges.payment_method,
        timestamp=now,
    )
    return Consolidation(
        draft=draft, order_ids=[o.id for o in orders], billed_order_ids=billed
    )


async def consolidate(
    restaurant_id: str,
    predicate: MatchPredicate,
    charges: ChargeParams,
    orders: OrdersRepo,
    menu: MenuRepo,
    *,
    now: datetime | None = None,
    tz: str = "UTC",
) -> Consolidation:
    """Fetch the open orders selected by ``predicate`` and consolidate them.

    Raises :class:`InvalidInput` for a blank ``restaurant_id`` and
    :class:`NotFound` when no order matches.
    """

    if not restaurant_id or not str(restaurant_id).strip():
        raise InvalidInput("restaurantId is required")
    matched = await orders.get_open_orders(restaurant_id, predicate)
    return await consolidate_orders(
        restaurant_id, predicate, matched, charges, menu, now=now, tz=tz
    )


__all__ = [
    "PriceResolution",
    "ChargeParams",
    "Breakdown",
    "compute_breakdown",
    "ConsolidatedLine",
    "InvoiceDraft",
    "Consolidation",
    "price_line",
    "consolidate_orders",
    "consolidate",
    "round2",
]
