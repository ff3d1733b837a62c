"""Settle a table: archive one invoice and clear its open orders.

Settlement runs as a two step saga without a cross-store transaction:

1. the invoice draft is written to the archive;
2. the open orders are deleted by re-applying the table predicate.

If step 1 fails nothing else happens. If step 2 fails, times out or is
cancelled, the invoice stays (it is the billing source of truth), a
reconciliation task is recorded as the compensating action and the failure
is surfaced. Neither step is retried,
because retrying would issue a second invoice for the same orders.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Mapping

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config import Settings, get_settings

from ..domain import (
    InvalidInput,
    MatchPredicate,
    PersistenceFailure,
    SettlementError,
    normalize,
)
from ..repos.invoices_repo import InvoicesRepo, ReconciliationRepo
from ..repos.menu_repo import MenuRepo
from ..repos.orders_repo import OrdersRepo
from ..repos_sqlalchemy import (
    SqlInvoicesRepo,
    SqlMenuRepo,
    SqlOrdersRepo,
    SqlReconciliationRepo,
)
from ..routes_metrics import (
    invoices_generated_total,
    reconciliation_tasks_total,
    settlements_total,
)
from . import billing_service
from .table_lease import TableLease

logger = logging.getLogger(__name__)


@dataclass
class SettlementResult:
    invoice_id: int
    invoice_number: str
    final_total: Decimal
    order_ids: list[int]
    deleted: int
    unresolved: int = 0

    def as_response(self) -> dict:
        return {
            "invoiceNumber": self.invoice_number,
            "finalTotal": float(self.final_total),
        }


class SettlementService:
    """Wire the consolidation engine to the stores and the table lease."""

    def __init__(
        self,
        orders: OrdersRepo,
        invoices: InvoicesRepo,
        menu: MenuRepo,
        reconciliation: ReconciliationRepo,
        redis: Any,
        settings: Settings | None = None,
    ) -> None:
        self.orders = orders
        self.invoices = invoices
        self.menu = menu
        self.reconciliation = reconciliation
        self.redis = redis
        self.settings = settings or get_settings()

    @classmethod
    def for_session(
        cls,
        session: AsyncSession,
        redis: Any,
        restaurant_id: str | None = None,
        settings: Settings | None = None,
    ) -> "SettlementService":
        return cls(
            orders=SqlOrdersRepo(session),
            invoices=SqlInvoicesRepo(session),
            menu=SqlMenuRepo(session, restaurant_id),
            reconciliation=SqlReconciliationRepo(session),
            redis=redis,
            settings=settings,
        )

    async def settle(
        self,
        consolidation: billing_service.Consolidation,
        predicate: MatchPredicate,
    ) -> SettlementResult:
        """Persist the invoice, then clear the table's open orders."""

        draft = consolidation.draft
        log_extra = {
            "restaurant": draft.restaurant_id,
            "table": draft.table_identifier,
            "invoice": draft.invoice_number,
        }
        try:
            invoice = await self.invoices.save_invoice(draft)
        except SQLAlchemyError as exc:
            logger.error("invoice write failed", exc_info=exc, extra=log_extra)
            raise PersistenceFailure(
                "could not save invoice", details={"stage": "save_invoice"}
            ) from exc
        invoices_generated_total.inc()

        try:
            deleted = await asyncio.wait_for(
                self.orders.delete_open_orders(draft.restaurant_id, predicate),
                timeout=self.settings.settle_timeout_secs,
            )
        except (SQLAlchemyError, asyncio.TimeoutError) as exc:
            logger.error(
                "order clean-up failed after invoice was stored",
                exc_info=exc,
                extra=log_extra,
            )
            task_id = await self._compensate(consolidation, exc)
            raise PersistenceFailure(
                "invoice stored but open orders were not cleared",
                hint="do not settle again; resolve the reconciliation task",
                details={
                    "stage": "delete_orders",
                    "invoiceNumber": draft.invoice_number,
                    "reconciliationId": task_id,
                },
            ) from exc
        except asyncio.CancelledError as exc:
            logger.error(
                "settlement cancelled after invoice was stored", extra=log_extra
            )
            await asyncio.shield(self._compensate(consolidation, exc))
            raise

        if deleted < len(consolidation.order_ids):
            logger.warning(
                "cleared %d of %d matched orders",
                deleted,
                len(consolidation.order_ids),
                extra=log_extra,
            )
        logger.info(
            "table settled: %d orders, total %s",
            deleted,
            draft.final_total,
            extra=log_extra,
        )
        return SettlementResult(
            invoice_id=invoice.id,
            invoice_number=draft.invoice_number,
            final_total=draft.final_total,
            order_ids=list(consolidation.order_ids),
            deleted=deleted,
            unresolved=len(consolidation.unresolved),
        )

    async def _compensate(
        self, consolidation: billing_service.Consolidation, exc: BaseException
    ) -> int | None:
        draft = consolidation.draft
        try:
            task_id = await self.reconciliation.enqueue(
                draft.restaurant_id,
                draft.table_identifier,
                draft.invoice_number,
                consolidation.order_ids,
                f"{type(exc).__name__}: {exc}",
            )
        except SQLAlchemyError:
            logger.exception(
                "could not queue reconciliation for %s", draft.invoice_number
            )
            return None
        reconciliation_tasks_total.inc()
        return task_id

    async def _consolidate(
        self,
        restaurant_id: str,
        predicate: MatchPredicate,
        charges: billing_service.ChargeParams,
        now: datetime | None,
    ) -> billing_service.Consolidation:
        try:
            return await billing_service.consolidate(
                restaurant_id,
                predicate,
                charges,
                self.orders,
                self.menu,
                now=now,
                tz=self.settings.invoice_timezone,
            )
        except SQLAlchemyError as exc:
            raise PersistenceFailure(
                "could not read open orders", details={"stage": "read_orders"}
            ) from exc

    async def settle_table(
        self,
        restaurant_id: str,
        raw_table: Any,
        charges: Mapping[str, Any] | None = None,
        *,
        now: datetime | None = None,
    ) -> SettlementResult:
        """Consolidate and settle every open order of one table.

        Holds the table lease for the whole find, price, persist and delete
        sequence. The read phase and the order clean-up are each bounded by
        ``settle_timeout_secs``; the invoice write is not, so a slow commit
        never leaves the archive in an unknown state.
        """

        if not restaurant_id or not str(restaurant_id).strip():
            raise InvalidInput("restaurantId is required")
        restaurant_id = str(restaurant_id).strip()
        predicate = normalize(raw_table, self.settings.missing_table_sentinels)
        params = billing_service.ChargeParams.coerce(
            charges, self.settings.default_payment_method
        )

        try:
            async with TableLease(
                self.redis, restaurant_id, predicate, self.settings.settle_lock_ttl_ms
            ):
                consolidation = await asyncio.wait_for(
                    self._consolidate(restaurant_id, predicate, params, now),
                    timeout=self.settings.settle_timeout_secs,
                )
                result = await self.settle(consolidation, predicate)
        except asyncio.TimeoutError as exc:
            settlements_total.labels(outcome="timeout").inc()
            raise PersistenceFailure(
                "settlement timed out",
                hint="check the order list before retrying",
                details={"stage": "timeout"},
            ) from exc
        except SettlementError as exc:
            settlements_total.labels(outcome=exc.code.lower()).inc()
            raise
        settlements_total.labels(outcome="ok").inc()
        return result


__all__ = ["SettlementResult", "SettlementService"]
