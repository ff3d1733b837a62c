"""Repository interface for the invoice archive."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from ..models import Invoice
    from ..services.billing_service import InvoiceDraft


class InvoicesRepo(ABC):
    """Contract for the append-only invoice archive."""

    @abstractmethod
    async def save_invoice(self, draft: "InvoiceDraft") -> "Invoice":
        """Persist ``draft`` and return the stored invoice with its id."""
        raise NotImplementedError


class ReconciliationRepo(ABC):
    """Contract for recording settlements that left orders behind."""

    @abstractmethod
    async def enqueue(
        self,
        restaurant_id: str,
        table_identifier: str | None,
        invoice_number: str,
        order_ids: list[int],
        error: str,
    ) -> int:
        """Record a reconciliation task and return its id."""
        raise NotImplementedError
