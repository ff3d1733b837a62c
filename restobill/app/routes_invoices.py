"""Routes for browsing the invoice archive (order history)."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from .db import get_db
from .models import Invoice
from .repos_sqlalchemy import invoices_repo_sql
from .utils.responses import ok

router = APIRouter()


def _money(value) -> float:
    return float(value) if value is not None else 0.0


def serialize_invoice(invoice: Invoice) -> dict:
    """Render an invoice using the archive's public field names."""

    return {
        "id": invoice.id,
        "restaurantId": invoice.restaurant_id,
        "tableIdentifier": invoice.table_identifier,
        "invoiceNumber": invoice.invoice_number,
        "orderItems": invoice.order_items,
        "subTotal": _money(invoice.sub_total),
        "taxRate": _money(invoice.tax_rate),
        "taxAmount": _money(invoice.tax_amount),
        "discountRate": _money(invoice.discount_rate),
        "discountAmount": _money(invoice.discount_amount),
        "additionalCharges": _money(invoice.additional_charges),
        "finalTotal": _money(invoice.final_total),
        "totalAmount": _money(invoice.total_amount),
        "paymentMethod": invoice.payment_method,
        "timestamp": invoice.timestamp.isoformat() if invoice.timestamp else None,
    }


@router.get("/api/outlet/{restaurant_id}/invoices")
async def list_invoices(
    restaurant_id: str,
    limit: int | None = Query(None, ge=1, le=500),
    session: AsyncSession = Depends(get_db),
) -> dict:
    """Return the restaurant's invoices, newest first."""

    invoices = await invoices_repo_sql.list_invoices(session, restaurant_id, limit)
    return ok([serialize_invoice(inv) for inv in invoices])


@router.get("/api/outlet/{restaurant_id}/invoices/{invoice_number}")
async def get_invoice(
    restaurant_id: str,
    invoice_number: str,
    session: AsyncSession = Depends(get_db),
) -> dict:
    invoice = await invoices_repo_sql.get_invoice(session, restaurant_id, invoice_number)
    if invoice is None:
        raise HTTPException(status_code=404, detail="invoice not found")
    return ok(serialize_invoice(invoice))
