"""Service layer helpers for the API."""

from .billing_service import ChargeParams, PriceResolution, consolidate
from .settlement import SettlementResult, SettlementService
from .table_lease import TableLease

__all__ = [
    "ChargeParams",
    "PriceResolution",
    "consolidate",
    "SettlementResult",
    "SettlementService",
    "TableLease",
]
