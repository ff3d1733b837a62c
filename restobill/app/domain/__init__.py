"""Domain models and helpers."""

from .errors import (
    InvalidInput,
    NotFound,
    PartialResolutionWarning,
    PersistenceFailure,
    SettlementError,
    SettlementInProgress,
)
from .order_status import (
    TRANSITIONS,
    VOIDED,
    OrderStatus,
    can_transition,
    is_billable,
)
from .table_identifier import MatchKind, MatchPredicate, normalize

__all__ = [
    "OrderStatus",
    "TRANSITIONS",
    "VOIDED",
    "can_transition",
    "is_billable",
    "MatchKind",
    "MatchPredicate",
    "normalize",
    "SettlementError",
    "InvalidInput",
    "NotFound",
    "SettlementInProgress",
    "PersistenceFailure",
    "PartialResolutionWarning",
]
