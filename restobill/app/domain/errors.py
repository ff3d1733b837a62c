"""Settlement error taxonomy.

Every failure surfaced by the settlement core is one of these exceptions. Each
carries a machine readable ``code``, a human readable message, an optional
``hint`` and the HTTP status used when rendering it.
"""

from __future__ import annotations

from typing import Any


class SettlementError(Exception):
    """Base class for failures raised by the settlement core."""

    code = "SETTLEMENT_ERROR"
    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.details = details or {}


class InvalidInput(SettlementError):
    """Raised when a required input such as the restaurant id is missing."""

    code = "INVALID_INPUT"
    status_code = 400


class NotFound(SettlementError):
    """Raised when no open orders match the restaurant and table."""

    code = "NOT_FOUND"
    status_code = 404


class SettlementInProgress(SettlementError):
    """Raised when another settlement holds the lease for the same table."""

    code = "SETTLEMENT_IN_PROGRESS"
    status_code = 409


class PersistenceFailure(SettlementError):
    """Raised when the invoice write or order deletion fails."""

    code = "PERSISTENCE_FAILURE"
    status_code = 500


class PartialResolutionWarning(UserWarning):
    """Category for line items priced with sentinel values.

    Never raised; used as the ``category`` field of warning log records so
    that reconciliation jobs can grep for it.
    """


__all__ = [
    "SettlementError",
    "InvalidInput",
    "NotFound",
    "SettlementInProgress",
    "PersistenceFailure",
    "PartialResolutionWarning",
]
