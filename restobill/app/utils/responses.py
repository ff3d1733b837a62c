"""Response envelopes shared by every route.

Success: ``{"ok": true, "data": ...}``. Failure: ``{"ok": false,
"request_id": ..., "error": {"code", "message", "hint"?, "details"?}}``.
"""

from typing import Any, Dict

from fastapi.responses import JSONResponse

from ..domain import SettlementError, SettlementInProgress
from ..obs.context import request_id_ctx

# Seconds a POS should wait before retrying a table that is being settled.
SETTLE_RETRY_AFTER = 2


def ok(data: Any) -> Dict[str, Any]:
    return {"ok": True, "data": data}


def err(
    code: int | str,
    message: str,
    details: Dict[str, Any] | None = None,
    hint: str | None = None,
) -> Dict[str, Any]:
    body: Dict[str, Any] = {"code": code, "message": message}
    if hint:
        body["hint"] = hint
    if details:
        body["details"] = details
    return {"ok": False, "request_id": request_id_ctx.get(None), "error": body}


def settlement_error(exc: SettlementError) -> JSONResponse:
    """Render a settlement failure with its own status code."""
    headers = None
    if isinstance(exc, SettlementInProgress):
        headers = {"Retry-After": str(SETTLE_RETRY_AFTER)}
    return JSONResponse(
        err(exc.code, exc.message, details=exc.details, hint=exc.hint),
        status_code=exc.status_code,
        headers=headers,
    )
