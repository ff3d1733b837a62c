# main.py

"""FastAPI application for table ordering and settlement."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from redis.asyncio import from_url
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import get_settings

from . import db as app_db
from .domain import SettlementError
from .middlewares import LoggingMiddleware, RequestIdMiddleware
from .obs import capture_exception, init_sentry
from .obs.logging import configure_logging
from .routes_invoices import router as invoices_router
from .routes_menu import router as menu_router
from .routes_metrics import router as metrics_router
from .routes_orders import router as orders_router
from .routes_reconciliation import router as reconciliation_router
from .routes_settlement import router as settlement_router
from .utils.responses import err, ok, settlement_error

settings = get_settings()
app = FastAPI(title="restobill", version="1.0.0")

app.state.redis = from_url(settings.redis_url, decode_responses=True)
app.add_middleware(LoggingMiddleware)
app.add_middleware(RequestIdMiddleware)

configure_logging(settings.log_level.upper())
init_sentry(settings.error_dsn, env=settings.environment)
logger = logging.getLogger("api")


@app.exception_handler(SettlementError)
async def settlement_error_handler(request: Request, exc: SettlementError):
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        "%s: %s",
        exc.code,
        exc.message,
        extra={
            "table": request.path_params.get("table_identifier"),
            "invoice": exc.details.get("invoiceNumber"),
        },
    )
    if exc.status_code >= 500:
        capture_exception(exc, code=exc.code)
    return settlement_error(exc)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    logger.warning(str(exc.detail), extra={"status": exc.status_code})
    return JSONResponse(err(exc.status_code, exc.detail), status_code=exc.status_code)


@app.on_event("startup")
async def create_tables() -> None:
    await app_db.init_models()


@app.on_event("shutdown")
async def close_stores() -> None:
    await app.state.redis.aclose()
    await app_db.dispose_engine()


@app.get("/health")
async def health() -> dict:
    return ok({"status": "ok"})


app.include_router(settlement_router)
app.include_router(orders_router)
app.include_router(invoices_router)
app.include_router(menu_router)
app.include_router(reconciliation_router)
app.include_router(metrics_router)
