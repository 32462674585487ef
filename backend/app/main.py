# backend/app/main.py
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .errors import LedgerError
from .logging_config import configure_logging

from .middleware.request_id import RequestIDMiddleware
from .middleware.structured_logging import StructuredLoggingMiddleware

from .routers.health import router as health_router
from .routers.dashboard import router as dashboard_router
from .routers.finance import router as finance_router
from .routers.invoices import router as invoices_router
from .routers.payments import router as payments_router
from .routers.statements import router as statements_router
from .routers.water_bills import router as water_bills_router

API_PREFIX = "/api"

log = logging.getLogger("rentledger.api")


def _cors_origins() -> list[str]:
    val = getattr(settings, "cors_allow_origins", ["*"])
    if isinstance(val, str):
        v = val.strip()
        return ["*"] if v == "*" else [x.strip() for x in v.split(",") if x.strip()]
    if isinstance(val, list) and val:
        return val
    return ["*"]


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error("ledger error: %s", exc.message, extra={"http": {"path": request.url.path, **exc.details}})
    body = {"success": False, "error": exc.message}
    if exc.details and exc.status_code < 500:
        body["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=body)


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(title="Rent Ledger", version=settings.app_version)

    # added last runs first: request id must be set before the access log line
    app.add_middleware(StructuredLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(LedgerError, ledger_error_handler)

    # Core
    app.include_router(health_router, prefix=API_PREFIX)
    app.include_router(dashboard_router, prefix=API_PREFIX)

    # Billing
    app.include_router(invoices_router, prefix=API_PREFIX)
    app.include_router(payments_router, prefix=API_PREFIX)
    app.include_router(water_bills_router, prefix=API_PREFIX)

    # Reporting
    app.include_router(statements_router, prefix=API_PREFIX)
    app.include_router(finance_router, prefix=API_PREFIX)

    return app


app = create_app()
