"""FastAPI entry point for the ledger service."""
from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from loandesk import __version__
from loandesk.database import init_db
from loandesk.errors import LedgerError
from loandesk.routers import advisor_payouts, invoices, ledger, payables, receivables

logging.basicConfig(
    level=os.getenv("LOANDESK_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    init_db()
    yield


app = FastAPI(title="LoanDesk", version=__version__, lifespan=lifespan)

app.include_router(advisor_payouts.router)
app.include_router(payables.router)
app.include_router(invoices.router)
app.include_router(receivables.router)
app.include_router(ledger.router)


def _failure(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message, "data": []})


@app.get("/health")
def health() -> Response:
    """Simple health endpoint for load balancers and platform checks."""
    return Response(content='{"status":"ok"}', media_type="application/json")


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    logger.warning("%s %s rejected (%s): %s", request.method, request.url.path, exc.status_code, exc.message)
    return _failure(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    else:
        message = "Bad request, missing required fields"
    logger.warning("%s %s rejected (400): %s", request.method, request.url.path, message)
    return _failure(status.HTTP_400_BAD_REQUEST, message)


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _failure(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")
