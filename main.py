import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings
from database import AsyncSessionLocal, init_db
from api.loans import router as loans_router
from api.operations import router as operations_router
from api.reference import router as reference_router
from reference.tables import get_reference_data
from services.audit import ELIGIBILITY_BYPASS_ENABLED, record_audit
from services.eligibility import EligibilityGate
from services.exceptions import (
    InvalidStatusError,
    LoanNotFoundError,
    NeedsListInsertError,
    ReferenceDataError,
    TerminalStatusError,
)
from services.notifications import LoggingNotifier
from utils.log import configure_logging

logger = logging.getLogger(__name__)


async def _audit_bypass(gate: EligibilityGate) -> None:
    async with AsyncSessionLocal() as session:
        await record_audit(
            session,
            ELIGIBILITY_BYPASS_ENABLED,
            entity_type="system",
            actor="startup",
            details={"environment": settings.environment, "referenceVersion": gate.reference.version},
        )
        await session.commit()


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level)
    await init_db()
    gate = EligibilityGate(settings.eligibility_mode, get_reference_data())
    app.state.eligibility_gate = gate
    app.state.notifiers = [LoggingNotifier()]
    if gate.bypassed:
        await _audit_bypass(gate)
    logger.info(
        "%s started (environment=%s, eligibility=%s, reference=%s)",
        settings.app_name,
        settings.environment,
        gate.mode.value,
        gate.reference.version,
    )
    yield


app = FastAPI(
    title=settings.app_name,
    description="Loan eligibility, soft-quote pricing, needs list and status tracking API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(loans_router)
app.include_router(operations_router)
app.include_router(reference_router)


@app.exception_handler(LoanNotFoundError)
async def loan_not_found(request: Request, exc: LoanNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(InvalidStatusError)
@app.exception_handler(TerminalStatusError)
async def rejected_status(request: Request, exc: Exception):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(ReferenceDataError)
async def reference_unavailable(request: Request, exc: ReferenceDataError):
    logger.error("Reference data unavailable: %s", exc)
    return JSONResponse(status_code=503, content={"detail": "Reference data unavailable"})


@app.exception_handler(NeedsListInsertError)
async def needs_list_not_stored(request: Request, exc: NeedsListInsertError):
    logger.error("%s", exc)
    return JSONResponse(status_code=500, content={"detail": "Needs-list item could not be stored"})


@app.get("/health")
async def health():
    return {"status": "ok"}
