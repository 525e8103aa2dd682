from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_eligibility_gate, get_notifiers
from api.serializers import loan_to_response, needs_list_item_to_response
from database import get_db
from schemas.loan import LoanCreate, LoanUpdate
from schemas.quote import SoftQuoteRequest
from services.eligibility import EligibilityGate
from services.loan_store import create_loan, get_loan, get_loan_snapshot, update_loan
from services.needs_list import build_needs_list, list_needs_list_items, materialize_needs_list
from services.notifications import Notifier, notify_needs_list_ready, notify_quote_issued
from services.submission import submit_for_quote

router = APIRouter(prefix="/api/loans", tags=["loans"])


@router.post("", status_code=201)
async def create_loan_request(body: LoanCreate, db: AsyncSession = Depends(get_db)):
    loan = await create_loan(db, body)
    return loan_to_response(loan)


@router.get("/{loan_id}")
async def get_loan_request(loan_id: str, db: AsyncSession = Depends(get_db)):
    return loan_to_response(await get_loan(db, loan_id))


@router.put("/{loan_id}")
async def update_loan_request(loan_id: str, body: LoanUpdate, db: AsyncSession = Depends(get_db)):
    loan = await update_loan(db, loan_id, body)
    return loan_to_response(loan)


@router.post("/{loan_id}/eligibility")
async def check_loan_eligibility(
    loan_id: str,
    db: AsyncSession = Depends(get_db),
    gate: EligibilityGate = Depends(get_eligibility_gate),
):
    """Gate only; nothing is stored."""
    snapshot = await get_loan_snapshot(db, loan_id)
    return gate.check(snapshot).model_dump(by_alias=True)


@router.post("/{loan_id}/soft-quote")
async def request_soft_quote(
    loan_id: str,
    background_tasks: BackgroundTasks,
    body: SoftQuoteRequest | None = None,
    db: AsyncSession = Depends(get_db),
    gate: EligibilityGate = Depends(get_eligibility_gate),
    notifiers: list[Notifier] = Depends(get_notifiers),
):
    body = body or SoftQuoteRequest()
    outcome = await submit_for_quote(db, loan_id, gate, credit_score=body.credit_score, actor=body.actor)

    if not outcome.eligibility.eligible:
        return JSONResponse(
            status_code=422,
            content={
                "error": "Loan request is not eligible",
                "errors": [e.model_dump(by_alias=True) for e in outcome.eligibility.errors],
            },
        )
    if outcome.decline is not None:
        return JSONResponse(status_code=400, content=outcome.decline.model_dump(mode="json", by_alias=True))

    background_tasks.add_task(notify_quote_issued, notifiers, loan_id, outcome.quote)
    background_tasks.add_task(notify_needs_list_ready, notifiers, loan_id, outcome.needs_list_items)
    return {
        "quote": outcome.quote.model_dump(mode="json", by_alias=True),
        "status": outcome.transition.new_status.value,
        "percentComplete": outcome.transition.percent_complete,
        "eligibilityBypassed": outcome.eligibility.bypassed,
        "needsList": outcome.needs_list.model_dump(by_alias=True),
    }


@router.get("/{loan_id}/needs-list")
async def get_needs_list(loan_id: str, db: AsyncSession = Depends(get_db)):
    await get_loan(db, loan_id)
    items = await list_needs_list_items(db, loan_id)
    return [needs_list_item_to_response(i) for i in items]


@router.post("/{loan_id}/needs-list/generate")
async def generate_needs_list(
    loan_id: str,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    notifiers: list[Notifier] = Depends(get_notifiers),
):
    """Safe to call repeatedly; items already on file are left alone."""
    snapshot = await get_loan_snapshot(db, loan_id)
    result = await materialize_needs_list(db, snapshot)
    if result.inserted:
        background_tasks.add_task(notify_needs_list_ready, notifiers, loan_id, build_needs_list(snapshot))
    items = await list_needs_list_items(db, loan_id)
    return {
        **result.model_dump(by_alias=True),
        "items": [needs_list_item_to_response(i) for i in items],
    }
