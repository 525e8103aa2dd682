from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_notifiers
from api.serializers import history_to_response, loan_to_response, needs_list_item_to_response
from database import get_db
from schemas.needs_list import NeedsListItemCreate, NeedsListReviewRequest, NeedsListStatus
from schemas.status import StatusTransitionRequest
from services.audit import NEEDS_LIST_ITEM_ADDED, NEEDS_LIST_REVIEWED, record_audit
from services.loan_store import get_loan
from services.needs_list import add_needs_list_item, list_needs_list_items, review_needs_list_item, to_item_schema
from services.notifications import Notifier, notify_needs_list_ready
from services.pipeline import list_pipeline, pipeline_stats
from services.status_machine import (
    days_in_current_status,
    load_history,
    next_status,
    percent_complete,
    transition_status,
)

router = APIRouter(prefix="/api/operations", tags=["operations"])


@router.get("/pipeline")
async def get_pipeline(
    status: Optional[str] = Query(None, description="Loan status, or 'all'"),
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    result = await list_pipeline(db, status=status, search=search, page=page, limit=limit)
    return result.model_dump(mode="json", by_alias=True)


@router.get("/stats")
async def get_pipeline_stats(db: AsyncSession = Depends(get_db)):
    return (await pipeline_stats(db)).model_dump(mode="json", by_alias=True)


@router.get("/loans/{loan_id}")
async def get_loan_detail(loan_id: str, db: AsyncSession = Depends(get_db)):
    """Loan with its status history (newest first), needs list and pipeline position."""
    loan = await get_loan(db, loan_id)
    history = await load_history(db, loan_id)
    items = await list_needs_list_items(db, loan_id)
    upcoming = next_status(loan.status)
    return {
        "loan": loan_to_response(loan),
        "statusHistory": [history_to_response(h) for h in history],
        "needsList": [needs_list_item_to_response(i) for i in items],
        "percentComplete": percent_complete(loan.status),
        "daysInCurrentStatus": days_in_current_status(history),
        "nextStatus": upcoming.value if upcoming else None,
    }


@router.put("/loans/{loan_id}/status")
async def update_loan_status(loan_id: str, body: StatusTransitionRequest, db: AsyncSession = Depends(get_db)):
    result = await transition_status(db, loan_id, body.status, actor=body.actor, notes=body.notes)
    return result.model_dump(mode="json", by_alias=True)


@router.post("/loans/{loan_id}/needs-list")
async def request_document(
    loan_id: str,
    body: NeedsListItemCreate,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    notifiers: list[Notifier] = Depends(get_notifiers),
):
    """Ask the borrower for one more document. Repeating the request returns the existing item with 200."""
    loan = await get_loan(db, loan_id)
    item, created = await add_needs_list_item(
        db,
        loan_id,
        body.document_type,
        body.folder_name,
        description=body.description,
        required=body.required,
        loan_type=loan.transaction_type,
    )
    if not created:
        return needs_list_item_to_response(item)

    await record_audit(
        db,
        NEEDS_LIST_ITEM_ADDED,
        entity_type="needs_list_item",
        entity_id=item.id,
        actor=body.requested_by,
        details={"loanId": loan_id, "documentType": item.document_type, "folderName": item.folder_name},
    )
    background_tasks.add_task(notify_needs_list_ready, notifiers, loan_id, [to_item_schema(item)])
    return JSONResponse(status_code=201, content=needs_list_item_to_response(item))


@router.put("/needs-list/{item_id}/review")
async def review_document(item_id: str, body: NeedsListReviewRequest, db: AsyncSession = Depends(get_db)):
    item = await review_needs_list_item(db, item_id, NeedsListStatus(body.status), body.reviewer, body.notes)
    if item is None:
        raise HTTPException(status_code=404, detail="Needs-list item not found")
    await record_audit(
        db,
        NEEDS_LIST_REVIEWED,
        entity_type="needs_list_item",
        entity_id=item.id,
        actor=body.reviewer,
        details={"loanId": item.loan_id, "status": item.status, "notes": body.notes},
    )
    return needs_list_item_to_response(item)
