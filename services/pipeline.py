"""
Operations pipeline: the board of loans in flight, and the per-status totals shown above it.
"""
from __future__ import annotations

import math
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from models import LoanRequest, LoanStatusHistory, NeedsListItem
from schemas.needs_list import NeedsListStatus
from schemas.pipeline import PipelineEntry, PipelinePage, PipelineStats, StatusCount
from schemas.status import LoanStatus
from services.status_machine import (
    as_utc,
    days_in_current_status,
    parse_status,
    percent_complete,
    status_catalog,
    status_option,
)

STALE_AFTER = timedelta(days=3)

# Loans this close to funding are not flagged as stale.
SETTLED_STATUSES = frozenset({LoanStatus.FUNDED, LoanStatus.CLEAR_TO_CLOSE, LoanStatus.CLOSING_SCHEDULED})


def _filters(status: Optional[str], search: Optional[str]) -> list:
    conditions = []
    if status and status != "all":
        conditions.append(LoanRequest.status == parse_status(status).value)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        conditions.append(
            or_(
                LoanRequest.loan_number.ilike(pattern),
                LoanRequest.property_name.ilike(pattern),
                LoanRequest.property_address.ilike(pattern),
            )
        )
    return conditions


async def _histories(session: AsyncSession, loan_ids: list[str]) -> dict[str, list[LoanStatusHistory]]:
    result = await session.execute(select(LoanStatusHistory).where(LoanStatusHistory.loan_id.in_(loan_ids)))
    grouped: dict[str, list[LoanStatusHistory]] = defaultdict(list)
    for entry in result.scalars():
        grouped[entry.loan_id].append(entry)
    return grouped


async def _pending_docs(session: AsyncSession, loan_ids: list[str]) -> dict[str, int]:
    """Required documents not yet uploaded, per loan."""
    result = await session.execute(
        select(NeedsListItem.loan_id, func.count())
        .where(
            NeedsListItem.loan_id.in_(loan_ids),
            NeedsListItem.status == NeedsListStatus.PENDING.value,
            NeedsListItem.required.is_(True),
        )
        .group_by(NeedsListItem.loan_id)
    )
    return {loan_id: count for loan_id, count in result.all()}


async def list_pipeline(
    session: AsyncSession,
    status: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
    now: Optional[datetime] = None,
) -> PipelinePage:
    """
    Loans for the operations board, most recently updated first. status="all" or None
    means every status; an unknown status raises InvalidStatusError.
    """
    page = max(page, 1)
    conditions = _filters(status, search)

    total = (await session.execute(select(func.count()).select_from(LoanRequest).where(*conditions))).scalar_one()
    result = await session.execute(
        select(LoanRequest)
        .where(*conditions)
        .order_by(LoanRequest.updated_at.desc(), LoanRequest.loan_number.desc())
        .limit(limit)
        .offset((page - 1) * limit)
    )
    loans = list(result.scalars().all())
    if not loans:
        return PipelinePage(total=total, page=page, total_pages=math.ceil(total / limit))

    loan_ids = [loan.id for loan in loans]
    histories = await _histories(session, loan_ids)
    pending = await _pending_docs(session, loan_ids)

    entries = []
    for loan in loans:
        option = status_option(loan.status)
        entries.append(
            PipelineEntry(
                loan_id=loan.id,
                loan_number=loan.loan_number,
                property_name=loan.property_name,
                property_address=loan.property_address,
                property_city=loan.property_city,
                property_state=loan.property_state,
                loan_amount=loan.loan_amount,
                status=option.value,
                status_label=option.label,
                step=option.step,
                percent_complete=percent_complete(option.value),
                days_in_status=days_in_current_status(histories.get(loan.id, []), now),
                pending_docs=pending.get(loan.id, 0),
                updated_at=loan.updated_at,
            )
        )
    return PipelinePage(loans=entries, total=total, page=page, total_pages=math.ceil(total / limit))


async def pipeline_stats(session: AsyncSession, now: Optional[datetime] = None) -> PipelineStats:
    """Counts and loan amounts per status, funded totals, and loans sitting in one status too long."""
    now = as_utc(now) if now else datetime.now(timezone.utc)

    result = await session.execute(
        select(LoanRequest.status, func.count(), func.sum(LoanRequest.loan_amount)).group_by(LoanRequest.status)
    )
    totals = {status: (count, amount or 0.0) for status, count, amount in result.all()}
    by_status = []
    for option in status_catalog():
        if option.value.value in totals:
            count, amount = totals[option.value.value]
            by_status.append(StatusCount(status=option.value, count=count, total_amount=amount))

    result = await session.execute(
        select(LoanRequest.status_entered_at, LoanRequest.updated_at).where(
            LoanRequest.status.not_in([s.value for s in SETTLED_STATUSES])
        )
    )
    stale = sum(1 for entered, updated in result.all() if now - as_utc(entered or updated) > STALE_AFTER)

    funded_count, funded_amount = totals.get(LoanStatus.FUNDED.value, (0, 0.0))
    return PipelineStats(
        by_status=by_status,
        total_loans=sum(count for count, _ in totals.values()),
        funded_loans=funded_count,
        funded_amount=funded_amount,
        stale_loans=stale,
    )
