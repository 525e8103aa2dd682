"""
Loan lifecycle status machine.

Sixteen ordered stages from new_request to funded, plus the conditional_items_needed branch
that hangs off conditionally_approved. Operators may move a loan to any known status (backward
moves and skips are normal); only unknown statuses and moves out of funded are refused.
Every accepted move appends one history row, written together with the status change.

Callers must serialize transitions for a given loan: hold a per-loan lock or run inside a
serializable transaction. transition_status takes a row lock where the database supports it.
"""
from __future__ import annotations

import logging
import math
import uuid
from datetime import datetime, timezone
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import LoanRequest, LoanStatusHistory
from schemas.status import LoanStatus, StatusHistoryEntrySchema, StatusOption, StatusTransitionResult
from services.audit import STATUS_CHANGED, record_audit
from services.exceptions import InvalidStatusError, LoanNotFoundError, TerminalStatusError

logger = logging.getLogger(__name__)

LIFECYCLE: tuple[StatusOption, ...] = (
    StatusOption(value=LoanStatus.NEW_REQUEST, label="New Request", step=1),
    StatusOption(value=LoanStatus.QUOTE_REQUESTED, label="Quote Requested", step=2),
    StatusOption(value=LoanStatus.SOFT_QUOTE_ISSUED, label="Soft Quote Issued", step=3),
    StatusOption(value=LoanStatus.TERM_SHEET_ISSUED, label="Term Sheet Issued", step=4),
    StatusOption(value=LoanStatus.TERM_SHEET_SIGNED, label="Term Sheet Signed", step=5),
    StatusOption(value=LoanStatus.NEEDS_LIST_SENT, label="Needs List Sent", step=6),
    StatusOption(value=LoanStatus.NEEDS_LIST_COMPLETE, label="Needs List Complete", step=7),
    StatusOption(value=LoanStatus.SUBMITTED_TO_UNDERWRITING, label="Submitted to Underwriting", step=8),
    StatusOption(value=LoanStatus.APPRAISAL_ORDERED, label="Appraisal Ordered", step=9),
    StatusOption(value=LoanStatus.APPRAISAL_RECEIVED, label="Appraisal Received", step=10),
    StatusOption(value=LoanStatus.CONDITIONALLY_APPROVED, label="Conditionally Approved", step=11),
    StatusOption(value=LoanStatus.CONDITIONAL_COMMITMENT_ISSUED, label="Conditional Commitment Issued", step=12),
    StatusOption(value=LoanStatus.CLOSING_CHECKLIST_ISSUED, label="Closing Checklist Issued", step=13),
    StatusOption(value=LoanStatus.CLEAR_TO_CLOSE, label="Clear to Close", step=14),
    StatusOption(value=LoanStatus.CLOSING_SCHEDULED, label="Closing Scheduled", step=15),
    StatusOption(value=LoanStatus.FUNDED, label="Funded", step=16),
)

CONDITIONS_BRANCH = StatusOption(
    value=LoanStatus.CONDITIONAL_ITEMS_NEEDED, label="Conditional Items Needed", step=11, branch=True
)

TERMINAL_STATUSES = frozenset({LoanStatus.FUNDED})

_OPTIONS: dict[LoanStatus, StatusOption] = {o.value: o for o in (*LIFECYCLE, CONDITIONS_BRANCH)}


def status_catalog() -> list[StatusOption]:
    """Every status with its label and step, lifecycle order, branch after its parent."""
    out: list[StatusOption] = []
    for option in LIFECYCLE:
        out.append(option)
        if option.value is LoanStatus.CONDITIONALLY_APPROVED:
            out.append(CONDITIONS_BRANCH)
    return out


def parse_status(value: str | LoanStatus) -> LoanStatus:
    if isinstance(value, LoanStatus):
        return value
    try:
        return LoanStatus(value)
    except ValueError:
        raise InvalidStatusError(str(value)) from None


def status_option(status: str | LoanStatus) -> StatusOption:
    return _OPTIONS[parse_status(status)]


def next_status(status: str | LoanStatus) -> Optional[LoanStatus]:
    """Default forward path. The branch returns to conditionally_approved; funded has no successor."""
    current = parse_status(status)
    if current is LoanStatus.CONDITIONAL_ITEMS_NEEDED:
        return LoanStatus.CONDITIONALLY_APPROVED
    step = _OPTIONS[current].step
    if step >= len(LIFECYCLE):
        return None
    return LIFECYCLE[step].value


def percent_complete(status: str | LoanStatus) -> float:
    current = parse_status(status)
    if current is LoanStatus.FUNDED:
        return 100.0
    return round(_OPTIONS[current].step / len(LIFECYCLE) * 100, 1)


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def days_since(moment: datetime, now: Optional[datetime] = None) -> int:
    now = as_utc(now) if now else datetime.now(timezone.utc)
    return max(0, math.floor((now - as_utc(moment)).total_seconds() / 86400))


def days_in_current_status(history: Sequence[LoanStatusHistory], now: Optional[datetime] = None) -> int:
    """Whole days since the most recent history entry; 0 when there is no history."""
    if not history:
        return 0
    return days_since(max(as_utc(h.created_at) for h in history), now)


def history_entry_to_schema(entry: LoanStatusHistory) -> StatusHistoryEntrySchema:
    return StatusHistoryEntrySchema(
        id=entry.id,
        loan_id=entry.loan_id,
        from_status=entry.from_status,
        to_status=entry.to_status,
        step=entry.step,
        actor=entry.actor,
        notes=entry.notes,
        created_at=entry.created_at,
    )


def _history_row(
    loan_id: str,
    from_status: Optional[LoanStatus],
    to_status: LoanStatus,
    actor: Optional[str],
    notes: Optional[str],
    at: datetime,
) -> LoanStatusHistory:
    return LoanStatusHistory(
        id=f"lsh-{uuid.uuid4().hex[:12]}",
        loan_id=loan_id,
        from_status=from_status.value if from_status else None,
        to_status=to_status.value,
        step=_OPTIONS[to_status].step,
        actor=actor,
        notes=notes,
        created_at=at,
    )


def record_initial_status(loan: LoanRequest, actor: Optional[str], notes: str = "New loan request created") -> LoanStatusHistory:
    """History row for a loan that was just created in new_request. Caller adds it to the session."""
    now = datetime.now(timezone.utc)
    loan.status = LoanStatus.NEW_REQUEST.value
    loan.current_step = 1
    loan.status_entered_at = now
    return _history_row(loan.id, None, LoanStatus.NEW_REQUEST, actor, notes, now)


async def load_history(session: AsyncSession, loan_id: str) -> list[LoanStatusHistory]:
    result = await session.execute(
        select(LoanStatusHistory)
        .where(LoanStatusHistory.loan_id == loan_id)
        .order_by(LoanStatusHistory.created_at.desc())
    )
    return list(result.scalars().all())


async def transition_status(
    session: AsyncSession,
    loan_id: str,
    to_status: str | LoanStatus,
    actor: Optional[str] = None,
    notes: Optional[str] = None,
) -> StatusTransitionResult:
    """
    Move a loan to to_status and append the history row.
    Raises InvalidStatusError before touching the store if the status is unknown, and
    TerminalStatusError for a funded loan. Status and history are written in one savepoint,
    so a failure leaves both unchanged.
    """
    target = parse_status(to_status)

    result = await session.execute(select(LoanRequest).where(LoanRequest.id == loan_id).with_for_update())
    loan = result.scalar_one_or_none()
    if loan is None:
        raise LoanNotFoundError(loan_id)

    previous = LoanStatus(loan.status) if loan.status else None
    if previous in TERMINAL_STATUSES:
        raise TerminalStatusError(loan_id, previous.value)

    now = datetime.now(timezone.utc)
    entry = _history_row(loan_id, previous, target, actor, notes, now)
    async with session.begin_nested():
        loan.status = target.value
        loan.current_step = _OPTIONS[target].step
        loan.status_entered_at = now
        session.add(entry)
        await session.flush()
        await record_audit(
            session,
            STATUS_CHANGED,
            entity_type="loan",
            entity_id=loan_id,
            actor=actor,
            details={"from": previous.value if previous else None, "to": target.value, "notes": notes},
        )

    logger.info(
        "Loan %s status %s -> %s by %s", loan_id, previous.value if previous else None, target.value, actor or "system"
    )
    return StatusTransitionResult(
        loan_id=loan_id,
        previous_status=previous,
        new_status=target,
        step=_OPTIONS[target].step,
        percent_complete=percent_complete(target),
        history_entry=history_entry_to_schema(entry),
    )
