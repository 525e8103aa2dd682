"""
Quote submission: eligibility gate, then pricing, then the status move and the needs list.
Each stage only runs if the previous one let the loan through.
"""
from __future__ import annotations

import logging
from typing import Optional

from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from reference.tables import ReferenceData
from schemas.base import CamelModel
from schemas.eligibility import EligibilityResult
from schemas.needs_list import MaterializeResult, NeedsListItemSchema
from schemas.quote import QuoteDecline, SoftQuote
from schemas.status import LoanStatus, StatusTransitionResult
from services.audit import ELIGIBILITY_REJECTED, SOFT_QUOTE_DECLINED, SOFT_QUOTE_ISSUED, record_audit
from services.eligibility import EligibilityGate
from services.loan_store import get_loan, record_rejection, save_decline, save_quote, to_snapshot
from services.needs_list import build_needs_list, materialize_needs_list
from services.pricing import generate_soft_quote
from services.status_machine import transition_status

logger = logging.getLogger(__name__)


class SubmissionOutcome(CamelModel):
    loan_id: str
    eligibility: EligibilityResult
    quote: Optional[SoftQuote] = None
    decline: Optional[QuoteDecline] = None
    transition: Optional[StatusTransitionResult] = None
    needs_list: Optional[MaterializeResult] = None
    needs_list_items: list[NeedsListItemSchema] = Field(default_factory=list)


async def submit_for_quote(
    session: AsyncSession,
    loan_id: str,
    gate: EligibilityGate,
    credit_score: Optional[int] = None,
    actor: Optional[str] = None,
    reference: Optional[ReferenceData] = None,
) -> SubmissionOutcome:
    """
    Run a stored loan through the gate and the pricing engine.
    credit_score is a freshly pulled score; without one the score on file (if any) is used.
    Raises LoanNotFoundError for an unknown loan; ineligibility and declines are returned.
    """
    reference = reference if reference is not None else gate.reference
    loan = await get_loan(session, loan_id)
    snapshot = to_snapshot(loan)
    score = credit_score if credit_score is not None else snapshot.fico_score
    if score != snapshot.fico_score:
        snapshot = snapshot.model_copy(update={"fico_score": score})

    eligibility = gate.check(snapshot)
    if not eligibility.eligible:
        await record_rejection(session, loan, eligibility)
        await record_audit(
            session,
            ELIGIBILITY_REJECTED,
            entity_type="loan",
            entity_id=loan_id,
            actor=actor,
            details={"errors": [e.model_dump() for e in eligibility.errors]},
        )
        return SubmissionOutcome(loan_id=loan_id, eligibility=eligibility)

    outcome = generate_soft_quote(snapshot, credit_score=score, reference=reference)
    if isinstance(outcome, QuoteDecline):
        await save_decline(session, loan, outcome)
        await record_audit(
            session,
            SOFT_QUOTE_DECLINED,
            entity_type="loan",
            entity_id=loan_id,
            actor=actor,
            details={"reason": outcome.decline_reason, "dscr": outcome.dscr},
        )
        return SubmissionOutcome(loan_id=loan_id, eligibility=eligibility, decline=outcome)

    await save_quote(session, loan, outcome)
    await record_audit(
        session,
        SOFT_QUOTE_ISSUED,
        entity_type="loan",
        entity_id=loan_id,
        actor=actor,
        details={"rateRange": outcome.rate_range, "referenceVersion": reference.version},
    )
    transition = await transition_status(
        session,
        loan_id,
        LoanStatus.SOFT_QUOTE_ISSUED,
        actor=actor,
        notes=f"Soft quote generated: {outcome.rate_range}",
    )
    materialized = await materialize_needs_list(session, snapshot)
    return SubmissionOutcome(
        loan_id=loan_id,
        eligibility=eligibility,
        quote=outcome,
        transition=transition,
        needs_list=materialized,
        needs_list_items=build_needs_list(snapshot),
    )
