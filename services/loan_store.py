"""
Loan Store operations: create and update loan requests, build engine snapshots, and record
decision outcomes (quotes, declines, rejections) on the stored loan.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models import LoanRequest
from schemas.eligibility import EligibilityResult
from schemas.loan import LoanCreate, LoanSnapshot, LoanUpdate
from schemas.quote import QuoteDecline, SoftQuote
from services.exceptions import LoanNotFoundError
from services.needs_list import default_folder_items, insert_needs_list_items
from services.pricing import calculate_dscr
from services.status_machine import record_initial_status

logger = logging.getLogger(__name__)

LOAN_NUMBER_PREFIX = "RPC"


async def next_loan_number(session: AsyncSession, year: Optional[int] = None) -> str:
    """RPC-<year>-<NNNN>, numbered from the count of loans already created this year."""
    year = year or datetime.now(timezone.utc).year
    prefix = f"{LOAN_NUMBER_PREFIX}-{year}-"
    result = await session.execute(
        select(func.count()).select_from(LoanRequest).where(LoanRequest.loan_number.like(f"{prefix}%"))
    )
    return f"{prefix}{result.scalar_one() + 1:04d}"


def derive_loan_amount(property_value: Optional[float], requested_ltv: Optional[float]) -> Optional[float]:
    if property_value is None or requested_ltv is None:
        return None
    return round(property_value * requested_ltv / 100, 2)


def _apply_income(loan: LoanRequest) -> None:
    """Recompute NOI and DSCR from the stored income figures when they are all present."""
    if loan.annual_rental_income is None or loan.annual_operating_expenses is None:
        return
    loan.noi = loan.annual_rental_income - loan.annual_operating_expenses
    dscr = calculate_dscr(loan.annual_rental_income, loan.annual_operating_expenses, loan.annual_loan_payments)
    if dscr is not None:
        loan.dscr_ratio = round(dscr, 2)


async def create_loan(session: AsyncSession, body: LoanCreate) -> LoanRequest:
    """New loan in new_request, with its first history entry and the empty document folders."""
    now = datetime.now(timezone.utc)
    loan = LoanRequest(
        id=f"loan-{uuid.uuid4().hex[:12]}",
        loan_number=await next_loan_number(session, now.year),
        created_by=body.created_by,
        property_name=body.property_name,
        property_address=body.property_address,
        property_city=body.property_city,
        property_state=body.property_state.upper(),
        property_zip=body.property_zip,
        is_portfolio=False,
        dscr_auto_declined=False,
        soft_quote_generated=False,
        created_at=now,
        updated_at=now,
    )
    history = record_initial_status(loan, body.created_by)
    session.add(loan)
    session.add(history)
    await session.flush()

    await insert_needs_list_items(session, default_folder_items(loan.id))
    logger.info("Created loan %s (%s)", loan.id, loan.loan_number)
    return loan


async def get_loan(session: AsyncSession, loan_id: str) -> LoanRequest:
    result = await session.execute(select(LoanRequest).where(LoanRequest.id == loan_id))
    loan = result.scalar_one_or_none()
    if loan is None:
        raise LoanNotFoundError(loan_id)
    return loan


async def update_loan(session: AsyncSession, loan_id: str, body: LoanUpdate) -> LoanRequest:
    loan = await get_loan(session, loan_id)
    changes: dict[str, Any] = body.changed_fields()
    for field, value in changes.items():
        setattr(loan, field, value)
    if "property_state" in changes:
        loan.property_state = loan.property_state.upper()

    amount = derive_loan_amount(loan.property_value, loan.requested_ltv)
    if amount is not None:
        loan.loan_amount = amount
    _apply_income(loan)

    loan.updated_at = datetime.now(timezone.utc)
    await session.flush()
    return loan


def to_snapshot(loan: LoanRequest) -> LoanSnapshot:
    return LoanSnapshot(
        id=loan.id,
        loan_number=loan.loan_number,
        property_address=loan.property_address,
        property_city=loan.property_city,
        property_state=loan.property_state,
        property_zip=loan.property_zip,
        property_type=loan.property_type,
        residential_units=loan.residential_units,
        commercial_type=loan.commercial_type,
        is_portfolio=bool(loan.is_portfolio),
        portfolio_count=loan.portfolio_count,
        request_type=loan.request_type,
        transaction_type=loan.transaction_type,
        borrower_type=loan.borrower_type,
        documentation_type=loan.documentation_type,
        requested_ltv=loan.requested_ltv,
        property_value=loan.property_value,
        loan_amount=loan.loan_amount,
        dscr_ratio=loan.dscr_ratio,
        fico_score=loan.fico_score,
        status=loan.status,
        status_entered_at=loan.status_entered_at,
    )


async def get_loan_snapshot(session: AsyncSession, loan_id: str) -> LoanSnapshot:
    return to_snapshot(await get_loan(session, loan_id))


async def record_rejection(session: AsyncSession, loan: LoanRequest, eligibility: EligibilityResult) -> None:
    loan.rejection_reason = eligibility.rejection_reason
    loan.updated_at = datetime.now(timezone.utc)
    await session.flush()


async def save_quote(session: AsyncSession, loan: LoanRequest, quote: SoftQuote) -> None:
    """Replace the stored quote. Clears any earlier decline or rejection."""
    loan.soft_quote_data = quote.model_dump(mode="json", by_alias=True)
    loan.soft_quote_generated = True
    loan.soft_quote_rate_min = quote.interest_rate_min
    loan.soft_quote_rate_max = quote.interest_rate_max
    loan.dscr_auto_declined = False
    loan.rejection_reason = None
    loan.updated_at = datetime.now(timezone.utc)
    await session.flush()


async def save_decline(session: AsyncSession, loan: LoanRequest, decline: QuoteDecline) -> None:
    loan.soft_quote_data = decline.model_dump(mode="json", by_alias=True)
    loan.soft_quote_generated = False
    loan.soft_quote_rate_min = None
    loan.soft_quote_rate_max = None
    loan.dscr_auto_declined = True
    loan.rejection_reason = decline.decline_reason
    loan.updated_at = datetime.now(timezone.utc)
    await session.flush()
