"""
Soft-quote pricing for DSCR, bridge, multifamily and commercial loans.

A per-product base band (min%, max%) is shifted by additive adjustments, in order:
credit tier, DSCR tier, LTV surcharges, documentation surcharge. Every adjustment moves
both ends of the band by the same amount, so the band width never changes.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from reference.tables import RateBand, ReferenceData, TermTemplate, get_reference_data
from schemas.loan import BorrowerType, DocumentationType, LoanSnapshot, PropertyType
from schemas.quote import PricingFactors, QuoteDecline, QuoteOutcome, SoftQuote, TermOption

logger = logging.getLogger(__name__)

RATE_PRECISION = 3


def calculate_dscr(
    annual_rental_income: float, annual_operating_expenses: float, annual_loan_payments: Optional[float]
) -> Optional[float]:
    """Net operating income / annual debt service. None when there is no debt service to cover."""
    if not annual_loan_payments or annual_loan_payments <= 0:
        return None
    noi = annual_rental_income - annual_operating_expenses
    return noi / annual_loan_payments


def decline_reason(loan: LoanSnapshot, reference: ReferenceData) -> Optional[str]:
    """
    DSCR auto-decline. Light-doc, bank-statement and no-doc programs are exempt;
    everything else declines below the minimum DSCR regardless of other factors.
    """
    if loan.documentation_type in reference.dscr_exempt_documentation:
        return None
    if loan.dscr_ratio is not None and loan.dscr_ratio < reference.minimum_dscr:
        return f"DSCR ratio below {reference.minimum_dscr:.1f}x minimum requirement"
    return None


def credit_adjustment(credit_score: Optional[int], reference: ReferenceData) -> float:
    if credit_score is None:
        return 0.0
    for tier in reference.credit_tiers:
        if credit_score >= tier.min_score:
            return tier.adjustment
    return 0.0


def dscr_adjustment(loan: LoanSnapshot, dscr: float, reference: ReferenceData) -> float:
    """Only residential investment loans on DSCR-priced transaction types get a DSCR tier."""
    if loan.property_type is not PropertyType.RESIDENTIAL or loan.borrower_type is not BorrowerType.INVESTMENT:
        return 0.0
    if loan.transaction_type is None or not loan.transaction_type.is_dscr_priced:
        return 0.0
    for tier in reference.dscr_tiers:
        if dscr >= tier.min_ratio:
            return tier.adjustment
    return 0.0


def ltv_adjustment(ltv: float, reference: ReferenceData) -> float:
    # Surcharges stack: 92% LTV pays the >80, >85 and >90 tiers.
    return sum(s.adjustment for s in reference.ltv_surcharges if ltv > s.above_ltv)


def documentation_adjustment(documentation_type: Optional[DocumentationType], reference: ReferenceData) -> float:
    if documentation_type is None:
        return 0.0
    return reference.documentation_surcharges.get(documentation_type, 0.0)


def origination_points(loan_amount: float, reference: ReferenceData) -> float:
    points = reference.origination_tiers[0].points
    for tier in reference.origination_tiers:
        if loan_amount > tier.above_amount:
            points = tier.points
    return points


def price_band(
    loan: LoanSnapshot, credit_score: Optional[int], ltv: float, dscr: float, reference: ReferenceData
) -> RateBand:
    base = reference.rate_band_for(loan.transaction_type)
    shift = (
        credit_adjustment(credit_score, reference)
        + dscr_adjustment(loan, dscr, reference)
        + ltv_adjustment(ltv, reference)
        + documentation_adjustment(loan.documentation_type, reference)
    )
    return RateBand(
        min_rate=round(base.min_rate + shift, RATE_PRECISION),
        max_rate=round(base.max_rate + shift, RATE_PRECISION),
    )


def _term(template: TermTemplate, band: RateBand) -> TermOption:
    return TermOption(
        months=template.months,
        rate_min=round(band.min_rate + template.adjustment, RATE_PRECISION),
        rate_max=round(band.max_rate + template.adjustment, RATE_PRECISION),
        label=template.label,
    )


def term_options(loan: LoanSnapshot, band: RateBand, reference: ReferenceData) -> list[TermOption]:
    """Bridge products get 12/18/24-month terms; everything else a 30-year fixed and a 5/1 ARM."""
    is_bridge = loan.transaction_type is not None and loan.transaction_type.is_bridge
    templates = reference.bridge_terms if is_bridge else reference.long_term_options
    return [_term(t, band) for t in templates]


def format_rate_range(band: RateBand) -> str:
    return f"{band.min_rate:.2f}% – {band.max_rate:.2f}%"


def generate_soft_quote(
    loan: LoanSnapshot,
    credit_score: Optional[int] = None,
    reference: Optional[ReferenceData] = None,
    now: Optional[datetime] = None,
) -> QuoteOutcome:
    """
    Price a loan or decline it.
    credit_score is the pulled score; the credit tier applies only when one is supplied.
    Missing LTV and DSCR fall back to the reference defaults (75%, 1.15x) for pricing.
    """
    reference = reference if reference is not None else get_reference_data()
    now = now or datetime.now(timezone.utc)

    loan_amount = loan.loan_amount or 0.0
    property_value = loan.property_value or 0.0
    ltv = loan.requested_ltv or reference.default_ltv
    dscr = loan.dscr_ratio if loan.dscr_ratio is not None else reference.default_dscr

    reason = decline_reason(loan, reference)
    if reason:
        logger.info("Loan %s declined: %s (dscr=%s)", loan.id, reason, loan.dscr_ratio)
        return QuoteDecline(
            decline_reason=reason,
            loan_amount=loan_amount,
            property_value=property_value,
            ltv=ltv,
            dscr=dscr,
        )

    band = price_band(loan, credit_score, ltv, dscr, reference)

    points = origination_points(loan_amount, reference)
    origination_fee = loan_amount * (points / 100)
    fees = reference.fees
    appraisal_fee = fees.commercial_appraisal_fee if loan.property_type is PropertyType.COMMERCIAL else fees.appraisal_fee
    total_closing_costs = origination_fee + fees.processing_fee + fees.underwriting_fee + appraisal_fee

    # Interest-only at the middle of the band.
    mid_rate = (band.min_rate + band.max_rate) / 2
    monthly_payment = loan_amount * (mid_rate / 100 / 12)

    documentation = loan.documentation_type or DocumentationType.FULL_DOC
    quote = SoftQuote(
        loan_amount=loan_amount,
        property_value=property_value,
        ltv=ltv,
        dscr=dscr,
        interest_rate_min=band.min_rate,
        interest_rate_max=band.max_rate,
        rate_range=format_rate_range(band),
        origination_points=points,
        origination_fee=round(origination_fee),
        processing_fee=fees.processing_fee,
        underwriting_fee=fees.underwriting_fee,
        appraisal_fee=appraisal_fee,
        total_closing_costs=round(total_closing_costs),
        estimated_monthly_payment=round(monthly_payment),
        terms=term_options(loan, band, reference),
        credit_score_used=credit_score,
        pricing_factors=PricingFactors(
            credit_score=str(credit_score) if credit_score is not None else "Not provided",
            dscr=f"{dscr:.2f}x",
            ltv=f"{ltv:g}%",
            documentation_type=documentation.value,
        ),
        disclaimer=reference.disclaimer,
        generated_at=now,
        valid_until=now + timedelta(days=reference.quote_validity_days),
    )
    logger.info("Loan %s quoted %s (reference %s)", loan.id, quote.rate_range, reference.version)
    return quote
