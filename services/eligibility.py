"""
Eligibility gate: decides whether a loan may be priced.
Runs every check and reports all failures together, each scoped to the field that caused it.
Business-rule failures are returned in the result; only unreadable reference data raises.
"""
from __future__ import annotations

import logging
from typing import Optional

from config import EligibilityMode
from reference.tables import ReferenceData, get_reference_data
from schemas.eligibility import EligibilityErrorSchema, EligibilityResult
from schemas.loan import LoanSnapshot, TransactionType

logger = logging.getLogger(__name__)


def is_licensed_state(state: Optional[str], reference: ReferenceData) -> bool:
    if not state:
        return False
    return state.strip().upper() in reference.licensed_states


def is_eligible_metro(city: str, reference: ReferenceData) -> bool:
    """Case-insensitive exact or substring match in either direction ("Los Angeles, CA" matches "Los Angeles")."""
    city_lower = city.strip().lower()
    if not city_lower:
        return False
    for metro in reference.eligible_metros:
        metro_lower = metro.lower()
        if metro_lower == city_lower or metro_lower in city_lower or city_lower in metro_lower:
            return True
    return False


def is_within_ltv_limit(
    transaction_type: Optional[TransactionType], requested_ltv: float, reference: ReferenceData
) -> bool:
    return requested_ltv <= reference.ltv_limit_for(transaction_type)


def credit_shortfall(
    transaction_type: Optional[TransactionType], credit_score: Optional[int], reference: ReferenceData
) -> Optional[str]:
    """Reason the score is too low, or None. A missing score means credit was not pulled yet."""
    if credit_score is None:
        return None
    minimum = reference.credit_minimum_for(transaction_type)
    if credit_score < minimum:
        return f"Credit score {credit_score} below minimum {minimum}"
    return None


def _fmt_pct(value: float) -> str:
    return f"{value:g}%"


def evaluate_eligibility(loan: LoanSnapshot, reference: ReferenceData) -> EligibilityResult:
    errors: list[EligibilityErrorSchema] = []
    state = loan.property_state or ""

    if not is_licensed_state(state, reference):
        errors.append(
            EligibilityErrorSchema(
                field="property_state",
                message=f"We are not licensed to originate loans in {state or 'an unspecified state'}. "
                "Please contact us for assistance.",
            )
        )

    city = (loan.property_city or "").strip()
    if city and not is_eligible_metro(city, reference):
        errors.append(
            EligibilityErrorSchema(
                field="property_city",
                message=f"Property location ({city}, {state}) is not in an eligible MSA. "
                "We currently serve properties in the Top 200 U.S. Metropolitan Statistical Areas.",
            )
        )

    if loan.requested_ltv is not None and loan.transaction_type is not None:
        if not is_within_ltv_limit(loan.transaction_type, loan.requested_ltv, reference):
            max_ltv = reference.ltv_limit_for(loan.transaction_type)
            errors.append(
                EligibilityErrorSchema(
                    field="requested_ltv",
                    message=f"Requested LTV {_fmt_pct(loan.requested_ltv)} exceeds maximum {_fmt_pct(max_ltv)} "
                    f"for {loan.transaction_type.value} loans.",
                )
            )

    reason = credit_shortfall(loan.transaction_type, loan.fico_score, reference)
    if reason:
        errors.append(EligibilityErrorSchema(field="credit_score", message=reason))

    return EligibilityResult(eligible=not errors, errors=errors)


class EligibilityGate:
    """
    Eligibility checks bound to one reference-table version and one EligibilityMode.
    The mode is fixed at construction; build one gate per process.
    """

    def __init__(self, mode: EligibilityMode = EligibilityMode.ENFORCED, reference: Optional[ReferenceData] = None):
        self.mode = mode
        self.reference = reference if reference is not None else get_reference_data()
        if self.bypassed:
            logger.warning("Eligibility checks are BYPASSED (mode=%s); every loan will pass the gate", mode.value)

    @property
    def bypassed(self) -> bool:
        return self.mode is EligibilityMode.BYPASS_FOR_TESTING

    def check(self, loan: LoanSnapshot) -> EligibilityResult:
        if self.bypassed:
            logger.info("Eligibility bypassed for loan %s", loan.id)
            return EligibilityResult(eligible=True, errors=[], bypassed=True)
        result = evaluate_eligibility(loan, self.reference)
        if not result.eligible:
            logger.info(
                "Loan %s ineligible: %s", loan.id, "; ".join(f"{e.field}: {e.message}" for e in result.errors)
            )
        return result


def check_eligibility(loan: LoanSnapshot, reference: Optional[ReferenceData] = None) -> EligibilityResult:
    """Enforced gate against the given (or process-wide) reference tables."""
    return evaluate_eligibility(loan, reference if reference is not None else get_reference_data())
