from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional, Union

from pydantic import ConfigDict, Field

from schemas.base import CamelModel


class TermOption(CamelModel):
    model_config = ConfigDict(frozen=True)

    months: int
    rate_min: float
    rate_max: float
    label: Optional[str] = None


class PricingFactors(CamelModel):
    credit_score: str
    dscr: str
    ltv: str
    documentation_type: str


class SoftQuote(CamelModel):
    """Preliminary, non-binding pricing. A new quote supersedes an old one; quotes are never edited."""

    model_config = ConfigDict(frozen=True)

    approved: Literal[True] = True
    loan_amount: float
    property_value: float
    ltv: float
    dscr: Optional[float] = None
    interest_rate_min: float
    interest_rate_max: float
    rate_range: str
    origination_points: float
    origination_fee: int
    processing_fee: int
    underwriting_fee: int
    appraisal_fee: int
    total_closing_costs: int
    estimated_monthly_payment: int
    terms: list[TermOption] = Field(default_factory=list)
    credit_score_used: Optional[int] = None
    pricing_factors: PricingFactors
    disclaimer: str
    generated_at: datetime
    valid_until: datetime


class QuoteDecline(CamelModel):
    model_config = ConfigDict(frozen=True)

    approved: Literal[False] = False
    decline_reason: str
    loan_amount: float
    property_value: float
    ltv: float
    dscr: Optional[float] = None


QuoteOutcome = Union[SoftQuote, QuoteDecline]


class SoftQuoteRequest(CamelModel):
    credit_score: Optional[int] = Field(None, ge=300, le=850)
    actor: Optional[str] = None
