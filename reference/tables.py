"""
Static lookup data used by the eligibility gate and the pricing engine:
licensed states, eligible metros, LTV ceilings, credit floors, rate bands, fee schedule.
Loaded once per process and passed into the decision functions; never mutated.
"""
from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from config import settings
from schemas.loan import DocumentationType, LoanProduct, TransactionType
from services.exceptions import ReferenceDataError

logger = logging.getLogger(__name__)

DEFAULT_TABLES_PATH = Path(__file__).with_name("default_tables.json")


class RateBand(BaseModel):
    model_config = ConfigDict(frozen=True)

    min_rate: float
    max_rate: float

    @model_validator(mode="after")
    def _ordered(self) -> "RateBand":
        if self.min_rate > self.max_rate:
            raise ValueError(f"rate band min {self.min_rate} exceeds max {self.max_rate}")
        return self


class CreditTier(BaseModel):
    min_score: int
    adjustment: float


class DscrTier(BaseModel):
    min_ratio: float
    adjustment: float


class LtvSurcharge(BaseModel):
    above_ltv: float
    adjustment: float


class OriginationTier(BaseModel):
    above_amount: float
    points: float


class TermTemplate(BaseModel):
    months: int
    adjustment: float
    label: Optional[str] = None


class FeeSchedule(BaseModel):
    processing_fee: int
    underwriting_fee: int
    appraisal_fee: int
    commercial_appraisal_fee: int


class ReferenceData(BaseModel):
    """Versioned reference tables. Treat instances as read-only; they are shared across requests."""

    model_config = ConfigDict(frozen=True)

    version: str
    licensed_states: frozenset[str]
    eligible_metros: tuple[str, ...]
    ltv_limits: dict[str, float]
    credit_minimums: dict[str, int]
    rate_bands: dict[LoanProduct, RateBand]
    # Highest threshold first; the first tier whose threshold is met applies.
    credit_tiers: tuple[CreditTier, ...]
    dscr_tiers: tuple[DscrTier, ...]
    # Cumulative: every surcharge whose threshold is exceeded is added.
    ltv_surcharges: tuple[LtvSurcharge, ...]
    documentation_surcharges: dict[DocumentationType, float]
    dscr_exempt_documentation: frozenset[DocumentationType]
    minimum_dscr: float = 1.0
    # Lowest threshold first; the last tier exceeded applies.
    origination_tiers: tuple[OriginationTier, ...]
    fees: FeeSchedule
    bridge_terms: tuple[TermTemplate, ...]
    long_term_options: tuple[TermTemplate, ...]
    default_ltv: float = 75
    default_dscr: float = 1.15
    quote_validity_days: int = Field(7, ge=1)
    disclaimer: str

    @field_validator("licensed_states", mode="before")
    @classmethod
    def _upper_states(cls, v):
        return frozenset(s.strip().upper() for s in v)

    @field_validator("credit_tiers", mode="after")
    @classmethod
    def _credit_desc(cls, v):
        return tuple(sorted(v, key=lambda t: t.min_score, reverse=True))

    @field_validator("dscr_tiers", mode="after")
    @classmethod
    def _dscr_desc(cls, v):
        return tuple(sorted(v, key=lambda t: t.min_ratio, reverse=True))

    @field_validator("origination_tiers", mode="after")
    @classmethod
    def _origination_asc(cls, v):
        return tuple(sorted(v, key=lambda t: t.above_amount))

    @model_validator(mode="after")
    def _complete(self) -> "ReferenceData":
        missing = [p.value for p in LoanProduct if p not in self.rate_bands]
        if missing:
            raise ValueError(f"rate_bands missing products: {', '.join(missing)}")
        if "default" not in self.ltv_limits or "default" not in self.credit_minimums:
            raise ValueError("ltv_limits and credit_minimums must define a 'default' entry")
        if not self.origination_tiers:
            raise ValueError("origination_tiers must not be empty")
        return self

    def ltv_limit_for(self, transaction_type: Optional[TransactionType]) -> float:
        key = transaction_type.value if transaction_type else "default"
        return self.ltv_limits.get(key, self.ltv_limits["default"])

    def credit_minimum_for(self, transaction_type: Optional[TransactionType]) -> int:
        key = transaction_type.value if transaction_type else "default"
        return self.credit_minimums.get(key, self.credit_minimums["default"])

    def rate_band_for(self, transaction_type: Optional[TransactionType]) -> RateBand:
        product = transaction_type.product if transaction_type else LoanProduct.DSCR_RENTAL
        return self.rate_bands[product]


def load_reference_data(path: Optional[str | Path] = None) -> ReferenceData:
    """Read and validate a reference-table file. Raises ReferenceDataError if it is missing or invalid."""
    source = Path(path) if path else DEFAULT_TABLES_PATH
    try:
        raw = json.loads(source.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ReferenceDataError(f"Cannot read reference data from {source}: {e}") from e
    try:
        data = ReferenceData.model_validate(raw)
    except ValidationError as e:
        raise ReferenceDataError(f"Invalid reference data in {source}: {e}") from e
    logger.info("Loaded reference data version %s from %s", data.version, source)
    return data


@lru_cache(maxsize=1)
def get_reference_data() -> ReferenceData:
    """Process-wide reference tables, loaded on first use."""
    return load_reference_data(settings.reference_data_path)
