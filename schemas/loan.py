from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import ConfigDict, Field

from schemas.base import CamelModel
from schemas.status import LoanStatus


class PropertyType(str, Enum):
    RESIDENTIAL = "residential"
    COMMERCIAL = "commercial"


class RequestType(str, Enum):
    PURCHASE = "purchase"
    REFINANCE = "refinance"
    CASH_OUT_REFINANCE = "cash_out_refinance"


class BorrowerType(str, Enum):
    OWNER_OCCUPIED = "owner_occupied"
    INVESTMENT = "investment"


class DocumentationType(str, Enum):
    FULL_DOC = "full_doc"
    LIGHT_DOC = "light_doc"
    BANK_STATEMENT = "bank_statement"
    NO_DOC = "no_doc"


class LoanProduct(str, Enum):
    """Product family; each family carries its own base rate band in the reference tables."""

    DSCR_RENTAL = "dscr_rental"
    FIX_FLIP = "fix_flip"
    GROUND_UP = "ground_up"
    HELOC = "heloc"
    MULTIFAMILY_BRIDGE = "multifamily_bridge"
    MULTIFAMILY_VALUE_ADD = "multifamily_value_add"
    MULTIFAMILY_CASH_OUT = "multifamily_cash_out"
    COMMERCIAL = "commercial"


class TransactionType(str, Enum):
    DSCR_RENTAL = "dscr_rental"
    PORTFOLIO_REFINANCE = "portfolio_refinance"
    FIX_FLIP = "fix_flip"
    PURCHASE_FIX_FLIP = "purchase_fix_flip"
    GROUND_UP = "ground_up"
    PURCHASE_GROUND_UP = "purchase_ground_up"
    HELOC = "heloc"
    MULTIFAMILY_BRIDGE = "multifamily_bridge"
    MULTIFAMILY_VALUE_ADD = "multifamily_value_add"
    MULTIFAMILY_CASH_OUT = "multifamily_cash_out"
    COMMERCIAL = "commercial"

    @property
    def product(self) -> LoanProduct:
        return _PRODUCT_BY_TRANSACTION[self]

    @property
    def is_bridge(self) -> bool:
        """Short-term fix-flip / construction financing."""
        return self.product in (LoanProduct.FIX_FLIP, LoanProduct.GROUND_UP)

    @property
    def is_dscr_priced(self) -> bool:
        return self in (TransactionType.DSCR_RENTAL, TransactionType.PORTFOLIO_REFINANCE)


_PRODUCT_BY_TRANSACTION = {
    TransactionType.DSCR_RENTAL: LoanProduct.DSCR_RENTAL,
    TransactionType.PORTFOLIO_REFINANCE: LoanProduct.DSCR_RENTAL,
    TransactionType.FIX_FLIP: LoanProduct.FIX_FLIP,
    TransactionType.PURCHASE_FIX_FLIP: LoanProduct.FIX_FLIP,
    TransactionType.GROUND_UP: LoanProduct.GROUND_UP,
    TransactionType.PURCHASE_GROUND_UP: LoanProduct.GROUND_UP,
    TransactionType.HELOC: LoanProduct.HELOC,
    TransactionType.MULTIFAMILY_BRIDGE: LoanProduct.MULTIFAMILY_BRIDGE,
    TransactionType.MULTIFAMILY_VALUE_ADD: LoanProduct.MULTIFAMILY_VALUE_ADD,
    TransactionType.MULTIFAMILY_CASH_OUT: LoanProduct.MULTIFAMILY_CASH_OUT,
    TransactionType.COMMERCIAL: LoanProduct.COMMERCIAL,
}


class LoanSnapshot(CamelModel):
    """
    Immutable view of one loan request as the decision engine sees it.
    Built from the store row; the engine never writes through it.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    loan_number: Optional[str] = None
    property_address: Optional[str] = None
    property_city: Optional[str] = None
    property_state: Optional[str] = None
    property_zip: Optional[str] = None
    property_type: Optional[PropertyType] = None
    residential_units: Optional[int] = None
    commercial_type: Optional[str] = None
    is_portfolio: bool = False
    portfolio_count: Optional[int] = None
    request_type: Optional[RequestType] = None
    transaction_type: Optional[TransactionType] = None
    borrower_type: Optional[BorrowerType] = None
    documentation_type: Optional[DocumentationType] = None
    requested_ltv: Optional[float] = None
    property_value: Optional[float] = None
    loan_amount: Optional[float] = None
    dscr_ratio: Optional[float] = None
    fico_score: Optional[int] = Field(None, ge=300, le=850)
    status: LoanStatus = LoanStatus.NEW_REQUEST
    status_entered_at: Optional[datetime] = None


class LoanCreate(CamelModel):
    property_address: str = Field(..., min_length=1)
    property_city: str = Field(..., min_length=1)
    property_state: str = Field(..., min_length=2, max_length=2)
    property_zip: str = Field(..., min_length=5)
    property_name: Optional[str] = None
    created_by: Optional[str] = None


class LoanUpdate(CamelModel):
    """Partial update of property and loan details; omitted fields keep their stored value."""

    property_address: Optional[str] = None
    property_city: Optional[str] = None
    property_state: Optional[str] = Field(None, min_length=2, max_length=2)
    property_zip: Optional[str] = None
    property_name: Optional[str] = None
    property_type: Optional[PropertyType] = None
    residential_units: Optional[int] = Field(None, ge=1)
    commercial_type: Optional[str] = None
    is_portfolio: Optional[bool] = None
    portfolio_count: Optional[int] = Field(None, ge=1)
    request_type: Optional[RequestType] = None
    transaction_type: Optional[TransactionType] = None
    borrower_type: Optional[BorrowerType] = None
    documentation_type: Optional[DocumentationType] = None
    property_value: Optional[float] = Field(None, gt=0)
    requested_ltv: Optional[float] = Field(None, gt=0, le=100)
    fico_score: Optional[int] = Field(None, ge=300, le=850)
    annual_rental_income: Optional[float] = Field(None, ge=0)
    annual_operating_expenses: Optional[float] = Field(None, ge=0)
    annual_loan_payments: Optional[float] = Field(None, ge=0)

    def changed_fields(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_unset=True, exclude_none=True)
