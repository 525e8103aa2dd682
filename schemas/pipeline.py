from datetime import datetime
from typing import Optional

from pydantic import Field

from schemas.base import CamelModel
from schemas.status import LoanStatus


class PipelineEntry(CamelModel):
    """One row of the operations pipeline board."""

    loan_id: str
    loan_number: str
    property_name: Optional[str] = None
    property_address: Optional[str] = None
    property_city: Optional[str] = None
    property_state: Optional[str] = None
    loan_amount: Optional[float] = None
    status: LoanStatus
    status_label: str
    step: int
    percent_complete: float
    days_in_status: int
    pending_docs: int
    updated_at: Optional[datetime] = None


class PipelinePage(CamelModel):
    loans: list[PipelineEntry] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    total_pages: int = 0


class StatusCount(CamelModel):
    status: LoanStatus
    count: int
    total_amount: float = 0.0


class PipelineStats(CamelModel):
    by_status: list[StatusCount] = Field(default_factory=list)
    total_loans: int = 0
    funded_loans: int = 0
    funded_amount: float = 0.0
    stale_loans: int = 0
