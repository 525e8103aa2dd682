from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from schemas.base import CamelModel


class LoanStatus(str, Enum):
    NEW_REQUEST = "new_request"
    QUOTE_REQUESTED = "quote_requested"
    SOFT_QUOTE_ISSUED = "soft_quote_issued"
    TERM_SHEET_ISSUED = "term_sheet_issued"
    TERM_SHEET_SIGNED = "term_sheet_signed"
    NEEDS_LIST_SENT = "needs_list_sent"
    NEEDS_LIST_COMPLETE = "needs_list_complete"
    SUBMITTED_TO_UNDERWRITING = "submitted_to_underwriting"
    APPRAISAL_ORDERED = "appraisal_ordered"
    APPRAISAL_RECEIVED = "appraisal_received"
    CONDITIONALLY_APPROVED = "conditionally_approved"
    CONDITIONAL_ITEMS_NEEDED = "conditional_items_needed"
    CONDITIONAL_COMMITMENT_ISSUED = "conditional_commitment_issued"
    CLOSING_CHECKLIST_ISSUED = "closing_checklist_issued"
    CLEAR_TO_CLOSE = "clear_to_close"
    CLOSING_SCHEDULED = "closing_scheduled"
    FUNDED = "funded"


class StatusOption(CamelModel):
    value: LoanStatus
    label: str
    step: int
    branch: bool = False


class StatusTransitionRequest(CamelModel):
    # Plain string so an unknown status reaches the state machine and is rejected there.
    status: str = Field(..., min_length=1)
    actor: Optional[str] = None
    notes: Optional[str] = None


class StatusHistoryEntrySchema(CamelModel):
    id: str
    loan_id: str
    from_status: Optional[LoanStatus] = None
    to_status: LoanStatus
    step: Optional[int] = None
    actor: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime


class StatusTransitionResult(CamelModel):
    loan_id: str
    previous_status: Optional[LoanStatus] = None
    new_status: LoanStatus
    step: int
    percent_complete: float
    history_entry: StatusHistoryEntrySchema
