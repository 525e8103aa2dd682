from schemas.eligibility import EligibilityErrorSchema, EligibilityResult
from schemas.loan import (
    BorrowerType,
    DocumentationType,
    LoanCreate,
    LoanProduct,
    LoanSnapshot,
    LoanUpdate,
    PropertyType,
    RequestType,
    TransactionType,
)
from schemas.needs_list import (
    DocumentCategory,
    MaterializeResult,
    NeedsListCapabilities,
    NeedsListItemCreate,
    NeedsListItemSchema,
    NeedsListReviewRequest,
    NeedsListStatus,
)
from schemas.pipeline import PipelineEntry, PipelinePage, PipelineStats, StatusCount
from schemas.quote import PricingFactors, QuoteDecline, QuoteOutcome, SoftQuote, SoftQuoteRequest, TermOption
from schemas.status import (
    LoanStatus,
    StatusHistoryEntrySchema,
    StatusOption,
    StatusTransitionRequest,
    StatusTransitionResult,
)

__all__ = [
    "BorrowerType",
    "DocumentationType",
    "LoanCreate",
    "LoanProduct",
    "LoanSnapshot",
    "LoanUpdate",
    "PropertyType",
    "RequestType",
    "TransactionType",
    "EligibilityErrorSchema",
    "EligibilityResult",
    "DocumentCategory",
    "MaterializeResult",
    "NeedsListCapabilities",
    "NeedsListItemCreate",
    "NeedsListItemSchema",
    "NeedsListReviewRequest",
    "NeedsListStatus",
    "PipelineEntry",
    "PipelinePage",
    "PipelineStats",
    "StatusCount",
    "PricingFactors",
    "QuoteDecline",
    "QuoteOutcome",
    "SoftQuote",
    "SoftQuoteRequest",
    "TermOption",
    "LoanStatus",
    "StatusHistoryEntrySchema",
    "StatusOption",
    "StatusTransitionRequest",
    "StatusTransitionResult",
]
