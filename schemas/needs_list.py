from enum import Enum
from typing import Literal, Optional

from pydantic import ConfigDict, Field

from schemas.base import CamelModel


class DocumentCategory(str, Enum):
    FINANCIAL = "financial"
    PROPERTY = "property"
    IDENTITY = "identity"
    CONSTRUCTION = "construction"
    GENERAL = "general"


class NeedsListStatus(str, Enum):
    PENDING = "pending"
    UPLOADED = "uploaded"
    REVIEWED = "reviewed"
    REJECTED = "rejected"


class NeedsListItemSchema(CamelModel):
    """One required (or optional) document for a loan. (loan_id, document_type, folder_name) is unique."""

    model_config = ConfigDict(frozen=True)

    loan_id: str
    document_type: str
    folder_name: str
    description: str
    category: DocumentCategory
    required: bool
    status: NeedsListStatus = NeedsListStatus.PENDING


class NeedsListCapabilities(CamelModel):
    """
    Which optional needs-list columns a store accepts. Passed to the materializer
    explicitly instead of probing the database schema at insert time.
    """

    model_config = ConfigDict(frozen=True)

    schema_version: int = 2
    category: bool = True
    loan_type: bool = True
    display_name: bool = False


class MaterializeResult(CamelModel):
    inserted: int = 0
    skipped: int = 0
    failed: list[str] = Field(default_factory=list)


class NeedsListReviewRequest(CamelModel):
    status: Literal["reviewed", "rejected"]
    reviewer: Optional[str] = None
    notes: Optional[str] = None


class NeedsListItemCreate(CamelModel):
    """An extra document requested by operations for one loan."""

    document_type: str = Field(..., min_length=1)
    folder_name: str = Field(..., min_length=1)
    description: Optional[str] = None
    required: bool = True
    requested_by: Optional[str] = None
