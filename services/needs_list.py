"""
Needs list: the documents a borrower must provide, derived from loan attributes.

build_needs_list is pure. materialize_needs_list writes the items for a loan and is safe to
repeat: an item already present for (loan_id, document_type, folder_name) is skipped, and the
insert itself is conflict-tolerant so concurrent retries cannot create duplicates.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from sqlalchemy import insert, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from models import NeedsListItem
from schemas.loan import BorrowerType, DocumentationType, LoanSnapshot, PropertyType, RequestType, TransactionType
from schemas.needs_list import (
    DocumentCategory,
    MaterializeResult,
    NeedsListCapabilities,
    NeedsListItemSchema,
    NeedsListStatus,
)
from services.exceptions import NeedsListInsertError

logger = logging.getLogger(__name__)

DEFAULT_CAPABILITIES = NeedsListCapabilities()

# Checked in order; the first category with a matching keyword wins.
_CATEGORY_KEYWORDS: tuple[tuple[DocumentCategory, tuple[str, ...]], ...] = (
    (DocumentCategory.FINANCIAL, ("income", "tax", "bank")),
    (DocumentCategory.PROPERTY, ("property", "lease", "rent")),
    (DocumentCategory.IDENTITY, ("identification", "entity")),
    (DocumentCategory.CONSTRUCTION, ("construction", "contract")),
)

# Created with every new loan so the borrower sees empty folders before any quote.
DEFAULT_FOLDERS: tuple[tuple[str, str], ...] = (
    ("Application", "Loan application documents"),
    ("Entity Documents", "LLC/Corp documents, Operating Agreement, Articles of Organization"),
    ("Property Insurance", "Property insurance documents"),
    ("Personal Financial Statement", "Personal financial statements and supporting documents"),
    ("Property Financial Statements", "Property income statements, tax returns, and financial records"),
    ("Rent Roll & Leases", "Rent roll and lease agreements"),
)


@dataclass(frozen=True)
class _Requirement:
    document_type: str
    folder_name: str
    description: str
    required: bool = True


def infer_category(folder_name: str) -> DocumentCategory:
    folder = folder_name.lower()
    for category, keywords in _CATEGORY_KEYWORDS:
        if any(k in folder for k in keywords):
            return category
    return DocumentCategory.GENERAL


def _baseline(loan: LoanSnapshot) -> list[_Requirement]:
    return [
        _Requirement("Government ID", "identification", "Valid government-issued photo ID (driver's license or passport)"),
        _Requirement("Entity Documents", "entity_docs", "LLC/Corp documents, Operating Agreement, Articles of Organization"),
        _Requirement(
            "Purchase Contract",
            "purchase_contract",
            "Signed purchase agreement (if purchase transaction)",
            required=loan.request_type is RequestType.PURCHASE,
        ),
    ]


def _documentation_block(documentation_type: Optional[DocumentationType]) -> list[_Requirement]:
    if documentation_type is DocumentationType.FULL_DOC:
        return [
            _Requirement("Tax Returns", "tax_returns", "Last 2 years personal and business tax returns with all schedules"),
            _Requirement("W-2s", "income_docs", "Last 2 years W-2 forms"),
            _Requirement("Pay Stubs", "income_docs", "Last 30 days pay stubs"),
            _Requirement("Bank Statements", "bank_statements", "Last 2 months bank statements for all accounts"),
        ]
    if documentation_type is DocumentationType.LIGHT_DOC:
        return [
            _Requirement("Bank Statements", "bank_statements", "Last 2 months bank statements"),
            _Requirement("CPA Letter", "income_docs", "CPA letter confirming income or asset documentation"),
        ]
    if documentation_type is DocumentationType.BANK_STATEMENT:
        return [
            _Requirement("Bank Statements", "bank_statements", "12-24 months personal or business bank statements"),
            _Requirement(
                "P&L Statement",
                "income_docs",
                "Year-to-date Profit & Loss statement (if self-employed)",
                required=False,
            ),
        ]
    return []


def _investment_block() -> list[_Requirement]:
    return [
        _Requirement("Lease Agreements", "property_docs", "Current lease agreements for all units"),
        _Requirement("Rent Roll", "property_docs", "Current rent roll showing all tenants and rents"),
    ]


def _commercial_block() -> list[_Requirement]:
    return [
        _Requirement("Operating Statement", "property_docs", "Last 12 months operating statement (T-12)"),
        _Requirement("Rent Roll", "property_docs", "Current rent roll with lease expiration dates"),
        _Requirement("Property Photos", "property_photos", "Interior and exterior photos of the property"),
    ]


def _portfolio_block(portfolio_count: Optional[int]) -> list[_Requirement]:
    return [
        _Requirement(
            "Portfolio Schedule",
            "portfolio_docs",
            f"Schedule of all {portfolio_count or 'properties'} with addresses, values, and rents",
        ),
        _Requirement(
            "Individual Property Docs",
            "portfolio_docs",
            "Lease agreements and rent rolls for each property in the portfolio",
        ),
        _Requirement(
            "Portfolio DSCR Calculation",
            "portfolio_docs",
            "Combined NOI and debt service for all properties in portfolio",
        ),
    ]


def _construction_block() -> list[_Requirement]:
    return [
        _Requirement("Scope of Work", "construction_docs", "Detailed scope of work with line-item budget"),
        _Requirement("Contractor Bids", "construction_docs", "Licensed contractor bids for renovation work"),
        _Requirement("Experience Resume", "borrower_docs", "Track record of completed projects"),
    ]


def _requirements(loan: LoanSnapshot) -> Iterable[_Requirement]:
    yield from _baseline(loan)
    yield from _documentation_block(loan.documentation_type)
    if loan.borrower_type is BorrowerType.INVESTMENT:
        yield from _investment_block()
    if loan.property_type is PropertyType.COMMERCIAL:
        yield from _commercial_block()
    if loan.is_portfolio or loan.transaction_type is TransactionType.PORTFOLIO_REFINANCE:
        yield from _portfolio_block(loan.portfolio_count)
    if loan.transaction_type is not None and loan.transaction_type.is_bridge:
        yield from _construction_block()


def build_needs_list(loan: LoanSnapshot) -> list[NeedsListItemSchema]:
    """
    Checklist for a loan, in block order. If two blocks ask for the same document in the
    same folder (an investment commercial loan's rent roll), the first one is kept.
    """
    items: list[NeedsListItemSchema] = []
    seen: set[tuple[str, str]] = set()
    for req in _requirements(loan):
        if (req.document_type, req.folder_name) in seen:
            continue
        seen.add((req.document_type, req.folder_name))
        items.append(
            NeedsListItemSchema(
                loan_id=loan.id,
                document_type=req.document_type,
                folder_name=req.folder_name,
                description=req.description,
                category=infer_category(req.folder_name),
                required=req.required,
            )
        )
    return items


def default_folder_items(loan_id: str) -> list[NeedsListItemSchema]:
    """Optional placeholder rows, one per standard document folder."""
    return [
        NeedsListItemSchema(
            loan_id=loan_id,
            document_type=f"Folder: {name}",
            folder_name=name,
            description=description,
            category=infer_category(name),
            required=False,
        )
        for name, description in DEFAULT_FOLDERS
    ]


def to_item_schema(item: NeedsListItem) -> NeedsListItemSchema:
    return NeedsListItemSchema(
        loan_id=item.loan_id,
        document_type=item.document_type,
        folder_name=item.folder_name,
        description=item.description or "",
        category=infer_category(item.folder_name),
        required=bool(item.required),
        status=NeedsListStatus(item.status),
    )


def _row(
    item: NeedsListItemSchema, capabilities: NeedsListCapabilities, loan_type: Optional[str], minimal: bool = False
) -> dict[str, Any]:
    row: dict[str, Any] = {
        "id": f"nli-{uuid.uuid4().hex[:12]}",
        "loan_id": item.loan_id,
        "document_type": item.document_type,
        "folder_name": item.folder_name,
        "description": item.description,
        "status": item.status.value,
        "required": item.required,
        "created_at": datetime.now(timezone.utc),
    }
    if minimal:
        return row
    if capabilities.display_name:
        row["name"] = item.document_type
    if capabilities.category:
        row["category"] = item.category.value
    if capabilities.loan_type:
        row["loan_type"] = loan_type or "general"
    return row


def _insert_ignoring_duplicates(session: AsyncSession, row: dict[str, Any]):
    key = ["loan_id", "document_type", "folder_name"]
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert(NeedsListItem).values(**row).on_conflict_do_nothing(index_elements=key)
    if dialect == "sqlite":
        return sqlite_insert(NeedsListItem).values(**row).on_conflict_do_nothing(index_elements=key)
    return insert(NeedsListItem).values(**row)


async def _exists(session: AsyncSession, item: NeedsListItemSchema) -> bool:
    result = await session.execute(
        select(NeedsListItem.id)
        .where(
            NeedsListItem.loan_id == item.loan_id,
            NeedsListItem.document_type == item.document_type,
            NeedsListItem.folder_name == item.folder_name,
        )
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def _insert_one(
    session: AsyncSession, item: NeedsListItemSchema, capabilities: NeedsListCapabilities, loan_type: Optional[str]
) -> bool:
    """
    Insert one row inside its own savepoint. Falls back to the required columns only if the
    full row is rejected. Returns False when a concurrent writer got there first.
    """
    try:
        async with session.begin_nested():
            result = await session.execute(_insert_ignoring_duplicates(session, _row(item, capabilities, loan_type)))
        return result.rowcount != 0
    except SQLAlchemyError as first_error:
        logger.warning(
            "Full insert of needs-list item %r failed (%s); retrying with required columns only",
            item.document_type,
            first_error,
        )
    try:
        async with session.begin_nested():
            result = await session.execute(
                _insert_ignoring_duplicates(session, _row(item, capabilities, loan_type, minimal=True))
            )
        return result.rowcount != 0
    except SQLAlchemyError as e:
        raise NeedsListInsertError(item.document_type, item.folder_name, e) from e


async def insert_needs_list_items(
    session: AsyncSession,
    items: Iterable[NeedsListItemSchema],
    capabilities: NeedsListCapabilities = DEFAULT_CAPABILITIES,
    loan_type: Optional[str] = None,
) -> MaterializeResult:
    """Insert items that are not already present. A failed item is logged and skipped; the rest still go in."""
    outcome = MaterializeResult()
    for item in items:
        if await _exists(session, item):
            logger.debug(
                "Skipping duplicate needs-list item %r in %s for loan %s", item.document_type, item.folder_name, item.loan_id
            )
            outcome.skipped += 1
            continue
        try:
            inserted = await _insert_one(session, item, capabilities, loan_type)
        except NeedsListInsertError as e:
            logger.error("Loan %s: %s", item.loan_id, e)
            outcome.failed.append(item.document_type)
            continue
        if inserted:
            outcome.inserted += 1
        else:
            outcome.skipped += 1
    return outcome


async def materialize_needs_list(
    session: AsyncSession,
    loan: LoanSnapshot,
    capabilities: NeedsListCapabilities = DEFAULT_CAPABILITIES,
) -> MaterializeResult:
    """Write the loan's checklist. Running it again for the same loan inserts nothing new."""
    loan_type = loan.transaction_type.value if loan.transaction_type else None
    outcome = await insert_needs_list_items(session, build_needs_list(loan), capabilities, loan_type)
    logger.info(
        "Needs list for loan %s: %d inserted, %d already present, %d failed",
        loan.id,
        outcome.inserted,
        outcome.skipped,
        len(outcome.failed),
    )
    return outcome


async def add_needs_list_item(
    session: AsyncSession,
    loan_id: str,
    document_type: str,
    folder_name: str,
    description: Optional[str] = None,
    required: bool = True,
    loan_type: Optional[str] = None,
    capabilities: NeedsListCapabilities = DEFAULT_CAPABILITIES,
) -> tuple[NeedsListItem, bool]:
    """
    Request one more document for a loan. Goes through the same duplicate-tolerant insert as
    the generated list, so asking twice returns the stored item with created=False.
    """
    item = NeedsListItemSchema(
        loan_id=loan_id,
        document_type=document_type.strip(),
        folder_name=folder_name.strip(),
        description=description or "",
        category=infer_category(folder_name),
        required=required,
    )
    outcome = await insert_needs_list_items(session, [item], capabilities, loan_type)
    if outcome.failed:
        raise NeedsListInsertError(item.document_type, item.folder_name, RuntimeError("item was not stored"))

    result = await session.execute(
        select(NeedsListItem).where(
            NeedsListItem.loan_id == item.loan_id,
            NeedsListItem.document_type == item.document_type,
            NeedsListItem.folder_name == item.folder_name,
        )
    )
    stored = result.scalar_one()
    logger.info(
        "Loan %s: needs-list item %r in %s %s",
        loan_id,
        item.document_type,
        item.folder_name,
        "added" if outcome.inserted else "already present",
    )
    return stored, outcome.inserted == 1


async def list_needs_list_items(session: AsyncSession, loan_id: str) -> list[NeedsListItem]:
    result = await session.execute(
        select(NeedsListItem)
        .where(NeedsListItem.loan_id == loan_id)
        .order_by(NeedsListItem.required.desc(), NeedsListItem.folder_name, NeedsListItem.created_at)
    )
    return list(result.scalars().all())


async def review_needs_list_item(
    session: AsyncSession,
    item_id: str,
    status: NeedsListStatus,
    reviewer: Optional[str] = None,
    notes: Optional[str] = None,
) -> Optional[NeedsListItem]:
    """Mark an item reviewed or rejected. Returns None if the item does not exist."""
    if status not in (NeedsListStatus.REVIEWED, NeedsListStatus.REJECTED):
        raise ValueError(f"Review status must be reviewed or rejected, got {status.value}")
    result = await session.execute(select(NeedsListItem).where(NeedsListItem.id == item_id))
    item = result.scalar_one_or_none()
    if item is None:
        return None
    item.status = status.value
    item.reviewed_by = reviewer
    item.review_notes = notes
    item.reviewed_at = datetime.now(timezone.utc)
    await session.flush()
    return item
