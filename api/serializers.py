"""camelCase response bodies for stored rows."""
from __future__ import annotations

from typing import Any, Optional

from models import LoanRequest, LoanStatusHistory, NeedsListItem
from services.status_machine import percent_complete, status_option


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def loan_to_response(loan: LoanRequest) -> dict[str, Any]:
    option = status_option(loan.status)
    return {
        "id": loan.id,
        "loanNumber": loan.loan_number,
        "createdBy": loan.created_by,
        "propertyName": loan.property_name,
        "propertyAddress": loan.property_address,
        "propertyCity": loan.property_city,
        "propertyState": loan.property_state,
        "propertyZip": loan.property_zip,
        "propertyType": loan.property_type,
        "residentialUnits": loan.residential_units,
        "commercialType": loan.commercial_type,
        "isPortfolio": bool(loan.is_portfolio),
        "portfolioCount": loan.portfolio_count,
        "requestType": loan.request_type,
        "transactionType": loan.transaction_type,
        "borrowerType": loan.borrower_type,
        "documentationType": loan.documentation_type,
        "propertyValue": loan.property_value,
        "requestedLtv": loan.requested_ltv,
        "loanAmount": loan.loan_amount,
        "ficoScore": loan.fico_score,
        "annualRentalIncome": loan.annual_rental_income,
        "annualOperatingExpenses": loan.annual_operating_expenses,
        "noi": loan.noi,
        "annualLoanPayments": loan.annual_loan_payments,
        "dscrRatio": loan.dscr_ratio,
        "status": loan.status,
        "statusLabel": option.label,
        "currentStep": loan.current_step,
        "percentComplete": percent_complete(loan.status),
        "statusEnteredAt": _iso(loan.status_entered_at),
        "rejectionReason": loan.rejection_reason,
        "dscrAutoDeclined": bool(loan.dscr_auto_declined),
        "softQuoteGenerated": bool(loan.soft_quote_generated),
        "softQuote": loan.soft_quote_data,
        "createdAt": _iso(loan.created_at),
        "updatedAt": _iso(loan.updated_at),
    }


def history_to_response(entry: LoanStatusHistory) -> dict[str, Any]:
    return {
        "id": entry.id,
        "loanId": entry.loan_id,
        "fromStatus": entry.from_status,
        "toStatus": entry.to_status,
        "step": entry.step,
        "actor": entry.actor,
        "notes": entry.notes,
        "createdAt": _iso(entry.created_at),
    }


def needs_list_item_to_response(item: NeedsListItem) -> dict[str, Any]:
    return {
        "id": item.id,
        "loanId": item.loan_id,
        "documentType": item.document_type,
        "folderName": item.folder_name,
        "description": item.description,
        "category": item.category,
        "loanType": item.loan_type,
        "required": bool(item.required),
        "status": item.status,
        "reviewedBy": item.reviewed_by,
        "reviewNotes": item.review_notes,
        "reviewedAt": _iso(item.reviewed_at),
        "createdAt": _iso(item.created_at),
    }
