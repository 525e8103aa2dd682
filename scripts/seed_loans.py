"""
Seed a few demo loan requests covering the main products, and quote the ones that qualify.
Run: python -m scripts.seed_loans (from the project root).
"""
import asyncio
import os
import sys

# Add parent so we can import the top-level modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select

from config import settings
from database import AsyncSessionLocal, init_db
from models import LoanRequest
from reference.tables import get_reference_data
from schemas.loan import LoanCreate, LoanUpdate
from services.eligibility import EligibilityGate
from services.loan_store import create_loan, update_loan
from services.submission import submit_for_quote


LOANS_DATA = [
    {
        "property_name": "Maple Street Rental",
        "property_address": "412 Maple St",
        "property_city": "Austin",
        "property_state": "TX",
        "property_zip": "78704",
        "details": {
            "property_type": "residential",
            "residential_units": 1,
            "request_type": "purchase",
            "transaction_type": "dscr_rental",
            "borrower_type": "investment",
            "documentation_type": "full_doc",
            "property_value": 450_000,
            "requested_ltv": 75,
            "fico_score": 745,
            "annual_rental_income": 42_000,
            "annual_operating_expenses": 9_000,
            "annual_loan_payments": 26_000,
        },
    },
    {
        "property_name": "Elm Avenue Flip",
        "property_address": "88 Elm Ave",
        "property_city": "Phoenix",
        "property_state": "AZ",
        "property_zip": "85004",
        "details": {
            "property_type": "residential",
            "residential_units": 1,
            "request_type": "purchase",
            "transaction_type": "fix_flip",
            "borrower_type": "investment",
            "documentation_type": "full_doc",
            "property_value": 320_000,
            "requested_ltv": 85,
            "fico_score": 700,
        },
    },
    {
        "property_name": "Harbor Retail Center",
        "property_address": "1200 Harbor Blvd",
        "property_city": "San Diego",
        "property_state": "CA",
        "property_zip": "92101",
        "details": {
            "property_type": "commercial",
            "commercial_type": "retail",
            "request_type": "refinance",
            "transaction_type": "commercial",
            "borrower_type": "investment",
            "documentation_type": "full_doc",
            "property_value": 2_600_000,
            "requested_ltv": 70,
            "fico_score": 720,
        },
    },
]


async def seed():
    await init_db()
    gate = EligibilityGate(settings.eligibility_mode, get_reference_data())
    async with AsyncSessionLocal() as session:
        for data in LOANS_DATA:
            existing = await session.execute(
                select(LoanRequest).where(LoanRequest.property_address == data["property_address"])
            )
            if existing.scalar_one_or_none():
                print(f"Loan for {data['property_address']} already exists, skipping")
                continue
            loan = await create_loan(
                session,
                LoanCreate(
                    property_name=data["property_name"],
                    property_address=data["property_address"],
                    property_city=data["property_city"],
                    property_state=data["property_state"],
                    property_zip=data["property_zip"],
                    created_by="seed",
                ),
            )
            await update_loan(session, loan.id, LoanUpdate(**data["details"]))
            outcome = await submit_for_quote(session, loan.id, gate, actor="seed")
            if outcome.quote:
                print(f"Seeded {loan.loan_number} ({data['property_name']}): {outcome.quote.rate_range}")
            elif outcome.decline:
                print(f"Seeded {loan.loan_number} ({data['property_name']}): declined, {outcome.decline.decline_reason}")
            else:
                print(f"Seeded {loan.loan_number} ({data['property_name']}): ineligible")
        await session.commit()
    print("Seed complete.")


if __name__ == "__main__":
    asyncio.run(seed())
