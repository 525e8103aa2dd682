"""
Quote submission flow: gate, pricing, status move and needs list, end to end on SQLite.
Run from project root: python -m pytest tests/test_submission.py -v
"""
import unittest

from sqlalchemy import select

from config import EligibilityMode
from models import AuditLog
from reference.tables import load_reference_data
from schemas.loan import LoanCreate, LoanUpdate
from services.eligibility import EligibilityGate
from services.loan_store import create_loan, get_loan, update_loan
from services.needs_list import list_needs_list_items
from services.status_machine import load_history
from services.submission import submit_for_quote
from tests.support import StoreTestCase

RENTAL = {
    "property_type": "residential",
    "residential_units": 1,
    "request_type": "purchase",
    "transaction_type": "dscr_rental",
    "borrower_type": "investment",
    "documentation_type": "full_doc",
    "property_value": 400_000,
    "requested_ltv": 75,
    "fico_score": 745,
    "annual_rental_income": 42_000,
    "annual_operating_expenses": 9_000,
    "annual_loan_payments": 28_000,
}


class TestSubmitForQuote(StoreTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.reference = load_reference_data()
        self.gate = EligibilityGate(EligibilityMode.ENFORCED, self.reference)

    async def _loan(self, **details) -> str:
        loan = await create_loan(
            self.session,
            LoanCreate(property_address="412 Maple St", property_city="Austin", property_state="TX", property_zip="78704"),
        )
        await update_loan(self.session, loan.id, LoanUpdate(**{**RENTAL, **details}))
        return loan.id

    async def _actions(self, loan_id):
        result = await self.session.execute(select(AuditLog.action).where(AuditLog.entity_id == loan_id))
        return list(result.scalars())

    async def test_eligible_loan_is_quoted(self):
        loan_id = await self._loan()
        outcome = await submit_for_quote(self.session, loan_id, self.gate, actor="broker@example.com")

        self.assertIsNotNone(outcome.quote)
        self.assertEqual(outcome.quote.rate_range, "6.75% – 7.25%")
        self.assertEqual(outcome.quote.credit_score_used, 745)

        loan = await get_loan(self.session, loan_id)
        self.assertEqual(loan.status, "soft_quote_issued")
        self.assertEqual(loan.current_step, 3)
        self.assertTrue(loan.soft_quote_generated)
        self.assertEqual(loan.soft_quote_rate_min, 6.75)
        self.assertEqual(loan.soft_quote_data["rateRange"], "6.75% – 7.25%")

        history = await load_history(self.session, loan_id)
        self.assertEqual(history[0].to_status, "soft_quote_issued")
        self.assertEqual(history[0].notes, "Soft quote generated: 6.75% – 7.25%")

        items = await list_needs_list_items(self.session, loan_id)
        self.assertEqual(len(items), 6 + outcome.needs_list.inserted)
        self.assertIn("SOFT_QUOTE_ISSUED", await self._actions(loan_id))
        self.assertIn("STATUS_CHANGED", await self._actions(loan_id))

    async def test_pulled_score_overrides_score_on_file(self):
        loan_id = await self._loan()
        outcome = await submit_for_quote(self.session, loan_id, self.gate, credit_score=760)
        self.assertEqual(outcome.quote.rate_range, "6.50% – 7.00%")

    async def test_resubmission_does_not_duplicate_needs_list(self):
        loan_id = await self._loan()
        first = await submit_for_quote(self.session, loan_id, self.gate)
        second = await submit_for_quote(self.session, loan_id, self.gate)
        self.assertGreater(first.needs_list.inserted, 0)
        self.assertEqual(second.needs_list.inserted, 0)

    async def test_ineligible_loan_stores_reason(self):
        loan_id = await self._loan(property_state="DC")
        outcome = await submit_for_quote(self.session, loan_id, self.gate)

        self.assertFalse(outcome.eligibility.eligible)
        self.assertIsNone(outcome.quote)
        loan = await get_loan(self.session, loan_id)
        self.assertEqual(loan.status, "new_request")
        self.assertIn("not licensed", loan.rejection_reason)
        self.assertFalse(loan.soft_quote_generated)
        self.assertEqual(await self._actions(loan_id), ["ELIGIBILITY_REJECTED"])

    async def test_low_dscr_is_declined(self):
        loan_id = await self._loan(
            transaction_type="fix_flip",
            annual_rental_income=30_000,
            annual_operating_expenses=10_000,
            annual_loan_payments=25_000,
        )
        outcome = await submit_for_quote(self.session, loan_id, self.gate)

        self.assertIsNotNone(outcome.decline)
        self.assertIsNone(outcome.transition)
        loan = await get_loan(self.session, loan_id)
        self.assertTrue(loan.dscr_auto_declined)
        self.assertEqual(loan.status, "new_request")
        self.assertEqual(loan.soft_quote_data["approved"], False)
        self.assertEqual(await self._actions(loan_id), ["SOFT_QUOTE_DECLINED"])

    async def test_bypass_gate_lets_ineligible_loan_through(self):
        gate = EligibilityGate(EligibilityMode.BYPASS_FOR_TESTING, self.reference)
        loan_id = await self._loan(property_state="DC")
        outcome = await submit_for_quote(self.session, loan_id, gate)
        self.assertTrue(outcome.eligibility.bypassed)
        self.assertIsNotNone(outcome.quote)


if __name__ == "__main__":
    unittest.main()
