"""
Loan store and status transitions against an in-memory SQLite store.
Run from project root: python -m pytest tests/test_loan_store.py -v
"""
import unittest
from datetime import datetime, timezone
from unittest import mock

from sqlalchemy import select

from models import AuditLog, LoanStatusHistory
from schemas.loan import LoanCreate, LoanUpdate
from schemas.status import LoanStatus
from services.exceptions import InvalidStatusError, LoanNotFoundError, TerminalStatusError
from services.loan_store import create_loan, get_loan, get_loan_snapshot, update_loan
from services.status_machine import load_history, transition_status
from tests.support import StoreTestCase


def _create_body(**overrides) -> LoanCreate:
    data = {
        "property_address": "412 Maple St",
        "property_city": "Austin",
        "property_state": "tx",
        "property_zip": "78704",
        "created_by": "broker@example.com",
    }
    data.update(overrides)
    return LoanCreate(**data)


class TestLoanStore(StoreTestCase):
    async def test_create_loan(self):
        loan = await create_loan(self.session, _create_body())
        year = datetime.now(timezone.utc).year
        self.assertEqual(loan.loan_number, f"RPC-{year}-0001")
        self.assertEqual(loan.status, "new_request")
        self.assertEqual(loan.current_step, 1)
        self.assertEqual(loan.property_state, "TX")

        history = await load_history(self.session, loan.id)
        self.assertEqual(len(history), 1)
        self.assertIsNone(history[0].from_status)
        self.assertEqual(history[0].to_status, "new_request")
        self.assertEqual(history[0].notes, "New loan request created")

    async def test_loan_numbers_increment(self):
        await create_loan(self.session, _create_body())
        second = await create_loan(self.session, _create_body(property_address="88 Elm Ave"))
        self.assertTrue(second.loan_number.endswith("-0002"))

    async def test_update_derives_amount_and_dscr(self):
        loan = await create_loan(self.session, _create_body())
        body = LoanUpdate(
            property_value=400_000,
            requested_ltv=75,
            transaction_type="dscr_rental",
            annual_rental_income=42_000,
            annual_operating_expenses=9_000,
            annual_loan_payments=26_400,
        )
        loan = await update_loan(self.session, loan.id, body)
        self.assertEqual(loan.loan_amount, 300_000)
        self.assertEqual(loan.noi, 33_000)
        self.assertEqual(loan.dscr_ratio, 1.25)
        self.assertEqual(loan.transaction_type, "dscr_rental")

        snapshot = await get_loan_snapshot(self.session, loan.id)
        self.assertEqual(snapshot.transaction_type.value, "dscr_rental")
        self.assertEqual(snapshot.status, LoanStatus.NEW_REQUEST)

    async def test_partial_update_keeps_other_fields(self):
        loan = await create_loan(self.session, _create_body())
        await update_loan(self.session, loan.id, LoanUpdate(property_value=500_000, requested_ltv=70))
        loan = await update_loan(self.session, loan.id, LoanUpdate(fico_score=730))
        self.assertEqual(loan.property_value, 500_000)
        self.assertEqual(loan.loan_amount, 350_000)
        self.assertEqual(loan.fico_score, 730)

    async def test_deleting_loan_keeps_status_history(self):
        loan = await create_loan(self.session, _create_body())
        await transition_status(self.session, loan.id, "quote_requested")
        await self.session.delete(loan)
        await self.session.flush()

        result = await self.session.execute(select(LoanStatusHistory).where(LoanStatusHistory.loan_id == loan.id))
        self.assertEqual(len(result.scalars().all()), 2)

    async def test_unknown_loan(self):
        with self.assertRaises(LoanNotFoundError):
            await get_loan(self.session, "loan-missing")


class TestStatusTransitions(StoreTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        loan = await create_loan(self.session, _create_body())
        self.loan_id = loan.id

    async def test_transition_appends_history(self):
        result = await transition_status(self.session, self.loan_id, "quote_requested", "ops@example.com", "Called borrower")
        self.assertEqual(result.previous_status, LoanStatus.NEW_REQUEST)
        self.assertEqual(result.new_status, LoanStatus.QUOTE_REQUESTED)
        self.assertEqual(result.step, 2)
        self.assertEqual(result.history_entry.actor, "ops@example.com")

        loan = await get_loan(self.session, self.loan_id)
        self.assertEqual(loan.status, "quote_requested")
        self.assertEqual(loan.current_step, 2)
        history = await load_history(self.session, self.loan_id)
        self.assertEqual([h.to_status for h in history], ["quote_requested", "new_request"])

        audit = await self.session.execute(select(AuditLog).where(AuditLog.entity_id == self.loan_id))
        self.assertEqual([a.action for a in audit.scalars()], ["STATUS_CHANGED"])

    async def test_skips_and_backward_moves_allowed(self):
        await transition_status(self.session, self.loan_id, "conditionally_approved")
        await transition_status(self.session, self.loan_id, "conditional_items_needed")
        result = await transition_status(self.session, self.loan_id, LoanStatus.CONDITIONALLY_APPROVED)
        self.assertEqual(result.previous_status, LoanStatus.CONDITIONAL_ITEMS_NEEDED)
        await transition_status(self.session, self.loan_id, "needs_list_sent")
        loan = await get_loan(self.session, self.loan_id)
        self.assertEqual(loan.current_step, 6)

    async def test_unknown_status_writes_nothing(self):
        with self.assertRaises(InvalidStatusError):
            await transition_status(self.session, self.loan_id, "approved_maybe")
        history = await load_history(self.session, self.loan_id)
        self.assertEqual(len(history), 1)
        loan = await get_loan(self.session, self.loan_id)
        self.assertEqual(loan.status, "new_request")

    async def test_store_failure_leaves_status_and_history_unchanged(self):
        with mock.patch("services.status_machine.record_audit", side_effect=RuntimeError("audit table locked")):
            with self.assertRaises(RuntimeError):
                await transition_status(self.session, self.loan_id, "appraisal_ordered", "ops@example.com")

        loan = await get_loan(self.session, self.loan_id)
        self.assertEqual(loan.status, "new_request")
        self.assertEqual(loan.current_step, 1)
        history = await load_history(self.session, self.loan_id)
        self.assertEqual([h.to_status for h in history], ["new_request"])

    async def test_funded_is_terminal(self):
        await transition_status(self.session, self.loan_id, "funded")
        with self.assertRaises(TerminalStatusError):
            await transition_status(self.session, self.loan_id, "closing_scheduled")
        result = await self.session.execute(
            select(LoanStatusHistory).where(LoanStatusHistory.loan_id == self.loan_id)
        )
        self.assertEqual(len(result.scalars().all()), 2)

    async def test_unknown_loan(self):
        with self.assertRaises(LoanNotFoundError):
            await transition_status(self.session, "loan-missing", "funded")


if __name__ == "__main__":
    unittest.main()
