"""
Operations pipeline board and per-status stats against an in-memory SQLite store.
Run from project root: python -m pytest tests/test_pipeline.py -v
"""
import unittest
from datetime import datetime, timedelta, timezone

from sqlalchemy import select

from models import NeedsListItem
from schemas.loan import LoanCreate, LoanUpdate
from schemas.needs_list import NeedsListStatus
from services.exceptions import InvalidStatusError
from services.loan_store import create_loan, get_loan, update_loan
from services.needs_list import build_needs_list, materialize_needs_list, review_needs_list_item
from services.pipeline import list_pipeline, pipeline_stats
from services.status_machine import transition_status
from tests.support import StoreTestCase, make_loan


class TestPipeline(StoreTestCase):
    async def _loan(self, name=None, value=400000.0, ltv=75.0) -> str:
        loan = await create_loan(
            self.session,
            LoanCreate(
                property_name=name,
                property_address="1 Main St",
                property_city="Austin",
                property_state="TX",
                property_zip="78701",
            ),
        )
        await update_loan(self.session, loan.id, LoanUpdate(property_value=value, requested_ltv=ltv))
        return loan.id

    async def test_board_shows_days_in_status_and_pending_docs(self):
        loan_id = await self._loan()
        snapshot = make_loan(id=loan_id)
        await materialize_needs_list(self.session, snapshot)
        required = sum(1 for i in build_needs_list(snapshot) if i.required)

        page = await list_pipeline(self.session, now=datetime.now(timezone.utc) + timedelta(days=4))
        entry = page.loans[0]
        self.assertEqual(entry.loan_id, loan_id)
        self.assertEqual(entry.days_in_status, 4)
        # Folder placeholders are optional and not counted.
        self.assertEqual(entry.pending_docs, required)
        self.assertEqual(entry.status_label, "New Request")
        self.assertEqual(entry.loan_amount, 300000)

        item = (
            await self.session.execute(
                select(NeedsListItem).where(NeedsListItem.loan_id == loan_id, NeedsListItem.required.is_(True)).limit(1)
            )
        ).scalar_one()
        await review_needs_list_item(self.session, item.id, NeedsListStatus.REVIEWED, "ops@example.com")
        page = await list_pipeline(self.session)
        self.assertEqual(page.loans[0].pending_docs, required - 1)
        self.assertEqual(page.loans[0].days_in_status, 0)

    async def test_status_filter_and_search(self):
        quoted = await self._loan(name="Oak Fourplex")
        await self._loan(name="Maple Duplex")
        await transition_status(self.session, quoted, "quote_requested")

        page = await list_pipeline(self.session, status="quote_requested")
        self.assertEqual([e.loan_id for e in page.loans], [quoted])
        self.assertEqual(page.total, 1)

        self.assertEqual((await list_pipeline(self.session, status="all")).total, 2)
        self.assertEqual((await list_pipeline(self.session, search="maple")).loans[0].property_name, "Maple Duplex")
        self.assertEqual((await list_pipeline(self.session, search="RPC-")).total, 2)

        with self.assertRaises(InvalidStatusError):
            await list_pipeline(self.session, status="approved_maybe")

    async def test_paging(self):
        for _ in range(3):
            await self._loan()
        first = await list_pipeline(self.session, page=1, limit=2)
        second = await list_pipeline(self.session, page=2, limit=2)
        self.assertEqual(first.total, 3)
        self.assertEqual(first.total_pages, 2)
        self.assertEqual(len(first.loans), 2)
        self.assertEqual(len(second.loans), 1)
        self.assertEqual(len({e.loan_id for e in first.loans + second.loans}), 3)

    async def test_empty_board(self):
        page = await list_pipeline(self.session)
        self.assertEqual(page.loans, [])
        self.assertEqual(page.total, 0)
        self.assertEqual(page.total_pages, 0)


class TestPipelineStats(StoreTestCase):
    async def _loan(self, status: str, amount: float, days_in_status: int) -> str:
        loan = await create_loan(
            self.session,
            LoanCreate(property_address="1 Main St", property_city="Austin", property_state="TX", property_zip="78701"),
        )
        await update_loan(self.session, loan.id, LoanUpdate(property_value=amount * 2, requested_ltv=50))
        if status != "new_request":
            await transition_status(self.session, loan.id, status)
        loan = await get_loan(self.session, loan.id)
        loan.status_entered_at = datetime.now(timezone.utc) - timedelta(days=days_in_status)
        await self.session.flush()
        return loan.id

    async def test_stats(self):
        await self._loan("new_request", 100000, days_in_status=5)
        await self._loan("new_request", 150000, days_in_status=1)
        await self._loan("appraisal_ordered", 200000, days_in_status=4)
        await self._loan("clear_to_close", 250000, days_in_status=10)
        await self._loan("funded", 300000, days_in_status=30)

        stats = await pipeline_stats(self.session)
        self.assertEqual(stats.total_loans, 5)
        self.assertEqual(stats.funded_loans, 1)
        self.assertEqual(stats.funded_amount, 300000)
        # Loans near or at funding are never stale.
        self.assertEqual(stats.stale_loans, 2)
        self.assertEqual(
            [(s.status.value, s.count, s.total_amount) for s in stats.by_status],
            [
                ("new_request", 2, 250000),
                ("appraisal_ordered", 1, 200000),
                ("clear_to_close", 1, 250000),
                ("funded", 1, 300000),
            ],
        )

    async def test_no_loans(self):
        stats = await pipeline_stats(self.session)
        self.assertEqual(stats.by_status, [])
        self.assertEqual(stats.total_loans, 0)
        self.assertEqual(stats.funded_amount, 0)


if __name__ == "__main__":
    unittest.main()
