"""Shared fixtures: loan snapshots and a throwaway in-memory SQLite store."""
import unittest

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import models  # noqa: F401  registers tables on Base.metadata
from database import Base, enable_sqlite_savepoints
from schemas.loan import LoanSnapshot


def make_loan(**overrides) -> LoanSnapshot:
    """DSCR rental in Austin, TX: full doc, 75% LTV, 1.15x DSCR, FICO 700. Eligible and priced at the base band."""
    data = {
        "id": "loan-test",
        "property_city": "Austin",
        "property_state": "TX",
        "property_zip": "78704",
        "property_type": "residential",
        "residential_units": 1,
        "request_type": "purchase",
        "transaction_type": "dscr_rental",
        "borrower_type": "investment",
        "documentation_type": "full_doc",
        "requested_ltv": 75,
        "property_value": 400_000,
        "loan_amount": 300_000,
        "dscr_ratio": 1.15,
        "fico_score": 700,
    }
    data.update(overrides)
    return LoanSnapshot(**data)


class StoreTestCase(unittest.IsolatedAsyncioTestCase):
    """Fresh in-memory database per test, with SAVEPOINT support turned on."""

    async def asyncSetUp(self):
        self.engine = create_async_engine(
            "sqlite+aiosqlite://",
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
        enable_sqlite_savepoints(self.engine)
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        self.session_factory = async_sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False)
        self.session = self.session_factory()

    async def asyncTearDown(self):
        await self.session.close()
        await self.engine.dispose()
