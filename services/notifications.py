"""
Downstream notifications (borrower email, CRM sync, ...) fired after a decision is made.
Delivery happens outside the request; a failing notifier is logged and never changes the outcome.
"""
from __future__ import annotations

import logging
from typing import Iterable, Protocol

from schemas.needs_list import NeedsListItemSchema
from schemas.quote import SoftQuote

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def quote_issued(self, loan_id: str, quote: SoftQuote) -> None: ...

    def needs_list_ready(self, loan_id: str, items: list[NeedsListItemSchema]) -> None: ...


class LoggingNotifier:
    """Default notifier: writes what would have been sent to the log."""

    def quote_issued(self, loan_id: str, quote: SoftQuote) -> None:
        logger.info("Notify: soft quote %s issued for loan %s (valid until %s)", quote.rate_range, loan_id, quote.valid_until)

    def needs_list_ready(self, loan_id: str, items: list[NeedsListItemSchema]) -> None:
        required = sum(1 for i in items if i.required)
        logger.info("Notify: needs list ready for loan %s (%d items, %d required)", loan_id, len(items), required)


def notify_quote_issued(notifiers: Iterable[Notifier], loan_id: str, quote: SoftQuote) -> None:
    for notifier in notifiers:
        try:
            notifier.quote_issued(loan_id, quote)
        except Exception:
            logger.exception("Notifier %s failed on quote for loan %s", type(notifier).__name__, loan_id)


def notify_needs_list_ready(notifiers: Iterable[Notifier], loan_id: str, items: list[NeedsListItemSchema]) -> None:
    for notifier in notifiers:
        try:
            notifier.needs_list_ready(loan_id, items)
        except Exception:
            logger.exception("Notifier %s failed on needs list for loan %s", type(notifier).__name__, loan_id)
