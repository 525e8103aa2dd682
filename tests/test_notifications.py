"""
Notifier dispatch: every notifier is called and a failing one never stops the rest.
Run from project root: python -m pytest tests/test_notifications.py -v
"""
import unittest
from types import SimpleNamespace

from api.deps import get_notifiers
from reference.tables import load_reference_data
from services.needs_list import build_needs_list
from services.notifications import LoggingNotifier, notify_needs_list_ready, notify_quote_issued
from services.pricing import generate_soft_quote
from tests.support import make_loan


class RecordingNotifier:
    def __init__(self):
        self.calls = []

    def quote_issued(self, loan_id, quote):
        self.calls.append(("quote", loan_id, quote.rate_range))

    def needs_list_ready(self, loan_id, items):
        self.calls.append(("needs_list", loan_id, len(items)))


class BrokenNotifier:
    def quote_issued(self, loan_id, quote):
        raise ConnectionError("CRM unreachable")

    def needs_list_ready(self, loan_id, items):
        raise ConnectionError("mail server down")


class TestNotifications(unittest.TestCase):
    def setUp(self):
        self.quote = generate_soft_quote(make_loan(), reference=load_reference_data())
        self.items = build_needs_list(make_loan())

    def test_failure_is_logged_and_others_still_run(self):
        recorder = RecordingNotifier()
        with self.assertLogs("services.notifications", level="ERROR"):
            notify_quote_issued([BrokenNotifier(), recorder], "loan-test", self.quote)
            notify_needs_list_ready([BrokenNotifier(), recorder], "loan-test", self.items)
        self.assertEqual(
            recorder.calls,
            [("quote", "loan-test", "6.75% – 7.25%"), ("needs_list", "loan-test", len(self.items))],
        )

    def test_logging_notifier(self):
        with self.assertLogs("services.notifications", level="INFO") as logs:
            notify_quote_issued([LoggingNotifier()], "loan-test", self.quote)
        self.assertIn("6.75% – 7.25%", logs.output[0])


class TestNotifierDependency(unittest.TestCase):
    @staticmethod
    def _request(**state):
        return SimpleNamespace(app=SimpleNamespace(state=SimpleNamespace(**state)))

    def test_empty_list_switches_notifications_off(self):
        self.assertEqual(get_notifiers(self._request(notifiers=[])), [])

    def test_configured_notifiers_are_used(self):
        recorder = RecordingNotifier()
        self.assertEqual(get_notifiers(self._request(notifiers=[recorder])), [recorder])

    def test_unconfigured_app_logs_notifications(self):
        notifiers = get_notifiers(self._request())
        self.assertEqual(len(notifiers), 1)
        self.assertIsInstance(notifiers[0], LoggingNotifier)


if __name__ == "__main__":
    unittest.main()
