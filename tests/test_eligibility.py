"""
Eligibility gate: licensing, metro, LTV ceiling and credit floor checks, plus the bypass mode.
Run from project root: python -m pytest tests/test_eligibility.py -v
"""
import unittest

from config import EligibilityMode
from reference.tables import load_reference_data
from services.eligibility import EligibilityGate, check_eligibility, evaluate_eligibility, is_eligible_metro
from tests.support import make_loan


class TestEligibilityGate(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.reference = load_reference_data()

    def _fields(self, result):
        return [e.field for e in result.errors]

    def test_eligible_loan(self):
        result = evaluate_eligibility(make_loan(), self.reference)
        self.assertTrue(result.eligible)
        self.assertEqual(result.errors, [])

    def test_unlicensed_state_always_fails(self):
        """An unlicensed state fails even when everything else is fine."""
        for overrides in ({}, {"requested_ltv": 50}, {"fico_score": 820}, {"property_city": None}):
            result = evaluate_eligibility(make_loan(property_state="DC", **overrides), self.reference)
            self.assertFalse(result.eligible)
            self.assertIn("property_state", self._fields(result))

    def test_state_is_case_insensitive(self):
        result = evaluate_eligibility(make_loan(property_state="tx"), self.reference)
        self.assertTrue(result.eligible)

    def test_city_outside_eligible_metros(self):
        result = evaluate_eligibility(make_loan(property_city="Marfa"), self.reference)
        self.assertFalse(result.eligible)
        self.assertEqual(self._fields(result), ["property_city"])
        self.assertIn("Marfa, TX", result.errors[0].message)

    def test_missing_city_skips_metro_check(self):
        result = evaluate_eligibility(make_loan(property_city=None), self.reference)
        self.assertTrue(result.eligible)

    def test_metro_match_is_substring_either_way(self):
        self.assertTrue(is_eligible_metro("los angeles, ca", self.reference))
        self.assertTrue(is_eligible_metro("Austin", self.reference))
        self.assertFalse(is_eligible_metro("Marfa", self.reference))

    def test_ltv_over_ceiling_cites_ceiling(self):
        loan = make_loan(transaction_type="ground_up", requested_ltv=92)
        result = evaluate_eligibility(loan, self.reference)
        self.assertFalse(result.eligible)
        self.assertEqual(self._fields(result), ["requested_ltv"])
        self.assertEqual(result.errors[0].message, "Requested LTV 92% exceeds maximum 75% for ground_up loans.")

    def test_ltv_at_ceiling_passes(self):
        result = evaluate_eligibility(make_loan(requested_ltv=80), self.reference)
        self.assertTrue(result.eligible)

    def test_ltv_check_skipped_without_transaction_type(self):
        result = evaluate_eligibility(make_loan(transaction_type=None, requested_ltv=95), self.reference)
        self.assertTrue(result.eligible)

    def test_credit_floor_per_transaction_type(self):
        result = evaluate_eligibility(make_loan(transaction_type="heloc", fico_score=690), self.reference)
        self.assertEqual(self._fields(result), ["credit_score"])
        self.assertEqual(result.errors[0].message, "Credit score 690 below minimum 700")

        result = evaluate_eligibility(make_loan(fico_score=620), self.reference)
        self.assertEqual(result.errors[0].message, "Credit score 620 below minimum 640")

    def test_missing_credit_score_is_not_a_failure(self):
        result = evaluate_eligibility(make_loan(fico_score=None), self.reference)
        self.assertTrue(result.eligible)

    def test_all_failures_reported_together(self):
        loan = make_loan(property_state="DC", property_city="Marfa", transaction_type="ground_up", requested_ltv=92, fico_score=600)
        result = evaluate_eligibility(loan, self.reference)
        self.assertEqual(self._fields(result), ["property_state", "property_city", "requested_ltv", "credit_score"])
        self.assertIn("not licensed", result.rejection_reason)

    def test_check_eligibility_uses_process_tables(self):
        self.assertTrue(check_eligibility(make_loan()).eligible)
        self.assertFalse(check_eligibility(make_loan(property_state="DC")).eligible)

    def test_enforced_gate(self):
        gate = EligibilityGate(EligibilityMode.ENFORCED, self.reference)
        self.assertFalse(gate.bypassed)
        result = gate.check(make_loan(property_state="DC"))
        self.assertFalse(result.eligible)
        self.assertFalse(result.bypassed)

    def test_bypass_gate_passes_everything_and_warns(self):
        with self.assertLogs("services.eligibility", level="WARNING"):
            gate = EligibilityGate(EligibilityMode.BYPASS_FOR_TESTING, self.reference)
        result = gate.check(make_loan(property_state="DC", requested_ltv=99, fico_score=500))
        self.assertTrue(result.eligible)
        self.assertTrue(result.bypassed)


if __name__ == "__main__":
    unittest.main()
