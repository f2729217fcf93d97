import unittest

from db_support import make_session

from hrops.errors import InvalidInputError
from hrops.models import PenaltyRule
from hrops.services.penalty import BlockRule, compute_penalty, get_active_rule, set_active_rule

RULE = BlockRule(minutes_per_block=15, amount_per_block=50000)


class PenaltyComputationTests(unittest.TestCase):
    def test_block_quantized_late_penalty(self) -> None:
        expected = {14: 0, 15: 50000, 29: 50000, 30: 100000}
        for minutes, amount in expected.items():
            result = compute_penalty(late_minutes=minutes, early_minutes=0, rule=RULE)
            self.assertEqual(result.late_penalty, amount, msg=f"late_minutes={minutes}")

    def test_late_and_early_are_independent(self) -> None:
        result = compute_penalty(late_minutes=16, early_minutes=44, rule=RULE)

        self.assertEqual(result.late_penalty, 50000)
        self.assertEqual(result.early_penalty, 100000)
        self.assertEqual(result.total, 150000)

    def test_missing_rule_means_no_penalty(self) -> None:
        result = compute_penalty(late_minutes=120, early_minutes=90, rule=None)

        self.assertEqual(result.total, 0)

    def test_penalty_is_non_decreasing_and_flat_inside_a_block(self) -> None:
        previous = 0
        for minutes in range(0, 200):
            current = compute_penalty(late_minutes=minutes, early_minutes=0, rule=RULE).total
            following = compute_penalty(late_minutes=minutes + 1, early_minutes=0, rule=RULE).total
            self.assertGreaterEqual(current, previous)
            if minutes % RULE.minutes_per_block != RULE.minutes_per_block - 1:
                self.assertEqual(current, following, msg=f"minutes={minutes}")
            previous = current


class PenaltyRuleStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session()

    def tearDown(self) -> None:
        self.db.close()

    def test_no_rule_configured(self) -> None:
        self.assertIsNone(get_active_rule(self.db))

    def test_set_active_rule_replaces_previous(self) -> None:
        set_active_rule(self.db, minutes_per_block=15, amount_per_block=50000)
        set_active_rule(self.db, minutes_per_block=10, amount_per_block=20000)

        self.assertEqual(get_active_rule(self.db), BlockRule(minutes_per_block=10, amount_per_block=20000))
        active_rows = [row for row in self.db.query(PenaltyRule).all() if row.is_active]
        self.assertEqual(len(active_rows), 1)

    def test_rejects_zero_block(self) -> None:
        with self.assertRaises(InvalidInputError):
            set_active_rule(self.db, minutes_per_block=0, amount_per_block=100)


if __name__ == "__main__":
    unittest.main()
