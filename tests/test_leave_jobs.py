from datetime import date
import unittest

from db_support import add_user, credit_paid_leave, make_clock, make_session

from hrops.models import LeaveBalance, LeaveTransaction, LeaveTransactionType, LeaveType
from hrops.services.leave_jobs import (
    accrue_monthly_leave,
    is_last_day_of_month,
    reset_all_annual_leave,
    reset_annual_leave,
)
from hrops.services.leave_ledger import ledger_total


class MonthlyAccrualTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session()
        self.clock = make_clock()
        self.first = add_user(self.db, "First Employee")
        self.second = add_user(self.db, "Second Employee")
        add_user(self.db, "Former Employee", is_active=False)

    def tearDown(self) -> None:
        self.db.close()

    def test_month_end_detection(self) -> None:
        self.assertTrue(is_last_day_of_month(date(2024, 2, 29)))
        self.assertFalse(is_last_day_of_month(date(2023, 2, 27)))
        self.assertTrue(is_last_day_of_month(date(2023, 2, 28)))
        self.assertTrue(is_last_day_of_month(date(2024, 12, 31)))

    def test_accrual_skipped_before_month_end(self) -> None:
        result = accrue_monthly_leave(self.db, clock=self.clock, run_date=date(2024, 2, 12))

        self.assertEqual(result.processed_users, 0)
        self.assertEqual(self.db.query(LeaveTransaction).count(), 0)

    def test_accrual_credits_active_users_once_per_month(self) -> None:
        first_run = accrue_monthly_leave(self.db, clock=self.clock, run_date=date(2024, 2, 29))
        second_run = accrue_monthly_leave(self.db, clock=self.clock, run_date=date(2024, 2, 29))

        self.assertEqual(first_run.processed_users, 2)
        self.assertEqual(len(first_run.transaction_ids), 2)
        self.assertEqual(second_run.processed_users, 0)
        self.assertEqual(second_run.skipped_users, 2)

        balance = self.db.query(LeaveBalance).filter_by(user_id=self.first.id).one()
        self.assertEqual(balance.paid_leave_balance, 3)
        entry = self.db.query(LeaveTransaction).filter_by(user_id=self.first.id).one()
        self.assertEqual(entry.transaction_type, LeaveTransactionType.EARNED)
        self.assertEqual(entry.reference_type, "monthly_accrual")
        self.assertEqual(entry.reference_id, 202402)

    def test_forced_accrual_runs_mid_month(self) -> None:
        result = accrue_monthly_leave(self.db, clock=self.clock, run_date=date(2024, 3, 10), force=True)

        self.assertEqual(result.processed_users, 2)


class AnnualResetTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session()
        self.clock = make_clock()
        self.user = add_user(self.db)

    def tearDown(self) -> None:
        self.db.close()

    def test_balance_above_cap_expires_remainder(self) -> None:
        credit_paid_leave(self.db, user_id=self.user.id, days=20, clock=self.clock)

        transaction = reset_annual_leave(self.db, user_id=self.user.id, clock=self.clock, run_date=date(2024, 1, 1))
        self.db.commit()

        balance = self.db.query(LeaveBalance).filter_by(user_id=self.user.id).one()
        self.assertIsNotNone(transaction)
        self.assertEqual(transaction.transaction_type, LeaveTransactionType.CARRY_OVER)
        self.assertEqual(transaction.amount, -8)
        self.assertEqual(balance.paid_leave_balance, 12)
        self.assertEqual(balance.carry_over_days, 12)
        self.assertEqual(balance.last_reset_date, date(2024, 1, 1))
        self.assertEqual(ledger_total(self.db, user_id=self.user.id, leave_type=LeaveType.PAID), 12)

    def test_balance_below_cap_is_kept(self) -> None:
        credit_paid_leave(self.db, user_id=self.user.id, days=5, clock=self.clock)

        transaction = reset_annual_leave(self.db, user_id=self.user.id, clock=self.clock, run_date=date(2024, 1, 1))
        self.db.commit()

        balance = self.db.query(LeaveBalance).filter_by(user_id=self.user.id).one()
        self.assertIsNone(transaction)
        self.assertEqual(balance.paid_leave_balance, 5)
        self.assertEqual(balance.carry_over_days, 5)

    def test_reset_runs_once_per_year(self) -> None:
        credit_paid_leave(self.db, user_id=self.user.id, days=30, clock=self.clock)

        first = reset_all_annual_leave(self.db, clock=self.clock, run_date=date(2024, 1, 1))
        second = reset_all_annual_leave(self.db, clock=self.clock, run_date=date(2024, 1, 2))

        self.assertEqual(first.processed_users, 1)
        self.assertEqual(len(first.transaction_ids), 1)
        self.assertEqual(second.processed_users, 0)
        self.assertEqual(second.skipped_users, 1)
        balance = self.db.query(LeaveBalance).filter_by(user_id=self.user.id).one()
        self.assertEqual(balance.paid_leave_balance, 12)


if __name__ == "__main__":
    unittest.main()
