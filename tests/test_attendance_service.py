from datetime import date, datetime, timezone
import unittest

from db_support import add_penalty_rule, add_shift, add_user, make_clock, make_session

from hrops.errors import ConflictError, InvalidInputError, InvalidStateError, NotFoundError
from hrops.models import TimesheetDay
from hrops.services.attendance import (
    list_timesheets,
    lock_or_create_timesheet,
    record_attendance,
    record_checkin,
    record_checkout,
)


def _utc(day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(2024, 2, day, hour, minute, tzinfo=timezone.utc)


class RecordAttendanceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session()
        self.clock = make_clock()
        self.user = add_user(self.db)
        self.shift = add_shift(self.db)
        add_penalty_rule(self.db)

    def tearDown(self) -> None:
        self.db.close()

    def test_late_and_early_day_is_penalized(self) -> None:
        # 08:15 to 17:10 in Asia/Ho_Chi_Minh.
        row = record_attendance(
            self.db,
            user_id=self.user.id,
            checkin=_utc(9, 1, 15),
            checkout=_utc(9, 10, 10),
            clock=self.clock,
        )

        self.assertEqual(row.work_date, date(2024, 2, 9))
        self.assertEqual(row.late_minutes, 15)
        self.assertEqual(row.early_minutes, 20)
        self.assertEqual(row.worked_minutes_morning, 225)
        self.assertEqual(row.worked_minutes_afternoon, 220)
        self.assertEqual(row.total_work_minutes, 445)
        self.assertEqual(row.penalty_amount, 100000)
        self.assertEqual(row.shift_id, self.shift.id)

    def test_recording_twice_updates_the_same_row(self) -> None:
        record_attendance(self.db, user_id=self.user.id, checkin=_utc(9, 1, 15), checkout=_utc(9, 10, 10), clock=self.clock)
        row = record_attendance(self.db, user_id=self.user.id, checkin=_utc(9, 1, 0), checkout=_utc(9, 10, 30), clock=self.clock)

        self.assertEqual(self.db.query(TimesheetDay).count(), 1)
        self.assertEqual(row.late_minutes, 0)
        self.assertEqual(row.penalty_amount, 0)

    def test_rejects_reversed_or_out_of_range_times(self) -> None:
        with self.assertRaises(InvalidInputError):
            record_attendance(self.db, user_id=self.user.id, checkin=_utc(9, 10), checkout=_utc(9, 1), clock=self.clock)
        with self.assertRaises(InvalidInputError):
            record_attendance(self.db, user_id=self.user.id, checkin=_utc(9, 1), checkout=_utc(9, 1, 10), clock=self.clock)
        with self.assertRaises(InvalidInputError):
            record_attendance(self.db, user_id=self.user.id, checkin=_utc(12, 1), checkout=_utc(12, 10), clock=self.clock)

    def test_unknown_user(self) -> None:
        with self.assertRaises(NotFoundError):
            record_attendance(self.db, user_id=999, checkin=_utc(9, 1), checkout=_utc(9, 10), clock=self.clock)

    def test_lock_or_create_returns_existing_row(self) -> None:
        first, created = lock_or_create_timesheet(self.db, user_id=self.user.id, work_date=date(2024, 2, 9))
        self.db.commit()
        second, created_again = lock_or_create_timesheet(self.db, user_id=self.user.id, work_date=date(2024, 2, 9))

        self.assertTrue(created)
        self.assertFalse(created_again)
        self.assertEqual(first.id, second.id)


class CheckinCheckoutTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session()
        self.user = add_user(self.db)
        add_shift(self.db)
        add_penalty_rule(self.db)

    def tearDown(self) -> None:
        self.db.close()

    def test_checkin_then_checkout_computes_the_day(self) -> None:
        # Clock sits at 08:40 local on Monday.
        row = record_checkin(self.db, user_id=self.user.id, clock=make_clock(_utc(12, 1, 40)))
        self.assertEqual(row.late_minutes, 40)
        self.assertEqual(row.penalty_amount, 100000)

        row = record_checkout(self.db, user_id=self.user.id, clock=make_clock(_utc(12, 10, 30)))

        self.assertEqual(row.work_date, date(2024, 2, 12))
        self.assertEqual(row.early_minutes, 0)
        self.assertEqual(row.worked_minutes_morning, 200)
        self.assertEqual(row.worked_minutes_afternoon, 240)

    def test_second_checkin_conflicts(self) -> None:
        record_checkin(self.db, user_id=self.user.id, clock=make_clock(_utc(12, 1)))

        with self.assertRaises(ConflictError):
            record_checkin(self.db, user_id=self.user.id, clock=make_clock(_utc(12, 2)))

    def test_checkout_without_checkin(self) -> None:
        with self.assertRaises(InvalidStateError):
            record_checkout(self.db, user_id=self.user.id, clock=make_clock(_utc(12, 10)))

    def test_future_timestamp_is_rejected(self) -> None:
        with self.assertRaises(InvalidInputError):
            record_checkin(self.db, user_id=self.user.id, ts=_utc(13, 1), clock=make_clock(_utc(12, 3)))

    def test_list_timesheets_filters_by_range(self) -> None:
        record_checkin(self.db, user_id=self.user.id, ts=_utc(8, 1), clock=make_clock(_utc(12, 3)))
        record_checkin(self.db, user_id=self.user.id, ts=_utc(9, 1), clock=make_clock(_utc(12, 3)))

        rows = list_timesheets(self.db, user_id=self.user.id, start_date=date(2024, 2, 9), end_date=date(2024, 2, 9))

        self.assertEqual([row.work_date for row in rows], [date(2024, 2, 9)])
        with self.assertRaises(InvalidInputError):
            list_timesheets(self.db, start_date=date(2024, 2, 9), end_date=date(2024, 2, 8))


if __name__ == "__main__":
    unittest.main()
