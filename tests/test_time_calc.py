from datetime import datetime, time, timezone
from types import SimpleNamespace
import unittest

from hrops.errors import InvalidInputError
from hrops.services.time_calc import compute_attendance, parse_hhmm, shift_half_minutes

STANDARD_SHIFT = SimpleNamespace(
    morning_start=time(8, 0),
    morning_end=time(12, 0),
    afternoon_start=time(13, 30),
    afternoon_end=time(17, 30),
)


class TimeCalcTests(unittest.TestCase):
    def test_late_arrival_and_early_leave(self) -> None:
        result = compute_attendance(
            checkin=datetime(2024, 2, 15, 8, 15, tzinfo=timezone.utc),
            checkout=datetime(2024, 2, 15, 17, 10, tzinfo=timezone.utc),
            shift=STANDARD_SHIFT,
        )

        self.assertEqual(result.late_minutes, 15)
        self.assertEqual(result.early_minutes, 20)
        self.assertEqual(result.morning_minutes, 225)
        self.assertEqual(result.afternoon_minutes, 220)
        self.assertEqual(result.total_minutes, 445)

    def test_full_day_has_no_late_or_early(self) -> None:
        result = compute_attendance(
            checkin=datetime(2024, 2, 15, 7, 45, tzinfo=timezone.utc),
            checkout=datetime(2024, 2, 15, 18, 0, tzinfo=timezone.utc),
            shift=STANDARD_SHIFT,
        )

        self.assertEqual(result.late_minutes, 0)
        self.assertEqual(result.early_minutes, 0)
        self.assertEqual(result.morning_minutes, 240)
        self.assertEqual(result.afternoon_minutes, 240)

    def test_partial_minutes_are_floored(self) -> None:
        result = compute_attendance(
            checkin=datetime(2024, 2, 15, 8, 14, 59, tzinfo=timezone.utc),
            checkout=datetime(2024, 2, 15, 17, 30, tzinfo=timezone.utc),
            shift=STANDARD_SHIFT,
        )

        self.assertEqual(result.late_minutes, 14)
        self.assertEqual(result.morning_minutes, 225)

    def test_afternoon_only_attendance_has_no_morning_minutes(self) -> None:
        result = compute_attendance(
            checkin=datetime(2024, 2, 15, 13, 0, tzinfo=timezone.utc),
            checkout=datetime(2024, 2, 15, 17, 30, tzinfo=timezone.utc),
            shift=STANDARD_SHIFT,
        )

        self.assertEqual(result.morning_minutes, 0)
        self.assertEqual(result.afternoon_minutes, 240)
        self.assertEqual(result.late_minutes, 300)
        self.assertEqual(result.early_minutes, 0)

    def test_same_inputs_give_same_result(self) -> None:
        kwargs = {
            "checkin": datetime(2024, 3, 1, 9, 3, tzinfo=timezone.utc),
            "checkout": datetime(2024, 3, 1, 16, 41, tzinfo=timezone.utc),
            "shift": STANDARD_SHIFT,
        }
        first = compute_attendance(**kwargs)
        second = compute_attendance(**kwargs)

        self.assertEqual(first, second)
        self.assertGreaterEqual(first.late_minutes, 0)
        self.assertGreaterEqual(first.early_minutes, 0)

    def test_shift_half_minutes(self) -> None:
        self.assertEqual(shift_half_minutes(STANDARD_SHIFT), (240, 240))

    def test_parse_hhmm_rejects_out_of_range_values(self) -> None:
        self.assertEqual(parse_hhmm("07:05"), time(7, 5))
        with self.assertRaises(InvalidInputError):
            parse_hhmm("24:00")
        with self.assertRaises(InvalidInputError):
            parse_hhmm("noon")


if __name__ == "__main__":
    unittest.main()
