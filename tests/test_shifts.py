from datetime import date, time
import unittest

from pydantic import ValidationError

from db_support import add_shift, add_user, make_session

from hrops.errors import ConflictError, InvalidStateError, NotFoundError
from hrops.models import TimesheetDay, WorkShiftType
from hrops.schemas import HolidayCreate, WorkShiftCreate, WorkShiftUpdate
from hrops.services.shifts import (
    create_holiday,
    create_shift,
    find_applicable_shift,
    is_working_day,
    list_holidays,
    require_applicable_shift,
    update_shift,
)


def _shift_payload(**overrides) -> dict:
    values = {
        "name": "Office hours",
        "start_date": date(2024, 1, 1),
        "end_date": date(2024, 12, 31),
        "morning_start": time(8, 0),
        "morning_end": time(12, 0),
        "afternoon_start": time(13, 30),
        "afternoon_end": time(17, 30),
    }
    values.update(overrides)
    return values


class ShiftServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session()

    def tearDown(self) -> None:
        self.db.close()

    def test_working_day_excludes_weekends_and_holidays(self) -> None:
        create_holiday(self.db, HolidayCreate(holiday_date=date(2024, 2, 14), name="Tet holiday"))

        self.assertTrue(is_working_day(self.db, date(2024, 2, 13)))
        self.assertFalse(is_working_day(self.db, date(2024, 2, 14)))
        self.assertFalse(is_working_day(self.db, date(2024, 2, 17)))
        self.assertEqual([item.holiday_date for item in list_holidays(self.db, year=2024)], [date(2024, 2, 14)])

    def test_duplicate_holiday_conflicts(self) -> None:
        create_holiday(self.db, HolidayCreate(holiday_date=date(2024, 2, 14), name="Tet holiday"))

        with self.assertRaises(ConflictError):
            create_holiday(self.db, HolidayCreate(holiday_date=date(2024, 2, 14), name="Duplicate"))

    def test_newest_normal_shift_wins(self) -> None:
        add_shift(self.db)
        newer = create_shift(self.db, WorkShiftCreate(**_shift_payload(name="Summer hours", morning_start=time(7, 30))))
        create_shift(self.db, WorkShiftCreate(**_shift_payload(name="Night", type=WorkShiftType.NIGHT)))

        self.assertEqual(find_applicable_shift(self.db, work_date=date(2024, 6, 3)).id, newer.id)

    def test_no_shift_outside_validity_window(self) -> None:
        add_shift(self.db)

        with self.assertRaises(NotFoundError):
            require_applicable_shift(self.db, work_date=date(2025, 1, 6))

    def test_shift_boundaries_must_be_ordered(self) -> None:
        with self.assertRaises(ValidationError):
            WorkShiftCreate(**_shift_payload(morning_end=time(14, 0)))

    def test_referenced_shift_cannot_be_edited(self) -> None:
        user = add_user(self.db)
        shift = add_shift(self.db)
        update = WorkShiftUpdate(**_shift_payload(name="Renamed"))

        self.assertEqual(update_shift(self.db, shift.id, update).name, "Renamed")

        self.db.add(TimesheetDay(user_id=user.id, work_date=date(2024, 2, 9), shift_id=shift.id))
        self.db.commit()
        with self.assertRaises(InvalidStateError):
            update_shift(self.db, shift.id, WorkShiftUpdate(**_shift_payload(name="Again")))


if __name__ == "__main__":
    unittest.main()
