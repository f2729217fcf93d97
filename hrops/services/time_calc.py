from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time
from typing import Protocol

from hrops.errors import InvalidInputError


class ShiftBoundaries(Protocol):
    morning_start: time
    morning_end: time
    afternoon_start: time
    afternoon_end: time


@dataclass(frozen=True)
class AttendanceComputation:
    late_minutes: int
    early_minutes: int
    morning_minutes: int
    afternoon_minutes: int

    @property
    def total_minutes(self) -> int:
        return self.morning_minutes + self.afternoon_minutes


def parse_hhmm(value: str) -> time:
    try:
        hour_str, minute_str = value.split(":")
        hour = int(hour_str)
        minute = int(minute_str)
    except (AttributeError, ValueError) as exc:
        raise InvalidInputError("Invalid time format, expected HH:MM", details={"value": value}) from exc
    if hour < 0 or hour > 23 or minute < 0 or minute > 59:
        raise InvalidInputError("Invalid time format, expected HH:MM", details={"value": value})
    return time(hour=hour, minute=minute)


def minutes_of_day(value: time) -> int:
    return value.hour * 60 + value.minute


def _floor_minutes(seconds: float) -> int:
    if seconds <= 0:
        return 0
    return int(seconds // 60)


def _anchor(reference: datetime, boundary: time) -> datetime:
    return datetime.combine(reference.date(), boundary, tzinfo=reference.tzinfo)


def _overlap_minutes(
    start: datetime,
    end: datetime,
    window_start: datetime,
    window_end: datetime,
) -> int:
    overlap_start = max(start, window_start)
    overlap_end = min(end, window_end)
    return _floor_minutes((overlap_end - overlap_start).total_seconds())


def shift_half_minutes(shift: ShiftBoundaries) -> tuple[int, int]:
    """Length of the morning and afternoon blocks of a shift, in minutes."""
    morning = minutes_of_day(shift.morning_end) - minutes_of_day(shift.morning_start)
    afternoon = minutes_of_day(shift.afternoon_end) - minutes_of_day(shift.afternoon_start)
    return max(0, morning), max(0, afternoon)


def compute_attendance(
    *,
    checkin: datetime,
    checkout: datetime,
    shift: ShiftBoundaries,
) -> AttendanceComputation:
    """Derive lateness, early leave and worked minutes for one check-in/out pair.

    Shift boundaries are times of day; they are placed on the check-in's
    calendar date (and tzinfo) before comparing. Both timestamps are expected
    in the same local timezone as the shift definition.
    """
    morning_start = _anchor(checkin, shift.morning_start)
    morning_end = _anchor(checkin, shift.morning_end)
    afternoon_start = _anchor(checkin, shift.afternoon_start)
    afternoon_end = _anchor(checkin, shift.afternoon_end)

    late_minutes = _floor_minutes((checkin - morning_start).total_seconds())
    early_minutes = _floor_minutes((afternoon_end - checkout).total_seconds())

    return AttendanceComputation(
        late_minutes=late_minutes,
        early_minutes=early_minutes,
        morning_minutes=_overlap_minutes(checkin, checkout, morning_start, morning_end),
        afternoon_minutes=_overlap_minutes(checkin, checkout, afternoon_start, afternoon_end),
    )
