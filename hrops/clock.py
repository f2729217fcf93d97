from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from hrops.settings import get_settings

logger = logging.getLogger("hrops.clock")

DEFAULT_ATTENDANCE_TIMEZONE = "Asia/Ho_Chi_Minh"


@lru_cache
def attendance_timezone() -> ZoneInfo:
    raw_name = (get_settings().attendance_timezone or "").strip() or DEFAULT_ATTENDANCE_TIMEZONE
    try:
        return ZoneInfo(raw_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(
            "attendance_timezone_invalid",
            extra={"configured": raw_name, "fallback": DEFAULT_ATTENDANCE_TIMEZONE},
        )
        return ZoneInfo(DEFAULT_ATTENDANCE_TIMEZONE)


class Clock:
    """Source of "now" for services. Swap in FixedClock to pin time in tests."""

    def now(self) -> datetime:
        raise NotImplementedError

    def today(self) -> date:
        return self.now().astimezone(attendance_timezone()).date()


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock(Clock):
    def __init__(self, value: datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        self.value = value

    def now(self) -> datetime:
        return self.value


_system_clock = SystemClock()


def get_clock() -> Clock:
    return _system_clock
