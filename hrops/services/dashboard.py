from __future__ import annotations

from collections import defaultdict
from datetime import date
from typing import Literal

from sqlalchemy import select
from sqlalchemy.orm import Session

from hrops.errors import InvalidInputError
from hrops.models import TimesheetDay, TimesheetStatus, User
from hrops.schemas import (
    AttendanceDashboardRead,
    DashboardLeaveStatsRead,
    DashboardOverviewRead,
    DashboardPeriodRead,
    DashboardViolatorRead,
)

DashboardPeriod = Literal["daily", "weekly", "monthly", "yearly"]

TOP_VIOLATORS_LIMIT = 10


def _rate(count: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return round(count * 100 / total, 2)


def _unexcused_late(row: TimesheetDay) -> int:
    return max(0, (row.late_minutes or 0) - (row.approved_late_minutes or 0))


def _unexcused_early(row: TimesheetDay) -> int:
    return max(0, (row.early_minutes or 0) - (row.approved_early_minutes or 0))


def period_key(day: date, period: DashboardPeriod) -> str:
    if period == "daily":
        return day.isoformat()
    if period == "weekly":
        iso_year, iso_week, _ = day.isocalendar()
        return f"{iso_year}-W{iso_week:02d}"
    if period == "monthly":
        return f"{day.year}-{day.month:02d}"
    return str(day.year)


def build_attendance_dashboard(
    db: Session,
    *,
    start_date: date,
    end_date: date,
    user_ids: list[int] | None = None,
    period: DashboardPeriod = "daily",
) -> AttendanceDashboardRead:
    if end_date < start_date:
        raise InvalidInputError("end_date must be greater than or equal to start_date")

    stmt = select(TimesheetDay).where(
        TimesheetDay.work_date >= start_date,
        TimesheetDay.work_date <= end_date,
    )
    if user_ids:
        stmt = stmt.where(TimesheetDay.user_id.in_(user_ids))
    rows = list(db.scalars(stmt.order_by(TimesheetDay.work_date.asc(), TimesheetDay.user_id.asc())).all())

    attendance_rows = [row for row in rows if row.checkin is not None]
    total_records = len(attendance_rows)
    late_count = sum(1 for row in attendance_rows if _unexcused_late(row) > 0)
    early_count = sum(1 for row in attendance_rows if _unexcused_early(row) > 0)
    on_time_count = sum(
        1 for row in attendance_rows if _unexcused_late(row) == 0 and _unexcused_early(row) == 0
    )
    remote_count = sum(1 for row in attendance_rows if row.is_remote)

    overview = DashboardOverviewRead(
        total_records=total_records,
        on_time_count=on_time_count,
        late_count=late_count,
        early_leave_count=early_count,
        remote_count=remote_count,
        on_time_rate=_rate(on_time_count, total_records),
        late_rate=_rate(late_count, total_records),
        early_leave_rate=_rate(early_count, total_records),
        remote_rate=_rate(remote_count, total_records),
        total_penalties=sum(row.penalty_amount or 0 for row in attendance_rows),
    )

    buckets: dict[str, dict[str, int]] = defaultdict(
        lambda: {"total_records": 0, "late_count": 0, "early_leave_count": 0, "total_work_minutes": 0, "total_penalties": 0}
    )
    for row in attendance_rows:
        bucket = buckets[period_key(row.work_date, period)]
        bucket["total_records"] += 1
        bucket["late_count"] += 1 if _unexcused_late(row) > 0 else 0
        bucket["early_leave_count"] += 1 if _unexcused_early(row) > 0 else 0
        bucket["total_work_minutes"] += row.total_work_minutes or 0
        bucket["total_penalties"] += row.penalty_amount or 0
    periods = [DashboardPeriodRead(period=key, **values) for key, values in sorted(buckets.items())]

    violators: dict[int, dict[str, int]] = defaultdict(
        lambda: {
            "late_count": 0,
            "early_leave_count": 0,
            "total_late_minutes": 0,
            "total_early_minutes": 0,
            "total_penalties": 0,
        }
    )
    for row in attendance_rows:
        late_minutes = _unexcused_late(row)
        early_minutes = _unexcused_early(row)
        if late_minutes == 0 and early_minutes == 0:
            continue
        item = violators[row.user_id]
        item["late_count"] += 1 if late_minutes > 0 else 0
        item["early_leave_count"] += 1 if early_minutes > 0 else 0
        item["total_late_minutes"] += late_minutes
        item["total_early_minutes"] += early_minutes
        item["total_penalties"] += row.penalty_amount or 0

    ranked = sorted(
        violators.items(),
        key=lambda entry: (
            -(entry[1]["late_count"] + entry[1]["early_leave_count"]),
            -entry[1]["total_penalties"],
            entry[0],
        ),
    )[:TOP_VIOLATORS_LIMIT]
    names: dict[int, str] = {}
    if ranked:
        names = {
            user_id: full_name
            for user_id, full_name in db.execute(
                select(User.id, User.full_name).where(User.id.in_([user_id for user_id, _ in ranked]))
            ).all()
        }
    top_violators = [
        DashboardViolatorRead(user_id=user_id, full_name=names.get(user_id), **values)
        for user_id, values in ranked
    ]

    leave_rows = [
        row for row in rows if row.day_off_request_id is not None and row.status == TimesheetStatus.APPROVED
    ]
    leave_stats = DashboardLeaveStatsRead(
        paid_leave_days=round(sum(row.paid_leave or 0 for row in leave_rows), 2),
        unpaid_leave_days=round(sum(row.unpaid_leave or 0 for row in leave_rows), 2),
        users_on_leave=len({row.user_id for row in leave_rows}),
    )

    return AttendanceDashboardRead(
        start_date=start_date,
        end_date=end_date,
        period=period,
        overview=overview,
        periods=periods,
        top_violators=top_violators,
        leave_stats=leave_stats,
    )
