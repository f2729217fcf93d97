from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone

from sqlalchemy.orm import Session

from hrops.clock import Clock, attendance_timezone
from hrops.models import (
    AttendanceRequest,
    DayOffDuration,
    LateEarlyType,
    LeaveTransactionType,
    LeaveType,
    TimesheetStatus,
    WorkShiftType,
)
from hrops.schemas import (
    DayOffPayload,
    ForgotCheckinPayload,
    LateEarlyPayload,
    OvertimePayload,
    RemoteWorkPayload,
)
from hrops.services.attendance import lock_or_create_timesheet, recompute_penalty, refresh_timesheet_metrics
from hrops.services.leave_ledger import apply_transaction
from hrops.services.shifts import find_applicable_shift, require_applicable_shift
from hrops.services.time_calc import parse_hhmm, shift_half_minutes
from hrops.settings import get_settings

logger = logging.getLogger("hrops.timesheet_effects")

DAY_OFF_REFERENCE = "day_off_request"


@dataclass
class SideEffectResult:
    timesheet_ids: list[int] = field(default_factory=list)
    leave_transaction_id: int | None = None


def iter_days(start_date: date, end_date: date):
    current = start_date
    while current <= end_date:
        yield current
        current += timedelta(days=1)


def day_fraction(duration: DayOffDuration) -> float:
    if duration == DayOffDuration.FULL_DAY:
        return 1.0
    return 0.5


def day_off_total_days(start_date: date, end_date: date, duration: DayOffDuration) -> float:
    calendar_days = (end_date - start_date).days + 1
    return round(calendar_days * day_fraction(duration), 2)


def _combine_utc(day: date, hhmm: str) -> datetime:
    local_dt = datetime.combine(day, parse_hhmm(hhmm), tzinfo=attendance_timezone())
    return local_dt.astimezone(timezone.utc)


def apply_remote_work(db: Session, request: AttendanceRequest, *, clock: Clock) -> SideEffectResult:
    payload = RemoteWorkPayload.model_validate(request.payload)
    row, _ = lock_or_create_timesheet(db, user_id=request.user_id, work_date=request.work_date)
    row.is_remote = True
    row.remote_type = payload.remote_type
    return SideEffectResult(timesheet_ids=[row.id])


def apply_day_off(db: Session, request: AttendanceRequest, *, clock: Clock) -> SideEffectResult:
    payload = DayOffPayload.model_validate(request.payload)
    result = SideEffectResult()

    # Balance row is locked before any timesheet row.
    if payload.leave_type == LeaveType.PAID:
        total_days = payload.total_days or day_off_total_days(request.start_date, request.end_date, payload.duration)
        transaction = apply_transaction(
            db,
            user_id=request.user_id,
            transaction_type=LeaveTransactionType.USED,
            leave_type=LeaveType.PAID,
            amount=-total_days,
            reference_type=DAY_OFF_REFERENCE,
            reference_id=request.id,
            description=f"Day off {request.start_date.isoformat()}..{request.end_date.isoformat()}",
            clock=clock,
        )
        result.leave_transaction_id = transaction.id

    default_half = get_settings().default_half_day_minutes
    fraction = day_fraction(payload.duration)
    for work_date in iter_days(request.start_date, request.end_date):
        shift = find_applicable_shift(db, work_date=work_date)
        if shift is not None:
            morning_length, afternoon_length = shift_half_minutes(shift)
        else:
            morning_length, afternoon_length = default_half, default_half

        if payload.duration == DayOffDuration.MORNING:
            morning_minutes, afternoon_minutes = 0, afternoon_length
        elif payload.duration == DayOffDuration.AFTERNOON:
            morning_minutes, afternoon_minutes = morning_length, 0
        else:
            morning_minutes, afternoon_minutes = 0, 0

        row, _ = lock_or_create_timesheet(db, user_id=request.user_id, work_date=work_date)
        row.worked_minutes_morning = morning_minutes
        row.worked_minutes_afternoon = afternoon_minutes
        row.total_work_minutes = morning_minutes + afternoon_minutes
        row.status = TimesheetStatus.APPROVED
        row.day_off_request_id = request.id
        if payload.leave_type == LeaveType.PAID:
            row.paid_leave = fraction
        else:
            row.unpaid_leave = fraction
        if shift is not None and row.shift_id is None:
            row.shift_id = shift.id
        result.timesheet_ids.append(row.id)

    return result


def apply_overtime(db: Session, request: AttendanceRequest, *, clock: Clock) -> SideEffectResult:
    payload = OvertimePayload.model_validate(request.payload)
    overtime_minutes = int(round((payload.total_hours or 0) * 60))
    row, created = lock_or_create_timesheet(db, user_id=request.user_id, work_date=request.work_date)
    row.type = WorkShiftType.OVERTIME
    row.overtime_minutes = overtime_minutes
    if created:
        row.total_work_minutes = overtime_minutes
    return SideEffectResult(timesheet_ids=[row.id])


def apply_late_early(db: Session, request: AttendanceRequest, *, clock: Clock) -> SideEffectResult:
    payload = LateEarlyPayload.model_validate(request.payload)
    row, _ = lock_or_create_timesheet(db, user_id=request.user_id, work_date=request.work_date)
    if payload.request_type in {LateEarlyType.LATE, LateEarlyType.BOTH}:
        row.approved_late_minutes = payload.late_minutes or 0
    if payload.request_type in {LateEarlyType.EARLY, LateEarlyType.BOTH}:
        row.approved_early_minutes = payload.early_minutes or 0
    recompute_penalty(db, row)
    return SideEffectResult(timesheet_ids=[row.id])


def apply_forgot_checkin(db: Session, request: AttendanceRequest, *, clock: Clock) -> SideEffectResult:
    payload = ForgotCheckinPayload.model_validate(request.payload)
    work_date = request.work_date
    row, _ = lock_or_create_timesheet(db, user_id=request.user_id, work_date=work_date)
    if payload.checkin_time is not None:
        row.checkin = _combine_utc(work_date, payload.checkin_time)
    if payload.checkout_time is not None:
        row.checkout = _combine_utc(work_date, payload.checkout_time)

    if row.checkin is not None and row.checkout is not None:
        shift = require_applicable_shift(db, work_date=work_date, shift_id=row.shift_id)
        refresh_timesheet_metrics(db, row, shift)
    logger.info(
        "forgot_checkin_applied",
        extra={"request_id": request.id, "user_id": request.user_id, "work_date": work_date},
    )
    return SideEffectResult(timesheet_ids=[row.id])
