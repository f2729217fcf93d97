from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hrops.clock import Clock, attendance_timezone
from hrops.errors import ConflictError, InvalidInputError, InvalidStateError, NotFoundError
from hrops.models import RemoteType, TimesheetDay, TimesheetStatus, User, WorkShift, WorkShiftType
from hrops.services.penalty import compute_penalty, get_active_rule
from hrops.services.shifts import find_applicable_shift, require_applicable_shift
from hrops.services.time_calc import AttendanceComputation, compute_attendance
from hrops.settings import get_settings

logger = logging.getLogger("hrops.attendance")


def _normalize_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _local(value: datetime) -> datetime:
    return _normalize_utc(value).astimezone(attendance_timezone())


def lock_user(db: Session, user_id: int) -> None:
    """Hold the user's row lock until the caller's transaction ends.

    Request creation and approval take it before checking another kind's
    requests, so those checks for one user run one at a time.
    """
    db.execute(select(User.id).where(User.id == user_id).with_for_update())


def ensure_active_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None or not user.is_active or user.deleted_at is not None:
        raise NotFoundError("User not found", details={"user_id": user_id})
    return user


def _select_timesheet(user_id: int, work_date: date):
    return (
        select(TimesheetDay)
        .where(TimesheetDay.user_id == user_id, TimesheetDay.work_date == work_date)
        .with_for_update()
    )


def lock_or_create_timesheet(
    db: Session,
    *,
    user_id: int,
    work_date: date,
) -> tuple[TimesheetDay, bool]:
    """Return the locked timesheet row for the day, inserting it when absent.

    The insert runs in a savepoint so a concurrent writer that wins the
    (user_id, work_date) race leaves this transaction usable; the winner's row
    is then selected for update instead.
    """
    row = db.scalar(_select_timesheet(user_id, work_date))
    if row is not None:
        return row, False

    row = TimesheetDay(
        user_id=user_id,
        work_date=work_date,
        late_minutes=0,
        early_minutes=0,
        approved_late_minutes=0,
        approved_early_minutes=0,
        worked_minutes_morning=0,
        worked_minutes_afternoon=0,
        total_work_minutes=0,
        overtime_minutes=0,
        penalty_amount=0,
        is_remote=False,
        remote_type=RemoteType.OFFICE,
        paid_leave=0,
        unpaid_leave=0,
        status=TimesheetStatus.PENDING,
        type=WorkShiftType.NORMAL,
    )
    try:
        with db.begin_nested():
            db.add(row)
            db.flush()
    except IntegrityError:
        row = db.scalar(_select_timesheet(user_id, work_date))
        if row is None:
            raise
        return row, False
    return row, True


def recompute_penalty(db: Session, row: TimesheetDay) -> int:
    unexcused_late = max(0, (row.late_minutes or 0) - (row.approved_late_minutes or 0))
    unexcused_early = max(0, (row.early_minutes or 0) - (row.approved_early_minutes or 0))
    penalty = compute_penalty(
        late_minutes=unexcused_late,
        early_minutes=unexcused_early,
        rule=get_active_rule(db),
    )
    row.penalty_amount = penalty.total
    return penalty.total


def refresh_timesheet_metrics(db: Session, row: TimesheetDay, shift: WorkShift) -> AttendanceComputation:
    if row.checkin is None or row.checkout is None:
        raise InvalidStateError(
            "Timesheet needs both check-in and check-out",
            details={"timesheet_id": row.id},
        )
    computation = compute_attendance(
        checkin=_local(row.checkin),
        checkout=_local(row.checkout),
        shift=shift,
    )
    row.shift_id = shift.id
    row.late_minutes = computation.late_minutes
    row.early_minutes = computation.early_minutes
    row.worked_minutes_morning = computation.morning_minutes
    row.worked_minutes_afternoon = computation.afternoon_minutes
    row.total_work_minutes = computation.total_minutes
    recompute_penalty(db, row)
    return computation


def _validate_event_time(ts_utc: datetime, *, clock: Clock) -> None:
    settings = get_settings()
    now_utc = clock.now().astimezone(timezone.utc)
    if ts_utc > now_utc:
        raise InvalidInputError("Attendance time cannot be in the future", details={"ts": ts_utc.isoformat()})
    if ts_utc < now_utc - timedelta(days=settings.attendance_max_days_back):
        raise InvalidInputError(
            "Attendance time is too far in the past",
            details={"ts": ts_utc.isoformat(), "max_days_back": settings.attendance_max_days_back},
        )


def record_attendance(
    db: Session,
    *,
    user_id: int,
    checkin: datetime,
    checkout: datetime,
    clock: Clock,
    shift_id: int | None = None,
) -> TimesheetDay:
    settings = get_settings()
    checkin_utc = _normalize_utc(checkin)
    checkout_utc = _normalize_utc(checkout)
    if checkout_utc <= checkin_utc:
        raise InvalidInputError("Checkout must be after checkin")

    duration_minutes = int((checkout_utc - checkin_utc).total_seconds() // 60)
    if duration_minutes < settings.attendance_min_minutes or duration_minutes > settings.attendance_max_minutes:
        raise InvalidInputError(
            "Attendance duration is out of range",
            details={
                "duration_minutes": duration_minutes,
                "min_minutes": settings.attendance_min_minutes,
                "max_minutes": settings.attendance_max_minutes,
            },
        )
    _validate_event_time(checkin_utc, clock=clock)
    _validate_event_time(checkout_utc, clock=clock)

    ensure_active_user(db, user_id)
    work_date = _local(checkin_utc).date()
    shift = require_applicable_shift(db, work_date=work_date, shift_id=shift_id)

    row, _ = lock_or_create_timesheet(db, user_id=user_id, work_date=work_date)
    row.checkin = checkin_utc
    row.checkout = checkout_utc
    row.type = shift.type
    computation = refresh_timesheet_metrics(db, row, shift)

    db.commit()
    db.refresh(row)
    logger.info(
        "attendance_recorded",
        extra={
            "user_id": user_id,
            "work_date": work_date,
            "late_minutes": computation.late_minutes,
            "early_minutes": computation.early_minutes,
            "penalty_amount": row.penalty_amount,
        },
    )
    return row


def record_checkin(
    db: Session,
    *,
    user_id: int,
    clock: Clock,
    ts: datetime | None = None,
    shift_id: int | None = None,
) -> TimesheetDay:
    checkin_utc = _normalize_utc(ts) if ts is not None else clock.now().astimezone(timezone.utc)
    _validate_event_time(checkin_utc, clock=clock)
    ensure_active_user(db, user_id)

    local_checkin = _local(checkin_utc)
    work_date = local_checkin.date()
    row, _ = lock_or_create_timesheet(db, user_id=user_id, work_date=work_date)
    if row.checkin is not None:
        db.rollback()
        raise ConflictError("Already checked in for this day", details={"work_date": work_date.isoformat()})

    row.checkin = checkin_utc
    shift = find_applicable_shift(db, work_date=work_date, shift_id=shift_id)
    if shift is not None:
        row.shift_id = shift.id
        row.type = shift.type
        # Only lateness is known until checkout.
        row.late_minutes = compute_attendance(
            checkin=local_checkin,
            checkout=local_checkin,
            shift=shift,
        ).late_minutes
        recompute_penalty(db, row)

    db.commit()
    db.refresh(row)
    logger.info("attendance_checkin", extra={"user_id": user_id, "work_date": work_date, "late_minutes": row.late_minutes})
    return row


def record_checkout(
    db: Session,
    *,
    user_id: int,
    clock: Clock,
    ts: datetime | None = None,
) -> TimesheetDay:
    checkout_utc = _normalize_utc(ts) if ts is not None else clock.now().astimezone(timezone.utc)
    _validate_event_time(checkout_utc, clock=clock)
    ensure_active_user(db, user_id)

    work_date = _local(checkout_utc).date()
    row = db.scalar(_select_timesheet(user_id, work_date))
    if row is None or row.checkin is None:
        raise InvalidStateError("No check-in recorded for this day", details={"work_date": work_date.isoformat()})
    if checkout_utc <= _normalize_utc(row.checkin):
        raise InvalidInputError("Checkout must be after checkin")

    row.checkout = checkout_utc
    try:
        shift = require_applicable_shift(db, work_date=work_date, shift_id=row.shift_id)
        refresh_timesheet_metrics(db, row, shift)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(row)
    logger.info(
        "attendance_checkout",
        extra={"user_id": user_id, "work_date": work_date, "total_work_minutes": row.total_work_minutes},
    )
    return row


def list_timesheets(
    db: Session,
    *,
    user_id: int | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[TimesheetDay]:
    if start_date is not None and end_date is not None and end_date < start_date:
        raise InvalidInputError("end_date must be greater than or equal to start_date")

    stmt = select(TimesheetDay).order_by(TimesheetDay.work_date.asc(), TimesheetDay.user_id.asc())
    if user_id is not None:
        stmt = stmt.where(TimesheetDay.user_id == user_id)
    if start_date is not None:
        stmt = stmt.where(TimesheetDay.work_date >= start_date)
    if end_date is not None:
        stmt = stmt.where(TimesheetDay.work_date <= end_date)
    return list(db.scalars(stmt).all())
