from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hrops.errors import ConflictError, InvalidStateError, NotFoundError
from hrops.models import Holiday, TimesheetDay, WorkShift, WorkShiftType
from hrops.schemas import HolidayCreate, WorkShiftCreate, WorkShiftUpdate

logger = logging.getLogger("hrops.shifts")


def is_working_day(db: Session, day: date) -> bool:
    if day.weekday() >= 5:
        return False
    holiday_id = db.scalar(select(Holiday.id).where(Holiday.holiday_date == day))
    return holiday_id is None


def find_applicable_shift(
    db: Session,
    *,
    work_date: date,
    shift_id: int | None = None,
) -> WorkShift | None:
    if shift_id is not None:
        return db.get(WorkShift, shift_id)
    return db.scalar(
        select(WorkShift)
        .where(
            WorkShift.type == WorkShiftType.NORMAL,
            WorkShift.start_date <= work_date,
            WorkShift.end_date >= work_date,
        )
        .order_by(WorkShift.created_at.desc(), WorkShift.id.desc())
        .limit(1)
    )


def require_applicable_shift(
    db: Session,
    *,
    work_date: date,
    shift_id: int | None = None,
) -> WorkShift:
    shift = find_applicable_shift(db, work_date=work_date, shift_id=shift_id)
    if shift is None:
        raise NotFoundError(
            "No applicable shift",
            details={"work_date": work_date.isoformat(), "shift_id": shift_id},
        )
    return shift


def create_shift(db: Session, payload: WorkShiftCreate) -> WorkShift:
    shift = WorkShift(**payload.model_dump())
    db.add(shift)
    db.commit()
    db.refresh(shift)
    logger.info("work_shift_created", extra={"shift_id": shift.id, "shift_type": shift.type.value})
    return shift


def list_shifts(db: Session, *, on_date: date | None = None) -> list[WorkShift]:
    stmt = select(WorkShift).order_by(WorkShift.start_date.asc(), WorkShift.id.asc())
    if on_date is not None:
        stmt = stmt.where(WorkShift.start_date <= on_date, WorkShift.end_date >= on_date)
    return list(db.scalars(stmt).all())


def update_shift(db: Session, shift_id: int, payload: WorkShiftUpdate) -> WorkShift:
    shift = db.get(WorkShift, shift_id)
    if shift is None:
        raise NotFoundError("Work shift not found", details={"shift_id": shift_id})

    referenced = db.scalar(select(TimesheetDay.id).where(TimesheetDay.shift_id == shift_id).limit(1))
    if referenced is not None:
        raise InvalidStateError(
            "Work shift is referenced by timesheets and cannot be changed",
            details={"shift_id": shift_id},
        )

    for field_name, value in payload.model_dump().items():
        setattr(shift, field_name, value)
    db.commit()
    db.refresh(shift)
    return shift


def create_holiday(db: Session, payload: HolidayCreate) -> Holiday:
    holiday = Holiday(holiday_date=payload.holiday_date, name=payload.name.strip())
    db.add(holiday)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError(
            "Holiday already exists for this date",
            details={"holiday_date": payload.holiday_date.isoformat()},
        ) from exc
    db.refresh(holiday)
    return holiday


def list_holidays(db: Session, *, year: int | None = None) -> list[Holiday]:
    stmt = select(Holiday).order_by(Holiday.holiday_date.asc())
    if year is not None:
        stmt = stmt.where(Holiday.holiday_date >= date(year, 1, 1), Holiday.holiday_date <= date(year, 12, 31))
    return list(db.scalars(stmt).all())
