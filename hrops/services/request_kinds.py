from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.orm import Session

from hrops.clock import Clock
from hrops.errors import ConflictError, InvalidInputError, NotFoundError
from hrops.models import (
    ApprovalStatus,
    AttendanceRequest,
    DayOffDuration,
    LateEarlyType,
    Project,
    RemoteType,
    RequestDayClaim,
    RequestKind,
)
from hrops.schemas import (
    DayOffPayload,
    ForgotCheckinPayload,
    LateEarlyPayload,
    OvertimePayload,
    RemoteWorkPayload,
)
from hrops.services.leave_ledger import check_availability
from hrops.services.shifts import find_applicable_shift, is_working_day
from hrops.services.time_calc import minutes_of_day, parse_hhmm
from hrops.services.timesheet_effects import (
    SideEffectResult,
    apply_day_off,
    apply_forgot_checkin,
    apply_late_early,
    apply_overtime,
    apply_remote_work,
    day_off_total_days,
)
from hrops.settings import get_settings

PayloadValidator = Callable[..., BaseModel]
SideEffect = Callable[..., SideEffectResult]


@dataclass(frozen=True)
class DatePolicy:
    allow_past: bool
    allow_future: bool
    requires_working_day: bool = False


@dataclass(frozen=True)
class RequestKindHandler:
    kind: RequestKind
    payload_model: type[BaseModel]
    validate: PayloadValidator
    side_effect: SideEffect
    date_policy: DatePolicy
    multi_day: bool = False
    # Kinds whose APPROVED requests block creating or approving this kind on the same day.
    blocked_by_approved: tuple[RequestKind, ...] = ()


def _validate_remote_work(
    db: Session,
    *,
    user_id: int,
    start_date: date,
    end_date: date,
    payload: RemoteWorkPayload,
    clock: Clock,
) -> RemoteWorkPayload:
    if payload.remote_type == RemoteType.OFFICE:
        raise InvalidInputError("No request needed for office work", details={"remote_type": payload.remote_type.value})

    max_days_ahead = get_settings().remote_work_max_days_ahead
    if start_date > clock.today() + timedelta(days=max_days_ahead):
        raise InvalidInputError(
            "Remote work can only be requested a limited number of days ahead",
            details={"work_date": start_date.isoformat(), "max_days_ahead": max_days_ahead},
        )
    return payload


def _validate_day_off(
    db: Session,
    *,
    user_id: int,
    start_date: date,
    end_date: date,
    payload: DayOffPayload,
    clock: Clock,
) -> DayOffPayload:
    if end_date < start_date:
        raise InvalidInputError("end_date must be greater than or equal to start_date")
    if end_date != start_date and payload.duration != DayOffDuration.FULL_DAY:
        raise InvalidInputError(
            "Half-day leave can only cover a single day",
            details={"duration": payload.duration.value},
        )

    total_days = day_off_total_days(start_date, end_date, payload.duration)
    check_availability(
        db,
        user_id=user_id,
        leave_type=payload.leave_type,
        requested_days=total_days,
        clock=clock,
    )
    return payload.model_copy(update={"total_days": total_days})


def _validate_overtime(
    db: Session,
    *,
    user_id: int,
    start_date: date,
    end_date: date,
    payload: OvertimePayload,
    clock: Clock,
) -> OvertimePayload:
    start_minutes = minutes_of_day(parse_hhmm(payload.start_time))
    end_minutes = minutes_of_day(parse_hhmm(payload.end_time))
    if end_minutes <= start_minutes:
        raise InvalidInputError(
            "end_time must be after start_time",
            details={"start_time": payload.start_time, "end_time": payload.end_time},
        )

    if payload.project_id is not None:
        project = db.get(Project, payload.project_id)
        if project is None or not project.is_active:
            raise NotFoundError("Project not found", details={"project_id": payload.project_id})

    if is_working_day(db, start_date):
        shift = find_applicable_shift(db, work_date=start_date)
        if shift is not None:
            working_blocks = (
                (minutes_of_day(shift.morning_start), minutes_of_day(shift.morning_end)),
                (minutes_of_day(shift.afternoon_start), minutes_of_day(shift.afternoon_end)),
            )
            for block_start, block_end in working_blocks:
                if start_minutes < block_end and end_minutes > block_start:
                    raise InvalidInputError(
                        "Overtime must be outside working hours",
                        details={"work_date": start_date.isoformat(), "shift_id": shift.id},
                    )

    total_hours = round((end_minutes - start_minutes) / 60, 2)
    return payload.model_copy(update={"total_hours": total_hours})


def _validate_late_early(
    db: Session,
    *,
    user_id: int,
    start_date: date,
    end_date: date,
    payload: LateEarlyPayload,
    clock: Clock,
) -> LateEarlyPayload:
    wants_late = payload.request_type in {LateEarlyType.LATE, LateEarlyType.BOTH}
    wants_early = payload.request_type in {LateEarlyType.EARLY, LateEarlyType.BOTH}
    if wants_late and not payload.late_minutes:
        raise InvalidInputError(
            "late_minutes is required for late requests",
            details={"request_type": payload.request_type.value},
        )
    if wants_early and not payload.early_minutes:
        raise InvalidInputError(
            "early_minutes is required for early leave requests",
            details={"request_type": payload.request_type.value},
        )
    return payload.model_copy(
        update={
            "late_minutes": payload.late_minutes if wants_late else None,
            "early_minutes": payload.early_minutes if wants_early else None,
        }
    )


def _validate_forgot_checkin(
    db: Session,
    *,
    user_id: int,
    start_date: date,
    end_date: date,
    payload: ForgotCheckinPayload,
    clock: Clock,
) -> ForgotCheckinPayload:
    if payload.checkin_time is None and payload.checkout_time is None:
        raise InvalidInputError("At least one of checkin_time or checkout_time is required")

    checkin = parse_hhmm(payload.checkin_time) if payload.checkin_time is not None else None
    checkout = parse_hhmm(payload.checkout_time) if payload.checkout_time is not None else None
    if checkin is not None and checkout is not None and checkout <= checkin:
        raise InvalidInputError(
            "checkout_time must be after checkin_time",
            details={"checkin_time": payload.checkin_time, "checkout_time": payload.checkout_time},
        )
    return payload


FORWARD_ONLY = DatePolicy(allow_past=False, allow_future=True)

REQUEST_KINDS: dict[RequestKind, RequestKindHandler] = {
    RequestKind.REMOTE_WORK: RequestKindHandler(
        kind=RequestKind.REMOTE_WORK,
        payload_model=RemoteWorkPayload,
        validate=_validate_remote_work,
        side_effect=apply_remote_work,
        date_policy=FORWARD_ONLY,
        blocked_by_approved=(RequestKind.DAY_OFF,),
    ),
    RequestKind.DAY_OFF: RequestKindHandler(
        kind=RequestKind.DAY_OFF,
        payload_model=DayOffPayload,
        validate=_validate_day_off,
        side_effect=apply_day_off,
        date_policy=FORWARD_ONLY,
        multi_day=True,
        blocked_by_approved=(RequestKind.REMOTE_WORK,),
    ),
    RequestKind.OVERTIME: RequestKindHandler(
        kind=RequestKind.OVERTIME,
        payload_model=OvertimePayload,
        validate=_validate_overtime,
        side_effect=apply_overtime,
        date_policy=FORWARD_ONLY,
    ),
    RequestKind.LATE_EARLY: RequestKindHandler(
        kind=RequestKind.LATE_EARLY,
        payload_model=LateEarlyPayload,
        validate=_validate_late_early,
        side_effect=apply_late_early,
        date_policy=DatePolicy(allow_past=True, allow_future=True),
    ),
    RequestKind.FORGOT_CHECKIN: RequestKindHandler(
        kind=RequestKind.FORGOT_CHECKIN,
        payload_model=ForgotCheckinPayload,
        validate=_validate_forgot_checkin,
        side_effect=apply_forgot_checkin,
        date_policy=DatePolicy(allow_past=True, allow_future=False, requires_working_day=True),
    ),
}


def get_kind_handler(kind: RequestKind) -> RequestKindHandler:
    return REQUEST_KINDS[kind]


def run_side_effect(db: Session, request: AttendanceRequest, *, clock: Clock) -> SideEffectResult:
    return get_kind_handler(request.kind).side_effect(db, request, clock=clock)


def ensure_not_blocked(
    db: Session,
    handler: RequestKindHandler,
    *,
    user_id: int,
    start_date: date,
    end_date: date,
) -> None:
    """Refuse dates already covered by an APPROVED request of a blocking kind.

    Callers must hold ``lock_user`` for the user, otherwise two requests of
    conflicting kinds can both pass.
    """
    if not handler.blocked_by_approved:
        return
    blocking = db.execute(
        select(RequestDayClaim.work_date, RequestDayClaim.kind)
        .join(AttendanceRequest, AttendanceRequest.id == RequestDayClaim.request_id)
        .where(
            RequestDayClaim.user_id == user_id,
            RequestDayClaim.kind.in_(handler.blocked_by_approved),
            RequestDayClaim.work_date >= start_date,
            RequestDayClaim.work_date <= end_date,
            AttendanceRequest.status == ApprovalStatus.APPROVED,
        )
        .order_by(RequestDayClaim.work_date.asc())
        .limit(1)
    ).first()
    if blocking is not None:
        raise ConflictError(
            "Date is already covered by an approved request",
            details={
                "conflict_date": blocking.work_date.isoformat(),
                "kind": handler.kind.value,
                "blocking_kind": blocking.kind.value,
            },
        )
