from datetime import date
from typing import Literal

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from hrops.clock import Clock, get_clock
from hrops.db import get_db
from hrops.schemas import (
    AttendanceCheckinRequest,
    AttendanceCheckoutRequest,
    AttendanceDashboardRead,
    AttendanceRecordRequest,
    LeaveBalanceRead,
    LeaveTransactionRead,
    TimesheetDayRead,
)
from hrops.security import Identity, ensure_self_or_approver, require_approver, require_identity
from hrops.services.attendance import list_timesheets, record_attendance, record_checkin, record_checkout
from hrops.services.dashboard import build_attendance_dashboard
from hrops.services.leave_ledger import get_balance, list_transactions

router = APIRouter(tags=["attendance"])


def _tag_request(request: Request, *, user_id: int) -> None:
    request.state.employee_id = user_id


@router.post("/api/attendance/records", response_model=TimesheetDayRead)
def record_attendance_endpoint(
    payload: AttendanceRecordRequest,
    request: Request,
    identity: Identity = Depends(require_identity),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> TimesheetDayRead:
    ensure_self_or_approver(identity, payload.user_id)
    _tag_request(request, user_id=payload.user_id)
    row = record_attendance(
        db,
        user_id=payload.user_id,
        checkin=payload.checkin,
        checkout=payload.checkout,
        shift_id=payload.shift_id,
        clock=clock,
    )
    return TimesheetDayRead.model_validate(row)


@router.post("/api/attendance/checkin", response_model=TimesheetDayRead)
def checkin_endpoint(
    payload: AttendanceCheckinRequest,
    request: Request,
    identity: Identity = Depends(require_identity),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> TimesheetDayRead:
    ensure_self_or_approver(identity, payload.user_id)
    _tag_request(request, user_id=payload.user_id)
    row = record_checkin(db, user_id=payload.user_id, ts=payload.ts, shift_id=payload.shift_id, clock=clock)
    return TimesheetDayRead.model_validate(row)


@router.post("/api/attendance/checkout", response_model=TimesheetDayRead)
def checkout_endpoint(
    payload: AttendanceCheckoutRequest,
    request: Request,
    identity: Identity = Depends(require_identity),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> TimesheetDayRead:
    ensure_self_or_approver(identity, payload.user_id)
    _tag_request(request, user_id=payload.user_id)
    row = record_checkout(db, user_id=payload.user_id, ts=payload.ts, clock=clock)
    return TimesheetDayRead.model_validate(row)


@router.get("/api/timesheets", response_model=list[TimesheetDayRead])
def list_timesheets_endpoint(
    user_id: int | None = Query(default=None, ge=1),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    identity: Identity = Depends(require_identity),
    db: Session = Depends(get_db),
) -> list[TimesheetDayRead]:
    if user_id is None and not identity.is_approver:
        user_id = identity.user_id
    if user_id is not None:
        ensure_self_or_approver(identity, user_id)
    rows = list_timesheets(db, user_id=user_id, start_date=start_date, end_date=end_date)
    return [TimesheetDayRead.model_validate(item) for item in rows]


@router.get("/api/dashboard/attendance", response_model=AttendanceDashboardRead)
def attendance_dashboard_endpoint(
    start_date: date = Query(...),
    end_date: date = Query(...),
    user_ids: list[int] | None = Query(default=None),
    period: Literal["daily", "weekly", "monthly", "yearly"] = Query(default="daily"),
    _identity: Identity = Depends(require_approver),
    db: Session = Depends(get_db),
) -> AttendanceDashboardRead:
    return build_attendance_dashboard(
        db,
        start_date=start_date,
        end_date=end_date,
        user_ids=user_ids,
        period=period,
    )


@router.get("/api/leave/balance/{user_id}", response_model=LeaveBalanceRead)
def leave_balance_endpoint(
    user_id: int,
    year: int | None = Query(default=None, ge=2000, le=2100),
    identity: Identity = Depends(require_identity),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> LeaveBalanceRead:
    ensure_self_or_approver(identity, user_id)
    return get_balance(db, user_id=user_id, year=year or clock.today().year, clock=clock)


@router.get("/api/leave/transactions/{user_id}", response_model=list[LeaveTransactionRead])
def leave_transactions_endpoint(
    user_id: int,
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    identity: Identity = Depends(require_identity),
    db: Session = Depends(get_db),
) -> list[LeaveTransactionRead]:
    ensure_self_or_approver(identity, user_id)
    rows = list_transactions(db, user_id=user_id, limit=limit, offset=offset)
    return [LeaveTransactionRead.model_validate(item) for item in rows]
