from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from hrops.audit import log_audit
from hrops.db import get_db
from hrops.models import AuditLog
from hrops.schemas import (
    AuditLogRead,
    HolidayCreate,
    HolidayRead,
    PenaltyRuleRead,
    PenaltyRuleUpdate,
    WorkShiftCreate,
    WorkShiftRead,
    WorkShiftUpdate,
)
from hrops.security import Identity, require_approver
from hrops.services.penalty import set_active_rule
from hrops.services.shifts import create_holiday, create_shift, list_holidays, list_shifts, update_shift

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/shifts", response_model=list[WorkShiftRead])
def list_shifts_endpoint(
    _identity: Identity = Depends(require_approver),
    db: Session = Depends(get_db),
) -> list[WorkShiftRead]:
    return [WorkShiftRead.model_validate(item) for item in list_shifts(db)]


@router.post("/shifts", response_model=WorkShiftRead, status_code=201)
def create_shift_endpoint(
    payload: WorkShiftCreate,
    request: Request,
    identity: Identity = Depends(require_approver),
    db: Session = Depends(get_db),
) -> WorkShiftRead:
    shift = create_shift(db, payload)
    log_audit(
        db,
        actor=identity,
        action="WORK_SHIFT_CREATED",
        entity_type="work_shift",
        entity_id=shift.id,
        details={"name": shift.name, "type": shift.type.value},
        request=request,
    )
    return WorkShiftRead.model_validate(shift)


@router.put("/shifts/{shift_id}", response_model=WorkShiftRead)
def update_shift_endpoint(
    shift_id: int,
    payload: WorkShiftUpdate,
    request: Request,
    identity: Identity = Depends(require_approver),
    db: Session = Depends(get_db),
) -> WorkShiftRead:
    shift = update_shift(db, shift_id, payload)
    log_audit(
        db,
        actor=identity,
        action="WORK_SHIFT_UPDATED",
        entity_type="work_shift",
        entity_id=shift.id,
        request=request,
    )
    return WorkShiftRead.model_validate(shift)


@router.get("/holidays", response_model=list[HolidayRead])
def list_holidays_endpoint(
    year: int | None = Query(default=None, ge=2000, le=2100),
    _identity: Identity = Depends(require_approver),
    db: Session = Depends(get_db),
) -> list[HolidayRead]:
    return [HolidayRead.model_validate(item) for item in list_holidays(db, year=year)]


@router.post("/holidays", response_model=HolidayRead, status_code=201)
def create_holiday_endpoint(
    payload: HolidayCreate,
    request: Request,
    identity: Identity = Depends(require_approver),
    db: Session = Depends(get_db),
) -> HolidayRead:
    holiday = create_holiday(db, payload)
    log_audit(
        db,
        actor=identity,
        action="HOLIDAY_CREATED",
        entity_type="holiday",
        entity_id=holiday.id,
        details={"holiday_date": holiday.holiday_date.isoformat()},
        request=request,
    )
    return HolidayRead.model_validate(holiday)


@router.put("/penalty-rule", response_model=PenaltyRuleRead)
def update_penalty_rule_endpoint(
    payload: PenaltyRuleUpdate,
    request: Request,
    identity: Identity = Depends(require_approver),
    db: Session = Depends(get_db),
) -> PenaltyRuleRead:
    rule = set_active_rule(
        db,
        minutes_per_block=payload.minutes_per_block,
        amount_per_block=payload.amount_per_block,
    )
    log_audit(
        db,
        actor=identity,
        action="PENALTY_RULE_UPDATED",
        entity_type="penalty_rule",
        entity_id=rule.id,
        details=payload.model_dump(),
        request=request,
    )
    return PenaltyRuleRead.model_validate(rule)


@router.get("/audit-logs", response_model=list[AuditLogRead])
def list_audit_logs_endpoint(
    action: str | None = Query(default=None),
    entity_type: str | None = Query(default=None),
    entity_id: str | None = Query(default=None),
    success: bool | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    _identity: Identity = Depends(require_approver),
    db: Session = Depends(get_db),
) -> list[AuditLogRead]:
    stmt = select(AuditLog).order_by(AuditLog.id.desc()).limit(limit)
    if action:
        stmt = stmt.where(AuditLog.action == action)
    if entity_type:
        stmt = stmt.where(AuditLog.entity_type == entity_type)
    if entity_id:
        stmt = stmt.where(AuditLog.entity_id == entity_id)
    if success is not None:
        stmt = stmt.where(AuditLog.success.is_(success))
    return [AuditLogRead.model_validate(item) for item in db.scalars(stmt).all()]
