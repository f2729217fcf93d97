from datetime import date

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from hrops.audit import log_audit
from hrops.clock import Clock, get_clock
from hrops.db import get_db
from hrops.models import ApprovalStatus, RequestKind
from hrops.schemas import (
    ApprovalResultRead,
    AttendanceRequestRead,
    RejectRequestBody,
    RequestCreate,
    RequestStatsRead,
)
from hrops.security import Identity, ensure_self_or_approver, require_approver, require_identity
from hrops.services.approvals import approve_request, reject_request
from hrops.services.requests import (
    cancel_request,
    create_request,
    get_request,
    get_request_stats,
    list_requests,
)

router = APIRouter(prefix="/api/requests", tags=["requests"])


@router.post("", response_model=AttendanceRequestRead, status_code=201)
def create_request_endpoint(
    payload: RequestCreate,
    request: Request,
    identity: Identity = Depends(require_identity),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> AttendanceRequestRead:
    ensure_self_or_approver(identity, payload.user_id)
    created = create_request(db, payload, clock=clock)
    log_audit(
        db,
        actor=identity,
        action="REQUEST_CREATED",
        entity_type="attendance_request",
        entity_id=created.id,
        details={"kind": created.kind.value, "start_date": created.start_date.isoformat()},
        request=request,
    )
    return AttendanceRequestRead.model_validate(created)


@router.get("", response_model=list[AttendanceRequestRead])
def list_requests_endpoint(
    kind: RequestKind | None = Query(default=None),
    user_id: int | None = Query(default=None, ge=1),
    status: ApprovalStatus | None = Query(default=None),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    identity: Identity = Depends(require_identity),
    db: Session = Depends(get_db),
) -> list[AttendanceRequestRead]:
    if not identity.is_approver:
        user_id = identity.user_id
    rows = list_requests(
        db,
        kind=kind,
        user_id=user_id,
        status=status,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )
    return [AttendanceRequestRead.model_validate(item) for item in rows]


@router.get("/stats", response_model=RequestStatsRead)
def request_stats_endpoint(
    user_id: int | None = Query(default=None, ge=1),
    identity: Identity = Depends(require_identity),
    db: Session = Depends(get_db),
) -> RequestStatsRead:
    if user_id is None and not identity.is_approver:
        user_id = identity.user_id
    if user_id is not None:
        ensure_self_or_approver(identity, user_id)
    return get_request_stats(db, user_id=user_id)


@router.get("/{request_id}", response_model=AttendanceRequestRead)
def get_request_endpoint(
    request_id: int,
    identity: Identity = Depends(require_identity),
    db: Session = Depends(get_db),
) -> AttendanceRequestRead:
    item = get_request(db, request_id)
    ensure_self_or_approver(identity, item.user_id)
    return AttendanceRequestRead.model_validate(item)


@router.delete("/{request_id}", response_model=AttendanceRequestRead)
def cancel_request_endpoint(
    request_id: int,
    request: Request,
    identity: Identity = Depends(require_identity),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> AttendanceRequestRead:
    cancelled = cancel_request(db, request_id, actor=identity, clock=clock)
    log_audit(
        db,
        actor=identity,
        action="REQUEST_CANCELLED",
        entity_type="attendance_request",
        entity_id=cancelled.id,
        details={"kind": cancelled.kind.value},
        request=request,
    )
    return AttendanceRequestRead.model_validate(cancelled)


@router.post("/{kind}/{request_id}/approve", response_model=ApprovalResultRead)
def approve_request_endpoint(
    kind: RequestKind,
    request_id: int,
    request: Request,
    identity: Identity = Depends(require_approver),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> ApprovalResultRead:
    result = approve_request(db, kind=kind, request_id=request_id, approver=identity, clock=clock)
    log_audit(
        db,
        actor=identity,
        action="REQUEST_APPROVED",
        entity_type="attendance_request",
        entity_id=request_id,
        details={
            "kind": kind.value,
            "timesheet_ids": result.timesheet_ids,
            "leave_transaction_id": result.leave_transaction_id,
        },
        request=request,
    )
    return result


@router.post("/{kind}/{request_id}/reject", response_model=ApprovalResultRead)
def reject_request_endpoint(
    kind: RequestKind,
    request_id: int,
    payload: RejectRequestBody,
    request: Request,
    identity: Identity = Depends(require_approver),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> ApprovalResultRead:
    result = reject_request(
        db,
        kind=kind,
        request_id=request_id,
        approver=identity,
        reason=payload.reason,
        clock=clock,
    )
    log_audit(
        db,
        actor=identity,
        action="REQUEST_REJECTED",
        entity_type="attendance_request",
        entity_id=request_id,
        details={"kind": kind.value, "reason": result.request.rejected_reason},
        request=request,
    )
    return result
