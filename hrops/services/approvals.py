from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from hrops.clock import Clock
from hrops.errors import InvalidInputError, InvalidStateError, NotFoundError, UnauthorizedError
from hrops.models import ApprovalStatus, AttendanceRequest, RequestKind
from hrops.schemas import ApprovalResultRead, AttendanceRequestRead
from hrops.security import Identity, can_approve
from hrops.services.attendance import lock_user
from hrops.services.request_kinds import ensure_not_blocked, get_kind_handler, run_side_effect

logger = logging.getLogger("hrops.approvals")


def _load_pending_for_update(
    db: Session,
    *,
    kind: RequestKind,
    request_id: int,
    approver: Identity,
) -> AttendanceRequest:
    request = db.scalar(
        select(AttendanceRequest).where(AttendanceRequest.id == request_id).with_for_update()
    )
    if request is None or request.deleted_at is not None or request.kind != kind:
        raise NotFoundError("Request not found", details={"request_id": request_id, "kind": kind.value})
    if not can_approve(approver, request):
        raise UnauthorizedError(details={"request_id": request_id, "approver_id": approver.user_id})
    if request.status != ApprovalStatus.PENDING:
        raise InvalidStateError(
            "Request already processed",
            details={"request_id": request_id, "status": request.status.value},
        )
    return request


def approve_request(
    db: Session,
    *,
    kind: RequestKind,
    request_id: int,
    approver: Identity,
    clock: Clock,
) -> ApprovalResultRead:
    """Approve a PENDING request and apply its side effects in one transaction.

    Any failure rolls everything back and the request stays PENDING. That
    includes an APPROVED request of a blocking kind on one of its dates and an
    insufficient leave balance found while debiting.
    """
    try:
        request = _load_pending_for_update(db, kind=kind, request_id=request_id, approver=approver)
        lock_user(db, request.user_id)
        ensure_not_blocked(
            db,
            get_kind_handler(kind),
            user_id=request.user_id,
            start_date=request.start_date,
            end_date=request.end_date,
        )
        request.status = ApprovalStatus.APPROVED
        request.approved_by = approver.user_id
        request.approved_at = clock.now()
        outcome = run_side_effect(db, request, clock=clock)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(request)
    logger.info(
        "request_approved",
        extra={
            "request_id": request.id,
            "kind": kind.value,
            "user_id": request.user_id,
            "approver_id": approver.user_id,
            "timesheet_ids": outcome.timesheet_ids,
            "leave_transaction_id": outcome.leave_transaction_id,
        },
    )
    return ApprovalResultRead(
        request=AttendanceRequestRead.model_validate(request),
        timesheet_ids=outcome.timesheet_ids,
        leave_transaction_id=outcome.leave_transaction_id,
    )


def reject_request(
    db: Session,
    *,
    kind: RequestKind,
    request_id: int,
    approver: Identity,
    reason: str | None,
    clock: Clock,
) -> ApprovalResultRead:
    normalized_reason = (reason or "").strip()
    if not normalized_reason:
        raise InvalidInputError("Rejection reason is required", details={"request_id": request_id})

    try:
        request = _load_pending_for_update(db, kind=kind, request_id=request_id, approver=approver)
        request.status = ApprovalStatus.REJECTED
        request.rejected_by = approver.user_id
        request.rejected_at = clock.now()
        request.rejected_reason = normalized_reason
        # A rejected request is terminal; its days become free for a new submission.
        request.claims.clear()
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(request)
    logger.info(
        "request_rejected",
        extra={
            "request_id": request.id,
            "kind": kind.value,
            "user_id": request.user_id,
            "approver_id": approver.user_id,
        },
    )
    return ApprovalResultRead(request=AttendanceRequestRead.model_validate(request))
