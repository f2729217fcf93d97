from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hrops.clock import Clock
from hrops.errors import ConflictError, InvalidInputError, InvalidStateError, NotFoundError, UnauthorizedError
from hrops.models import ApprovalStatus, AttendanceRequest, RequestDayClaim, RequestKind
from hrops.schemas import RequestCreate, RequestStatsRead, RequestStatusCounts
from hrops.security import Identity
from hrops.services.attendance import ensure_active_user, lock_user
from hrops.services.request_kinds import RequestKindHandler, ensure_not_blocked, get_kind_handler
from hrops.services.shifts import is_working_day
from hrops.services.timesheet_effects import iter_days

logger = logging.getLogger("hrops.requests")


def _validate_dates(db: Session, handler: RequestKindHandler, *, start_date: date, end_date: date, clock: Clock) -> None:
    if end_date < start_date:
        raise InvalidInputError("end_date must be greater than or equal to start_date")
    if not handler.multi_day and end_date != start_date:
        raise InvalidInputError("This request kind covers a single day", details={"kind": handler.kind.value})

    today = clock.today()
    policy = handler.date_policy
    if not policy.allow_past and start_date < today:
        raise InvalidInputError(
            "Request date cannot be in the past",
            details={"start_date": start_date.isoformat(), "today": today.isoformat()},
        )
    if not policy.allow_future and end_date > today:
        raise InvalidInputError(
            "Request date cannot be in the future",
            details={"end_date": end_date.isoformat(), "today": today.isoformat()},
        )
    if policy.requires_working_day:
        for day in iter_days(start_date, end_date):
            if not is_working_day(db, day):
                raise InvalidInputError("Request date must be a working day", details={"work_date": day.isoformat()})


def _first_claimed_date(
    db: Session,
    *,
    user_id: int,
    kind: RequestKind,
    start_date: date,
    end_date: date,
) -> date | None:
    return db.scalar(
        select(RequestDayClaim.work_date)
        .where(
            RequestDayClaim.user_id == user_id,
            RequestDayClaim.kind == kind,
            RequestDayClaim.work_date >= start_date,
            RequestDayClaim.work_date <= end_date,
        )
        .order_by(RequestDayClaim.work_date.asc())
        .limit(1)
    )


def create_request(db: Session, payload: RequestCreate, *, clock: Clock) -> AttendanceRequest:
    kind = RequestKind(payload.kind)
    handler = get_kind_handler(kind)
    start_date, end_date = payload.date_range()

    try:
        lock_user(db, payload.user_id)
        ensure_active_user(db, payload.user_id)
        _validate_dates(db, handler, start_date=start_date, end_date=end_date, clock=clock)
        ensure_not_blocked(db, handler, user_id=payload.user_id, start_date=start_date, end_date=end_date)

        kind_payload = handler.payload_model.model_validate(
            payload.model_dump(include=set(handler.payload_model.model_fields))
        )
        kind_payload = handler.validate(
            db,
            user_id=payload.user_id,
            start_date=start_date,
            end_date=end_date,
            payload=kind_payload,
            clock=clock,
        )
    except Exception:
        # Releases the user lock; the balance check may also have flushed a first-use balance row.
        db.rollback()
        raise

    request = AttendanceRequest(
        kind=kind,
        user_id=payload.user_id,
        start_date=start_date,
        end_date=end_date,
        title=payload.title,
        reason=payload.reason,
        payload=kind_payload.model_dump(mode="json"),
        status=ApprovalStatus.PENDING,
    )
    request.claims = [
        RequestDayClaim(user_id=payload.user_id, work_date=day, kind=kind)
        for day in iter_days(start_date, end_date)
    ]
    db.add(request)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        conflict_date = _first_claimed_date(
            db,
            user_id=payload.user_id,
            kind=kind,
            start_date=start_date,
            end_date=end_date,
        )
        raise ConflictError(
            "An active request already exists for this date",
            details={
                "kind": kind.value,
                "conflict_date": conflict_date.isoformat() if conflict_date is not None else None,
            },
        ) from exc

    db.refresh(request)
    logger.info(
        "request_created",
        extra={
            "request_id": request.id,
            "kind": kind.value,
            "user_id": request.user_id,
            "start_date": start_date,
            "end_date": end_date,
        },
    )
    return request


def get_request(db: Session, request_id: int, *, kind: RequestKind | None = None) -> AttendanceRequest:
    request = db.get(AttendanceRequest, request_id)
    if request is None or request.deleted_at is not None or (kind is not None and request.kind != kind):
        raise NotFoundError("Request not found", details={"request_id": request_id})
    return request


def list_requests(
    db: Session,
    *,
    kind: RequestKind | None = None,
    user_id: int | None = None,
    status: ApprovalStatus | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[AttendanceRequest]:
    stmt = (
        select(AttendanceRequest)
        .where(AttendanceRequest.deleted_at.is_(None))
        .order_by(AttendanceRequest.created_at.desc(), AttendanceRequest.id.desc())
    )
    if kind is not None:
        stmt = stmt.where(AttendanceRequest.kind == kind)
    if user_id is not None:
        stmt = stmt.where(AttendanceRequest.user_id == user_id)
    if status is not None:
        stmt = stmt.where(AttendanceRequest.status == status)
    if start_date is not None:
        stmt = stmt.where(AttendanceRequest.end_date >= start_date)
    if end_date is not None:
        stmt = stmt.where(AttendanceRequest.start_date <= end_date)
    stmt = stmt.offset(max(0, offset)).limit(max(1, min(limit, 500)))
    return list(db.scalars(stmt).all())


def cancel_request(db: Session, request_id: int, *, actor: Identity, clock: Clock) -> AttendanceRequest:
    request = db.scalar(
        select(AttendanceRequest).where(AttendanceRequest.id == request_id).with_for_update()
    )
    if request is None or request.deleted_at is not None:
        raise NotFoundError("Request not found", details={"request_id": request_id})
    if request.user_id != actor.user_id:
        raise UnauthorizedError("Only the owner can cancel a request")
    if request.status != ApprovalStatus.PENDING:
        raise InvalidStateError(
            "Request already processed",
            details={"request_id": request_id, "status": request.status.value},
        )

    request.deleted_at = clock.now()
    request.claims.clear()
    db.commit()
    db.refresh(request)
    logger.info("request_cancelled", extra={"request_id": request.id, "kind": request.kind.value, "user_id": request.user_id})
    return request


def get_request_stats(db: Session, *, user_id: int | None = None) -> RequestStatsRead:
    stmt = (
        select(AttendanceRequest.kind, AttendanceRequest.status, func.count(AttendanceRequest.id))
        .where(AttendanceRequest.deleted_at.is_(None))
        .group_by(AttendanceRequest.kind, AttendanceRequest.status)
    )
    if user_id is not None:
        stmt = stmt.where(AttendanceRequest.user_id == user_id)

    overall = RequestStatusCounts()
    by_kind = {kind.value: RequestStatusCounts() for kind in RequestKind}
    for kind, status, count in db.execute(stmt).all():
        for bucket in (overall, by_kind[kind.value]):
            bucket.total += count
            if status == ApprovalStatus.PENDING:
                bucket.pending += count
            elif status == ApprovalStatus.APPROVED:
                bucket.approved += count
            elif status == ApprovalStatus.REJECTED:
                bucket.rejected += count

    return RequestStatsRead(user_id=user_id, overall=overall, by_kind=by_kind)
