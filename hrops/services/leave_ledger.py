from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hrops.clock import Clock
from hrops.errors import InsufficientBalanceError, InvalidInputError, NotFoundError
from hrops.models import LeaveBalance, LeaveTransaction, LeaveTransactionType, LeaveType, User
from hrops.schemas import LeaveBalanceRead
from hrops.settings import get_settings

logger = logging.getLogger("hrops.leave_ledger")

OPENING_BALANCE_REFERENCE = "opening_balance"


def _balance_field(leave_type: LeaveType) -> str:
    if leave_type == LeaveType.PAID:
        return "paid_leave_balance"
    return "unpaid_leave_balance"


def _select_balance(user_id: int, *, lock: bool):
    stmt = select(LeaveBalance).where(LeaveBalance.user_id == user_id)
    if lock:
        stmt = stmt.with_for_update()
    return stmt


def get_or_create_balance(
    db: Session,
    *,
    user_id: int,
    clock: Clock,
    lock: bool = False,
) -> LeaveBalance:
    balance = db.scalar(_select_balance(user_id, lock=lock))
    if balance is not None:
        return balance

    settings = get_settings()
    balance = LeaveBalance(
        user_id=user_id,
        paid_leave_balance=0,
        unpaid_leave_balance=0,
        annual_paid_leave_quota=settings.annual_paid_leave_quota,
        carry_over_days=0,
        version=0,
    )
    try:
        with db.begin_nested():
            db.add(balance)
            db.flush()
    except IntegrityError:
        # Another transaction created the row first.
        balance = db.scalar(_select_balance(user_id, lock=lock))
        if balance is None:
            raise
        return balance

    if settings.opening_paid_leave_days > 0:
        apply_transaction(
            db,
            user_id=user_id,
            transaction_type=LeaveTransactionType.EARNED,
            leave_type=LeaveType.PAID,
            amount=settings.opening_paid_leave_days,
            reference_type=OPENING_BALANCE_REFERENCE,
            description="Opening paid leave balance",
            clock=clock,
        )
    logger.info("leave_balance_created", extra={"user_id": user_id})
    return balance


def apply_transaction(
    db: Session,
    *,
    user_id: int,
    transaction_type: LeaveTransactionType,
    leave_type: LeaveType,
    amount: float,
    clock: Clock,
    reference_type: str | None = None,
    reference_id: int | None = None,
    description: str | None = None,
) -> LeaveTransaction:
    """Append one ledger entry and move the cached balance with it.

    This is the only writer of LeaveTransaction rows. The balance row is locked
    for the rest of the caller's transaction; nothing is committed here.
    """
    if amount == 0:
        raise InvalidInputError("Leave transaction amount must not be zero")

    balance = get_or_create_balance(db, user_id=user_id, clock=clock, lock=True)
    field_name = _balance_field(leave_type)
    current = float(getattr(balance, field_name) or 0)
    balance_after = round(current + amount, 2)
    if amount < 0 and balance_after < 0:
        raise InsufficientBalanceError(
            "Insufficient leave balance",
            details={
                "user_id": user_id,
                "leave_type": leave_type.value,
                "current_balance": current,
                "requested": -amount,
            },
        )

    setattr(balance, field_name, balance_after)
    balance.version = (balance.version or 0) + 1

    transaction = LeaveTransaction(
        user_id=user_id,
        transaction_type=transaction_type,
        leave_type=leave_type,
        amount=amount,
        balance_after=balance_after,
        reference_type=reference_type,
        reference_id=reference_id,
        description=description,
        created_at=clock.now(),
    )
    db.add(transaction)
    db.flush()
    logger.info(
        "leave_transaction_applied",
        extra={
            "user_id": user_id,
            "transaction_id": transaction.id,
            "transaction_type": transaction_type.value,
            "leave_type": leave_type.value,
            "amount": amount,
            "balance_after": balance_after,
            "reference_type": reference_type,
            "reference_id": reference_id,
        },
    )
    return transaction


def check_availability(
    db: Session,
    *,
    user_id: int,
    leave_type: LeaveType,
    requested_days: float,
    clock: Clock,
) -> None:
    """Advisory check at request creation; approval re-validates under lock."""
    if leave_type != LeaveType.PAID:
        return
    balance = get_or_create_balance(db, user_id=user_id, clock=clock)
    available = float(balance.paid_leave_balance or 0)
    if requested_days > available:
        raise InsufficientBalanceError(
            "Insufficient paid leave balance",
            details={"user_id": user_id, "current_balance": available, "requested": requested_days},
        )


def _year_window(year: int) -> tuple[datetime, datetime]:
    return (
        datetime(year, 1, 1, tzinfo=timezone.utc),
        datetime(year + 1, 1, 1, tzinfo=timezone.utc),
    )


def get_balance(db: Session, *, user_id: int, year: int, clock: Clock) -> LeaveBalanceRead:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found", details={"user_id": user_id})

    balance = get_or_create_balance(db, user_id=user_id, clock=clock)
    db.commit()

    window_start, window_end = _year_window(year)
    year_filter = (
        LeaveTransaction.user_id == user_id,
        LeaveTransaction.leave_type == LeaveType.PAID,
        LeaveTransaction.created_at >= window_start,
        LeaveTransaction.created_at < window_end,
    )
    earned = db.scalar(
        select(func.coalesce(func.sum(LeaveTransaction.amount), 0)).where(
            *year_filter,
            LeaveTransaction.amount > 0,
        )
    )
    used = db.scalar(
        select(func.coalesce(func.sum(LeaveTransaction.amount), 0)).where(
            *year_filter,
            LeaveTransaction.transaction_type == LeaveTransactionType.USED,
        )
    )

    return LeaveBalanceRead(
        user_id=user_id,
        year=year,
        paid_leave_balance=balance.paid_leave_balance,
        unpaid_leave_balance=balance.unpaid_leave_balance,
        annual_paid_leave_quota=balance.annual_paid_leave_quota,
        carry_over_days=balance.carry_over_days,
        last_reset_date=balance.last_reset_date,
        earned_paid_days=round(float(earned or 0), 2),
        used_paid_days=round(-float(used or 0), 2),
        remaining_paid_days=round(float(balance.paid_leave_balance or 0), 2),
    )


def list_transactions(
    db: Session,
    *,
    user_id: int,
    limit: int = 100,
    offset: int = 0,
) -> list[LeaveTransaction]:
    stmt = (
        select(LeaveTransaction)
        .where(LeaveTransaction.user_id == user_id)
        .order_by(LeaveTransaction.created_at.desc(), LeaveTransaction.id.desc())
        .offset(max(0, offset))
        .limit(max(1, min(limit, 500)))
    )
    return list(db.scalars(stmt).all())


def ledger_total(db: Session, *, user_id: int, leave_type: LeaveType) -> float:
    total = db.scalar(
        select(func.coalesce(func.sum(LeaveTransaction.amount), 0)).where(
            LeaveTransaction.user_id == user_id,
            LeaveTransaction.leave_type == leave_type,
        )
    )
    return round(float(total or 0), 2)
