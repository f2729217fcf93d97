from __future__ import annotations

import logging
from calendar import monthrange
from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from hrops.clock import Clock
from hrops.models import LeaveTransaction, LeaveTransactionType, LeaveType, User
from hrops.schemas import LeaveJobResult
from hrops.services.leave_ledger import apply_transaction, get_or_create_balance
from hrops.settings import get_settings

logger = logging.getLogger("hrops.leave_jobs")

MONTHLY_ACCRUAL_REFERENCE = "monthly_accrual"
ANNUAL_RESET_REFERENCE = "annual_reset"


def _active_user_ids(db: Session) -> list[int]:
    return list(
        db.scalars(
            select(User.id)
            .where(User.is_active.is_(True), User.deleted_at.is_(None))
            .order_by(User.id.asc())
        ).all()
    )


def is_last_day_of_month(day: date) -> bool:
    return day.day == monthrange(day.year, day.month)[1]


def accrue_monthly_leave(
    db: Session,
    *,
    clock: Clock,
    run_date: date | None = None,
    force: bool = False,
) -> LeaveJobResult:
    run_day = run_date or clock.today()
    result = LeaveJobResult(job="monthly_accrual", run_date=run_day, processed_users=0, skipped_users=0)
    if not force and not is_last_day_of_month(run_day):
        logger.info("monthly_accrual_skipped_not_month_end", extra={"run_date": run_day})
        return result

    amount = get_settings().monthly_paid_leave_accrual
    month_key = run_day.year * 100 + run_day.month
    for user_id in _active_user_ids(db):
        already_accrued = db.scalar(
            select(LeaveTransaction.id).where(
                LeaveTransaction.user_id == user_id,
                LeaveTransaction.reference_type == MONTHLY_ACCRUAL_REFERENCE,
                LeaveTransaction.reference_id == month_key,
            )
        )
        if already_accrued is not None:
            result.skipped_users += 1
            continue

        transaction = apply_transaction(
            db,
            user_id=user_id,
            transaction_type=LeaveTransactionType.EARNED,
            leave_type=LeaveType.PAID,
            amount=amount,
            reference_type=MONTHLY_ACCRUAL_REFERENCE,
            reference_id=month_key,
            description=f"Monthly paid leave accrual {run_day:%Y-%m}",
            clock=clock,
        )
        result.processed_users += 1
        result.transaction_ids.append(transaction.id)

    db.commit()
    logger.info(
        "monthly_accrual_completed",
        extra={
            "run_date": run_day,
            "processed_users": result.processed_users,
            "skipped_users": result.skipped_users,
        },
    )
    return result


def reset_annual_leave(
    db: Session,
    *,
    user_id: int,
    clock: Clock,
    run_date: date | None = None,
) -> LeaveTransaction | None:
    """Cap the paid balance at the carry-over limit for a new leave year.

    Returns the CARRY_OVER transaction for the expired remainder, or None when
    nothing expired or the user was already reset this year. Does not commit.
    """
    run_day = run_date or clock.today()
    balance = get_or_create_balance(db, user_id=user_id, clock=clock, lock=True)
    if balance.last_reset_date is not None and balance.last_reset_date.year == run_day.year:
        return None

    max_carry_over = get_settings().max_carry_over_days
    current = float(balance.paid_leave_balance or 0)
    carried = min(max(current, 0), max_carry_over)
    expired = round(current - carried, 2)

    transaction = None
    if expired > 0:
        transaction = apply_transaction(
            db,
            user_id=user_id,
            transaction_type=LeaveTransactionType.CARRY_OVER,
            leave_type=LeaveType.PAID,
            amount=-expired,
            reference_type=ANNUAL_RESET_REFERENCE,
            reference_id=run_day.year,
            description=f"Expired paid leave above carry-over cap of {max_carry_over:g} days",
            clock=clock,
        )

    balance.carry_over_days = carried
    balance.last_reset_date = run_day
    logger.info(
        "annual_leave_reset",
        extra={"user_id": user_id, "carried_over": carried, "expired": expired, "run_date": run_day},
    )
    return transaction


def reset_all_annual_leave(
    db: Session,
    *,
    clock: Clock,
    run_date: date | None = None,
) -> LeaveJobResult:
    run_day = run_date or clock.today()
    result = LeaveJobResult(job="annual_reset", run_date=run_day, processed_users=0, skipped_users=0)
    for user_id in _active_user_ids(db):
        balance = get_or_create_balance(db, user_id=user_id, clock=clock)
        if balance.last_reset_date is not None and balance.last_reset_date.year == run_day.year:
            result.skipped_users += 1
            continue
        transaction = reset_annual_leave(db, user_id=user_id, clock=clock, run_date=run_day)
        result.processed_users += 1
        if transaction is not None:
            result.transaction_ids.append(transaction.id)

    db.commit()
    return result
